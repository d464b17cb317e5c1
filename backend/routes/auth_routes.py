import logging

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from backend.auth import jwt_handler
from backend.auth.dependencies import get_current_user
from backend.auth.passwords import hash_password, verify_password
from backend.core import config
from backend.database import get_db
from backend.models.user import ROLE_USER, User

router = APIRouter(tags=['auth'])

logger = logging.getLogger(__name__)


class CredentialsRequest(BaseModel):
    username: str
    password: str

    @field_validator('username')
    @classmethod
    def normalize_username(cls, value: str) -> str:
        return value.strip().lower()


class LoginResponse(BaseModel):
    token: str
    role: str
    userId: int


class MeResponse(BaseModel):
    id: int
    username: str
    role: str

    class Config:
        from_attributes = True


@router.post('/register', status_code=status.HTTP_201_CREATED)
def register(data: CredentialsRequest, db: Session = Depends(get_db)):
    if not data.username or not data.password:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='Username and password are required',
        )

    if len(data.password) < config.MIN_PASSWORD_LENGTH:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f'Password must be at least {config.MIN_PASSWORD_LENGTH} characters long',
        )

    user = User(
        username=data.username,
        hashed_password=hash_password(data.password),
        role=ROLE_USER,
    )
    try:
        db.add(user)
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail='Username already exists',
        ) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Registration failed for %s', data.username)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail='Database error',
        ) from exc

    return {'message': 'User registered successfully'}


@router.post('/login', response_model=LoginResponse)
def login(data: CredentialsRequest, db: Session = Depends(get_db)):
    try:
        user = db.query(User).filter(User.username == data.username).first()
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail='Database error',
        ) from exc

    if user is None or not verify_password(user.hashed_password, data.password):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail='Invalid credentials')

    token = jwt_handler.create_access_token(user.id)
    return LoginResponse(token=token, role=user.role, userId=user.id)


@router.get('/me', response_model=MeResponse)
def me(current_user: User = Depends(get_current_user)):
    return current_user
