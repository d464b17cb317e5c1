import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from backend.auth import jwt_handler
from backend.database import get_db
from backend.models.user import User

security = HTTPBearer(auto_error=False)


def user_id_from_token(token: str) -> int:
    try:
        return jwt_handler.read_user_id(token)
    except jwt.InvalidTokenError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid token") from exc


def user_from_token(token: str, db: Session) -> User:
    """Resolve a bearer token to an existing user, or raise 403."""
    user_id = user_id_from_token(token)

    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid token")
    return user


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    if credentials is None or not credentials.credentials:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing or invalid token")

    return user_from_token(credentials.credentials, db)


def require_hod(current_user: User = Depends(get_current_user)) -> User:
    if not current_user.is_hod:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only the HOD can manage booking requests.",
        )
    return current_user
