from datetime import date
from typing import NoReturn

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, Request, status
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.auth.dependencies import get_current_user, require_hod
from backend.database import ensure_booking_schema, get_db
from backend.models.user import User
from backend.services.booking_engine import BookingEngine
from backend.services.errors import BookingError
from backend.services.notifications import NotificationDispatcher
from backend.services.visibility import get_availability

router = APIRouter(tags=['bookings'])


class CreateBookingRequest(BaseModel):
    """Booking payload.

    Malformed values are turned into None here so the engine reports them as
    InvalidInput, the same way it reports missing fields. The date stays a
    string and is parsed by the engine.
    """

    room: str | None = None
    slot_date: str | None = Field(default=None, alias='date')
    period: int | None = None
    purpose: str | None = None

    class Config:
        populate_by_name = True

    @field_validator('room', 'slot_date', 'purpose', mode='before')
    @classmethod
    def text_or_none(cls, value):
        if not isinstance(value, str):
            return None
        return value.strip()

    @field_validator('period', mode='before')
    @classmethod
    def integer_or_none(cls, value):
        if isinstance(value, bool) or not isinstance(value, int):
            return None
        return value


class BookingDecisionRequest(BaseModel):
    request_id: int = Field(alias='requestId')

    class Config:
        populate_by_name = True


class BookingCreatedResponse(BaseModel):
    id: int
    message: str


class SlotViewResponse(BaseModel):
    period: int
    occupied: bool
    status: str | None = None
    purpose: str | None = None

    class Config:
        from_attributes = True


class PendingRequestResponse(BaseModel):
    id: int
    username: str
    room: str
    date: date
    period: int
    purpose: str

    class Config:
        from_attributes = True


def ensure_database_ready() -> None:
    try:
        ensure_booking_schema()
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail='Database unavailable. Verify DATABASE_URL and database credentials.',
        ) from exc


def get_booking_engine(db: Session = Depends(get_db)) -> BookingEngine:
    return BookingEngine(db)


def get_dispatcher(request: Request) -> NotificationDispatcher:
    return request.app.state.dispatcher


def raise_booking_error(exc: BookingError) -> NoReturn:
    raise HTTPException(status_code=exc.status_code, detail=exc.message) from exc


@router.post('', response_model=BookingCreatedResponse, status_code=status.HTTP_201_CREATED)
def create_booking(
    data: CreateBookingRequest,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_user),
    engine: BookingEngine = Depends(get_booking_engine),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    ensure_database_ready()

    try:
        result = engine.request_booking(
            room=data.room,
            slot_date=data.slot_date,
            period=data.period,
            purpose=data.purpose,
            acting_user_id=current_user.id,
        )
    except BookingError as exc:
        raise_booking_error(exc)

    background_tasks.add_task(dispatcher.dispatch, result.events)
    return BookingCreatedResponse(id=result.booking_id, message='Booking request sent for HOD approval')


@router.get('/availability', response_model=list[SlotViewResponse])
def read_availability(
    room: str = Query(default=''),
    date: date | None = Query(default=None),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    normalized_room = room.strip()
    if not normalized_room or date is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='Room and date are required',
        )

    ensure_database_ready()

    try:
        return get_availability(db, normalized_room, date, current_user.id)
    except BookingError as exc:
        raise_booking_error(exc)


@router.get('/pending', response_model=list[PendingRequestResponse])
def list_pending_requests(
    current_user: User = Depends(require_hod),
    engine: BookingEngine = Depends(get_booking_engine),
):
    ensure_database_ready()

    try:
        return engine.list_pending()
    except BookingError as exc:
        raise_booking_error(exc)


@router.post('/approve')
def approve_booking(
    data: BookingDecisionRequest,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(require_hod),
    engine: BookingEngine = Depends(get_booking_engine),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    ensure_database_ready()

    try:
        result = engine.approve(data.request_id)
    except BookingError as exc:
        raise_booking_error(exc)

    background_tasks.add_task(dispatcher.dispatch, result.events)
    return {'message': 'Booking approved'}


@router.post('/reject')
def reject_booking(
    data: BookingDecisionRequest,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(require_hod),
    engine: BookingEngine = Depends(get_booking_engine),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    ensure_database_ready()

    try:
        result = engine.reject(data.request_id)
    except BookingError as exc:
        raise_booking_error(exc)

    background_tasks.add_task(dispatcher.dispatch, result.events)
    return {'message': 'Booking request rejected and removed'}
