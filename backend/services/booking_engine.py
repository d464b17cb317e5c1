"""Booking state transitions: request (pending), approve (booked), reject (deleted).

Mutual exclusion is left to the store. Approve and reject are each a single
conditional write keyed by (id, status='pending'), so whichever reaches the
database first wins and the other sees zero affected rows. The partial unique
index on booked slots keeps a second pending request for the same slot from
ever being approved.

Creating a request is check-then-insert: only an existing *booked* row blocks
it, so several users can hold pending requests for the same slot at once.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Callable

from sqlalchemy import delete, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from backend.models.booking import Booking
from backend.models.user import User
from backend.services.errors import AlreadyProcessed, InternalError, InvalidInput, PastSlot, SlotTaken
from backend.services.events import BookingApproved, PendingRequestsChanged, SlotPending
from backend.services.slots import SlotStatus, is_valid_period, period_end_time

logger = logging.getLogger(__name__)

MAX_PURPOSE_LENGTH = 255


@dataclass
class TransitionResult:
    booking_id: int
    events: list = field(default_factory=list)


@dataclass(frozen=True)
class PendingRequest:
    id: int
    username: str
    room: str
    date: date
    period: int
    purpose: str


def _normalize_text(value) -> str:
    if not isinstance(value, str):
        return ''
    return value.strip()


def _coerce_date(value) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value.strip():
        try:
            return date.fromisoformat(value.strip())
        except ValueError as exc:
            raise InvalidInput() from exc
    raise InvalidInput()


class BookingEngine:
    def __init__(self, db: Session, now: Callable[[], datetime] = datetime.now) -> None:
        self.db = db
        self.now = now

    def request_booking(self, room, slot_date, period, purpose, acting_user_id: int) -> TransitionResult:
        room = _normalize_text(room)
        purpose = _normalize_text(purpose)
        if not room or not purpose or slot_date is None or not is_valid_period(period):
            raise InvalidInput()
        if len(purpose) > MAX_PURPOSE_LENGTH:
            raise InvalidInput(f'Purpose must be {MAX_PURPOSE_LENGTH} characters or fewer.')
        slot_date = _coerce_date(slot_date)

        end_time = period_end_time(slot_date, period)
        if end_time <= self.now():
            raise PastSlot()

        try:
            existing = self.db.query(Booking.id).filter(
                Booking.room == room,
                Booking.date == slot_date,
                Booking.period == period,
                Booking.status == SlotStatus.BOOKED,
            ).first()
            if existing:
                raise SlotTaken()

            booking = Booking(
                user_id=acting_user_id,
                room=room,
                date=slot_date,
                period=period,
                end_time=end_time,
                purpose=purpose,
                status=SlotStatus.PENDING,
            )
            self.db.add(booking)
            self.db.commit()
            self.db.refresh(booking)
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception('Booking insert failed for room=%s date=%s period=%s', room, slot_date, period)
            raise InternalError('Booking failed (server error)') from exc

        logger.info('Booking %s pending: user=%s room=%s date=%s period=%s', booking.id, acting_user_id, room, slot_date, period)
        return TransitionResult(
            booking_id=booking.id,
            events=[
                SlotPending(user_id=acting_user_id, room=room, date=slot_date, period=period),
                PendingRequestsChanged(request_id=booking.id),
            ],
        )

    def approve(self, request_id: int) -> TransitionResult:
        self._check_request_id(request_id)
        try:
            result = self.db.execute(
                update(Booking)
                .where(Booking.id == request_id, Booking.status == SlotStatus.PENDING)
                .values(status=SlotStatus.BOOKED)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                self.db.rollback()
                raise AlreadyProcessed()
            self.db.commit()
        except IntegrityError as exc:
            # another request for this slot was approved first
            self.db.rollback()
            raise SlotTaken() from exc
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception('Approve failed for booking %s', request_id)
            raise InternalError('Server error') from exc

        logger.info('Booking %s approved', request_id)
        events = []
        details = self._fetch_owner_details(request_id)
        if details is not None:
            events.append(details)
        events.append(PendingRequestsChanged(request_id=request_id))
        return TransitionResult(booking_id=request_id, events=events)

    def reject(self, request_id: int) -> TransitionResult:
        self._check_request_id(request_id)
        try:
            result = self.db.execute(
                delete(Booking)
                .where(Booking.id == request_id, Booking.status == SlotStatus.PENDING)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                self.db.rollback()
                raise AlreadyProcessed()
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception('Reject failed for booking %s', request_id)
            raise InternalError('Server error') from exc

        logger.info('Booking %s rejected', request_id)
        return TransitionResult(
            booking_id=request_id,
            events=[PendingRequestsChanged(request_id=request_id)],
        )

    def list_pending(self) -> list[PendingRequest]:
        try:
            rows = self.db.query(
                Booking.id,
                User.username,
                Booking.room,
                Booking.date,
                Booking.period,
                Booking.purpose,
            ).join(User, Booking.user_id == User.id).filter(
                Booking.status == SlotStatus.PENDING,
            ).order_by(Booking.id.asc()).all()
        except SQLAlchemyError as exc:
            logger.exception('Listing pending bookings failed')
            raise InternalError() from exc

        return [
            PendingRequest(
                id=row.id,
                username=row.username,
                room=row.room,
                date=row.date,
                period=row.period,
                purpose=row.purpose,
            )
            for row in rows
        ]

    def _check_request_id(self, request_id) -> None:
        if isinstance(request_id, bool) or not isinstance(request_id, int):
            raise InvalidInput('A valid requestId is required.')

    def _fetch_owner_details(self, request_id: int) -> BookingApproved | None:
        # The approval is already committed; a failure here only costs the email.
        try:
            row = self.db.query(
                User.username,
                Booking.room,
                Booking.date,
                Booking.period,
                Booking.purpose,
            ).join(User, Booking.user_id == User.id).filter(Booking.id == request_id).first()
        except SQLAlchemyError:
            logger.exception('Error fetching booking/user details for booking %s', request_id)
            return None

        if row is None:
            logger.error('Approved booking %s has no owner details', request_id)
            return None

        return BookingApproved(
            recipient=row.username,
            room=row.room,
            date=row.date,
            period=row.period,
            purpose=row.purpose,
        )
