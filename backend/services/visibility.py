import logging
from dataclasses import dataclass
from datetime import date

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.models.booking import Booking
from backend.services.errors import InternalError
from backend.services.slots import SlotStatus, iter_periods, is_valid_period

logger = logging.getLogger(__name__)


@dataclass
class SlotView:
    period: int
    occupied: bool = False
    status: str | None = None
    purpose: str | None = None


def get_availability(db: Session, room: str, slot_date: date, viewer_id: int) -> list[SlotView]:
    """Return the 7 periods of ``room`` on ``slot_date`` as seen by ``viewer_id``.

    Booked slots are shown to everyone. A pending slot is shown only to the
    user who requested it; every other viewer sees it as free.
    """
    try:
        bookings = db.query(Booking.period, Booking.status, Booking.purpose, Booking.user_id).filter(
            Booking.room == room,
            Booking.date == slot_date,
        ).all()
    except SQLAlchemyError as exc:
        logger.exception('Availability lookup failed for room=%s date=%s', room, slot_date)
        raise InternalError() from exc

    views = {period: SlotView(period=period) for period in iter_periods()}

    for booking in bookings:
        if not is_valid_period(booking.period):
            continue

        if booking.status == SlotStatus.PENDING and booking.user_id != viewer_id:
            continue

        current = views[booking.period]
        if current.status == SlotStatus.BOOKED:
            continue

        views[booking.period] = SlotView(
            period=booking.period,
            occupied=True,
            status=booking.status,
            purpose=booking.purpose,
        )

    return [views[period] for period in iter_periods()]
