"""Booking model definitions."""

from datetime import datetime

from sqlalchemy import Column, Integer, Date, DateTime, ForeignKey, Index, String, text
from backend.database import Base


class Booking(Base):
    """A pending or approved claim on one (room, date, period) slot."""
    __tablename__ = "bookings"
    __table_args__ = (
        Index("idx_bookings_room_date", "room", "date"),
        Index("idx_bookings_status", "status"),
        # at most one booked record per slot
        Index(
            "uq_bookings_booked_slot",
            "room",
            "date",
            "period",
            unique=True,
            postgresql_where=text("status = 'booked'"),
            sqlite_where=text("status = 'booked'"),
        ),
    )

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    room = Column(String, nullable=False)
    date = Column(Date, nullable=False)
    period = Column(Integer, nullable=False)
    end_time = Column(DateTime)
    purpose = Column(String, nullable=False)
    status = Column(String, nullable=False)  # pending/booked
    created_at = Column(DateTime, default=datetime.now)
