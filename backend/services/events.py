"""Post-commit events produced by booking transitions.

A transition returns these instead of notifying anyone itself; the
notification dispatcher delivers them after the response has been sent.
"""

from dataclasses import dataclass
from datetime import date

SLOT_PENDING_EVENT = 'slotPending'
PENDING_REQUEST_UPDATE_EVENT = 'pendingRequestUpdate'


@dataclass(frozen=True)
class SlotPending:
    """Tells the requesting user that their slot is now pending."""

    user_id: int
    room: str
    date: date
    period: int


@dataclass(frozen=True)
class PendingRequestsChanged:
    """Broadcast to every client so HOD views re-fetch the pending list."""

    request_id: int | None = None


@dataclass(frozen=True)
class BookingApproved:
    """Drives the approval email to the booking owner."""

    recipient: str
    room: str
    date: date
    period: int
    purpose: str
