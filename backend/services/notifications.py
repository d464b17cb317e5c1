import logging

from starlette.concurrency import run_in_threadpool

from backend.services.events import (
    PENDING_REQUEST_UPDATE_EVENT,
    SLOT_PENDING_EVENT,
    BookingApproved,
    PendingRequestsChanged,
    SlotPending,
)

logger = logging.getLogger(__name__)

APPROVAL_SUBJECT = 'Booking Approved'


def format_approval_email(event: BookingApproved) -> tuple[str, str]:
    formatted_date = event.date.strftime('%d/%m/%Y')
    body = (
        f'Your booking for {event.room} on {formatted_date} during period {event.period} '
        f'(Purpose: {event.purpose}) has been approved.'
    )
    return APPROVAL_SUBJECT, body


class NotificationDispatcher:
    """Delivers transition events over push and email.

    Runs after the response has been sent. Nothing raised here reaches the
    caller of the transition: each failure is logged and the next event is
    still delivered.
    """

    def __init__(self, push_hub, mailer) -> None:
        self.push_hub = push_hub
        self.mailer = mailer

    async def dispatch(self, events) -> None:
        for event in events:
            try:
                await self._deliver(event)
            except Exception:
                logger.exception('Failed to deliver %s', type(event).__name__)

    async def _deliver(self, event) -> None:
        if isinstance(event, SlotPending):
            await self.push_hub.send_to_user(
                event.user_id,
                SLOT_PENDING_EVENT,
                {'room': event.room, 'date': event.date.isoformat(), 'period': event.period},
            )
        elif isinstance(event, PendingRequestsChanged):
            await self.push_hub.broadcast(
                PENDING_REQUEST_UPDATE_EVENT,
                {'requestId': event.request_id},
            )
        elif isinstance(event, BookingApproved):
            subject, body = format_approval_email(event)
            await run_in_threadpool(self.mailer.send, event.recipient, subject, body)
        else:
            logger.warning('No delivery channel for event %r', event)
