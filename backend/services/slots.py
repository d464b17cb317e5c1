from datetime import date, datetime, time

from backend.services.errors import InvalidInput

PERIOD_COUNT = 7
PERIOD_END_TIMES = (
    time(9, 40),
    time(10, 30),
    time(11, 40),
    time(12, 30),
    time(14, 20),
    time(15, 10),
    time(16, 0),
)


class SlotStatus:
    PENDING = 'pending'
    BOOKED = 'booked'


def iter_periods() -> range:
    return range(1, PERIOD_COUNT + 1)


def is_valid_period(period) -> bool:
    # bool is an int subclass; True must not pass as period 1
    if isinstance(period, bool) or not isinstance(period, int):
        return False
    return 1 <= period <= PERIOD_COUNT


def period_end_time(slot_date: date, period: int) -> datetime:
    if not is_valid_period(period):
        raise InvalidInput()
    return datetime.combine(slot_date, PERIOD_END_TIMES[period - 1])
