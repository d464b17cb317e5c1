import threading
from datetime import date, datetime

import pytest
from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker

from backend.database import Base
from backend.models.booking import Booking
from backend.models.user import User
from backend.services.booking_engine import MAX_PURPOSE_LENGTH, BookingEngine, PendingRequest
from backend.services.errors import AlreadyProcessed, InternalError, InvalidInput, PastSlot, SlotTaken
from backend.services.events import BookingApproved, PendingRequestsChanged, SlotPending
from backend.services.slots import SlotStatus

FIXED_NOW = datetime(2025, 3, 20, 8, 0)
SLOT_DATE = date(2025, 3, 21)


@pytest.fixture
def engine(db) -> BookingEngine:
    return BookingEngine(db, now=lambda: FIXED_NOW)


def _booking_statuses(db) -> list[tuple[int, str]]:
    db.expire_all()
    return [(booking.id, booking.status) for booking in db.query(Booking).order_by(Booking.id).all()]


def test_request_booking_inserts_pending_record_and_returns_events(engine, db, alice) -> None:
    result = engine.request_booking(' R1 ', SLOT_DATE, 3, ' meeting ', alice.id)

    booking = db.query(Booking).filter(Booking.id == result.booking_id).one()
    assert booking.status == SlotStatus.PENDING
    assert booking.user_id == alice.id
    assert booking.room == 'R1'
    assert booking.purpose == 'meeting'
    assert booking.end_time == datetime(2025, 3, 21, 11, 40)
    assert result.events == [
        SlotPending(user_id=alice.id, room='R1', date=SLOT_DATE, period=3),
        PendingRequestsChanged(request_id=result.booking_id),
    ]


def test_request_booking_accepts_iso_date_strings(engine, db, alice) -> None:
    result = engine.request_booking('R1', '2025-03-21', 2, 'seminar', alice.id)

    booking = db.query(Booking).filter(Booking.id == result.booking_id).one()
    assert booking.date == SLOT_DATE


@pytest.mark.parametrize(
    ('room', 'slot_date', 'period', 'purpose'),
    [
        ('', SLOT_DATE, 3, 'meeting'),
        ('   ', SLOT_DATE, 3, 'meeting'),
        (None, SLOT_DATE, 3, 'meeting'),
        ('R1', None, 3, 'meeting'),
        ('R1', 'not-a-date', 3, 'meeting'),
        ('R1', SLOT_DATE, 0, 'meeting'),
        ('R1', SLOT_DATE, 8, 'meeting'),
        ('R1', SLOT_DATE, None, 'meeting'),
        ('R1', SLOT_DATE, 3, ''),
        ('R1', SLOT_DATE, 3, None),
        ('R1', SLOT_DATE, 3, 'x' * (MAX_PURPOSE_LENGTH + 1)),
    ],
)
def test_request_booking_rejects_invalid_input(engine, db, alice, room, slot_date, period, purpose) -> None:
    with pytest.raises(InvalidInput):
        engine.request_booking(room, slot_date, period, purpose, alice.id)

    assert db.query(Booking).count() == 0


def test_request_booking_rejects_slot_that_has_ended(db, alice) -> None:
    engine = BookingEngine(db, now=lambda: datetime(2025, 3, 21, 9, 40))

    with pytest.raises(PastSlot) as exception_info:
        engine.request_booking('R1', SLOT_DATE, 1, 'meeting', alice.id)

    assert exception_info.value.message == 'Cannot book for past times'
    assert db.query(Booking).count() == 0


def test_request_booking_allows_period_that_is_still_running(db, alice) -> None:
    engine = BookingEngine(db, now=lambda: datetime(2025, 3, 21, 9, 39))

    result = engine.request_booking('R1', SLOT_DATE, 1, 'meeting', alice.id)

    assert result.booking_id is not None


def test_request_booking_fails_when_slot_is_booked_for_any_requester(engine, db, alice, bob) -> None:
    first = engine.request_booking('R1', SLOT_DATE, 3, 'meeting', alice.id)
    engine.approve(first.booking_id)

    for requester in (alice, bob):
        with pytest.raises(SlotTaken):
            engine.request_booking('R1', SLOT_DATE, 3, 'again', requester.id)

    assert db.query(Booking).count() == 1


def test_request_booking_allows_competing_pending_requests(engine, db, alice, bob) -> None:
    engine.request_booking('R1', SLOT_DATE, 3, 'alice meeting', alice.id)
    engine.request_booking('R1', SLOT_DATE, 3, 'bob meeting', bob.id)

    pending = db.query(Booking).filter(Booking.status == SlotStatus.PENDING).count()
    assert pending == 2


def test_approve_marks_booking_and_reports_owner_details(engine, db, alice) -> None:
    created = engine.request_booking('R1', SLOT_DATE, 3, 'meeting', alice.id)

    result = engine.approve(created.booking_id)

    assert _booking_statuses(db) == [(created.booking_id, SlotStatus.BOOKED)]
    assert result.events == [
        BookingApproved(recipient='alice@example.edu', room='R1', date=SLOT_DATE, period=3, purpose='meeting'),
        PendingRequestsChanged(request_id=created.booking_id),
    ]


def test_second_approve_reports_already_processed(engine, db, alice) -> None:
    created = engine.request_booking('R1', SLOT_DATE, 3, 'meeting', alice.id)
    engine.approve(created.booking_id)

    with pytest.raises(AlreadyProcessed) as exception_info:
        engine.approve(created.booking_id)

    assert exception_info.value.message == 'Request not found or already processed'
    assert _booking_statuses(db) == [(created.booking_id, SlotStatus.BOOKED)]


def test_approve_unknown_request_reports_already_processed(engine) -> None:
    with pytest.raises(AlreadyProcessed):
        engine.approve(999)


@pytest.mark.parametrize('request_id', [None, '1', True])
def test_decisions_require_integer_request_id(engine, request_id) -> None:
    with pytest.raises(InvalidInput):
        engine.approve(request_id)
    with pytest.raises(InvalidInput):
        engine.reject(request_id)


def test_approving_sibling_after_slot_is_booked_fails_and_keeps_it_pending(engine, db, alice, bob) -> None:
    first = engine.request_booking('R1', SLOT_DATE, 3, 'alice meeting', alice.id)
    second = engine.request_booking('R1', SLOT_DATE, 3, 'bob meeting', bob.id)
    engine.approve(first.booking_id)

    with pytest.raises(SlotTaken):
        engine.approve(second.booking_id)

    assert _booking_statuses(db) == [
        (first.booking_id, SlotStatus.BOOKED),
        (second.booking_id, SlotStatus.PENDING),
    ]


def test_approve_still_succeeds_when_owner_lookup_fails(engine, db, alice, monkeypatch: pytest.MonkeyPatch) -> None:
    created = engine.request_booking('R1', SLOT_DATE, 3, 'meeting', alice.id)

    def failing_query(*_args, **_kwargs):
        raise OperationalError('SELECT', {}, Exception('connection lost'))

    monkeypatch.setattr(db, 'query', failing_query)

    result = engine.approve(created.booking_id)

    assert result.events == [PendingRequestsChanged(request_id=created.booking_id)]


def test_reject_deletes_pending_record(engine, db, alice) -> None:
    created = engine.request_booking('R1', SLOT_DATE, 3, 'meeting', alice.id)

    result = engine.reject(created.booking_id)

    assert _booking_statuses(db) == []
    assert result.events == [PendingRequestsChanged(request_id=created.booking_id)]


def test_reject_after_approve_reports_already_processed(engine, db, alice) -> None:
    created = engine.request_booking('R1', SLOT_DATE, 3, 'meeting', alice.id)
    engine.approve(created.booking_id)

    with pytest.raises(AlreadyProcessed):
        engine.reject(created.booking_id)

    assert _booking_statuses(db) == [(created.booking_id, SlotStatus.BOOKED)]


def test_approve_after_reject_reports_already_processed(engine, db, alice) -> None:
    created = engine.request_booking('R1', SLOT_DATE, 3, 'meeting', alice.id)
    engine.reject(created.booking_id)

    with pytest.raises(AlreadyProcessed):
        engine.approve(created.booking_id)

    assert _booking_statuses(db) == []


def test_list_pending_returns_only_pending_requests_in_id_order(engine, alice, bob) -> None:
    first = engine.request_booking('R1', SLOT_DATE, 3, 'alice meeting', alice.id)
    second = engine.request_booking('R2', SLOT_DATE, 5, 'bob seminar', bob.id)
    approved = engine.request_booking('R3', SLOT_DATE, 1, 'approved', alice.id)
    engine.approve(approved.booking_id)

    assert engine.list_pending() == [
        PendingRequest(id=first.booking_id, username='alice@example.edu', room='R1', date=SLOT_DATE, period=3, purpose='alice meeting'),
        PendingRequest(id=second.booking_id, username='bob@example.edu', room='R2', date=SLOT_DATE, period=5, purpose='bob seminar'),
    ]


def test_store_failure_on_insert_surfaces_as_internal_error(engine, db, alice, monkeypatch: pytest.MonkeyPatch) -> None:
    def failing_commit():
        raise OperationalError('INSERT', {}, Exception('disk full'))

    monkeypatch.setattr(db, 'commit', failing_commit)

    with pytest.raises(InternalError):
        engine.request_booking('R1', SLOT_DATE, 3, 'meeting', alice.id)


def test_concurrent_approve_and_reject_have_exactly_one_winner(tmp_path) -> None:
    file_engine = create_engine(f"sqlite:///{tmp_path / 'race.db'}", connect_args={'timeout': 30})
    Base.metadata.create_all(bind=file_engine, tables=[User.__table__, Booking.__table__])
    make_session = sessionmaker(autocommit=False, autoflush=False, bind=file_engine)

    setup = make_session()
    owner = User(username='owner@example.edu', hashed_password='unused', role='user')
    setup.add(owner)
    setup.commit()
    booking_id = BookingEngine(setup, now=lambda: FIXED_NOW).request_booking(
        'R1', SLOT_DATE, 3, 'meeting', owner.id
    ).booking_id
    setup.close()

    barrier = threading.Barrier(2)
    outcomes: dict[str, str] = {}

    def run(name: str) -> None:
        session = make_session()
        try:
            engine = BookingEngine(session, now=lambda: FIXED_NOW)
            barrier.wait()
            try:
                getattr(engine, name)(booking_id)
                outcomes[name] = 'ok'
            except AlreadyProcessed:
                outcomes[name] = 'already_processed'
        finally:
            session.close()

    threads = [threading.Thread(target=run, args=(name,)) for name in ('approve', 'reject')]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert sorted(outcomes.values()) == ['already_processed', 'ok']

    check = make_session()
    try:
        remaining = check.query(Booking).filter(Booking.id == booking_id).first()
        if outcomes['approve'] == 'ok':
            assert remaining is not None and remaining.status == SlotStatus.BOOKED
        else:
            assert remaining is None
    finally:
        check.close()
        file_engine.dispose()
