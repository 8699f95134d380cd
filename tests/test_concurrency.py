import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import date, timedelta
from itertools import combinations

import pytest

from slotbook.core.exceptions import SlotNoLongerAvailable, StorageUnavailable
from slotbook.models import Appointment
from slotbook.schemas.booking import BookingRequest
from slotbook.services.availability.availability_service import AvailabilityService
from slotbook.services.booking.locks import ProfessionalLocks
from slotbook.services.scheduling.intervals import overlaps

from tests.conftest import API_TOKEN, fixed_clock

MONDAY = date(2025, 3, 10)


def run_concurrently(session_factory, locks, requests):
    """Book every request from its own thread and session, released together."""
    barrier = threading.Barrier(len(requests))

    def attempt(request):
        session = session_factory()
        try:
            service = AvailabilityService(session, locks=locks, clock=fixed_clock())
            barrier.wait(timeout=10)
            try:
                return service.book(request, api_token=API_TOKEN).appointment.id
            except SlotNoLongerAvailable as e:
                return e
        finally:
            session.close()

    with ThreadPoolExecutor(max_workers=len(requests)) as pool:
        return list(pool.map(attempt, requests))


def booking_request(business, professional, service, at, **overrides):
    fields = dict(
        business_id=business.id,
        professional_id=professional.id,
        service_id=service.id,
        customer_name="Concurrent Customer",
        customer_phone="+5511900000000",
        date=MONDAY,
        time=at,
    )
    fields.update(overrides)
    return BookingRequest(**fields)


def test_same_slot_exactly_one_wins(session_factory, db, locks, business, professional, service):
    requests = [booking_request(business, professional, service, "10:00") for _ in range(2)]

    outcomes = run_concurrently(session_factory, locks, requests)

    winners = [o for o in outcomes if not isinstance(o, SlotNoLongerAvailable)]
    losers = [o for o in outcomes if isinstance(o, SlotNoLongerAvailable)]
    assert len(winners) == 1
    assert len(losers) == 1
    assert db.query(Appointment).count() == 1


def consistent_with_some_booking_order(a, b, buffer):
    """True when one of the two could have been booked after the other."""
    a_buffered = a.end_datetime + buffer
    b_buffered = b.end_datetime + buffer
    return (
        not overlaps(b.start_datetime, b.end_datetime, a.start_datetime, a_buffered)
        or not overlaps(a.start_datetime, a.end_datetime, b.start_datetime, b_buffered)
    )


def test_overlapping_requests_never_double_book(session_factory, db, locks, business, professional, service):
    times = ["10:00", "10:15", "10:30", "10:45", "11:00", "11:30", "13:00", "13:00"]
    requests = [booking_request(business, professional, service, t) for t in times]

    run_concurrently(session_factory, locks, requests)

    rows = db.query(Appointment).order_by(Appointment.start_datetime).all()
    assert rows
    buffer = timedelta(minutes=15)
    for a, b in combinations(rows, 2):
        assert not overlaps(a.start_datetime, a.end_datetime, b.start_datetime, b.end_datetime)
        # the buffer binds each booking against those committed before it
        assert consistent_with_some_booking_order(a, b, buffer)


def test_concurrent_retries_with_same_key_create_one_row(session_factory, db, locks, business, professional, service):
    requests = [
        booking_request(business, professional, service, "15:00", idempotency_key="same-request")
        for _ in range(3)
    ]

    outcomes = run_concurrently(session_factory, locks, requests)

    assert len(set(outcomes)) == 1
    assert db.query(Appointment).count() == 1


def test_lock_timeout_raises_storage_unavailable():
    locks = ProfessionalLocks(timeout_seconds=0.05)
    held = threading.Event()
    release = threading.Event()

    def holder():
        with locks.hold("professional-1"):
            held.set()
            release.wait(2)

    thread = threading.Thread(target=holder)
    thread.start()
    try:
        held.wait(2)
        with pytest.raises(StorageUnavailable):
            with locks.hold("professional-1"):
                pass
        # other professionals are not affected
        with locks.hold("professional-2"):
            pass
    finally:
        release.set()
        thread.join()
