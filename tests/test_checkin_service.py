"""
Tests for attendee check-in
"""

import asyncio
import json
import threading
from datetime import timedelta

import pytest

from app.models import Attendance
from app.models.enums import CheckInOutcome, RegistrationOutcome
from app.schemas.attendance import AttendanceResponse
from app.services.checkin_service import CheckInService
from app.services.notification_service import TicketNotifier
from app.services.qr_service import QRService
from app.services.registration_service import RegistrationService
from app.services.repositories import SqlStore
from conftest import make_event, make_user


class FakeWebSocketManager:
    def __init__(self):
        self.messages = []

    async def broadcast_to_event(self, event_id, message):
        self.messages.append((event_id, message))


@pytest.fixture
def ws_manager():
    return FakeWebSocketManager()


@pytest.fixture
def checkin_service(store, ws_manager):
    return CheckInService(store, ws_manager)


@pytest.fixture
def registered(store):
    """An event with one registered attendee"""
    make_user(store, "organizer")
    make_user(store, "u1", display_name="Asha", email="asha@campus.edu")
    event = make_event(store, "organizer")
    result = RegistrationService(store, TicketNotifier(), points_per_registration=5).register_for_event(event.id, "u1")
    assert result.outcome == RegistrationOutcome.REGISTERED
    return event


def ticket_text(event_id, user_id):
    return json.dumps({"eventId": event_id, "userId": user_id, "userName": "Asha", "userEmail": None})


def test_check_in_flips_once(store, checkin_service, registered):
    """The first check-in succeeds and the second reports ALREADY_CHECKED_IN"""
    first = asyncio.run(checkin_service.check_in(registered.id, "u1"))

    assert first.outcome == CheckInOutcome.SUCCESS
    assert first.attendance.checked_in is True
    assert first.attendance.checked_in_at is not None

    second = asyncio.run(checkin_service.check_in(registered.id, "u1"))

    assert second.outcome == CheckInOutcome.ALREADY_CHECKED_IN
    assert second.attendance.checked_in_at == first.attendance.checked_in_at

    # Check-in never touches the counter or the score
    assert store.get_event(registered.id).attendee_count == 1
    assert store.get_profile("u1").points == 5

def test_unregistered_user_is_rejected_without_writes(db_session, store, checkin_service, registered, ws_manager):
    make_user(store, "u2")

    result = asyncio.run(checkin_service.check_in(registered.id, "u2"))

    assert result.outcome == CheckInOutcome.NOT_REGISTERED
    assert result.attendance is None
    assert db_session.query(Attendance).filter(Attendance.user_id == "u2").count() == 0
    assert ws_manager.messages == []

def test_broadcast_only_on_success(checkin_service, registered, ws_manager):
    asyncio.run(checkin_service.check_in(registered.id, "u1"))
    asyncio.run(checkin_service.check_in(registered.id, "u1"))

    assert len(ws_manager.messages) == 1
    event_id, message = ws_manager.messages[0]
    assert event_id == registered.id
    assert message["type"] == "checkin"
    assert message["user_id"] == "u1"
    assert message["checked_in_at"] is not None

def test_scan_checks_in_ticket_holder(checkin_service, registered):
    result = asyncio.run(checkin_service.check_in_from_scan(ticket_text(registered.id, "u1")))

    assert result.outcome == CheckInOutcome.SUCCESS
    assert result.event_id == registered.id
    assert result.user_id == "u1"

def test_scan_of_generated_ticket_payload(store, checkin_service, registered):
    payload = QRService.ticket_payload(registered.id, store.get_profile("u1"))
    raw = json.dumps(payload.model_dump(by_alias=True))

    result = asyncio.run(checkin_service.check_in_from_scan(raw, event_id=registered.id))

    assert result.outcome == CheckInOutcome.SUCCESS

@pytest.mark.parametrize("raw", [
    "https://example.com/not-a-ticket",
    "[1, 2, 3]",
    json.dumps({"eventId": "abc"}),
    json.dumps({"userId": "u1"}),
])
def test_scan_ignores_non_ticket_codes(checkin_service, registered, ws_manager, raw):
    assert asyncio.run(checkin_service.check_in_from_scan(raw)) is None
    assert ws_manager.messages == []

def test_scan_for_another_event_is_not_registered(store, checkin_service, registered):
    other = make_event(store, "organizer", title="Other")

    result = asyncio.run(checkin_service.check_in_from_scan(ticket_text(registered.id, "u1"), event_id=other.id))

    assert result.outcome == CheckInOutcome.NOT_REGISTERED
    assert result.event_id == other.id
    assert store.get_attendance(registered.id, "u1").checked_in is False

def test_broadcast_event_update_carries_fields(checkin_service, ws_manager):
    asyncio.run(checkin_service.broadcast_event_update("evt-1", update_type="registration", attendee_count=3))

    event_id, message = ws_manager.messages[0]
    assert event_id == "evt-1"
    assert message["type"] == "registration"
    assert message["attendee_count"] == 3
    assert "timestamp" in message

def test_concurrent_check_ins_succeed_exactly_once(db_session, session_factory, registered):
    """A QR scan racing a manual check-in flips the record once"""
    barrier = threading.Barrier(4)
    outcomes = []
    errors = []
    lock = threading.Lock()

    def worker():
        db = session_factory()
        try:
            service = CheckInService(SqlStore(db), FakeWebSocketManager())
            barrier.wait()
            result = asyncio.run(service.check_in(registered.id, "u1"))
            with lock:
                outcomes.append(result.outcome)
        except Exception as e:
            with lock:
                errors.append(e)
        finally:
            db.close()

    threads = [threading.Thread(target=worker) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    assert outcomes.count(CheckInOutcome.SUCCESS) == 1
    assert outcomes.count(CheckInOutcome.ALREADY_CHECKED_IN) == 3

class RegisteringWebSocketManager:
    """Registers another attendee on its own session while a broadcast is pending"""

    def __init__(self, session_factory, user_id):
        self.session_factory = session_factory
        self.user_id = user_id
        self.outcomes = []

    async def broadcast_to_event(self, event_id, message):
        db = self.session_factory()
        try:
            service = RegistrationService(SqlStore(db), TicketNotifier(), points_per_registration=5)
            self.outcomes.append(service.register_for_event(event_id, self.user_id).outcome)
        finally:
            db.close()


def test_registration_during_check_in_broadcast(db_session, store, session_factory, registered):
    """The check-in session holds no lock while the broadcast is awaited"""
    make_user(store, "u2")
    manager = RegisteringWebSocketManager(session_factory, "u2")

    result = asyncio.run(CheckInService(store, manager).check_in(registered.id, "u1"))

    assert result.outcome == CheckInOutcome.SUCCESS
    assert manager.outcomes == [RegistrationOutcome.REGISTERED]
    assert not db_session.in_transaction()
    assert store.get_event(registered.id).attendee_count == 2

def test_check_in_leaves_no_transaction_open(db_session, checkin_service, registered):
    asyncio.run(checkin_service.check_in(registered.id, "u1"))
    assert not db_session.in_transaction()

    asyncio.run(checkin_service.check_in(registered.id, "u1"))
    assert not db_session.in_transaction()

    asyncio.run(checkin_service.check_in(registered.id, "nobody"))
    assert not db_session.in_transaction()

def test_ledger_timestamps_are_utc(store, checkin_service, registered):
    result = asyncio.run(checkin_service.check_in(registered.id, "u1"))

    assert result.attendance.checked_in_at.utcoffset() == timedelta(0)
    assert result.attendance.registered_at.utcoffset() == timedelta(0)

    participant = store.list_attendance(registered.id)[0]
    assert participant.registered_at.utcoffset() == timedelta(0)
    assert participant.checked_in_at == result.attendance.checked_in_at

def test_naive_timestamps_are_read_as_utc():
    attendance = AttendanceResponse(
        event_id="evt-1",
        user_id="u1",
        registered_at="2030-05-01T18:00:00",
        checked_in=True,
        checked_in_at="2030-05-01T19:30:00+05:30",
    )

    assert attendance.registered_at.utcoffset() == timedelta(0)
    assert attendance.registered_at.hour == 18
    assert attendance.checked_in_at.utcoffset() == timedelta(0)
    assert attendance.checked_in_at.hour == 14
