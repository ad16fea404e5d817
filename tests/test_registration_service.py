"""
Tests for event registration, points and badges
"""

import threading

import pytest
from sqlalchemy import create_engine, event as sa_event, insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.exceptions import EventNotFoundError, UserProfileMissingError
from app.models import Attendance, Event, UserProfile
from app.models.enums import EventType, RegistrationOutcome
from app.services.registration_service import (
    FIRST_RSVP_BADGE,
    SOCIALITE_BADGE,
    RegistrationService,
)
from app.services.repositories import SqlStore
from conftest import make_event, make_user


class RecordingNotifier:
    def __init__(self, fail=False):
        self.fail = fail
        self.sent = []

    def send_ticket(self, recipient, recipient_name, event_name, qr_code_data_url):
        if self.fail:
            raise RuntimeError("smtp down")
        self.sent.append((recipient, recipient_name, event_name, qr_code_data_url))
        return {"success": True, "message": "sent"}


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def service(store, notifier):
    return RegistrationService(store, notifier, points_per_registration=5)


def attendance_count(db_session, event_id):
    return db_session.query(Attendance).filter(Attendance.event_id == event_id).count()


def test_first_registration_updates_ledger_counter_points_and_badges(db_session, store, service):
    """Registering creates the ledger row and awards points and the first badge"""
    make_user(store, "organizer")
    make_user(store, "u1", email="u1@campus.edu")
    event = make_event(store, "organizer")

    result = service.register_for_event(event.id, "u1")

    assert result.outcome == RegistrationOutcome.REGISTERED
    assert result.profile.points == 5
    assert result.profile.events_attended == 1
    assert result.profile.badges == [FIRST_RSVP_BADGE]

    attendance = store.get_attendance(event.id, "u1")
    assert attendance is not None
    assert attendance.checked_in is False
    assert attendance.checked_in_at is None
    assert store.get_event(event.id).attendee_count == 1

def test_duplicate_registration_is_idempotent(db_session, store, service):
    """A second RSVP writes nothing and reports ALREADY_REGISTERED"""
    make_user(store, "organizer")
    make_user(store, "u1")
    event = make_event(store, "organizer")

    first = service.register_for_event(event.id, "u1")
    second = service.register_for_event(event.id, "u1")

    assert first.outcome == RegistrationOutcome.REGISTERED
    assert second.outcome == RegistrationOutcome.ALREADY_REGISTERED
    assert second.profile is None
    assert attendance_count(db_session, event.id) == 1
    assert store.get_event(event.id).attendee_count == 1

    profile = store.get_profile("u1")
    assert profile.points == 5
    assert profile.events_attended == 1
    assert profile.badges == [FIRST_RSVP_BADGE]

def test_unknown_event_fails_without_writes(db_session, store, service):
    make_user(store, "u1")

    with pytest.raises(EventNotFoundError):
        service.register_for_event("missing-event", "u1")

    assert db_session.query(Attendance).count() == 0
    assert store.get_profile("u1").points == 0

def test_missing_profile_fails_without_writes(db_session, store, service):
    make_user(store, "organizer")
    event = make_event(store, "organizer")

    with pytest.raises(UserProfileMissingError):
        service.register_for_event(event.id, "ghost")

    assert attendance_count(db_session, event.id) == 0
    assert store.get_event(event.id).attendee_count == 0

def test_socialite_badge_awarded_once_at_five_events(store, service):
    """Milestone badges are granted exactly once each"""
    make_user(store, "organizer")
    make_user(store, "u1")
    events = [make_event(store, "organizer", title=f"Event {i}") for i in range(7)]

    for i, event in enumerate(events, start=1):
        result = service.register_for_event(event.id, "u1")
        if i < 5:
            assert SOCIALITE_BADGE not in result.profile.badges

    profile = store.get_profile("u1")
    assert profile.events_attended == 7
    assert profile.points == 35
    assert profile.badges == [FIRST_RSVP_BADGE, SOCIALITE_BADGE]

def test_points_award_is_configurable(store, notifier):
    make_user(store, "organizer")
    make_user(store, "u1")
    event = make_event(store, "organizer")

    service = RegistrationService(store, notifier, points_per_registration=25)
    result = service.register_for_event(event.id, "u1")

    assert result.profile.points == 25

def test_ticket_sent_for_internal_event(store, service, notifier):
    make_user(store, "organizer")
    make_user(store, "u1", display_name="Asha", email="asha@campus.edu")
    event = make_event(store, "organizer", title="Robotics Expo")

    result = service.register_for_event(event.id, "u1")

    assert result.ticket_sent is True
    assert len(notifier.sent) == 1
    recipient, name, event_name, data_url = notifier.sent[0]
    assert recipient == "asha@campus.edu"
    assert name == "Asha"
    assert event_name == "Robotics Expo"
    assert data_url.startswith("data:image/png;base64,")

def test_no_ticket_for_external_event_or_missing_email(store, service, notifier):
    make_user(store, "organizer")
    make_user(store, "u1", email="u1@campus.edu")
    make_user(store, "u2")
    external = make_event(store, "organizer", event_type=EventType.EXTERNAL)
    internal = make_event(store, "organizer")

    assert service.register_for_event(external.id, "u1").ticket_sent is False
    assert service.register_for_event(internal.id, "u2").ticket_sent is False
    assert notifier.sent == []

def test_ticket_failure_does_not_fail_registration(db_session, store):
    make_user(store, "organizer")
    make_user(store, "u1", email="u1@campus.edu")
    event = make_event(store, "organizer")

    service = RegistrationService(store, RecordingNotifier(fail=True), points_per_registration=5)
    result = service.register_for_event(event.id, "u1")

    assert result.outcome == RegistrationOutcome.REGISTERED
    assert result.ticket_sent is False
    assert attendance_count(db_session, event.id) == 1

def _register_concurrently(session_factory, event_id, user_ids):
    """Run one registration per user id, each on its own session and thread"""
    barrier = threading.Barrier(len(user_ids))
    outcomes = []
    errors = []
    lock = threading.Lock()

    def worker(uid):
        db = session_factory()
        try:
            service = RegistrationService(SqlStore(db), RecordingNotifier(), points_per_registration=5)
            barrier.wait()
            result = service.register_for_event(event_id, uid)
            with lock:
                outcomes.append(result.outcome)
        except Exception as e:  # surfaced through the assertion below
            with lock:
                errors.append(e)
        finally:
            db.close()

    threads = [threading.Thread(target=worker, args=(uid,)) for uid in user_ids]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    return outcomes

def test_concurrent_duplicate_registrations_count_once(db_session, store, session_factory):
    make_user(store, "organizer")
    make_user(store, "u1")
    event = make_event(store, "organizer")

    outcomes = _register_concurrently(session_factory, event.id, ["u1"] * 6)

    assert outcomes.count(RegistrationOutcome.REGISTERED) == 1
    assert outcomes.count(RegistrationOutcome.ALREADY_REGISTERED) == 5

    db_session.expire_all()
    assert attendance_count(db_session, event.id) == 1
    assert store.get_event(event.id).attendee_count == 1
    profile = store.get_profile("u1")
    assert profile.points == 5
    assert profile.events_attended == 1
    assert profile.badges == [FIRST_RSVP_BADGE]

def test_counter_matches_ledger_under_concurrent_registrations(db_session, store, session_factory):
    """Interleaved new and duplicate registrations keep attendee_count exact"""
    make_user(store, "organizer")
    user_ids = [f"user-{i}" for i in range(5)]
    for uid in user_ids:
        make_user(store, uid)
    event = make_event(store, "organizer")

    outcomes = _register_concurrently(session_factory, event.id, user_ids + user_ids[:3])

    assert outcomes.count(RegistrationOutcome.REGISTERED) == 5
    assert outcomes.count(RegistrationOutcome.ALREADY_REGISTERED) == 3

    db_session.expire_all()
    stored = db_session.query(Event).filter(Event.id == event.id).first()
    assert stored.attendee_count == attendance_count(db_session, event.id) == 5
    for profile in db_session.query(UserProfile).filter(UserProfile.id.in_(user_ids)).all():
        assert profile.points == 5
        assert profile.events_attended == 1

def test_registration_leaves_no_transaction_open(db_session, store, service):
    """Callers may await after registering without holding the SQLite lock"""
    make_user(store, "organizer")
    make_user(store, "u1")
    event = make_event(store, "organizer")

    service.register_for_event(event.id, "u1")
    assert not db_session.in_transaction()

    service.register_for_event(event.id, "u1")
    assert not db_session.in_transaction()

    store.get_event(event.id)
    assert not db_session.in_transaction()

def test_ledger_row_inserted_by_another_writer_reports_already_registered(db_engine, db_session, store):
    """Losing the insert race on the unique ledger key rolls back every write"""
    make_user(store, "organizer")
    make_user(store, "u1")
    event = make_event(store, "organizer")

    # pysqlite's implicit transactions: the checks above the insert take no lock,
    # so a second connection can commit the same ledger row in between
    racing_engine = create_engine(db_engine.url, connect_args={"check_same_thread": False})
    raced = []

    @sa_event.listens_for(racing_engine, "before_cursor_execute")
    def insert_competing_row(conn, cursor, statement, parameters, context, executemany):
        if raced or not statement.startswith("INSERT INTO event_attendees"):
            return
        raced.append(statement)
        with racing_engine.begin() as other:
            other.execute(insert(Attendance.__table__).values(
                event_id=event.id,
                user_id="u1",
                checked_in=False,
            ))

    racing_db = Session(bind=racing_engine)
    try:
        outcome, profile = SqlStore(racing_db).register_attendance(event.id, "u1", 5, {1: FIRST_RSVP_BADGE})
    finally:
        racing_db.close()
        racing_engine.dispose()

    assert raced
    assert outcome == RegistrationOutcome.ALREADY_REGISTERED
    assert profile is None

    assert attendance_count(db_session, event.id) == 1
    assert store.get_event(event.id).attendee_count == 0
    stored = store.get_profile("u1")
    assert stored.points == 0
    assert stored.events_attended == 0
    assert stored.badges == []

def test_other_integrity_errors_propagate(db_engine, db_session, store, service):
    """Only a duplicate ledger row is reported as ALREADY_REGISTERED"""
    make_user(store, "organizer")
    make_user(store, "u1")
    event = make_event(store, "organizer")

    with db_engine.begin() as conn:
        conn.exec_driver_sql(
            "CREATE TRIGGER freeze_points BEFORE UPDATE OF points ON users "
            "BEGIN SELECT RAISE(ABORT, 'points are frozen'); END"
        )

    with pytest.raises(IntegrityError):
        service.register_for_event(event.id, "u1")

    assert attendance_count(db_session, event.id) == 0
    assert store.get_event(event.id).attendee_count == 0
    assert store.get_profile("u1").points == 0
