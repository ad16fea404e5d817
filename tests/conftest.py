"""
Shared fixtures: a file-backed SQLite database per test
"""

from datetime import datetime

import pytest
from sqlalchemy.orm import sessionmaker

from app.core.db import Base, create_db_engine
from app.models.enums import EventCategory, EventType
from app.schemas.event import EventCreate
from app.schemas.user import ProfileCreate
from app.services.repositories import SqlStore
from app.utils.security import rate_limiter


@pytest.fixture
def db_engine(tmp_path):
    """Fresh SQLite engine with all tables"""
    engine = create_db_engine(f"sqlite:///{tmp_path / 'test_campus.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)


@pytest.fixture
def db_session(session_factory):
    """Create test database session"""
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def store(db_session):
    return SqlStore(db_session)


@pytest.fixture(autouse=True)
def reset_rate_limiter():
    rate_limiter.clear()
    yield
    rate_limiter.clear()


def make_user(store, uid, display_name=None, email=None):
    """Create a zero-score profile"""
    return store.create_profile(uid, ProfileCreate(
        email=email,
        display_name=display_name or uid,
    ))


def make_event(store, organizer_id, title="Hack Night", date=None, location="Pune",
               category=EventCategory.TECH, event_type=EventType.INTERNAL):
    """Create an event owned by organizer_id"""
    return store.create_event(
        EventCreate(
            title=title,
            description=f"{title} description",
            venue="Main Hall",
            location=location,
            date=date or datetime(2030, 5, 1, 18, 0),
            category=category,
            type=event_type,
        ),
        organizer_id,
        organizer_id
    )
