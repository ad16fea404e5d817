"""
Database engine and session management
"""

from contextlib import contextmanager
from contextvars import ContextVar

from sqlalchemy import create_engine, event
from sqlalchemy.orm import declarative_base, sessionmaker

from app.core.config import settings

Base = declarative_base()

# Set while a store write is opening its transaction
_begin_immediate: ContextVar[bool] = ContextVar("begin_immediate", default=False)


@contextmanager
def immediate_transaction():
    """Open the next SQLite transaction with BEGIN IMMEDIATE.

    Used around read-check-write sequences so they take the write lock on
    their first statement. Plain reads keep a deferred BEGIN and only take a
    shared lock. No effect on other databases.
    """
    token = _begin_immediate.set(True)
    try:
        yield
    finally:
        _begin_immediate.reset(token)


def create_db_engine(database_url: str):
    """Create an engine for the given URL.

    SQLite runs with pysqlite's implicit transactions disabled so that the
    BEGIN statement is ours: deferred by default, IMMEDIATE inside
    ``immediate_transaction()``. Other databases keep their default isolation.
    """
    if not database_url.startswith("sqlite"):
        return create_engine(database_url, pool_pre_ping=True)

    engine = create_engine(
        database_url,
        connect_args={"check_same_thread": False, "timeout": 30},
    )

    @event.listens_for(engine, "connect")
    def _disable_pysqlite_transactions(dbapi_conn, connection_record):
        dbapi_conn.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE" if _begin_immediate.get() else "BEGIN")

    return engine


engine = create_db_engine(settings.DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    """FastAPI dependency yielding a session that is always closed"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
