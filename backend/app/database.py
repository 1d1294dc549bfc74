"""
Database engine and session management for the snapshot store.

The API only reads: rows are written by the external sync (or by
load_data.py locally). PostgreSQL is the production store, SQLite the
local development fallback. Both enforce the same per-statement
execution budget (QUERY_TIMEOUT_SECONDS):
- PostgreSQL through the server-side statement_timeout setting
- SQLite through a progress handler that interrupts an over-budget query

Either way the driver raises OperationalError, which
app.errors.translate_store_errors maps to QueryTimeout. Statements slower
than SLOW_QUERY_MS are logged on the db channel.
"""

import os
import threading
import time
from contextvars import ContextVar
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, DeclarativeBase

from app.config import QUERY_TIMEOUT_SECONDS, SLOW_QUERY_MS
from app.errors import QueryTimeout
from app.logging_config import get_logger, log_with_context

logger = get_logger("db")

DATABASE_URL = os.getenv(
    "DATABASE_URL",
    "sqlite:///./campus_analytics.db"
)

# SQLite VM instructions between two budget checks
SQLITE_PROGRESS_STEPS = 10000

engine_kwargs = {"echo": False}

if DATABASE_URL.startswith("postgresql"):
    engine_kwargs.update({
        "pool_size": 10,
        "max_overflow": 20,
        "pool_pre_ping": True,
        "connect_args": {
            "options": "-c statement_timeout={}".format(int(QUERY_TIMEOUT_SECONDS * 1000))
        },
    })
elif DATABASE_URL.startswith("sqlite"):
    # Sessions are used from the threadpool running the ranking
    engine_kwargs["connect_args"] = {"check_same_thread": False}

engine = create_engine(DATABASE_URL, **engine_kwargs)


@event.listens_for(engine, "before_cursor_execute")
def start_statement_clock(conn, cursor, statement, parameters, context, executemany):
    conn.info["statement_started"] = time.monotonic()


@event.listens_for(engine, "after_cursor_execute")
def log_slow_statement(conn, cursor, statement, parameters, context, executemany):
    started = conn.info.pop("statement_started", None)
    if started is None:
        return
    duration_ms = (time.monotonic() - started) * 1000
    if duration_ms >= SLOW_QUERY_MS:
        log_with_context(logger, "WARNING", "Slow statement",
                         extra_data={"duration_ms": round(duration_ms, 2),
                                     "statement": statement[:500]})


if DATABASE_URL.startswith("sqlite"):
    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

        budget = connection_record.info

        def over_budget():
            deadline = budget.get("query_deadline")
            return 1 if deadline is not None and time.monotonic() > deadline else 0

        dbapi_connection.set_progress_handler(over_budget, SQLITE_PROGRESS_STEPS)

    @event.listens_for(engine, "before_cursor_execute")
    def start_statement_budget(conn, cursor, statement, parameters, context, executemany):
        # Pool connection info is the same dict as connection_record.info above
        conn.connection.info["query_deadline"] = time.monotonic() + QUERY_TIMEOUT_SECONDS


# ──────────────────────────────────────────────────────────────
# Statement cancellation for timed-out requests
#
# A ranking runs in a worker thread with its own session. When the
# request budget expires the event loop calls StatementCanceller.cancel():
# 1. The statement in flight is stopped through the driver
#    (psycopg2 cancel(), sqlite3 interrupt())
# 2. Every later statement issued from that worker raises QueryTimeout
# ──────────────────────────────────────────────────────────────
active_canceller: ContextVar = ContextVar("statement_canceller", default=None)


class StatementCanceller:
    """Cross-thread handle on the statements of one worker session."""

    def __init__(self):
        self._lock = threading.Lock()
        self._dbapi_connection = None
        self.cancelled = False

    def enter_statement(self, dbapi_connection):
        """Called from the worker before each statement; refuses once cancelled."""
        with self._lock:
            if self.cancelled:
                raise QueryTimeout("Statement refused: the request budget has expired")
            self._dbapi_connection = dbapi_connection

    def cancel(self):
        """Called from the event loop when the budget expires. Safe to call twice."""
        with self._lock:
            if self.cancelled:
                return
            self.cancelled = True
            dbapi_connection = self._dbapi_connection

        if dbapi_connection is None:
            return
        # psycopg2 connections expose cancel(), sqlite3 connections interrupt()
        stop = getattr(dbapi_connection, "cancel", None) or getattr(dbapi_connection, "interrupt", None)
        if stop is None:
            return
        try:
            stop()
        except Exception as e:
            log_with_context(logger, "WARNING", "Could not cancel in-flight statement: {}".format(e))
        else:
            log_with_context(logger, "INFO", "In-flight statement cancelled")


@event.listens_for(Engine, "before_cursor_execute")
def guard_cancelled_statement(conn, cursor, statement, parameters, context, executemany):
    canceller = active_canceller.get()
    if canceller is not None:
        canceller.enter_statement(conn.connection.dbapi_connection)


SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy ORM models."""
    pass


def get_db():
    """
    FastAPI dependency that provides a database session.

    The ranking engine never writes, so the session is only closed.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_session_factory():
    """FastAPI dependency returning the factory worker threads open sessions from."""
    return SessionLocal


def run_in_worker_session(session_factory, canceller: StatementCanceller, func, *args, **kwargs):
    """
    Call func(db, *args, **kwargs) with a session owned by the current thread.

    The session is opened and closed in this thread. Statements issued
    through it are bound to the canceller for the duration of the call.
    """
    token = active_canceller.set(canceller)
    db = session_factory()
    try:
        return func(db, *args, **kwargs)
    finally:
        db.close()
        active_canceller.reset(token)


def create_tables():
    """
    Create all tables directly (SQLite local dev and tests).
    PostgreSQL deployments use the Alembic revision instead.
    """
    Base.metadata.create_all(bind=engine)
