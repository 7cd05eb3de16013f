"""
Database engine, session management, and base model.

This module is the foundation for all database operations.
Every model inherits from Base. Engines and session factories are
built explicitly and handed to the components that need them, so
each test (or each application instance) owns its own store.
"""

from datetime import datetime, timezone

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, DeclarativeBase


def utcnow() -> datetime:
    """Naive UTC timestamp, the form every DateTime column stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def make_engine(database_url: str) -> Engine:
    """
    Create an engine for the given URL.

    pool_pre_ping=True tests connections before using them,
    which handles cases where the database restarted or a
    connection went stale. SQLite connections are shared across
    worker threads, so the same-thread check is disabled for it.
    """
    connect_args = {}
    if database_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    return create_engine(
        database_url,
        pool_pre_ping=True,
        connect_args=connect_args,
    )


def make_session_factory(engine: Engine) -> sessionmaker:
    """
    Build the session factory used by every unit of work.

    autocommit=False means we explicitly control when changes
    are saved. autoflush=False means SQL is only sent when we
    flush or commit. expire_on_commit=False keeps committed
    entries readable after their session closes, because the
    processor hands them back to callers outside the session.
    """
    return sessionmaker(
        bind=engine,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )


class Base(DeclarativeBase):
    pass
