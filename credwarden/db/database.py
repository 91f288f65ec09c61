"""Database connection and session management."""

from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine as sa_create_engine
from sqlalchemy import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from credwarden.db.models import Base


def create_engine(url: str) -> Engine:
    """Create a SQLAlchemy engine for the given database URL.

    SQLite connections are shared across the server's worker threads, and
    in-memory SQLite databases are pinned to one connection so every
    session sees the same data.

    Args:
        url: SQLAlchemy database URL (e.g., "sqlite:///path/to/db.sqlite")

    Returns:
        SQLAlchemy Engine instance
    """
    if not url.startswith("sqlite"):
        return sa_create_engine(url)

    kwargs = {"connect_args": {"check_same_thread": False}}
    if url in ("sqlite://", "sqlite:///:memory:"):
        kwargs["poolclass"] = StaticPool
    return sa_create_engine(url, **kwargs)


@contextmanager
def get_session(engine: Engine) -> Generator[Session, None, None]:
    """Yield a database session with automatic cleanup.

    The session is committed on successful exit and rolled back on exception.
    The session is always closed after exiting the context.

    Args:
        engine: SQLAlchemy Engine to bind the session to

    Yields:
        SQLAlchemy Session instance
    """
    session_factory = sessionmaker(bind=engine)
    session = session_factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_db(engine: Engine) -> None:
    """Create any missing tables. Existing tables and rows are left alone."""
    Base.metadata.create_all(engine)
