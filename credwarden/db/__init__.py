"""Database package for credwarden."""

from credwarden.db.database import create_engine, get_session, init_db
from credwarden.db.models import Base, Config, PasswordHistory, SessionModel, User
from credwarden.db.stores import SqlAccountStore, SqlConfigSource, SqlHistoryStore

__all__ = [
    "create_engine",
    "get_session",
    "init_db",
    "Base",
    "User",
    "PasswordHistory",
    "SessionModel",
    "Config",
    "SqlAccountStore",
    "SqlConfigSource",
    "SqlHistoryStore",
]
