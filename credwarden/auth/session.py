"""Session tokens and idle expiry for the authentication boundary.

Expiry timestamps are naive UTC, matching how the sessions table stores
them.
"""

import datetime
import secrets
from typing import Optional

TOKEN_BYTES = 32
REAUTH_MAX_AGE_MINUTES = 15


def utcnow_naive() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc).replace(tzinfo=None)


def create_session_token() -> str:
    """Generate a secure random session token.

    Returns:
        A URL-safe random string token.
    """
    return secrets.token_urlsafe(TOKEN_BYTES)


def get_session_expiry(
    minutes: int = 30, now: Optional[datetime.datetime] = None
) -> datetime.datetime:
    """Expiry for a session that has just been used.

    Called on login and again on every authenticated request, which slides
    the idle window forward.

    Args:
        minutes: Idle timeout in minutes (default 30).
        now: Reference time; aware values are converted to UTC.

    Returns:
        Naive UTC datetime.
    """
    if now is None:
        now = utcnow_naive()
    elif now.tzinfo is not None:
        now = now.astimezone(datetime.timezone.utc).replace(tzinfo=None)
    return now + datetime.timedelta(minutes=minutes)


def is_session_expired(
    expires_at: datetime.datetime, now: Optional[datetime.datetime] = None
) -> bool:
    """Check if a session has expired.

    Args:
        expires_at: Stored expiry. Naive values are read as UTC.
        now: Reference time, defaults to the current time.

    Returns:
        True if the expiry is not in the future.
    """
    if expires_at.tzinfo is None:
        expires_at = expires_at.replace(tzinfo=datetime.timezone.utc)
    if now is None:
        now = datetime.datetime.now(datetime.timezone.utc)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=datetime.timezone.utc)
    return expires_at <= now


def needs_reauthentication(
    reauthenticated_at: Optional[datetime.datetime],
    max_age_minutes: int = REAUTH_MAX_AGE_MINUTES,
    now: Optional[datetime.datetime] = None,
) -> bool:
    """Check whether a session must re-enter its password.

    Sensitive operations are only allowed within max_age_minutes of the
    password last being typed on the session, at login or re-authentication.

    Args:
        reauthenticated_at: When the password was last entered. Naive
            values are read as UTC.
        max_age_minutes: Allowed age in minutes.
        now: Reference time, defaults to the current time.

    Returns:
        True if the password has to be entered again.
    """
    if reauthenticated_at is None:
        return True
    if reauthenticated_at.tzinfo is None:
        reauthenticated_at = reauthenticated_at.replace(tzinfo=datetime.timezone.utc)
    if now is None:
        now = datetime.datetime.now(datetime.timezone.utc)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=datetime.timezone.utc)
    return now - reauthenticated_at > datetime.timedelta(minutes=max_age_minutes)
