"""FastAPI dependencies for credwarden API."""

from typing import Generator

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from credwarden.auth import (
    CredentialVerifier,
    get_session_expiry,
    is_session_expired,
    needs_reauthentication,
)
from credwarden.auth.session import REAUTH_MAX_AGE_MINUTES
from credwarden.config_schema import SecurityPolicyConfig
from credwarden.db import (
    SessionModel,
    SqlAccountStore,
    SqlConfigSource,
    SqlHistoryStore,
    User,
    create_engine,
    get_session,
)


def get_db(request: Request) -> Generator[Session, None, None]:
    """Get database session from app state.

    Uses the engine stored in app.state.db_engine if available,
    otherwise falls back to in-memory SQLite (for testing).

    Args:
        request: The incoming HTTP request.

    Yields:
        SQLAlchemy Session instance.
    """
    engine = getattr(request.app.state, "db_engine", None)
    if engine is None:  # pragma: no cover
        engine = create_engine("sqlite:///:memory:")

    with get_session(engine) as session:
        yield session


def get_config_source(
    request: Request,
    db: Session = Depends(get_db),
) -> SqlConfigSource:
    """Security settings stored in the database over the file defaults."""
    defaults = getattr(request.app.state, "security_defaults", None)
    return SqlConfigSource(db, defaults or SecurityPolicyConfig())


def get_verifier(
    db: Session = Depends(get_db),
    config_source: SqlConfigSource = Depends(get_config_source),
) -> CredentialVerifier:
    """Credential verifier bound to the request's database session."""
    return CredentialVerifier(
        accounts=SqlAccountStore(db),
        history=SqlHistoryStore(db),
        config_source=config_source,
    )


def get_current_session(
    request: Request,
    db: Session = Depends(get_db),
    config_source: SqlConfigSource = Depends(get_config_source),
) -> SessionModel:
    """Get the session row named by the session cookie.

    Each authenticated request pushes the session's expiry forward by the
    configured idle timeout.

    Args:
        request: The incoming HTTP request.
        db: Database session.
        config_source: Security settings source.

    Returns:
        The live SessionModel.

    Raises:
        HTTPException: If not authenticated or session expired.
    """
    session_token = request.cookies.get("session")
    if not session_token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )

    session = (
        db.query(SessionModel)
        .filter(SessionModel.identifier == session_token)
        .first()
    )

    if not session or is_session_expired(session.expires_at):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Session expired or invalid",
        )

    timeout = config_source.load_security_policy_config().session_timeout_minutes
    session.expires_at = get_session_expiry(minutes=timeout)
    db.flush()

    return session


def get_current_user(session: SessionModel = Depends(get_current_session)) -> User:
    """Get current authenticated user from session cookie."""
    return session.user


def get_optional_user(
    request: Request,
    db: Session = Depends(get_db),
    config_source: SqlConfigSource = Depends(get_config_source),
) -> User | None:
    """Get current user if authenticated, None otherwise.

    Args:
        request: The incoming HTTP request.
        db: Database session.
        config_source: Security settings source.

    Returns:
        The authenticated User object or None.
    """
    try:
        return get_current_session(request, db, config_source).user
    except HTTPException:
        return None


def get_active_user(
    user: User = Depends(get_current_user),
    verifier: CredentialVerifier = Depends(get_verifier),
) -> User:
    """Authenticated user whose password is in good standing.

    Accounts flagged for a forced change, or whose password has expired,
    only reach the password change, logout and status routes.

    Raises:
        HTTPException: 403 until the password has been changed.
    """
    account = verifier.accounts.get_by_identifier(user.username)
    config = verifier.config_source.load_security_policy_config()
    if verifier.policy.must_change_password(account, config, verifier.clock()):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Password change required",
        )
    return user


def require_recent_auth(
    request: Request,
    session: SessionModel = Depends(get_current_session),
    user: User = Depends(get_active_user),
) -> User:
    """Active user who entered their password recently on this session.

    Guards sensitive administrative operations; a stale session has to
    call POST /auth/reauth first.

    Raises:
        HTTPException: 403 if the password was entered too long ago.
    """
    max_age = getattr(request.app.state, "reauth_max_age_minutes", REAUTH_MAX_AGE_MINUTES)
    if needs_reauthentication(session.reauthenticated_at, max_age):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Re-authentication required",
        )
    return user
