"""Web server for credwarden."""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import AsyncGenerator

import uvicorn
from fastapi import FastAPI
from sqlalchemy import Engine, delete

from credwarden.api.app import create_app
from credwarden.auth.lockout import MAX_LOGIN_DELAY_SECONDS
from credwarden.auth.session import REAUTH_MAX_AGE_MINUTES
from credwarden.config_schema import SecurityPolicyConfig
from credwarden.db import SessionModel, create_engine, get_session, init_db

logger = logging.getLogger("credwarden")


def purge_expired_sessions(engine: Engine) -> int:
    """Delete sessions whose idle window has closed.

    Returns:
        Number of sessions removed.
    """
    now = datetime.now(timezone.utc).replace(tzinfo=None)
    with get_session(engine) as session:
        result = session.execute(delete(SessionModel).where(SessionModel.expires_at <= now))
        return result.rowcount


def _create_lifespan(db_path: Path):
    """Create a lifespan context manager for the FastAPI app.

    Args:
        db_path: Path to the SQLite database file.

    Returns:
        Async context manager for FastAPI lifespan.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Record startup metadata, drop stale sessions and log the lifecycle.

        Args:
            app: FastAPI application instance.

        Yields:
            None during application runtime.
        """
        app.state.startup_time = datetime.now(timezone.utc)
        app.state.db_path = db_path
        purged = purge_expired_sessions(app.state.db_engine)
        logger.info(f"Credwarden started with database {db_path}")
        if purged:
            logger.info(f"Removed {purged} expired sessions")
        try:
            yield
        finally:
            app.state.db_engine.dispose()
            logger.info("Credwarden stopped")

    return lifespan


def create_server(
    base_url: str = "/",
    db_path: Path | None = None,
    security: SecurityPolicyConfig | None = None,
    secure_cookies: bool = False,
    login_delay_max_seconds: int = MAX_LOGIN_DELAY_SECONDS,
    reauth_max_age_minutes: int = REAUTH_MAX_AGE_MINUTES,
):
    """Create and configure the server.

    Args:
        base_url: Base URL prefix for reverse proxy support.
        db_path: Path to SQLite database file.
        security: Default security policy; runtime overrides stored in the
            database take precedence.
        secure_cookies: Mark session cookies Secure (HTTPS deployments).
        login_delay_max_seconds: Cap on the delay added to failed logins;
            0 disables it.
        reauth_max_age_minutes: How long an entered password keeps
            sensitive operations open on a session.

    Returns:
        Configured FastAPI application instance.
    """
    db_path = db_path or Path("./credwarden.db")
    engine = create_engine(f"sqlite:///{db_path}")
    init_db(engine)

    app = create_app(base_url=base_url, lifespan=_create_lifespan(db_path))

    # Store engine and policy in app state for dependency injection
    app.state.db_engine = engine
    app.state.security_defaults = security or SecurityPolicyConfig()
    app.state.secure_cookies = secure_cookies
    app.state.login_delay_max_seconds = login_delay_max_seconds
    app.state.reauth_max_age_minutes = reauth_max_age_minutes

    return app


def run_server(
    host: str = "0.0.0.0",
    port: int = 8080,
    base_url: str = "/",
    db_path: Path | None = None,
    reload: bool = False,
    security: SecurityPolicyConfig | None = None,
    secure_cookies: bool = False,
    login_delay_max_seconds: int = MAX_LOGIN_DELAY_SECONDS,
    reauth_max_age_minutes: int = REAUTH_MAX_AGE_MINUTES,
):
    """Run the web server.

    Args:
        host: Host to bind to.
        port: Port to listen on.
        base_url: Base URL prefix for reverse proxy support.
        db_path: Path to SQLite database file.
        reload: Enable auto-reload for development.
        security: Default security policy.
        secure_cookies: Mark session cookies Secure.
        login_delay_max_seconds: Cap on the failed-login delay.
        reauth_max_age_minutes: Re-authentication window for sensitive
            operations.
    """
    app = create_server(
        base_url,
        db_path,
        security,
        secure_cookies,
        login_delay_max_seconds=login_delay_max_seconds,
        reauth_max_age_minutes=reauth_max_age_minutes,
    )

    uvicorn.run(
        app,
        host=host,
        port=port,
        reload=reload,
    )
