"""Authentication routes for credwarden API.

PBKDF2 work runs in the threadpool so a login does not stall the event loop.
"""

import asyncio
import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel
from sqlalchemy.orm import Session

from credwarden.api.deps import (
    get_config_source,
    get_current_session,
    get_current_user,
    get_db,
    get_optional_user,
    get_verifier,
)
from credwarden.auth import (
    CredentialVerifier,
    PasswordPolicyEngine,
    create_session_token,
    get_session_expiry,
    progressive_delay,
    utcnow_naive,
)
from credwarden.auth.lockout import MAX_LOGIN_DELAY_SECONDS
from credwarden.db import SessionModel, SqlConfigSource, User
from credwarden.exceptions import (
    AccountLocked,
    InvalidCredentials,
    PasswordPolicyError,
)

logger = logging.getLogger("credwarden.audit")

router = APIRouter(prefix="/api/v1", tags=["auth"])


class LoginRequest(BaseModel):
    """Request body for login endpoint."""

    username: str
    password: str


class InitializeRequest(BaseModel):
    """Request body for initialize endpoint."""

    username: str
    password: str


class ChangePasswordRequest(BaseModel):
    """Request body for password change endpoint."""

    current_password: str
    new_password: str


class ReauthenticateRequest(BaseModel):
    """Request body for re-authentication endpoint."""

    password: str


class UserResponse(BaseModel):
    """Response model for user information."""

    username: str
    must_change_password: bool = False


class StatusResponse(BaseModel):
    """Response model for auth status endpoint."""

    authenticated: bool
    user: UserResponse | None = None
    initialized: bool


class PasswordPolicyResponse(BaseModel):
    """Active password requirements."""

    requirements: list[str]


def policy_error_detail(error: PasswordPolicyError) -> dict:
    """Serialize every policy violation for the client."""
    return {
        "message": "Password does not meet policy requirements",
        "violations": [
            {
                "kind": v.kind.value,
                "message": v.message,
                "character_class": v.character_class.value if v.character_class else None,
            }
            for v in error.violations
        ],
    }


def _start_session(
    request: Request,
    response: Response,
    db: Session,
    user: User,
    timeout_minutes: int,
) -> None:
    """Create a session row and set the session cookie."""
    token = create_session_token()
    session = SessionModel(
        identifier=token,
        user_id=user.id,
        expires_at=get_session_expiry(minutes=timeout_minutes),
        reauthenticated_at=utcnow_naive(),
    )
    db.add(session)
    db.commit()

    response.set_cookie(
        key="session",
        value=token,
        httponly=True,
        secure=getattr(request.app.state, "secure_cookies", False),
        samesite="lax",
        max_age=timeout_minutes * 60,
    )


async def _slow_down(request: Request, failed_attempts: int) -> None:
    """Hold a failed login response back, longer after each failure."""
    cap = getattr(request.app.state, "login_delay_max_seconds", MAX_LOGIN_DELAY_SECONDS)
    delay = progressive_delay(failed_attempts, cap)
    if delay:
        await asyncio.sleep(delay)


@router.post("/auth/login")
async def login(
    request: LoginRequest,
    http_request: Request,
    response: Response,
    db: Session = Depends(get_db),
    verifier: CredentialVerifier = Depends(get_verifier),
) -> dict:
    """Login with username and password.

    A failed attempt is answered after a delay that doubles with each
    consecutive failure, up to the configured cap.

    Args:
        request: Login credentials.
        http_request: The incoming HTTP request.
        response: HTTP response for setting cookies.
        db: Database session.
        verifier: Credential verifier.

    Returns:
        Success message and whether a password change is required.

    Raises:
        HTTPException: 401 if credentials are invalid, 423 if the account
            is locked.
    """
    try:
        result = await run_in_threadpool(verifier.login, request.username, request.password)
    except InvalidCredentials as e:
        # Keep the failed-attempt counter even though the request fails.
        db.commit()
        account = verifier.accounts.get_by_identifier(request.username)
        await _slow_down(http_request, account.failed_attempts if account else 1)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e),
        )
    except AccountLocked as e:
        db.commit()
        raise HTTPException(
            status_code=status.HTTP_423_LOCKED,
            detail=str(e),
        )

    user = verifier.accounts.get_user(result.account.identifier)
    timeout = verifier.config_source.load_security_policy_config().session_timeout_minutes
    _start_session(http_request, response, db, user, timeout)

    return {
        "message": "Login successful",
        "password_change_required": result.password_change_required,
    }


@router.post("/auth/logout")
async def logout(
    response: Response,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> dict[str, str]:
    """Logout and invalidate session.

    Args:
        response: HTTP response for clearing cookies.
        user: Current authenticated user.
        db: Database session.

    Returns:
        Success message.
    """
    db.query(SessionModel).filter(SessionModel.user_id == user.id).delete()
    db.commit()
    logger.info(f"Account {user.username} logged out")

    response.delete_cookie("session")
    return {"message": "Logout successful"}


@router.get("/auth/status", response_model=StatusResponse)
async def auth_status(
    user: User | None = Depends(get_optional_user),
    db: Session = Depends(get_db),
) -> StatusResponse:
    """Check authentication status.

    Args:
        user: Current user if authenticated.
        db: Database session.

    Returns:
        Authentication status with user info if authenticated.
    """
    initialized = db.query(User).first() is not None

    if user:
        return StatusResponse(
            authenticated=True,
            user=UserResponse(
                username=user.username,
                must_change_password=user.must_change_password,
            ),
            initialized=initialized,
        )
    return StatusResponse(
        authenticated=False,
        user=None,
        initialized=initialized,
    )


@router.post("/auth/password")
async def change_password(
    request: ChangePasswordRequest,
    http_request: Request,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    verifier: CredentialVerifier = Depends(get_verifier),
) -> dict[str, str]:
    """Change the current user's password.

    Other sessions of the user are ended; the calling session stays valid.

    Args:
        request: Current and new password.
        http_request: The incoming HTTP request.
        user: Current authenticated user.
        db: Database session.
        verifier: Credential verifier.

    Returns:
        Success message.

    Raises:
        HTTPException: 400 if the current password is wrong or the new
            password violates the policy.
    """
    try:
        await run_in_threadpool(
            verifier.change_password,
            user.username,
            request.new_password,
            current_password=request.current_password,
        )
    except InvalidCredentials as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        )
    except PasswordPolicyError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=policy_error_detail(e),
        )

    db.query(SessionModel).filter(
        SessionModel.user_id == user.id,
        SessionModel.identifier != http_request.cookies.get("session"),
    ).delete()
    db.commit()

    return {"message": "Password changed successfully"}


@router.post("/auth/reauth")
async def reauthenticate(
    request: ReauthenticateRequest,
    session: SessionModel = Depends(get_current_session),
    db: Session = Depends(get_db),
    verifier: CredentialVerifier = Depends(get_verifier),
) -> dict[str, str]:
    """Confirm the password to reopen sensitive operations on this session.

    A wrong password here does not count toward lockout.

    Args:
        request: The account's current password.
        session: Current session.
        db: Database session.
        verifier: Credential verifier.

    Returns:
        Success message.

    Raises:
        HTTPException: 400 if the password is wrong.
    """
    username = session.user.username
    account = verifier.accounts.get_by_identifier(username)
    valid = await run_in_threadpool(verifier.validate_credentials, account, request.password)
    if not valid:
        logger.warning(f"Re-authentication failed for account {username}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Password is incorrect",
        )

    session.reauthenticated_at = utcnow_naive()
    db.commit()
    logger.info(f"Account {username} re-authenticated")

    return {"message": "Re-authentication successful"}


@router.get("/auth/password-policy", response_model=PasswordPolicyResponse)
async def password_policy(
    config_source: SqlConfigSource = Depends(get_config_source),
) -> PasswordPolicyResponse:
    """Describe the active password requirements.

    Args:
        config_source: Security settings source.

    Returns:
        Human-readable requirement list.
    """
    config = config_source.load_security_policy_config()
    return PasswordPolicyResponse(
        requirements=PasswordPolicyEngine().requirements_text(config)
    )


@router.post("/initialize")
async def initialize(
    request: InitializeRequest,
    http_request: Request,
    response: Response,
    db: Session = Depends(get_db),
    verifier: CredentialVerifier = Depends(get_verifier),
) -> dict[str, str]:
    """Initialize system with first admin user.

    Args:
        request: Admin user credentials.
        http_request: The incoming HTTP request.
        response: HTTP response for setting cookies.
        db: Database session.
        verifier: Credential verifier.

    Returns:
        Success message.

    Raises:
        HTTPException: If system is already initialized or the password
            violates the policy.
    """
    if db.query(User).first():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="System already initialized",
        )

    try:
        account = await run_in_threadpool(
            verifier.create_account, request.username, request.password
        )
    except PasswordPolicyError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=policy_error_detail(e),
        )

    # Auto-login after initialization
    user = verifier.accounts.get_user(account.identifier)
    timeout = verifier.config_source.load_security_policy_config().session_timeout_minutes
    _start_session(http_request, response, db, user, timeout)

    return {"message": "System initialized successfully"}
