"""Account administration routes for credwarden API."""

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel, Field

from credwarden.api.deps import get_active_user, get_verifier, require_recent_auth
from credwarden.api.routes.auth import policy_error_detail
from credwarden.auth import Account, CredentialVerifier, LockoutTracker
from credwarden.db import User
from credwarden.exceptions import AccountExists, AccountNotFound, PasswordPolicyError

router = APIRouter(prefix="/api/v1/accounts", tags=["accounts"])


class CreateAccountRequest(BaseModel):
    """Request to create an account."""

    username: str = Field(..., min_length=1, max_length=255)
    password: str
    must_change_password: bool = True


class AccountResponse(BaseModel):
    """Account credential state. Hashes and salts are never returned."""

    username: str
    locked: bool
    locked_until: datetime | None
    failed_attempts: int
    must_change_password: bool
    password_changed_at: datetime | None
    password_expires_in_days: int | None


def _to_response(account: Account, verifier: CredentialVerifier) -> AccountResponse:
    config = verifier.config_source.load_security_policy_config()
    now = verifier.clock()
    return AccountResponse(
        username=account.identifier,
        locked=LockoutTracker(config).is_locked(account, now),
        locked_until=account.locked_until,
        failed_attempts=account.failed_attempts,
        must_change_password=account.must_change_password,
        password_changed_at=account.password_changed_at,
        password_expires_in_days=verifier.policy.days_until_expiry(account, config, now),
    )


@router.get("", response_model=list[AccountResponse])
async def list_accounts(
    user: User = Depends(get_active_user),
    verifier: CredentialVerifier = Depends(get_verifier),
) -> list[AccountResponse]:
    """List all accounts with their lockout and password age state.

    Args:
        user: Current authenticated user.
        verifier: Credential verifier.

    Returns:
        Account states ordered by username.
    """
    return [_to_response(a, verifier) for a in verifier.accounts.list_accounts()]


@router.get("/locked", response_model=list[AccountResponse])
async def list_locked_accounts(
    user: User = Depends(get_active_user),
    verifier: CredentialVerifier = Depends(get_verifier),
) -> list[AccountResponse]:
    """List accounts currently inside a lockout window.

    Args:
        user: Current authenticated user.
        verifier: Credential verifier.

    Returns:
        Locked account states.
    """
    return [_to_response(a, verifier) for a in verifier.locked_accounts()]


@router.post("", response_model=AccountResponse, status_code=status.HTTP_201_CREATED)
async def create_account(
    request: CreateAccountRequest,
    user: User = Depends(require_recent_auth),
    verifier: CredentialVerifier = Depends(get_verifier),
) -> AccountResponse:
    """Create an account.

    Args:
        request: Username, initial password and forced-change flag.
        user: Current authenticated user.
        verifier: Credential verifier.

    Returns:
        The created account state.

    Raises:
        HTTPException: If the username is taken or the password violates
            the policy.
    """
    try:
        account = await run_in_threadpool(
            verifier.create_account,
            request.username,
            request.password,
            must_change_password=request.must_change_password,
        )
    except AccountExists as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except PasswordPolicyError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=policy_error_detail(e),
        )
    return _to_response(account, verifier)


@router.post("/{username}/unlock", response_model=AccountResponse)
async def unlock_account(
    username: str,
    user: User = Depends(require_recent_auth),
    verifier: CredentialVerifier = Depends(get_verifier),
) -> AccountResponse:
    """Clear an account's lockout window and failed-attempt counter.

    Args:
        username: Account to unlock.
        user: Current authenticated user.
        verifier: Credential verifier.

    Returns:
        The unlocked account state.

    Raises:
        HTTPException: If the account does not exist.
    """
    try:
        account = verifier.unlock(username)
    except AccountNotFound as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    return _to_response(account, verifier)


@router.post("/{username}/force-password-change", response_model=AccountResponse)
async def force_password_change(
    username: str,
    user: User = Depends(require_recent_auth),
    verifier: CredentialVerifier = Depends(get_verifier),
) -> AccountResponse:
    """Require a password change at the account's next login.

    Args:
        username: Target account.
        user: Current authenticated user.
        verifier: Credential verifier.

    Returns:
        The updated account state.

    Raises:
        HTTPException: If the account does not exist.
    """
    try:
        account = verifier.force_password_change(username)
    except AccountNotFound as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    return _to_response(account, verifier)
