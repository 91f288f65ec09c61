"""Security settings routes for credwarden API."""

from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel

from credwarden.api.deps import get_active_user, get_config_source, require_recent_auth
from credwarden.db import SqlConfigSource, User
from credwarden.exceptions import ConfigError

router = APIRouter(prefix="/api/v1/security", tags=["security"])


class SecurityConfigResponse(BaseModel):
    """Effective security policy."""

    pbkdf2_iterations: int
    password_history_count: int
    max_login_attempts: int
    lockout_duration_minutes: int
    password_min_length: int
    password_max_length: int
    password_require_uppercase: bool
    password_require_lowercase: bool
    password_require_numbers: bool
    password_require_special: bool
    password_expiry_days: int
    session_timeout_minutes: int
    reject_weak_patterns: bool


class SecurityConfigUpdate(BaseModel):
    """Partial update; omitted fields keep their current value."""

    pbkdf2_iterations: int | None = None
    password_history_count: int | None = None
    max_login_attempts: int | None = None
    lockout_duration_minutes: int | None = None
    password_min_length: int | None = None
    password_max_length: int | None = None
    password_require_uppercase: bool | None = None
    password_require_lowercase: bool | None = None
    password_require_numbers: bool | None = None
    password_require_special: bool | None = None
    password_expiry_days: int | None = None
    session_timeout_minutes: int | None = None
    reject_weak_patterns: bool | None = None


@router.get("/config", response_model=SecurityConfigResponse)
async def get_security_config(
    user: User = Depends(get_active_user),
    config_source: SqlConfigSource = Depends(get_config_source),
) -> SecurityConfigResponse:
    """Get the effective security policy.

    Args:
        user: Current authenticated user.
        config_source: Security settings source.

    Returns:
        The policy in force for the next operation.
    """
    policy = config_source.load_security_policy_config()
    return SecurityConfigResponse(**asdict(policy))


@router.put("/config", response_model=SecurityConfigResponse)
async def update_security_config(
    request: SecurityConfigUpdate,
    user: User = Depends(require_recent_auth),
    config_source: SqlConfigSource = Depends(get_config_source),
) -> SecurityConfigResponse:
    """Update security settings.

    Args:
        request: Options to change.
        user: Current authenticated user.
        config_source: Security settings source.

    Returns:
        The updated policy.

    Raises:
        HTTPException: If any option is out of range.
    """
    try:
        policy = config_source.update(request.model_dump(exclude_none=True))
    except ConfigError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return SecurityConfigResponse(**asdict(policy))


@router.post("/config/reset", response_model=SecurityConfigResponse)
async def reset_security_config(
    user: User = Depends(require_recent_auth),
    config_source: SqlConfigSource = Depends(get_config_source),
) -> SecurityConfigResponse:
    """Drop runtime overrides and return to the file defaults.

    Args:
        user: Current authenticated user.
        config_source: Security settings source.

    Returns:
        The default policy.
    """
    return SecurityConfigResponse(**asdict(config_source.reset()))
