"""Authentication package for credwarden."""

from credwarden.auth.account import Account, PasswordHistoryEntry
from credwarden.auth.lockout import LockoutState, LockoutTracker, progressive_delay
from credwarden.auth.password import DEFAULT_ITERATIONS, PasswordHasher
from credwarden.auth.policy import (
    CharacterClass,
    PasswordPolicyEngine,
    PolicyDecision,
    ValidationResult,
    Violation,
    ViolationKind,
)
from credwarden.auth.session import (
    create_session_token,
    get_session_expiry,
    is_session_expired,
    needs_reauthentication,
    utcnow_naive,
)
from credwarden.auth.verifier import (
    AuthResult,
    CredentialValidator,
    CredentialVerifier,
    utcnow,
)

__all__ = [
    "Account",
    "PasswordHistoryEntry",
    "LockoutState",
    "LockoutTracker",
    "progressive_delay",
    "DEFAULT_ITERATIONS",
    "PasswordHasher",
    "CharacterClass",
    "PasswordPolicyEngine",
    "PolicyDecision",
    "ValidationResult",
    "Violation",
    "ViolationKind",
    "create_session_token",
    "get_session_expiry",
    "is_session_expired",
    "needs_reauthentication",
    "utcnow_naive",
    "AuthResult",
    "CredentialValidator",
    "CredentialVerifier",
    "utcnow",
]
