"""Credwarden exception hierarchy."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from credwarden.auth.policy import PolicyDecision


class CredwardenError(Exception):
    """Base exception for all Credwarden errors."""


class ConfigError(CredwardenError):
    """Invalid configuration or out-of-range security setting."""


class InvalidParameter(CredwardenError):
    """Malformed hashing input: empty salt, non-positive iterations."""


class AuthenticationError(CredwardenError):
    """Base for login failures surfaced to the authentication boundary."""


class InvalidCredentials(AuthenticationError):
    """Unknown account or wrong password. Message never says which."""

    def __init__(self, message: str = "Invalid username or password") -> None:
        super().__init__(message)


class AccountLocked(AuthenticationError):
    """Login attempted inside an active lockout window."""

    def __init__(
        self,
        message: str = "Account is temporarily locked. Please try again later.",
    ) -> None:
        super().__init__(message)


class AccountNotFound(CredwardenError):
    """No account with the given identifier (administrative operations only)."""


class AccountExists(CredwardenError):
    """An account with the given identifier already exists."""


class PasswordPolicyError(CredwardenError):
    """Password change rejected by the policy engine."""

    def __init__(self, decision: "PolicyDecision") -> None:
        self.decision = decision
        super().__init__("; ".join(v.message for v in decision.violations))

    @property
    def violations(self):
        return self.decision.violations


class PersistenceError(CredwardenError):
    """Base for store failures propagated to the caller."""


class ConflictError(PersistenceError):
    """Account record changed since it was loaded."""
