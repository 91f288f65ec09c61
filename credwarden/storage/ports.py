"""Collaborator interfaces consumed by the credential verifier."""

from typing import List, Optional, Protocol

from credwarden.auth.account import Account, PasswordHistoryEntry
from credwarden.config_schema import SecurityPolicyConfig


class AccountStore(Protocol):
    """Account lookup and persistence."""

    def get_by_identifier(self, identifier: str) -> Optional[Account]:
        """Return the account or None if it does not exist."""

    def add(self, account: Account) -> None:
        """Persist a new account. Raises AccountExists on duplicates."""

    def save(self, account: Account) -> None:
        """Write back an updated account.

        Raises ConflictError if the stored record's version no longer
        matches account.version. On success account.version is advanced.
        """

    def list_accounts(self) -> List[Account]:
        """Return all accounts ordered by identifier."""


class HistoryStore(Protocol):
    """Password history persistence."""

    def list_for_account(self, identifier: str) -> List[PasswordHistoryEntry]:
        """Return history entries, most recent first."""

    def append(self, identifier: str, entry: PasswordHistoryEntry) -> None:
        """Record a retired password."""

    def prune_to_limit(self, identifier: str, limit: int) -> int:
        """Drop entries beyond the most recent limit. Returns the count removed."""


class ConfigSource(Protocol):
    """Source of the security policy snapshot."""

    def load_security_policy_config(self) -> SecurityPolicyConfig:
        """Return the current policy."""


class StaticConfigSource:
    """ConfigSource that always returns the same policy."""

    def __init__(self, config: Optional[SecurityPolicyConfig] = None):
        self.config = config or SecurityPolicyConfig()

    def load_security_policy_config(self) -> SecurityPolicyConfig:
        return self.config
