"""Login and password-change orchestration."""

import datetime
import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Protocol

from credwarden.auth.account import Account, PasswordHistoryEntry
from credwarden.auth.lockout import LockoutTracker
from credwarden.auth.password import PasswordHasher
from credwarden.auth.policy import PasswordPolicyEngine, PolicyDecision
from credwarden.exceptions import (
    AccountExists,
    AccountLocked,
    AccountNotFound,
    InvalidCredentials,
    PasswordPolicyError,
)
from credwarden.storage.ports import AccountStore, ConfigSource, HistoryStore

logger = logging.getLogger("credwarden.audit")


def utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


class CredentialValidator(Protocol):
    """Capability consumed by an authentication boundary."""

    def validate_credentials(self, account: Account, plaintext: str) -> bool:
        """Return True if plaintext is the account's current password."""


@dataclass(frozen=True)
class AuthResult:
    """Successful login.

    password_change_required is set when the password has expired or an
    administrator forced a change; the boundary decides what to do with it.
    """

    account: Account
    password_change_required: bool = False


class CredentialVerifier:
    """Composes hashing, lockout and policy into login and password change.

    A fresh SecurityPolicyConfig is loaded from the config source at the
    start of every operation. Stores are responsible for serializing
    concurrent writes to the same account.
    """

    def __init__(
        self,
        accounts: AccountStore,
        history: HistoryStore,
        config_source: ConfigSource,
        hasher: Optional[PasswordHasher] = None,
        clock: Callable[[], datetime.datetime] = utcnow,
    ):
        self.accounts = accounts
        self.history = history
        self.config_source = config_source
        self.hasher = hasher or PasswordHasher()
        self.policy = PasswordPolicyEngine(self.hasher)
        self.clock = clock

    def validate_credentials(self, account: Account, plaintext: str) -> bool:
        return self.hasher.verify(
            plaintext, account.password_salt, account.password_hash, account.iterations
        )

    def login(self, identifier: str, plaintext: str) -> AuthResult:
        """Authenticate an account.

        Args:
            identifier: Account identifier.
            plaintext: Password supplied by the user.

        Returns:
            AuthResult for the authenticated account.

        Raises:
            AccountLocked: If the account is inside a lockout window. The
                password is not checked.
            InvalidCredentials: If the account is unknown or the password
                does not match.
        """
        config = self.config_source.load_security_policy_config()
        now = self.clock()

        account = self.accounts.get_by_identifier(identifier)
        if account is None:
            # Pay the same KDF cost as a real check.
            self.hasher.derive(plaintext, self.hasher.new_salt(), config.pbkdf2_iterations)
            logger.info(f"Login failed for unknown account {identifier}")
            raise InvalidCredentials()

        tracker = LockoutTracker(config)
        if tracker.release_if_expired(account, now):
            self.accounts.save(account)

        if tracker.is_locked(account, now):
            logger.warning(f"Login refused for locked account {identifier}")
            raise AccountLocked()

        if not self.validate_credentials(account, plaintext):
            tracker.record_failure(account, now)
            self.accounts.save(account)
            logger.info(
                f"Login failed for account {identifier} "
                f"({account.failed_attempts}/{config.max_login_attempts})"
            )
            raise InvalidCredentials()

        tracker.record_success(account)
        self.accounts.save(account)
        logger.info(f"Login succeeded for account {identifier}")

        return AuthResult(
            account=account,
            password_change_required=self.policy.must_change_password(account, config, now),
        )

    def change_password(
        self,
        identifier: str,
        new_password: str,
        current_password: Optional[str] = None,
    ) -> Account:
        """Replace an account's password after policy checks.

        Args:
            identifier: Account identifier.
            new_password: Candidate password.
            current_password: If given, must match the current password.

        Returns:
            The updated, saved account.

        Raises:
            AccountNotFound: If the account does not exist.
            InvalidCredentials: If current_password does not match.
            PasswordPolicyError: If the candidate breaks any policy rule.
        """
        config = self.config_source.load_security_policy_config()
        now = self.clock()

        account = self._get(identifier)
        if current_password is not None and not self.validate_credentials(
            account, current_password
        ):
            logger.info(f"Password change refused for {identifier}: wrong current password")
            raise InvalidCredentials("Current password is incorrect")

        history = self.history.list_for_account(identifier)
        decision = self.policy.is_allowed_change(new_password, account, history, config, now)
        if not decision.accepted:
            logger.info(
                f"Password change rejected for {identifier}: "
                f"{', '.join(k.value for k in decision.kinds)}"
            )
            raise PasswordPolicyError(decision)

        retired = PasswordHistoryEntry(
            password_hash=account.password_hash,
            salt=account.password_salt,
            iterations=account.iterations,
            created_at=now,
        )
        used_salts = {account.password_salt} | {entry.salt for entry in history}
        salt = self.hasher.new_salt()
        while salt in used_salts:
            salt = self.hasher.new_salt()

        account.password_salt = salt
        account.password_hash = self.hasher.derive(new_password, salt, config.pbkdf2_iterations)
        account.iterations = config.pbkdf2_iterations
        account.password_changed_at = now
        account.must_change_password = False
        self.accounts.save(account)

        if config.password_history_count > 0:
            self.history.append(identifier, retired)
        self.history.prune_to_limit(identifier, config.password_history_count)

        logger.info(f"Password changed for account {identifier}")
        return account

    def create_account(
        self,
        identifier: str,
        password: str,
        must_change_password: bool = False,
    ) -> Account:
        """Create an account with a freshly salted hash.

        Raises:
            AccountExists: If the identifier is taken.
            PasswordPolicyError: If the password fails complexity rules.
        """
        config = self.config_source.load_security_policy_config()
        now = self.clock()

        if self.accounts.get_by_identifier(identifier) is not None:
            raise AccountExists(f"Account already exists: {identifier}")

        result = self.policy.validate_complexity(password, config)
        if not result.valid:
            raise PasswordPolicyError(PolicyDecision(violations=tuple(result.violations)))

        salt = self.hasher.new_salt()
        account = Account(
            identifier=identifier,
            password_hash=self.hasher.derive(password, salt, config.pbkdf2_iterations),
            password_salt=salt,
            iterations=config.pbkdf2_iterations,
            password_changed_at=now,
            must_change_password=must_change_password,
        )
        self.accounts.add(account)
        logger.info(f"Account {identifier} created")
        return account

    def unlock(self, identifier: str) -> Account:
        """Clear an account's lockout and failed-attempt counter."""
        config = self.config_source.load_security_policy_config()
        account = self._get(identifier)
        LockoutTracker(config).unlock(account)
        self.accounts.save(account)
        return account

    def force_password_change(self, identifier: str) -> Account:
        """Require a password change at the account's next login."""
        account = self._get(identifier)
        account.must_change_password = True
        self.accounts.save(account)
        logger.info(f"Password change forced for account {identifier}")
        return account

    def locked_accounts(self) -> List[Account]:
        """Accounts currently inside a lockout window.

        Computed at call time; lapsed lockouts are reported as unlocked but
        left in the store until the account's next login attempt.
        """
        config = self.config_source.load_security_policy_config()
        tracker = LockoutTracker(config)
        now = self.clock()
        return [a for a in self.accounts.list_accounts() if tracker.is_locked(a, now)]

    def _get(self, identifier: str) -> Account:
        account = self.accounts.get_by_identifier(identifier)
        if account is None:
            raise AccountNotFound(f"Account not found: {identifier}")
        return account
