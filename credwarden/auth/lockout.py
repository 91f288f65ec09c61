"""Failed-attempt counting and lockout windows."""

import enum
import logging
from datetime import datetime, timedelta
from typing import Optional

from credwarden.auth.account import Account
from credwarden.config_schema import SecurityPolicyConfig

logger = logging.getLogger("credwarden.audit")

MAX_LOGIN_DELAY_SECONDS = 16


def progressive_delay(failed_attempts: int, max_seconds: int = MAX_LOGIN_DELAY_SECONDS) -> int:
    """Seconds to hold back a failed login response.

    Doubles with each consecutive failure (1, 2, 4, 8, ...) up to
    max_seconds. A max_seconds of 0 turns the delay off.
    """
    if failed_attempts < 1 or max_seconds <= 0:
        return 0
    return min(2 ** min(failed_attempts - 1, 30), max_seconds)


class LockoutState(enum.Enum):
    """Lockout state derived from an account's counter and lockout time."""

    ACTIVE = "active"
    LOCKED = "locked"


class LockoutTracker:
    """Per-account lockout state machine.

    Expiry is lazy: a lapsed lockout is only cleared when the next
    authentication attempt for the account arrives.
    """

    def __init__(self, config: SecurityPolicyConfig):
        self.max_attempts = config.max_login_attempts
        self.lockout_duration = timedelta(minutes=config.lockout_duration_minutes)

    def is_locked(self, account: Account, now: datetime) -> bool:
        """Return True while now is inside the account's lockout window."""
        return account.locked_until is not None and now < account.locked_until

    def state(self, account: Account, now: datetime) -> LockoutState:
        if self.is_locked(account, now):
            return LockoutState.LOCKED
        return LockoutState.ACTIVE

    def remaining(self, account: Account, now: datetime) -> Optional[timedelta]:
        """Time left in the lockout window, or None if not locked."""
        if not self.is_locked(account, now):
            return None
        return account.locked_until - now

    def release_if_expired(self, account: Account, now: datetime) -> bool:
        """Clear a lapsed lockout.

        Returns:
            True if the account was changed and needs to be saved.
        """
        if account.locked_until is None or now < account.locked_until:
            return False
        account.failed_attempts = 0
        account.locked_until = None
        logger.info(f"Lockout expired for account {account.identifier}")
        return True

    def record_failure(self, account: Account, now: datetime) -> bool:
        """Count a failed attempt, locking the account at the threshold.

        Returns:
            True if this failure locked the account.
        """
        self.release_if_expired(account, now)

        attempts = account.failed_attempts + 1
        if attempts >= self.max_attempts:
            account.failed_attempts = self.max_attempts
            account.locked_until = now + self.lockout_duration
            logger.warning(
                f"Account {account.identifier} locked until "
                f"{account.locked_until.isoformat()} after {attempts} failed attempts"
            )
            return True

        account.failed_attempts = attempts
        return False

    def record_success(self, account: Account) -> None:
        account.failed_attempts = 0
        account.locked_until = None

    def unlock(self, account: Account) -> None:
        """Administrative unlock: clear the counter and the window."""
        account.failed_attempts = 0
        account.locked_until = None
        logger.info(f"Account {account.identifier} unlocked")
