"""Account and password history records shared by the core and the stores."""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass
class Account:
    """A principal's credential state.

    The core mutates counters and hash fields in place; writing the record
    back is the job of an AccountStore.
    """
    identifier: str
    password_hash: bytes
    password_salt: bytes
    iterations: int
    password_changed_at: Optional[datetime] = None
    failed_attempts: int = 0
    locked_until: Optional[datetime] = None
    must_change_password: bool = False
    version: int = 0


@dataclass(frozen=True)
class PasswordHistoryEntry:
    """A retired password hash kept only to prevent reuse."""
    password_hash: bytes
    salt: bytes
    iterations: int
    created_at: datetime
