"""SQLAlchemy-backed account, history and security settings stores.

Stores work inside the caller's Session and never commit; the session
owner decides the transaction boundary.
"""

import datetime
import logging
from typing import List, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.orm import Session

from credwarden.auth.account import Account, PasswordHistoryEntry
from credwarden.config_loader import parse_security
from credwarden.config_schema import SecurityPolicyConfig
from credwarden.db.models import Config, PasswordHistory, User
from credwarden.exceptions import AccountExists, AccountNotFound, ConflictError

logger = logging.getLogger("credwarden")
audit = logging.getLogger("credwarden.audit")

SECURITY_PREFIX = "security."


def _to_db_time(value: Optional[datetime.datetime]) -> Optional[datetime.datetime]:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(datetime.timezone.utc).replace(tzinfo=None)


def _from_db_time(value: Optional[datetime.datetime]) -> Optional[datetime.datetime]:
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=datetime.timezone.utc)


def _to_account(user: User) -> Account:
    return Account(
        identifier=user.username,
        password_hash=bytes(user.password_hash),
        password_salt=bytes(user.password_salt),
        iterations=user.iterations,
        password_changed_at=_from_db_time(user.password_changed_at),
        failed_attempts=user.failed_attempts,
        locked_until=_from_db_time(user.locked_until),
        must_change_password=user.must_change_password,
        version=user.version,
    )


class SqlAccountStore:
    """AccountStore over the users table with optimistic version checks."""

    def __init__(self, session: Session):
        self.session = session

    def get_by_identifier(self, identifier: str) -> Optional[Account]:
        user = self._get_user(identifier)
        return _to_account(user) if user else None

    def get_user(self, identifier: str) -> Optional[User]:
        """Return the ORM row for an account, for session bookkeeping."""
        return self._get_user(identifier)

    def add(self, account: Account) -> None:
        if self._get_user(account.identifier) is not None:
            raise AccountExists(f"Account already exists: {account.identifier}")
        user = User(
            username=account.identifier,
            password_hash=account.password_hash,
            password_salt=account.password_salt,
            iterations=account.iterations,
            password_changed_at=_to_db_time(account.password_changed_at),
            failed_attempts=account.failed_attempts,
            locked_until=_to_db_time(account.locked_until),
            must_change_password=account.must_change_password,
            version=account.version,
            created_at=_to_db_time(datetime.datetime.now(datetime.timezone.utc)),
        )
        self.session.add(user)
        self.session.flush()

    def save(self, account: Account) -> None:
        statement = (
            update(User)
            .where(User.username == account.identifier)
            .where(User.version == account.version)
            .values(
                password_hash=account.password_hash,
                password_salt=account.password_salt,
                iterations=account.iterations,
                password_changed_at=_to_db_time(account.password_changed_at),
                failed_attempts=account.failed_attempts,
                locked_until=_to_db_time(account.locked_until),
                must_change_password=account.must_change_password,
                version=account.version + 1,
            )
            .execution_options(synchronize_session=False)
        )
        result = self.session.execute(statement)
        if result.rowcount != 1:
            raise ConflictError(f"Account {account.identifier} was modified concurrently")
        account.version += 1

    def list_accounts(self) -> List[Account]:
        statement = select(User).order_by(User.username).execution_options(
            populate_existing=True
        )
        return [_to_account(user) for user in self.session.scalars(statement)]

    def _get_user(self, identifier: str) -> Optional[User]:
        statement = (
            select(User)
            .where(User.username == identifier)
            .execution_options(populate_existing=True)
        )
        return self.session.scalars(statement).first()


class SqlHistoryStore:
    """HistoryStore over the password_history table."""

    def __init__(self, session: Session):
        self.session = session

    def list_for_account(self, identifier: str) -> List[PasswordHistoryEntry]:
        statement = (
            select(PasswordHistory)
            .join(User)
            .where(User.username == identifier)
            .order_by(PasswordHistory.created_at.desc(), PasswordHistory.id.desc())
        )
        return [
            PasswordHistoryEntry(
                password_hash=bytes(row.password_hash),
                salt=bytes(row.salt),
                iterations=row.iterations,
                created_at=_from_db_time(row.created_at),
            )
            for row in self.session.scalars(statement)
        ]

    def append(self, identifier: str, entry: PasswordHistoryEntry) -> None:
        user_id = self._user_id(identifier)
        self.session.add(PasswordHistory(
            user_id=user_id,
            password_hash=entry.password_hash,
            salt=entry.salt,
            iterations=entry.iterations,
            created_at=_to_db_time(entry.created_at),
        ))
        self.session.flush()

    def prune_to_limit(self, identifier: str, limit: int) -> int:
        user_id = self._user_id(identifier)
        keep_ids = select(PasswordHistory.id).where(
            PasswordHistory.user_id == user_id
        ).order_by(
            PasswordHistory.created_at.desc(), PasswordHistory.id.desc()
        ).limit(max(limit, 0))

        statement = (
            delete(PasswordHistory)
            .where(PasswordHistory.user_id == user_id)
            .where(PasswordHistory.id.not_in(keep_ids.scalar_subquery()))
            .execution_options(synchronize_session=False)
        )
        removed = self.session.execute(statement).rowcount
        if removed:
            logger.debug(f"Pruned {removed} password history entries for {identifier}")
        return removed

    def _user_id(self, identifier: str) -> int:
        user_id = self.session.scalar(select(User.id).where(User.username == identifier))
        if user_id is None:
            raise AccountNotFound(f"Account not found: {identifier}")
        return user_id


class SqlConfigSource:
    """ConfigSource layering security.* rows of the config table over defaults.

    Defaults normally come from the YAML file; rows written through
    update() let administrators tune the policy at runtime.
    """

    def __init__(self, session: Session, defaults: Optional[SecurityPolicyConfig] = None):
        self.session = session
        self.defaults = defaults or SecurityPolicyConfig()

    def load_security_policy_config(self) -> SecurityPolicyConfig:
        return parse_security(self._overrides(), base=self.defaults)

    def update(self, changes: dict) -> SecurityPolicyConfig:
        """Validate and store changed options.

        Raises:
            ConfigError: If an option is unknown or out of range. Nothing is
                written in that case.
        """
        policy = parse_security(changes, base=self.load_security_policy_config())

        for name in changes:
            key = f"{SECURITY_PREFIX}{name}"
            value = getattr(policy, name)
            value = str(value).lower() if isinstance(value, bool) else str(value)
            row = self.session.scalars(select(Config).where(Config.key == key)).first()
            if row is None:
                self.session.add(Config(key=key, value=value))
            else:
                row.value = value
        self.session.flush()

        audit.info(f"Security settings updated: {', '.join(sorted(changes))}")
        return policy

    def reset(self) -> SecurityPolicyConfig:
        """Drop all stored overrides, returning to the file defaults."""
        self.session.execute(
            delete(Config).where(Config.key.startswith(SECURITY_PREFIX))
        )
        self.session.flush()
        audit.info("Security settings reset to defaults")
        return self.defaults

    def _overrides(self) -> dict:
        rows = self.session.scalars(
            select(Config).where(Config.key.startswith(SECURITY_PREFIX))
        )
        return {row.key[len(SECURITY_PREFIX):]: row.value for row in rows}
