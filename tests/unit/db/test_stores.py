"""Tests for the SQLAlchemy-backed stores."""

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from sqlalchemy.orm import sessionmaker

from credwarden.auth import Account, CredentialVerifier, PasswordHistoryEntry
from credwarden.config_schema import SecurityPolicyConfig
from credwarden.db import (
    Config,
    SqlAccountStore,
    SqlConfigSource,
    SqlHistoryStore,
    User,
    create_engine,
    get_session,
    init_db,
)
from credwarden.exceptions import (
    AccountExists,
    AccountNotFound,
    ConfigError,
    ConflictError,
    InvalidCredentials,
)

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


def _account(identifier: str = "alice") -> Account:
    return Account(
        identifier=identifier,
        password_hash=b"\x01" * 64,
        password_salt=b"\x02" * 32,
        iterations=1000,
        password_changed_at=NOW,
    )


def _entry(n: int) -> PasswordHistoryEntry:
    return PasswordHistoryEntry(
        password_hash=bytes([n]) * 64,
        salt=bytes([n]) * 32,
        iterations=1000,
        created_at=NOW + timedelta(days=n),
    )


@pytest.fixture
def engine(tmp_path: Path):
    engine = create_engine(f"sqlite:///{tmp_path / 'test.db'}")
    init_db(engine)
    return engine


@pytest.fixture
def db_session(engine):
    """Create a database session."""
    session = sessionmaker(bind=engine)()
    try:
        yield session
    finally:
        session.close()


class TestSqlAccountStore:
    """Tests for SqlAccountStore."""

    def test_add_and_get(self, db_session) -> None:
        store = SqlAccountStore(db_session)
        store.add(_account())

        loaded = store.get_by_identifier("alice")

        assert loaded.identifier == "alice"
        assert loaded.password_hash == b"\x01" * 64
        assert loaded.password_salt == b"\x02" * 32
        assert loaded.iterations == 1000
        assert loaded.version == 0

    def test_timestamps_round_trip_as_aware_utc(self, db_session) -> None:
        store = SqlAccountStore(db_session)
        account = _account()
        account.locked_until = NOW + timedelta(minutes=15)
        store.add(account)

        loaded = store.get_by_identifier("alice")

        assert loaded.password_changed_at == NOW
        assert loaded.locked_until == NOW + timedelta(minutes=15)
        assert loaded.locked_until.tzinfo is not None

    def test_timestamps_stored_as_naive_utc(self, db_session) -> None:
        offset = timezone(timedelta(hours=2))
        account = _account()
        account.password_changed_at = NOW.astimezone(offset)
        SqlAccountStore(db_session).add(account)

        user = db_session.query(User).one()

        assert user.password_changed_at == datetime(2025, 6, 1, 12, 0)

    def test_get_missing_returns_none(self, db_session) -> None:
        store = SqlAccountStore(db_session)

        assert store.get_by_identifier("ghost") is None
        assert store.get_user("ghost") is None

    def test_add_duplicate_raises(self, db_session) -> None:
        store = SqlAccountStore(db_session)
        store.add(_account())

        with pytest.raises(AccountExists):
            store.add(_account())

    def test_save_persists_and_bumps_version(self, db_session) -> None:
        store = SqlAccountStore(db_session)
        store.add(_account())
        account = store.get_by_identifier("alice")
        account.failed_attempts = 2
        account.must_change_password = True

        store.save(account)

        assert account.version == 1
        reloaded = store.get_by_identifier("alice")
        assert reloaded.failed_attempts == 2
        assert reloaded.must_change_password is True
        assert reloaded.version == 1

    def test_stale_save_conflicts_across_sessions(self, engine) -> None:
        """A writer holding an old version loses to a committed update."""
        with get_session(engine) as session:
            SqlAccountStore(session).add(_account())

        session_a = sessionmaker(bind=engine)()
        try:
            stale = SqlAccountStore(session_a).get_by_identifier("alice")
            session_a.commit()

            with get_session(engine) as session_b:
                store_b = SqlAccountStore(session_b)
                fresh = store_b.get_by_identifier("alice")
                fresh.failed_attempts = 1
                store_b.save(fresh)

            stale.failed_attempts = 1
            with pytest.raises(ConflictError):
                SqlAccountStore(session_a).save(stale)
        finally:
            session_a.close()

        with get_session(engine) as session:
            assert SqlAccountStore(session).get_by_identifier("alice").version == 1

    def test_list_accounts_sorted(self, db_session) -> None:
        store = SqlAccountStore(db_session)
        for name in ("carol", "alice", "bob"):
            store.add(_account(name))

        assert [a.identifier for a in store.list_accounts()] == ["alice", "bob", "carol"]


class TestSqlHistoryStore:
    """Tests for SqlHistoryStore."""

    def test_list_most_recent_first(self, db_session) -> None:
        SqlAccountStore(db_session).add(_account())
        store = SqlHistoryStore(db_session)
        for n in (1, 3, 2):
            store.append("alice", _entry(n))

        assert store.list_for_account("alice") == [_entry(3), _entry(2), _entry(1)]

    def test_prune_to_limit(self, db_session) -> None:
        SqlAccountStore(db_session).add(_account())
        store = SqlHistoryStore(db_session)
        for n in range(1, 6):
            store.append("alice", _entry(n))

        removed = store.prune_to_limit("alice", 2)

        assert removed == 3
        assert store.list_for_account("alice") == [_entry(5), _entry(4)]

    def test_prune_only_touches_one_account(self, db_session) -> None:
        accounts = SqlAccountStore(db_session)
        accounts.add(_account("alice"))
        accounts.add(_account("bob"))
        store = SqlHistoryStore(db_session)
        store.append("alice", _entry(1))
        store.append("bob", _entry(2))

        store.prune_to_limit("alice", 0)

        assert store.list_for_account("alice") == []
        assert store.list_for_account("bob") == [_entry(2)]

    def test_append_unknown_account(self, db_session) -> None:
        with pytest.raises(AccountNotFound):
            SqlHistoryStore(db_session).append("ghost", _entry(1))


class TestSqlConfigSource:
    """Tests for SqlConfigSource."""

    def test_defaults_without_overrides(self, db_session) -> None:
        defaults = SecurityPolicyConfig(max_login_attempts=7)

        assert SqlConfigSource(db_session, defaults).load_security_policy_config() == defaults

    def test_update_persists_overrides(self, db_session) -> None:
        source = SqlConfigSource(db_session)

        updated = source.update({"max_login_attempts": 3, "password_require_special": False})

        assert updated.max_login_attempts == 3
        assert updated.password_require_special is False
        rows = {row.key: row.value for row in db_session.query(Config)}
        assert rows == {
            "security.max_login_attempts": "3",
            "security.password_require_special": "false",
        }
        reloaded = SqlConfigSource(db_session).load_security_policy_config()
        assert reloaded.max_login_attempts == 3
        assert reloaded.password_require_special is False

    def test_update_overwrites_existing_row(self, db_session) -> None:
        source = SqlConfigSource(db_session)
        source.update({"lockout_duration_minutes": 30})

        source.update({"lockout_duration_minutes": 45})

        assert db_session.query(Config).count() == 1
        assert source.load_security_policy_config().lockout_duration_minutes == 45

    @pytest.mark.parametrize(
        "changes",
        [
            {"max_login_attempts": 0},
            {"pbkdf2_iterations": 5000},
            {"password_history_count": 51},
            {"unknown_option": 1},
            {
                "password_require_uppercase": False,
                "password_require_lowercase": False,
                "password_require_numbers": False,
                "password_require_special": False,
            },
        ],
    )
    def test_invalid_update_writes_nothing(self, db_session, changes) -> None:
        source = SqlConfigSource(db_session)

        with pytest.raises(ConfigError):
            source.update(changes)

        assert db_session.query(Config).count() == 0

    def test_reset_returns_to_defaults(self, db_session) -> None:
        defaults = SecurityPolicyConfig(password_expiry_days=30)
        source = SqlConfigSource(db_session, defaults)
        source.update({"password_expiry_days": 0})

        assert source.reset() == defaults
        assert source.load_security_policy_config() == defaults

    def test_reset_keeps_unrelated_rows(self, db_session) -> None:
        db_session.add(Config(key="ui.theme", value="dark"))
        source = SqlConfigSource(db_session)
        source.update({"password_min_length": 16})

        source.reset()

        assert [row.key for row in db_session.query(Config)] == ["ui.theme"]


def test_verifier_over_sql_stores(db_session) -> None:
    """Lockout state written by one verifier is seen through a fresh one."""
    policy = SecurityPolicyConfig(pbkdf2_iterations=10000, max_login_attempts=2)

    def verifier() -> CredentialVerifier:
        return CredentialVerifier(
            accounts=SqlAccountStore(db_session),
            history=SqlHistoryStore(db_session),
            config_source=SqlConfigSource(db_session, policy),
        )

    verifier().create_account("alice", "Tr0ub4dor&Horse")
    verifier().change_password("alice", "Blue-Falcon-92x", "Tr0ub4dor&Horse")
    for _ in range(2):
        with pytest.raises(InvalidCredentials):
            verifier().login("alice", "WrongPass")

    assert [a.identifier for a in verifier().locked_accounts()] == ["alice"]
    assert len(SqlHistoryStore(db_session).list_for_account("alice")) == 1
