"""Shared test fixtures for credwarden tests."""

from datetime import datetime, timedelta, timezone

import pytest

from credwarden.auth import CredentialVerifier, PasswordHasher
from credwarden.config_schema import SecurityPolicyConfig
from credwarden.storage import MemoryAccountStore, MemoryHistoryStore, StaticConfigSource

STRONG_PASSWORDS = [
    "Tr0ub4dor&Horse",
    "Blue-Falcon-92x",
    "Quiet#River7Stone",
    "Maple!Orbit58Glow",
    "Silver*Kite31Moon",
    "Harbor%Lamp64Fern",
    "Cedar+Vault29Wind",
]


class FrozenClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def policy():
    """Default policy with a low KDF cost to keep tests fast."""
    return SecurityPolicyConfig(pbkdf2_iterations=1000)


@pytest.fixture
def hasher():
    return PasswordHasher()


@pytest.fixture
def clock():
    return FrozenClock(datetime(2025, 12, 1, 9, 0, tzinfo=timezone.utc))


@pytest.fixture
def account_store():
    return MemoryAccountStore()


@pytest.fixture
def history_store():
    return MemoryHistoryStore()


@pytest.fixture
def verifier(account_store, history_store, policy, hasher, clock):
    """Verifier over in-memory stores with a frozen clock."""
    return CredentialVerifier(
        accounts=account_store,
        history=history_store,
        config_source=StaticConfigSource(policy),
        hasher=hasher,
        clock=clock,
    )


@pytest.fixture
def strong_passwords():
    return list(STRONG_PASSWORDS)
