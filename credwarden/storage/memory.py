"""In-memory account and history stores."""

import threading
from dataclasses import replace
from typing import Dict, List, Optional

from credwarden.auth.account import Account, PasswordHistoryEntry
from credwarden.exceptions import AccountExists, ConflictError


class MemoryAccountStore:
    """AccountStore keeping copies of accounts in a dict.

    Callers always get a copy, so an unsaved mutation never leaks into the
    store and stale saves are detected by version.
    """

    def __init__(self):
        self._accounts: Dict[str, Account] = {}
        self._lock = threading.Lock()

    def get_by_identifier(self, identifier: str) -> Optional[Account]:
        with self._lock:
            stored = self._accounts.get(identifier)
            return replace(stored) if stored else None

    def add(self, account: Account) -> None:
        with self._lock:
            if account.identifier in self._accounts:
                raise AccountExists(f"Account already exists: {account.identifier}")
            self._accounts[account.identifier] = replace(account)

    def save(self, account: Account) -> None:
        with self._lock:
            stored = self._accounts.get(account.identifier)
            if stored is None or stored.version != account.version:
                raise ConflictError(
                    f"Account {account.identifier} was modified concurrently"
                )
            account.version += 1
            self._accounts[account.identifier] = replace(account)

    def list_accounts(self) -> List[Account]:
        with self._lock:
            return [replace(self._accounts[k]) for k in sorted(self._accounts)]


class MemoryHistoryStore:
    """HistoryStore keeping entries per account, most recent first."""

    def __init__(self):
        self._entries: Dict[str, List[PasswordHistoryEntry]] = {}
        self._lock = threading.Lock()

    def list_for_account(self, identifier: str) -> List[PasswordHistoryEntry]:
        with self._lock:
            return list(self._entries.get(identifier, []))

    def append(self, identifier: str, entry: PasswordHistoryEntry) -> None:
        with self._lock:
            self._entries.setdefault(identifier, []).insert(0, entry)

    def prune_to_limit(self, identifier: str, limit: int) -> int:
        with self._lock:
            entries = self._entries.get(identifier, [])
            keep = max(limit, 0)
            removed = len(entries[keep:])
            self._entries[identifier] = entries[:keep]
            return removed
