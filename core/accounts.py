"""
accounts.py — Account records and the store interface they live behind.

An Account is one credential the service issues codes for. The store is an
injected dependency (in-memory here, SQLite in database/db_manager.py) and
owns the two pieces of shared mutable state that need care:

- key uniqueness: insert fails atomically on an existing key
- HOTP counters: increment_counter is serialized per key and returns the
  value before the increment, which is the counter the code is issued for
"""

from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Dict, Iterator, List, Optional
import threading

from core.errors import AccountNotFound, DuplicateKey, InvalidAccountParameters
from core.otp_core import (
    DEFAULT_ALGORITHM,
    DEFAULT_DIGITS,
    DEFAULT_TIME_STEP,
    MAX_DIGITS,
    MIN_DIGITS,
    SUPPORTED_ALGORITHMS,
)

MIN_PERIOD, MAX_PERIOD = 15, 60
OTP_TYPES = ("totp", "hotp")

# Fields update() may change; key and counter are deliberately absent.
UPDATABLE_FIELDS = ("name", "secret", "encrypted", "digits", "period", "algorithm", "type")


def utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


@dataclass
class Account:
    key: str
    secret: str
    name: str = ""
    encrypted: bool = False
    digits: int = DEFAULT_DIGITS
    period: int = DEFAULT_TIME_STEP
    algorithm: str = DEFAULT_ALGORITHM
    type: str = "totp"
    counter: int = 0
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    def __post_init__(self):
        if not self.name:
            self.name = self.key

    def validate(self) -> None:
        if not isinstance(self.key, str) or not self.key.strip():
            raise InvalidAccountParameters("key must be a non-empty string")
        validate_account_parameters(
            key=self.key,
            name=self.name,
            digits=self.digits,
            period=self.period,
            algorithm=self.algorithm,
            type=self.type,
            counter=self.counter,
        )

    def summary(self) -> dict:
        """Public view of the account: everything except the secret material."""
        data = {
            "key": self.key,
            "name": self.name,
            "type": self.type,
            "algorithm": self.algorithm,
            "digits": self.digits,
            "encrypted": self.encrypted,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }
        if self.type == "hotp":
            data["counter"] = self.counter
        else:
            data["period"] = self.period
        return data


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_choice(value, choices) -> bool:
    # Strings only: lists or dicts from a JSON body are unhashable
    return isinstance(value, str) and value in choices


def validate_account_parameters(key: Optional[str] = None, **fields) -> None:
    """
    Range-check account parameters. Only the fields passed are checked, so
    the same function serves creation (all fields) and partial updates.

    Raises:
        InvalidAccountParameters: first violation found; values are never clamped
    """
    def fail(message):
        raise InvalidAccountParameters(message, key=key)

    if "name" in fields and not isinstance(fields["name"], str):
        fail("name must be a string")
    if "digits" in fields:
        digits = fields["digits"]
        if not _is_int(digits) or not MIN_DIGITS <= digits <= MAX_DIGITS:
            fail(f"digits must be an integer between {MIN_DIGITS} and {MAX_DIGITS}")
    if "period" in fields:
        period = fields["period"]
        if not _is_int(period) or not MIN_PERIOD <= period <= MAX_PERIOD:
            fail(f"period must be an integer between {MIN_PERIOD} and {MAX_PERIOD} seconds")
    if "algorithm" in fields and not _is_choice(fields["algorithm"], SUPPORTED_ALGORITHMS):
        fail(f"algorithm must be one of {', '.join(SUPPORTED_ALGORITHMS)}")
    if "type" in fields and not _is_choice(fields["type"], OTP_TYPES):
        fail(f"type must be one of {', '.join(OTP_TYPES)}")
    if "counter" in fields:
        counter = fields["counter"]
        if not _is_int(counter) or counter < 0:
            fail("counter must be a non-negative integer")
    if "encrypted" in fields and not isinstance(fields["encrypted"], bool):
        fail("encrypted must be a boolean")


class AccountStore(ABC):
    """Keyed collection of accounts used by OtpService."""

    @abstractmethod
    def create(self, account: Account) -> Account:
        """Insert a new account; DuplicateKey if the key exists (atomic)."""

    @abstractmethod
    def find_by_key(self, key: str) -> Optional[Account]:
        ...

    @abstractmethod
    def update(self, key: str, changes: Dict) -> Account:
        """Apply UPDATABLE_FIELDS changes; AccountNotFound if absent."""

    @abstractmethod
    def delete(self, key: str) -> None:
        ...

    @abstractmethod
    def increment_counter(self, key: str) -> int:
        """Atomically add 1 to the counter and return the previous value."""

    @abstractmethod
    def list_all(self) -> List[Account]:
        ...

    def keys(self) -> List[str]:
        return [account.key for account in self.list_all()]

    def count(self) -> int:
        return len(self.list_all())


def check_update_fields(key: str, changes: Dict) -> None:
    unknown = sorted(set(changes) - set(UPDATABLE_FIELDS))
    if unknown:
        raise InvalidAccountParameters(f"Fields cannot be updated: {', '.join(unknown)}", key=key)
    validate_account_parameters(key=key, **changes)


class InMemoryAccountStore(AccountStore):
    """
    Dict-backed store.

    - self._lock guards membership (insert / remove of a record and its lock)
    - one lock per existing key serializes update, delete and counter
      increments for that key; different keys never wait on each other
    - a key lock lives exactly as long as its record, so lookups of unknown
      keys leave nothing behind
    Records handed out are copies, so callers cannot mutate stored state.
    """

    def __init__(self):
        self._accounts: Dict[str, Account] = {}
        self._lock = threading.Lock()
        self._key_locks: Dict[str, threading.Lock] = {}

    @contextmanager
    def _locked(self, key: str) -> Iterator[Account]:
        """Hold the key's lock and yield its current record; AccountNotFound if absent."""
        with self._lock:
            lock = self._key_locks.get(key)
        if lock is None:
            raise AccountNotFound(f"Account '{key}' not found", key=key)
        with lock:
            # Deleted (and maybe re-created) while we waited for the lock
            if self._key_locks.get(key) is not lock:
                raise AccountNotFound(f"Account '{key}' not found", key=key)
            yield self._accounts[key]

    def create(self, account: Account) -> Account:
        account.validate()
        with self._lock:
            if account.key in self._accounts:
                raise DuplicateKey(f"Account '{account.key}' already exists", key=account.key)
            now = utcnow_iso()
            stored = replace(account, created_at=now, updated_at=now)
            self._accounts[account.key] = stored
            self._key_locks[account.key] = threading.Lock()
        return replace(stored)

    def find_by_key(self, key: str) -> Optional[Account]:
        account = self._accounts.get(key)
        return replace(account) if account is not None else None

    def update(self, key: str, changes: Dict) -> Account:
        check_update_fields(key, changes)
        with self._locked(key) as account:
            updated = replace(account, **changes, updated_at=utcnow_iso())
            self._accounts[key] = updated
        return replace(updated)

    def delete(self, key: str) -> None:
        with self._locked(key):
            with self._lock:
                del self._accounts[key]
                del self._key_locks[key]

    def increment_counter(self, key: str) -> int:
        with self._locked(key) as account:
            previous = account.counter
            self._accounts[key] = replace(account, counter=previous + 1, updated_at=utcnow_iso())
        return previous

    def list_all(self) -> List[Account]:
        with self._lock:
            accounts = list(self._accounts.values())
        return [replace(account) for account in sorted(accounts, key=lambda a: a.key)]
