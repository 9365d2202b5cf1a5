"""SQLite-backed AccountStore."""

import logging
import sqlite3
from typing import Dict, List, Optional

from core.accounts import Account, AccountStore, check_update_fields, utcnow_iso
from core.errors import AccountNotFound, DuplicateKey, InvalidAccountParameters
from database.setup_database import DEFAULT_DATABASE_FILE, setup_database

logger = logging.getLogger(__name__)

_COLUMNS = ("key", "name", "secret", "encrypted", "digits", "period",
            "algorithm", "type", "counter", "created_at", "updated_at")


def _row_to_account(row: sqlite3.Row) -> Account:
    data = {column: row[column] for column in _COLUMNS}
    data["encrypted"] = bool(data["encrypted"])
    return Account(**data)


class SqliteAccountStore(AccountStore):
    """
    One connection per operation (sqlite3 connections are not shared
    between threads).

    - key uniqueness comes from the UNIQUE column: a duplicate insert raises
      IntegrityError, there is no separate existence check
    - increment_counter runs in a BEGIN IMMEDIATE transaction, so concurrent
      increments wait on the write lock instead of reading the same value
    """

    def __init__(self, path: str = DEFAULT_DATABASE_FILE, timeout: float = 10.0):
        self.path = path
        self.timeout = timeout
        setup_database(path)

    def get_db_connection(self) -> sqlite3.Connection:
        # isolation_level=None: transactions are opened explicitly
        conn = sqlite3.connect(self.path, timeout=self.timeout, isolation_level=None)
        conn.row_factory = sqlite3.Row
        return conn

    def create(self, account: Account) -> Account:
        account.validate()
        now = utcnow_iso()
        values = dict(account.__dict__, created_at=now, updated_at=now)
        values["encrypted"] = int(account.encrypted)

        conn = self.get_db_connection()
        try:
            conn.execute(
                f"INSERT INTO accounts ({', '.join(_COLUMNS)}) "
                f"VALUES ({', '.join('?' for _ in _COLUMNS)})",
                tuple(values[column] for column in _COLUMNS),
            )
        except sqlite3.IntegrityError as e:
            if "UNIQUE" in str(e):
                raise DuplicateKey(f"Account '{account.key}' already exists", key=account.key) from e
            raise InvalidAccountParameters(f"Rejected by database: {e}", key=account.key) from e
        finally:
            conn.close()
        return self.find_by_key(account.key)

    def find_by_key(self, key: str) -> Optional[Account]:
        conn = self.get_db_connection()
        try:
            row = conn.execute("SELECT * FROM accounts WHERE key = ?", (key,)).fetchone()
        finally:
            conn.close()
        return _row_to_account(row) if row else None

    def update(self, key: str, changes: Dict) -> Account:
        check_update_fields(key, changes)
        values = dict(changes, updated_at=utcnow_iso())
        if "encrypted" in values:
            values["encrypted"] = int(values["encrypted"])
        assignments = ", ".join(f"{column} = ?" for column in values)

        conn = self.get_db_connection()
        try:
            cursor = conn.execute(
                f"UPDATE accounts SET {assignments} WHERE key = ?",
                tuple(values.values()) + (key,),
            )
            if cursor.rowcount == 0:
                raise AccountNotFound(f"Account '{key}' not found", key=key)
        finally:
            conn.close()
        return self.find_by_key(key)

    def delete(self, key: str) -> None:
        conn = self.get_db_connection()
        try:
            cursor = conn.execute("DELETE FROM accounts WHERE key = ?", (key,))
        finally:
            conn.close()
        if cursor.rowcount == 0:
            raise AccountNotFound(f"Account '{key}' not found", key=key)

    def increment_counter(self, key: str) -> int:
        conn = self.get_db_connection()
        try:
            conn.execute("BEGIN IMMEDIATE")
            try:
                row = conn.execute("SELECT counter FROM accounts WHERE key = ?", (key,)).fetchone()
                if row is None:
                    raise AccountNotFound(f"Account '{key}' not found", key=key)
                conn.execute(
                    "UPDATE accounts SET counter = counter + 1, updated_at = ? WHERE key = ?",
                    (utcnow_iso(), key),
                )
                conn.execute("COMMIT")
            except Exception:
                conn.execute("ROLLBACK")
                raise
        finally:
            conn.close()
        return row["counter"]

    def list_all(self) -> List[Account]:
        conn = self.get_db_connection()
        try:
            rows = conn.execute("SELECT * FROM accounts ORDER BY key").fetchall()
        finally:
            conn.close()
        return [_row_to_account(row) for row in rows]

    def count(self) -> int:
        conn = self.get_db_connection()
        try:
            (total,) = conn.execute("SELECT COUNT(*) FROM accounts").fetchone()
        finally:
            conn.close()
        return total
