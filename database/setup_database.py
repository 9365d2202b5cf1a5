import sqlite3
import os

DEFAULT_DATABASE_FILE = os.path.join('database', 'otp_accounts.db')

SCHEMA = '''
CREATE TABLE IF NOT EXISTS accounts (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    key TEXT NOT NULL UNIQUE,
    name TEXT NOT NULL,
    secret TEXT NOT NULL,
    encrypted INTEGER NOT NULL DEFAULT 0,
    digits INTEGER NOT NULL DEFAULT 6 CHECK (digits BETWEEN 6 AND 8),
    period INTEGER NOT NULL DEFAULT 30 CHECK (period BETWEEN 15 AND 60),
    algorithm TEXT NOT NULL DEFAULT 'sha1' CHECK (algorithm IN ('sha1', 'sha256', 'sha512')),
    type TEXT NOT NULL DEFAULT 'totp' CHECK (type IN ('totp', 'hotp')),
    counter INTEGER NOT NULL DEFAULT 0 CHECK (counter >= 0),
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
)
'''


def setup_database(path: str = DEFAULT_DATABASE_FILE):
    """Create the accounts table (and its parent directory) if missing."""
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)

    conn = sqlite3.connect(path)
    try:
        conn.execute(SCHEMA)
        conn.commit()
    finally:
        conn.close()


if __name__ == "__main__":
    setup_database()
    print("Database setup completed successfully!")
