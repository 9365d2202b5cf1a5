import os
from dotenv import load_dotenv

# Read .env before the values below are evaluated
load_dotenv()


class Config:
    # Master-key seed for encrypting stored secrets. Must stay the same
    # across restarts or encrypted secrets can no longer be read.
    ENCRYPTION_KEY = os.environ.get("ENCRYPTION_KEY")

    # "sqlite" (default) or "memory"
    ACCOUNT_STORE = os.environ.get("ACCOUNT_STORE", "sqlite")
    DATABASE_FILE = os.environ.get("DATABASE_FILE", os.path.join("database", "otp_accounts.db"))

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
    DEFAULT_ISSUER = os.environ.get("DEFAULT_ISSUER", "otp-codes")


class TestConfig(Config):
    TESTING = True
    ENCRYPTION_KEY = "test-encryption-key"
    ACCOUNT_STORE = "memory"
    LOG_LEVEL = "DEBUG"
