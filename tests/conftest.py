import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from core.accounts import InMemoryAccountStore  # noqa: E402
from core.secret_cipher import SecretCipher  # noqa: E402
from core.service import OtpService  # noqa: E402
from database.db_manager import SqliteAccountStore  # noqa: E402

# "12345678901234567890" in Base32, the RFC 4226 / RFC 6238 test secret
RFC_SECRET_B32 = "GEZDGNBVGY3TQOJQGEZDGNBVGY3TQOJQ"
DEMO_SECRET = "JBSWY3DPEHPK3PXP"
FROZEN_NOW = 1_700_000_010


class FrozenClock:
    def __init__(self, now=FROZEN_NOW):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture()
def cipher():
    return SecretCipher.from_seed("test-encryption-key")


@pytest.fixture()
def clock():
    return FrozenClock()


@pytest.fixture(params=["memory", "sqlite"])
def store(request, tmp_path):
    if request.param == "memory":
        return InMemoryAccountStore()
    return SqliteAccountStore(str(tmp_path / "accounts.db"))


@pytest.fixture()
def service(store, cipher, clock):
    return OtpService(store, cipher, clock=clock)


@pytest.fixture()
def app(clock):
    from backend.app import create_app
    from backend.config import TestConfig

    app = create_app(TestConfig, clock=clock)
    yield app


@pytest.fixture()
def client(app):
    return app.test_client()
