import pyotp
import pytest

from conftest import DEMO_SECRET, FROZEN_NOW, RFC_SECRET_B32


def _add(client, **body):
    body.setdefault("secret", DEMO_SECRET)
    return client.post("/api/accounts", json=body)


def test_health(client):
    _add(client, key="a")
    response = client.get("/health")
    assert response.status_code == 200
    assert response.get_json()["accounts"] == 1


def test_add_account_and_get_code(client):
    response = _add(client, key="github", name="GitHub", encrypt=True)
    assert response.status_code == 201
    assert response.get_json() == {
        "message": "Account added successfully",
        "key": "github",
        "name": "GitHub",
        "algorithm": "sha1",
    }

    body = client.get("/api/code/github").get_json()
    assert body["code"] == pyotp.TOTP(DEMO_SECRET).at(FROZEN_NOW)
    assert body["account"] == "GitHub"
    assert 1 <= body["timeRemaining"] <= 30
    assert body["expiresAt"].endswith("Z")


def test_hotp_code_endpoint_advances_counter(client):
    _add(client, key="h", secret=RFC_SECRET_B32, type="hotp")
    assert client.get("/api/code/h").get_json()["code"] == "755224"
    assert client.get("/api/code/h").get_json()["code"] == "287082"
    assert client.get("/api/accounts/h").get_json()["counter"] == 2


def test_unknown_account_lists_available_keys(client):
    _add(client, key="a")
    _add(client, key="b")
    response = client.get("/api/code/zzz")
    assert response.status_code == 404
    body = response.get_json()
    assert body["kind"] == "AccountNotFound"
    assert body["key"] == "zzz"
    assert body["availableAccounts"] == ["a", "b"]


def test_duplicate_is_409(client):
    _add(client, key="a")
    response = _add(client, key="a")
    assert response.status_code == 409
    assert response.get_json()["kind"] == "DuplicateKey"


def test_missing_fields_is_400(client):
    response = client.post("/api/accounts", json={"key": "a"})
    assert response.status_code == 400
    assert response.get_json()["kind"] == "InvalidAccountParameters"


def test_invalid_secret_is_400(client):
    response = _add(client, key="a", secret="definitely not base32")
    assert response.status_code == 400
    assert response.get_json() == {
        "error": "Invalid Base32 secret",
        "kind": "InvalidSecretEncoding",
        "key": "a",
    }


def test_invalid_parameters_is_400(client):
    response = _add(client, key="a", digits=12)
    assert response.status_code == 400
    assert response.get_json()["kind"] == "InvalidAccountParameters"


def test_non_object_body_is_400(client):
    response = client.post("/api/accounts", json=["a"])
    assert response.status_code == 400


def test_list_accounts_has_no_secrets(client):
    _add(client, key="a", encrypt=True)
    _add(client, key="b")
    body = client.get("/api/accounts").get_json()
    assert body["total"] == 2
    assert [a["key"] for a in body["accounts"]] == ["a", "b"]
    for account in body["accounts"]:
        assert "secret" not in account


def test_all_codes(client):
    _add(client, key="a")
    _add(client, key="h", secret=RFC_SECRET_B32, type="hotp")
    codes = {c["key"]: c for c in client.get("/api/codes").get_json()["codes"]}
    assert codes["a"]["code"] == pyotp.TOTP(DEMO_SECRET).at(FROZEN_NOW)
    assert "code" not in codes["h"]

    codes = {c["key"]: c for c in client.get("/api/codes?include_hotp=true").get_json()["codes"]}
    assert codes["h"]["code"] == "755224"


def test_update_account(client):
    _add(client, key="a")
    response = client.patch("/api/accounts/a", json={"name": "Renamed", "digits": 8})
    assert response.status_code == 200
    assert response.get_json()["name"] == "Renamed"
    assert len(client.get("/api/code/a").get_json()["code"]) == 8


def test_update_counter_is_rejected(client):
    _add(client, key="h", type="hotp")
    response = client.patch("/api/accounts/h", json={"counter": 0})
    assert response.status_code == 400


def test_update_missing_is_404(client):
    assert client.patch("/api/accounts/nope", json={"name": "x"}).status_code == 404


def test_delete_account(client):
    _add(client, key="a")
    response = client.delete("/api/accounts/a")
    assert response.get_json() == {"message": "Account deleted successfully", "key": "a"}
    assert client.delete("/api/accounts/a").status_code == 404


def test_import_uri(client):
    response = client.post("/api/accounts/import", json={
        "uri": "otpauth://totp/Issuer:alice@example.com?secret=JBSWY3DPEHPK3PXP&issuer=Issuer&digits=6&period=30",
    })
    assert response.status_code == 201
    assert response.get_json()["key"] == "issuer-alice-example-com"


def test_import_malformed_uri(client):
    response = client.post("/api/accounts/import", json={"uri": "otpauth://totp/alice"})
    assert response.status_code == 400
    assert response.get_json()["kind"] == "MalformedOtpUri"
    assert client.post("/api/accounts/import", json={}).status_code == 400


def test_otpauth_uri_and_qr_code(client):
    _add(client, key="a", name="alice", encrypt=True)
    uri = client.get("/api/accounts/a/otpauth_uri?issuer=Home").get_json()["uri"]
    assert uri.startswith("otpauth://totp/Home:alice?secret=JBSWY3DPEHPK3PXP")

    qr = client.get("/api/accounts/a/qr_code").get_json()["qr_code"]
    assert qr.startswith("data:image/png;base64,")


def test_unknown_route_is_json(client):
    response = client.get("/api/nothing-here")
    assert response.status_code == 404
    assert response.get_json()["kind"] == "Not Found"


@pytest.mark.parametrize("fields", [
    {"algorithm": ["sha1"]}, {"algorithm": {"name": "sha1"}}, {"type": ["totp"]}, {"type": {"t": 1}},
])
def test_non_string_algorithm_or_type_is_400(client, fields):
    response = _add(client, key="a", **fields)
    assert response.status_code == 400
    assert response.get_json()["kind"] == "InvalidAccountParameters"
    assert client.get("/api/accounts").get_json()["total"] == 0

    _add(client, key="b")
    response = client.patch("/api/accounts/b", json=fields)
    assert response.status_code == 400
    assert response.get_json()["kind"] == "InvalidAccountParameters"


@pytest.mark.parametrize("encrypt", ["false", "true", 1, 0, "yes"])
def test_non_boolean_encrypt_is_400(client, encrypt):
    response = _add(client, key="a", encrypt=encrypt)
    assert response.status_code == 400
    assert response.get_json()["kind"] == "InvalidAccountParameters"

    response = client.post("/api/accounts/import", json={
        "uri": "otpauth://totp/alice?secret=JBSWY3DPEHPK3PXP",
        "encrypt": encrypt,
    })
    assert response.status_code == 400
    assert response.get_json()["kind"] == "InvalidAccountParameters"
    assert client.get("/api/accounts").get_json()["total"] == 0


def test_encrypt_false_stores_plain_secret(client, app):
    _add(client, key="a", encrypt=False)
    assert client.get("/api/accounts/a").get_json()["encrypted"] is False
    store = app.extensions["otp_service"].store
    assert store.find_by_key("a").secret == DEMO_SECRET


def test_missing_encryption_key_warns(caplog):
    from backend.app import create_app
    from backend.config import TestConfig

    with caplog.at_level("WARNING"):
        app = create_app({**{k: getattr(TestConfig, k) for k in dir(TestConfig) if k.isupper()},
                          "ENCRYPTION_KEY": None})
    assert "ENCRYPTION_KEY not set" in caplog.text
    client = app.test_client()
    assert _add(client, key="a", encrypt=True).status_code == 201
