import pytest

from core.base32_codec import decode_secret, generate_base32_secret, normalize_secret, secret_to_key
from core.errors import InvalidSecretEncoding


def test_normalize_strips_whitespace_and_uppercases():
    assert normalize_secret(" ab cd ") == "ABCD"
    assert normalize_secret("jbsw y3dp\tehpk\n3pxp") == "JBSWY3DPEHPK3PXP"


def test_decode_without_padding():
    assert decode_secret("GEZDGNBVGY3TQOJQGEZDGNBVGY3TQOJQ") == b"12345678901234567890"
    assert decode_secret("MFRGG") == b"abc"


def test_decode_accepts_padding():
    assert decode_secret("MFRGG===") == b"abc"


def test_secret_to_key_normalizes_first():
    assert secret_to_key("mfrg g") == b"abc"


@pytest.mark.parametrize("secret", ["A", "ABC", "ABCDEF", "JBSWY3DP1", "JBSWY3D!", "ÄBCDEFGH"])
def test_decode_rejects_invalid(secret):
    with pytest.raises(InvalidSecretEncoding):
        decode_secret(secret)


@pytest.mark.parametrize("secret", ["", "====", "   "])
def test_empty_secret_is_invalid(secret):
    with pytest.raises(InvalidSecretEncoding):
        secret_to_key(secret)


def test_non_string_secret_is_invalid():
    with pytest.raises(InvalidSecretEncoding):
        normalize_secret(12345)


def test_generated_secret_round_trips():
    secret = generate_base32_secret()
    assert len(secret) == 32
    assert len(decode_secret(secret)) == 20
    assert generate_base32_secret() != secret
