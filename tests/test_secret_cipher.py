import pytest

from core.errors import DecryptionFailed
from core.secret_cipher import ENVELOPE_DELIMITER, SecretCipher, derive_master_key


def test_round_trip(cipher):
    for secret in ("JBSWY3DPEHPK3PXP", "a", "ünïcødé secret with spaces"):
        assert cipher.decrypt(cipher.encrypt(secret)) == secret


def test_envelope_shape(cipher):
    envelope = cipher.encrypt("JBSWY3DPEHPK3PXP")
    nonce_hex, ciphertext_hex = envelope.split(ENVELOPE_DELIMITER)
    assert len(nonce_hex) == 24
    int(nonce_hex, 16)
    int(ciphertext_hex, 16)


def test_encrypt_is_not_deterministic(cipher):
    assert cipher.encrypt("JBSWY3DPEHPK3PXP") != cipher.encrypt("JBSWY3DPEHPK3PXP")


def test_master_key_is_fixed_length():
    assert len(derive_master_key("x")) == 32
    assert len(derive_master_key("a much longer operator supplied passphrase" * 10)) == 32
    assert derive_master_key("seed") == derive_master_key("seed")


def test_same_seed_decrypts_across_instances():
    envelope = SecretCipher.from_seed("stable").encrypt("JBSWY3DPEHPK3PXP")
    assert SecretCipher.from_seed("stable").decrypt(envelope) == "JBSWY3DPEHPK3PXP"


def test_wrong_key_fails(cipher):
    envelope = cipher.encrypt("JBSWY3DPEHPK3PXP")
    with pytest.raises(DecryptionFailed):
        SecretCipher.from_seed("another-key").decrypt(envelope)


def test_tampered_ciphertext_fails(cipher):
    nonce_hex, ciphertext_hex = cipher.encrypt("JBSWY3DPEHPK3PXP").split(":")
    flipped = format(int(ciphertext_hex[:2], 16) ^ 0x01, "02x") + ciphertext_hex[2:]
    with pytest.raises(DecryptionFailed):
        cipher.decrypt(f"{nonce_hex}:{flipped}")


@pytest.mark.parametrize("envelope", [
    "",
    "no-delimiter",
    "aa:bb:cc",
    "zz" * 12 + ":abcd",
    "abcd:abcd",
    "00" * 12 + ":",
    "00" * 12 + ":xyz",
])
def test_malformed_envelope_fails(cipher, envelope):
    with pytest.raises(DecryptionFailed):
        cipher.decrypt(envelope)


def test_rejects_short_master_key():
    with pytest.raises(ValueError):
        SecretCipher(b"short")
