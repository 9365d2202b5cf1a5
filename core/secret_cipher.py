"""
secret_cipher.py — Encryption at rest for stored OTP secrets.

Envelope format (one string, safe for any text column):

    <nonce hex>:<ciphertext+tag hex>

- AES-256-GCM from `cryptography`: a wrong key or a tampered envelope fails
  authentication instead of producing garbage plaintext.
- 12-byte random nonce per encrypt() call, so encrypting the same secret
  twice never gives the same envelope.
- The master key is SHA-256 of the configured seed: always 32 bytes no
  matter how long the operator's value is. If the seed changes, every
  existing envelope becomes unreadable (DecryptionFailed), there is no
  recovery path.
"""

import binascii
import hashlib
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from core.errors import DecryptionFailed

ENVELOPE_DELIMITER = ":"
NONCE_BYTES = 12
KEY_BYTES = 32
FALLBACK_SEED = "dev-secret"


def derive_master_key(seed: str) -> bytes:
    """One-way hash of the configured seed into a fixed 32-byte AES key."""
    if isinstance(seed, str):
        seed = seed.encode("utf-8")
    return hashlib.sha256(seed).digest()


class SecretCipher:
    """
    Encrypt/decrypt secrets with a process-wide master key.

    The key is handed in explicitly (derived once at startup), never read
    from the environment here, so tests can build a cipher with any key.
    """

    def __init__(self, master_key: bytes):
        if len(master_key) != KEY_BYTES:
            raise ValueError(f"master key must be {KEY_BYTES} bytes, got {len(master_key)}")
        self._aesgcm = AESGCM(master_key)

    @classmethod
    def from_seed(cls, seed: str) -> "SecretCipher":
        return cls(derive_master_key(seed))

    def encrypt(self, plaintext: str) -> str:
        nonce = os.urandom(NONCE_BYTES)
        ciphertext = self._aesgcm.encrypt(nonce, plaintext.encode("utf-8"), None)
        return nonce.hex() + ENVELOPE_DELIMITER + ciphertext.hex()

    def decrypt(self, envelope: str) -> str:
        """
        Reverse encrypt().

        Raises:
            DecryptionFailed: wrong number of segments, non-hex segments,
                wrong nonce length, or authentication failure (wrong key,
                tampered data). Nothing is returned on failure.
        """
        nonce, ciphertext = _split_envelope(envelope)
        try:
            plaintext = self._aesgcm.decrypt(nonce, ciphertext, None)
        except InvalidTag as e:
            raise DecryptionFailed(
                "Secret could not be decrypted; the encryption key may have changed"
            ) from e
        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecryptionFailed("Decrypted secret is not valid UTF-8") from e


def _split_envelope(envelope: str):
    if not isinstance(envelope, str):
        raise DecryptionFailed("Envelope must be a string")
    parts = envelope.split(ENVELOPE_DELIMITER)
    if len(parts) != 2:
        raise DecryptionFailed(f"Malformed envelope: expected 2 segments, got {len(parts)}")
    try:
        nonce = binascii.unhexlify(parts[0])
        ciphertext = binascii.unhexlify(parts[1])
    except (binascii.Error, ValueError) as e:
        raise DecryptionFailed("Malformed envelope: segments must be hex") from e
    if len(nonce) != NONCE_BYTES or not ciphertext:
        raise DecryptionFailed("Malformed envelope: bad nonce or empty ciphertext")
    return nonce, ciphertext
