"""
base32_codec.py — Base32 shared-secret handling (RFC 4648).

Authenticator apps show secrets in many shapes: lower case, grouped in
blocks of four with spaces, with or without '=' padding. Everything is
brought to one canonical form before it is decoded into HMAC key bytes.
"""

import base64
import binascii
import os
import re

from core.errors import InvalidSecretEncoding

SECRET_BYTES = 20           # 160-bit secret (common practice)

_WHITESPACE = re.compile(r"\s+")


def generate_base32_secret() -> str:
    """
    Generate a random secret and return it as Base32 without padding.

    - SECRET_BYTES bytes from os.urandom (CSPRNG).
    - 20 bytes encode to exactly 32 Base32 characters, so there is no '='.
    """
    raw = os.urandom(SECRET_BYTES)
    return base64.b32encode(raw).decode("ascii").rstrip("=")


def normalize_secret(secret: str) -> str:
    """Strip all whitespace and upper-case: normalize(" ab cd ") -> "ABCD"."""
    if not isinstance(secret, str):
        raise InvalidSecretEncoding("Secret must be a string")
    return _WHITESPACE.sub("", secret).upper()


def decode_secret(secret: str) -> bytes:
    """
    Decode a canonical Base32 secret into raw key bytes.

    Padding is optional: trailing '=' are dropped and re-added to the next
    multiple of 8. Characters outside A-Z2-7, lengths that cannot come out
    of a Base32 encoder (1, 3 or 6 mod 8) and secrets that decode to zero
    bytes all raise InvalidSecretEncoding.
    """
    canonical = secret.rstrip("=")
    if not canonical:
        raise InvalidSecretEncoding("Secret is empty")
    padded = canonical + "=" * (-len(canonical) % 8)
    try:
        key = base64.b32decode(padded, casefold=False)
    except (binascii.Error, ValueError) as e:
        raise InvalidSecretEncoding("Invalid Base32 secret") from e
    if not key:
        raise InvalidSecretEncoding("Secret decodes to an empty key")
    return key


def secret_to_key(secret: str) -> bytes:
    """normalize + decode in one step, for secrets not yet in canonical form."""
    return decode_secret(normalize_secret(secret))
