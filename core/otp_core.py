"""
otp_core.py — HOTP / TOTP code derivation (RFC 4226 / RFC 6238).

Goals:
- Pure functions only: no file, database or clock access. The current time
  is always passed in as `now` so the same inputs give the same code.
- Work on raw key bytes; Base32 decoding lives in base32_codec.py.
- Support the three HMAC hashes authenticator apps understand:
  SHA1 (default, Google Authenticator), SHA256 and SHA512.
"""

from typing import List, Tuple
import hashlib
import hmac
import struct

from core.errors import InvalidSecretEncoding, UnsupportedOtpParameters

# --- Config / constants ----------------------------------------------------
DEFAULT_DIGITS = 6          # standard: 6 digits
DEFAULT_TIME_STEP = 30      # TOTP step (seconds)
DEFAULT_ALGORITHM = "sha1"
MIN_DIGITS, MAX_DIGITS = 6, 8

SUPPORTED_ALGORITHMS = {
    "sha1": hashlib.sha1,
    "sha256": hashlib.sha256,
    "sha512": hashlib.sha512,
}


# --- RFC helpers -----------------------------------------------------------
def int_to_bytes(i: int) -> bytes:
    """
    Encode the moving factor as an 8-byte big-endian unsigned integer, as
    RFC 4226 requires.

    Example: int_to_bytes(1) -> b'\\x00\\x00\\x00\\x00\\x00\\x00\\x00\\x01'
    """
    return struct.pack(">Q", i)


def dynamic_truncate(hmac_digest: bytes) -> int:
    """
    RFC 4226 dynamic truncation.

    - offset = low 4 bits of the last byte
    - read 4 bytes from offset as big-endian, clear the top bit (31-bit result)

    The offset is at most 15, so any SHA1/SHA256/SHA512 digest (20/32/64
    bytes) always has the 4 bytes available.
    """
    offset = hmac_digest[-1] & 0x0F
    return (
        ((hmac_digest[offset] & 0x7F) << 24)
        | ((hmac_digest[offset + 1] & 0xFF) << 16)
        | ((hmac_digest[offset + 2] & 0xFF) << 8)
        | (hmac_digest[offset + 3] & 0xFF)
    )


def check_parameters(digits: int, algorithm: str) -> None:
    """Raise UnsupportedOtpParameters unless digits is 6..8 and algorithm is known."""
    if isinstance(digits, bool) or not isinstance(digits, int) or not MIN_DIGITS <= digits <= MAX_DIGITS:
        raise UnsupportedOtpParameters(f"digits must be between {MIN_DIGITS} and {MAX_DIGITS}, got {digits!r}")
    if not isinstance(algorithm, str) or algorithm not in SUPPORTED_ALGORITHMS:
        raise UnsupportedOtpParameters(
            f"algorithm must be one of {', '.join(SUPPORTED_ALGORITHMS)}, got {algorithm!r}"
        )


def compute_hotp(
    key: bytes,
    counter: int,
    digits: int = DEFAULT_DIGITS,
    algorithm: str = DEFAULT_ALGORITHM,
) -> str:
    """
    HOTP code per RFC 4226.

    Steps:
    1. Message = 8-byte counter (big-endian)
    2. HMAC-<algorithm>(key, message)
    3. Dynamic truncate -> 31-bit integer
    4. otp = value % 10^digits, zero-padded to `digits` characters

    Raises:
        UnsupportedOtpParameters: digits outside 6..8 or unknown algorithm
        InvalidSecretEncoding: empty key
    """
    check_parameters(digits, algorithm)
    if not key:
        raise InvalidSecretEncoding("Secret decodes to an empty key")
    if counter < 0:
        raise UnsupportedOtpParameters(f"counter must be non-negative, got {counter}")

    digest = hmac.new(key, int_to_bytes(counter), SUPPORTED_ALGORITHMS[algorithm]).digest()
    otp_val = dynamic_truncate(digest) % (10 ** digits)
    return str(otp_val).zfill(digits)


def time_step(now: int, period: int = DEFAULT_TIME_STEP) -> int:
    """TOTP moving factor: floor(now / period)."""
    return int(now) // period


def time_remaining(now: int, period: int = DEFAULT_TIME_STEP) -> int:
    """Seconds the current code stays valid; always in [1, period]."""
    return period - (int(now) % period)


def compute_totp(
    key: bytes,
    now: int,
    period: int = DEFAULT_TIME_STEP,
    digits: int = DEFAULT_DIGITS,
    algorithm: str = DEFAULT_ALGORITHM,
) -> Tuple[str, int]:
    """
    TOTP code per RFC 6238: HOTP with counter = floor(now / period).

    Returns:
        (code, remaining_seconds)
    """
    code = compute_hotp(key, time_step(now, period), digits, algorithm)
    return code, time_remaining(now, period)


def totp_window_codes(
    key: bytes,
    now: int,
    period: int = DEFAULT_TIME_STEP,
    digits: int = DEFAULT_DIGITS,
    algorithm: str = DEFAULT_ALGORITHM,
    window: int = 0,
) -> List[str]:
    """
    Codes a verifier with a +/- `window` step tolerance would accept, oldest
    first. Steps before 0 are skipped, so early in the epoch the list is
    shorter than 2 * window + 1.
    """
    if window < 0:
        raise UnsupportedOtpParameters(f"window must be non-negative, got {window}")
    current = time_step(now, period)
    return [
        compute_hotp(key, step, digits, algorithm)
        for step in range(current - window, current + window + 1)
        if step >= 0
    ]
