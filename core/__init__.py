"""
core package
============

One-time codes (HOTP/TOTP, RFC 4226 & RFC 6238) for a set of named
accounts, with their secrets optionally encrypted at rest.

Modules
-------
- base32_codec  : normalize / decode Base32 shared secrets
- otp_core      : HOTP / TOTP derivation, time remaining
- secret_cipher : AES-GCM envelope for stored secrets
- otp_uri       : parse / build otpauth:// provisioning URIs
- accounts      : Account record, validation, AccountStore + in-memory store
- service       : OtpService, issuance and account management

Quick example
-------------
>>> from core import InMemoryAccountStore, OtpService, SecretCipher
>>> service = OtpService(InMemoryAccountStore(), SecretCipher.from_seed("seed"))
>>> account = service.create_account("demo", "JBSWY3DPEHPK3PXP", encrypt=True)
>>> service.issue_code("demo")["code"]  # doctest: +SKIP
'123456'
"""
from core.accounts import Account, AccountStore, InMemoryAccountStore
from core.base32_codec import decode_secret, generate_base32_secret, normalize_secret
from core.errors import (
    AccountNotFound,
    DecryptionFailed,
    DuplicateKey,
    InvalidAccountParameters,
    InvalidSecretEncoding,
    MalformedOtpUri,
    OtpError,
    OtpGenerationFailed,
    UnsupportedOtpParameters,
)
from core.otp_core import compute_hotp, compute_totp, time_remaining, totp_window_codes
from core.otp_uri import OtpUriParams, format_otpauth_uri, parse_otpauth_uri
from core.secret_cipher import SecretCipher, derive_master_key
from core.service import OtpService
