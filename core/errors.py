"""
errors.py — Error kinds raised by the OTP core.

Every failure carries:
- kind: stable string the HTTP layer and the CLI report verbatim
- status_code: HTTP status the Flask layer maps it to
- key: the account key involved (None when no single account applies)
"""

from typing import Optional


class OtpError(Exception):
    kind = "OtpError"
    status_code = 500

    def __init__(self, message: str, key: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.key = key

    def to_dict(self) -> dict:
        body = {"error": self.message, "kind": self.kind}
        if self.key is not None:
            body["key"] = self.key
        return body


class InvalidSecretEncoding(OtpError):
    kind = "InvalidSecretEncoding"
    status_code = 400


class UnsupportedOtpParameters(OtpError):
    kind = "UnsupportedOtpParameters"
    status_code = 400


class InvalidAccountParameters(OtpError):
    kind = "InvalidAccountParameters"
    status_code = 400


class MalformedOtpUri(OtpError):
    kind = "MalformedOtpUri"
    status_code = 400


class DuplicateKey(OtpError):
    kind = "DuplicateKey"
    status_code = 409


class AccountNotFound(OtpError):
    kind = "AccountNotFound"
    status_code = 404


class DecryptionFailed(OtpError):
    kind = "DecryptionFailed"
    status_code = 500


class OtpGenerationFailed(OtpError):
    """Catch-all for an unexpected failure while deriving a code."""

    kind = "OtpGenerationFailed"
    status_code = 500
