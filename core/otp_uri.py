"""
otp_uri.py — otpauth:// provisioning URIs (the format inside authenticator QR codes).

    otpauth://{totp|hotp}/{issuer}:{account}?secret=...&issuer=...&algorithm=...&digits=...&period=...&counter=...

parse_otpauth_uri() turns such a URI into account-creation fields;
format_otpauth_uri() builds one from a stored account so it can be enrolled
in another authenticator. The parser does not check that the secret is
valid Base32: account creation validates every secret the same way.
"""

from dataclasses import dataclass
from typing import Optional
from urllib.parse import parse_qs, quote, unquote, urlencode, urlsplit

from core.errors import MalformedOtpUri
from core.otp_core import DEFAULT_ALGORITHM, DEFAULT_DIGITS, DEFAULT_TIME_STEP


@dataclass
class OtpUriParams:
    secret: str
    issuer: Optional[str]
    account_name: str
    type: str = "totp"
    algorithm: str = DEFAULT_ALGORITHM
    digits: int = DEFAULT_DIGITS
    period: int = DEFAULT_TIME_STEP
    counter: Optional[int] = None


def _int_param(query: dict, name: str, default: Optional[int]) -> Optional[int]:
    values = query.get(name)
    if not values or not values[0].strip():
        return default
    try:
        return int(values[0].strip())
    except ValueError as e:
        raise MalformedOtpUri(f"'{name}' must be an integer, got {values[0]!r}") from e


def parse_otpauth_uri(uri: str) -> OtpUriParams:
    """
    Parse a provisioning URI.

    Label rules:
    - percent-decoded first
    - "Issuer:alice" -> account "alice", "Issuer" used only when the query
      has no issuer parameter
    - no colon -> the whole label is the account, issuer comes from the
      query (None if absent)

    Missing optional parameters take the account defaults (sha1, 6 digits,
    30 s). `counter` stays None unless present.

    Raises:
        MalformedOtpUri: scheme is not otpauth, secret missing, or a numeric
            parameter is not an integer
    """
    if not isinstance(uri, str):
        raise MalformedOtpUri("URI must be a string")
    parts = urlsplit(uri.strip())
    if parts.scheme.lower() != "otpauth":
        raise MalformedOtpUri(f"Expected an otpauth:// URI, got scheme {parts.scheme!r}")

    query = parse_qs(parts.query, keep_blank_values=True)
    secret = (query.get("secret") or [""])[0].strip()
    if not secret:
        raise MalformedOtpUri("otpauth URI is missing the secret parameter")

    label = unquote(parts.path.lstrip("/")).strip()
    label_issuer = None
    account_name = label
    if ":" in label:
        label_issuer, account_name = (piece.strip() for piece in label.split(":", 1))

    issuer = (query.get("issuer") or [""])[0].strip() or label_issuer or None
    algorithm = (query.get("algorithm") or [""])[0].strip().lower() or DEFAULT_ALGORITHM

    return OtpUriParams(
        secret=secret,
        issuer=issuer,
        account_name=account_name,
        type=parts.netloc.lower(),
        algorithm=algorithm,
        digits=_int_param(query, "digits", DEFAULT_DIGITS),
        period=_int_param(query, "period", DEFAULT_TIME_STEP),
        counter=_int_param(query, "counter", None),
    )


def format_otpauth_uri(
    secret_b32: str,
    account: str,
    issuer: Optional[str] = None,
    otp_type: str = "totp",
    algorithm: str = DEFAULT_ALGORITHM,
    digits: int = DEFAULT_DIGITS,
    period: int = DEFAULT_TIME_STEP,
    counter: int = 0,
) -> str:
    """
    Build a provisioning URI that authenticator apps can import.

    - TOTP carries `period`, HOTP carries `counter`.
    - Label and query values are percent-encoded.
    """
    label = quote(f"{issuer}:{account}" if issuer else account, safe="@:")
    params = {"secret": secret_b32}
    if issuer:
        params["issuer"] = issuer
    params["algorithm"] = algorithm.upper()
    params["digits"] = digits
    if otp_type == "hotp":
        params["counter"] = counter
    else:
        params["period"] = period
    return f"otpauth://{otp_type}/{label}?{urlencode(params, quote_via=quote)}"
