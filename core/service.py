"""
service.py — Code issuance and account management on top of an AccountStore.

Issue a code:
    store.find_by_key -> decrypt (if encrypted) -> Base32 decode
    -> TOTP: compute for `now`
    -> HOTP: store.increment_counter (atomic, returns the counter to use),
             then compute for that counter

Create an account:
    validate parameters -> normalize + decode secret -> derive one code as a
    validation pass -> encrypt (if requested) -> store.create

Nothing is written until every check has passed.
"""

from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional
import logging
import re
import time

from core.accounts import Account, AccountStore, validate_account_parameters
from core.base32_codec import normalize_secret, secret_to_key
from core.errors import AccountNotFound, InvalidAccountParameters, OtpError, OtpGenerationFailed
from core.otp_core import (
    DEFAULT_ALGORITHM,
    DEFAULT_DIGITS,
    DEFAULT_TIME_STEP,
    compute_hotp,
    compute_totp,
)
from core.otp_uri import format_otpauth_uri, parse_otpauth_uri
from core.secret_cipher import SecretCipher

logger = logging.getLogger(__name__)

_SLUG_CHARS = re.compile(r"[^a-z0-9]+")


def _lower(value):
    return value.strip().lower() if isinstance(value, str) else value


def slugify(text: str) -> str:
    return _SLUG_CHARS.sub("-", text.lower()).strip("-")


class OtpService:
    def __init__(
        self,
        store: AccountStore,
        cipher: SecretCipher,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.cipher = cipher
        self.clock = clock

    # --- helpers ---------------------------------------------------------
    def _validated_secret(self, key: str, secret: str, digits: int, algorithm: str) -> str:
        """Normalize the secret and prove a code can be derived from it."""
        if not isinstance(secret, str) or not secret.strip():
            raise InvalidAccountParameters("secret is required", key=key)
        canonical = normalize_secret(secret)
        try:
            compute_hotp(secret_to_key(canonical), 0, digits, algorithm)
        except OtpError as e:
            e.key = key
            raise
        return canonical

    def _plain_secret(self, account: Account) -> str:
        if not account.encrypted:
            return account.secret
        try:
            return self.cipher.decrypt(account.secret)
        except OtpError as e:
            e.key = account.key
            logger.error("Cannot decrypt secret for account '%s': %s", account.key, e)
            raise

    def _stored_secret(self, canonical: str, encrypt: bool) -> str:
        return self.cipher.encrypt(canonical) if encrypt else canonical

    def get_account(self, key: str) -> Account:
        account = self.store.find_by_key(key)
        if account is None:
            raise AccountNotFound(f"Account '{key}' not found", key=key)
        return account

    # --- issuance --------------------------------------------------------
    def issue_code(self, key: str, now: Optional[float] = None) -> Dict:
        """
        Issue the current code for one account.

        TOTP -> {key, account, code, type, algorithm, timeRemaining, expiresAt}
        HOTP -> {key, account, code, type, algorithm, counter}
            `counter` is the value the code was derived from; the stored
            counter has already moved past it.

        Raises:
            AccountNotFound, DecryptionFailed, or OtpGenerationFailed for
            anything unexpected during derivation.
        """
        account = self.get_account(key)
        try:
            key_bytes = secret_to_key(self._plain_secret(account))
            if account.type == "hotp":
                counter = self.store.increment_counter(account.key)
                code = compute_hotp(key_bytes, counter, account.digits, account.algorithm)
                logger.debug("Issued HOTP for '%s' at counter %d", account.key, counter)
                return {
                    "key": account.key,
                    "account": account.name,
                    "code": code,
                    "type": account.type,
                    "algorithm": account.algorithm,
                    "counter": counter,
                }

            if now is None:
                now = self.clock()
            now = int(now)
            code, remaining = compute_totp(
                key_bytes, now, account.period, account.digits, account.algorithm
            )
            expires_at = datetime.fromtimestamp(now + remaining, tz=timezone.utc)
            logger.debug("Issued TOTP for '%s', %ds remaining", account.key, remaining)
            return {
                "key": account.key,
                "account": account.name,
                "code": code,
                "type": account.type,
                "algorithm": account.algorithm,
                "timeRemaining": remaining,
                "expiresAt": expires_at.isoformat().replace("+00:00", "Z"),
            }
        except OtpError as e:
            if e.key is None:
                e.key = account.key
            raise
        except Exception as e:
            logger.exception("Failed to generate code for account '%s'", account.key)
            raise OtpGenerationFailed("Failed to generate code", key=account.key) from e

    def issue_all(self, now: Optional[float] = None, include_hotp: bool = False) -> List[Dict]:
        """
        Issue codes for every account. An account that fails is reported as
        {key, account, error, kind} and does not stop the others.

        HOTP accounts are listed without a code unless include_hotp is set,
        since each HOTP code consumes a counter value.
        """
        if now is None:
            now = self.clock()
        results = []
        for account in self.store.list_all():
            if account.type == "hotp" and not include_hotp:
                results.append({
                    "key": account.key,
                    "account": account.name,
                    "type": account.type,
                    "counter": account.counter,
                })
                continue
            try:
                results.append(self.issue_code(account.key, now=now))
            except OtpError as e:
                logger.warning("Code for account '%s' failed: %s", account.key, e.kind)
                results.append({
                    "key": account.key,
                    "account": account.name,
                    "error": e.message,
                    "kind": e.kind,
                })
        return results

    # --- management ------------------------------------------------------
    def create_account(
        self,
        key: str,
        secret: str,
        name: Optional[str] = None,
        digits: int = DEFAULT_DIGITS,
        period: int = DEFAULT_TIME_STEP,
        algorithm: str = DEFAULT_ALGORITHM,
        type: str = "totp",
        counter: Optional[int] = None,
        encrypt: bool = False,
    ) -> Account:
        if isinstance(key, str):
            key = key.strip()
        if isinstance(name, str):
            name = name.strip()
        if not isinstance(encrypt, bool):
            raise InvalidAccountParameters("encrypt must be a boolean", key=key)
        account = Account(
            key=key,
            secret="",
            name=name or key,
            encrypted=encrypt,
            digits=digits,
            period=period,
            algorithm=_lower(algorithm),
            type=_lower(type),
            counter=0 if counter is None else counter,
        )
        account.validate()
        canonical = self._validated_secret(key, secret, account.digits, account.algorithm)
        account.secret = self._stored_secret(canonical, account.encrypted)

        created = self.store.create(account)
        logger.info("Added %s account '%s' (encrypted=%s)", created.type, created.key, created.encrypted)
        return created

    def update_account(self, key: str, **changes) -> Account:
        """
        Change name, parameters or secret. `encrypt` switches how the
        secret is stored. key and counter cannot be changed.
        """
        for immutable in ("key", "counter"):
            if immutable in changes:
                raise InvalidAccountParameters(f"{immutable} cannot be changed by update", key=key)
        account = self.get_account(key)

        # "encrypted" describes stored state; callers ask for it via "encrypt".
        encrypt = changes.pop("encrypt", changes.pop("encrypted", None))
        for field_name in ("algorithm", "type"):
            if field_name in changes:
                changes[field_name] = _lower(changes[field_name])
        if isinstance(changes.get("name"), str):
            changes["name"] = changes["name"].strip() or account.key
        validate_account_parameters(key=key, **changes)
        if encrypt is not None and not isinstance(encrypt, bool):
            raise InvalidAccountParameters("encrypt must be a boolean", key=key)

        digits = changes.get("digits", account.digits)
        algorithm = changes.get("algorithm", account.algorithm)
        touches_secret = (
            "secret" in changes
            or (encrypt is not None and encrypt != account.encrypted)
            or digits != account.digits
            or algorithm != account.algorithm
        )
        if touches_secret:
            plain = changes["secret"] if "secret" in changes else self._plain_secret(account)
            canonical = self._validated_secret(key, plain, digits, algorithm)
            encrypted = account.encrypted if encrypt is None else encrypt
            changes["secret"] = self._stored_secret(canonical, encrypted)
            changes["encrypted"] = encrypted

        updated = self.store.update(key, changes)
        logger.info("Updated account '%s' (%s)", key, ", ".join(sorted(changes)) or "no changes")
        return updated

    def delete_account(self, key: str) -> None:
        self.store.delete(key)
        logger.info("Deleted account '%s'", key)

    def list_accounts(self) -> List[Dict]:
        return [account.summary() for account in self.store.list_all()]

    # --- provisioning URIs -----------------------------------------------
    def import_uri(
        self,
        uri: str,
        key: Optional[str] = None,
        name: Optional[str] = None,
        encrypt: bool = False,
    ) -> Account:
        """
        Create an account from an otpauth:// URI (e.g. the text of a scanned
        QR code). Without an explicit key one is derived from the issuer and
        account name: "GitHub:alice" -> "github-alice".
        """
        params = parse_otpauth_uri(uri)
        label = f"{params.issuer}:{params.account_name}" if params.issuer else params.account_name
        if not key:
            key = slugify(label)
            if not key:
                raise InvalidAccountParameters("Cannot derive an account key from the URI label; pass a key")
        return self.create_account(
            key=key,
            secret=params.secret,
            name=name or label,
            digits=params.digits,
            period=params.period,
            algorithm=params.algorithm,
            type=params.type,
            counter=params.counter,
            encrypt=encrypt,
        )

    def provisioning_uri(self, key: str, issuer: Optional[str] = None) -> str:
        """otpauth:// URI for an existing account (exports the secret)."""
        account = self.get_account(key)
        return format_otpauth_uri(
            self._plain_secret(account),
            account.name,
            issuer=issuer,
            otp_type=account.type,
            algorithm=account.algorithm,
            digits=account.digits,
            period=account.period,
            counter=account.counter,
        )
