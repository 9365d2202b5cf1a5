#!/usr/bin/env python3
"""
otp_cli.py — Command-line front end for the OTP code service.

Subcommands:
- add    : add an account from a Base32 secret (or generate one)
- import : add an account from an otpauth:// URI
- code   : print the current code for an account
- codes  : print codes for every account
- list   : list accounts (no secrets)
- delete : remove an account
- uri    : print the provisioning URI of an account
- serve  : run the HTTP API

Uses the same configuration (.env / environment) as the HTTP service.
"""

import argparse
import sys

from backend.config import Config
from core.base32_codec import generate_base32_secret
from core.errors import OtpError
from core.otp_core import DEFAULT_ALGORITHM, DEFAULT_DIGITS, DEFAULT_TIME_STEP
from core.secret_cipher import FALLBACK_SEED, SecretCipher
from core.service import OtpService
from database.db_manager import SqliteAccountStore


def build_service(database_file: str = None) -> OtpService:
    store = SqliteAccountStore(database_file or Config.DATABASE_FILE)
    seed = Config.ENCRYPTION_KEY
    if not seed:
        print("[!] ENCRYPTION_KEY not set; encrypted secrets will break if it is set later.", file=sys.stderr)
        seed = FALLBACK_SEED
    return OtpService(store, SecretCipher.from_seed(seed))


# --- CLI command handlers ---
def cmd_add(service, args):
    secret = args.secret
    if not secret:
        secret = generate_base32_secret()
        print(f"[*] Generated secret: {secret}")
    account = service.create_account(
        key=args.key,
        secret=secret,
        name=args.name,
        digits=args.digits,
        period=args.period,
        algorithm=args.algorithm,
        type=args.type,
        counter=args.counter,
        encrypt=args.encrypt,
    )
    print(f"[+] Added {account.type} account '{account.key}' ({account.name})")


def cmd_import(service, args):
    account = service.import_uri(args.uri, key=args.key, name=args.name, encrypt=args.encrypt)
    print(f"[+] Imported {account.type} account '{account.key}' ({account.name})")


def cmd_code(service, args):
    result = service.issue_code(args.key)
    if result["type"] == "hotp":
        print(f"{result['code']}  (counter {result['counter']})")
    else:
        print(f"{result['code']}  (valid ~{result['timeRemaining']:2d}s)")


def cmd_codes(service, args):
    for result in service.issue_all(include_hotp=args.include_hotp):
        if "error" in result:
            print(f"{result['key']:<20} [!] {result['kind']}")
        elif "code" not in result:
            print(f"{result['key']:<20} (hotp, counter {result['counter']})")
        else:
            print(f"{result['key']:<20} {result['code']}")


def cmd_list(service, args):
    accounts = service.list_accounts()
    for summary in accounts:
        lock = " [encrypted]" if summary["encrypted"] else ""
        print(f"{summary['key']:<20} {summary['type']} {summary['algorithm']} "
              f"{summary['digits']}d  {summary['name']}{lock}")
    print(f"{len(accounts)} account(s)")


def cmd_delete(service, args):
    service.delete_account(args.key)
    print(f"[+] Deleted '{args.key}'")


def cmd_uri(service, args):
    print(service.provisioning_uri(args.key, issuer=args.issuer))


def cmd_serve(service, args):
    from backend.app import create_app

    app = create_app(store=service.store)
    app.run(host=args.host, port=args.port, debug=args.debug)


# --- Argparse builder ---
def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="TOTP/HOTP code generator for stored accounts")
    p.add_argument("--database", help="SQLite file (default: DATABASE_FILE)")
    sub = p.add_subparsers(dest="cmd")

    pa = sub.add_parser("add", help="Add an account")
    pa.add_argument("key", help="Unique account key")
    pa.add_argument("--secret", help="Base32 secret (generated if omitted)")
    pa.add_argument("--name", help="Display name (defaults to key)")
    pa.add_argument("--digits", type=int, default=DEFAULT_DIGITS)
    pa.add_argument("--period", type=int, default=DEFAULT_TIME_STEP, help="TOTP time step (seconds)")
    pa.add_argument("--algorithm", default=DEFAULT_ALGORITHM, choices=["sha1", "sha256", "sha512"])
    pa.add_argument("--type", default="totp", choices=["totp", "hotp"])
    pa.add_argument("--counter", type=int, help="Initial HOTP counter")
    pa.add_argument("--encrypt", action="store_true", help="Store the secret encrypted")
    pa.set_defaults(func=cmd_add)

    pi = sub.add_parser("import", help="Add an account from an otpauth:// URI")
    pi.add_argument("uri")
    pi.add_argument("--key", help="Account key (derived from the label if omitted)")
    pi.add_argument("--name")
    pi.add_argument("--encrypt", action="store_true")
    pi.set_defaults(func=cmd_import)

    pc = sub.add_parser("code", help="Print the current code for an account")
    pc.add_argument("key")
    pc.set_defaults(func=cmd_code)

    pcs = sub.add_parser("codes", help="Print codes for all accounts")
    pcs.add_argument("--include-hotp", action="store_true", help="Also issue HOTP codes (advances counters)")
    pcs.set_defaults(func=cmd_codes)

    pl = sub.add_parser("list", help="List accounts")
    pl.set_defaults(func=cmd_list)

    pd = sub.add_parser("delete", help="Delete an account")
    pd.add_argument("key")
    pd.set_defaults(func=cmd_delete)

    pu = sub.add_parser("uri", help="Print the otpauth:// URI of an account")
    pu.add_argument("key")
    pu.add_argument("--issuer", default=Config.DEFAULT_ISSUER)
    pu.set_defaults(func=cmd_uri)

    ps = sub.add_parser("serve", help="Run the HTTP API")
    ps.add_argument("--host", default="127.0.0.1")
    ps.add_argument("--port", type=int, default=5000)
    ps.add_argument("--debug", action="store_true")
    ps.set_defaults(func=cmd_serve)

    return p


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not hasattr(args, "func"):
        parser.print_help()
        return 1
    service = build_service(args.database)
    try:
        args.func(service, args)
    except OtpError as e:
        print(f"[!] {e.kind}: {e.message}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
