#!/usr/bin/env python3
"""
OTPGate -- operator CLI for the email-OTP auth gateway.

Runs the same AuthGateway operations the API serves, against the Appwrite
project configured in the environment. Handy for checking a deployment's
credentials and collection wiring without a browser.

Usage:
  python main.py lookup ada@example.com
  python main.py send-otp ada@example.com
  python main.py sign-up "Ada Lovelace" ada@example.com
  python main.py sign-in ada@example.com

Environment variables (or .env):
  APPWRITE_ENDPOINT, APPWRITE_PROJECT_ID, APPWRITE_API_KEY,
  APPWRITE_DATABASE_ID, APPWRITE_USERS_COLLECTION_ID

Exit status is 0 on success, 1 when the platform call failed or the looked-up
user does not exist, 2 on bad arguments.
"""

import argparse
import json
import logging
import re
import sys
from dataclasses import asdict
from typing import Optional

from auth.gateway import AuthGateway
from auth.models import EMAIL_PATTERN, Failure
from core.config import get_settings

_EMAIL_RE = re.compile(EMAIL_PATTERN)


def _print_json(payload: dict) -> None:
    print(json.dumps(payload, indent=2))


def _report_failure(failure: Failure) -> int:
    print(f"  [!] {failure.message} ({failure.kind.value})", file=sys.stderr)
    return 1


def run(args: argparse.Namespace, gateway: AuthGateway) -> int:
    """Dispatch one subcommand against the gateway and return the exit status."""
    if not _EMAIL_RE.match(args.email):
        print(f"  [!] '{args.email}' doesn't look like an email address.", file=sys.stderr)
        return 2

    if args.command == "lookup":
        result = gateway.lookup_user_by_email(args.email)
        if isinstance(result, Failure):
            return _report_failure(result)
        if result.value is None:
            print(f"  No user record for {args.email}.", file=sys.stderr)
            return 1
        _print_json(asdict(result.value))
        return 0

    if args.command == "send-otp":
        result = gateway.send_otp(args.email)
        if isinstance(result, Failure):
            return _report_failure(result)
        _print_json({"accountId": result.value})
        return 0

    if args.command == "sign-up":
        result = gateway.create_account(args.full_name, args.email)
    else:
        result = gateway.sign_in(args.email)
    if isinstance(result, Failure):
        return _report_failure(result)
    payload = {"accountId": result.value.account_id}
    if result.value.error:
        payload["error"] = result.value.error
    _print_json(payload)
    return 0 if result.value.account_id else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="otpgate",
        description="Email one-time-passcode auth gateway operations.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py lookup ada@example.com
  python main.py sign-up "Ada Lovelace" ada@example.com
  python main.py sign-in ada@example.com --verbose
        """,
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Log gateway and platform activity to stderr",
    )
    sub = parser.add_subparsers(dest="command", required=True, metavar="COMMAND")

    lookup = sub.add_parser("lookup", help="Show the user record for an email")
    lookup.add_argument("email")

    send = sub.add_parser("send-otp", help="Email a passcode and print the account id")
    send.add_argument("email")

    sign_up = sub.add_parser("sign-up", help="Send a passcode and create the user record if new")
    sign_up.add_argument("full_name", metavar="FULL_NAME")
    sign_up.add_argument("email")

    sign_in = sub.add_parser("sign-in", help="Send a passcode to an existing user")
    sign_in.add_argument("email")
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    gateway = AuthGateway.from_settings(get_settings())
    return run(args, gateway)


if __name__ == "__main__":
    sys.exit(main())
