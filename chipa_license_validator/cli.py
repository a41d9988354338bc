#!/usr/bin/env python3
"""
Chipa License Validator - Command Line Tool

Usage:
    python -m chipa_license_validator validate --license 550e8400-e29b-41d4-a716-446655440000 --app my-app
    python -m chipa_license_validator seal settings.json settings --key SECRET
    python -m chipa_license_validator open settings.chipa --key SECRET
    python -m chipa_license_validator inspect settings.chipa
"""

import argparse
import asyncio
import json
import logging
import sys
from typing import Any, Optional, Sequence

from . import config
from .api import LicenseClient, LicenseValidationError
from .container import ChipaFile, peek_version
from .errors import ChipaError
from .security import Version


def setup_logging(verbose: bool = False) -> logging.Logger:
    """Configure logging for command line use."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[logging.StreamHandler(sys.stderr)],
    )
    return logging.getLogger("chipa_license_validator")


def cmd_validate(args: argparse.Namespace) -> int:
    client = LicenseClient(args.server, application=args.app, version=Version.from_wire(args.version))
    try:
        token = asyncio.run(client.validate_license(args.license))
    except LicenseValidationError as e:
        print(f"❌ License validation failed: {e}", file=sys.stderr)
        return 1
    print(token)
    return 0


def cmd_seal(args: argparse.Namespace) -> int:
    try:
        with open(args.input, "r", encoding="utf-8") as f:
            document = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        print(f"❌ Cannot read {args.input}: {e}", file=sys.stderr)
        return 1

    try:
        chipa_file = ChipaFile.new(Version.from_wire(args.version), document, Any)
        path = chipa_file.save(args.output, args.key)
    except ChipaError as e:
        print(f"❌ Seal failed: {e}", file=sys.stderr)
        return 1
    print(f"✅ Container written: {path}")
    return 0


def cmd_open(args: argparse.Namespace) -> int:
    try:
        document = ChipaFile.load(args.file, args.key).read(Any)
    except ChipaError as e:
        print(f"❌ Open failed: {e}", file=sys.stderr)
        return 1
    print(json.dumps(document, indent=2, ensure_ascii=False))
    return 0


def cmd_inspect(args: argparse.Namespace) -> int:
    try:
        version = peek_version(args.file)
    except ChipaError as e:
        print(f"❌ Inspect failed: {e}", file=sys.stderr)
        return 1
    print(f"{args.file}: {version.name} (tag {int(version)})")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="chipa-license",
        description="Validate licenses and manage encrypted .chipa containers",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument(
        "--version", type=int, default=config.DEFAULT_VERSION,
        help=f"Protocol version tag (default: {config.DEFAULT_VERSION})",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("validate", help="Validate a license against the server")
    p.add_argument("--server", default=config.DEFAULT_BASE_URL, help="License server base URL")
    p.add_argument("--license", required=True, help="License UUID")
    p.add_argument("--app", required=True, help="Application name")
    p.set_defaults(func=cmd_validate)

    p = sub.add_parser("seal", help="Encrypt a JSON document into a container")
    p.add_argument("input", help="JSON document to encrypt")
    p.add_argument("output", help=f"Destination (.{config.CONTAINER_EXTENSION} is enforced)")
    p.add_argument("--key", required=True, help="Encryption key")
    p.set_defaults(func=cmd_seal)

    p = sub.add_parser("open", help="Decrypt a container and print its JSON payload")
    p.add_argument("file", help="Container file")
    p.add_argument("--key", required=True, help="Encryption key")
    p.set_defaults(func=cmd_open)

    p = sub.add_parser("inspect", help="Show the version of a container")
    p.add_argument("file", help="Container file")
    p.set_defaults(func=cmd_inspect)

    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.verbose)

    try:
        Version.from_wire(args.version)
    except ChipaError as e:
        print(f"❌ {e}", file=sys.stderr)
        return 2

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
