"""Command-line interface for totp-vault."""

import argparse
import logging
import sys
from typing import List, Optional

from totp_vault import __version__, base32, totp
from totp_vault.config import BACKENDS, Config, load_config
from totp_vault.prompt import read_secret
from totp_vault.storage import (
    SecretExistsError,
    SecretNotFoundError,
    SecretStore,
    SecretStoreError,
    open_store,
)


logger = logging.getLogger(__name__)


def add_command(args: argparse.Namespace, store: SecretStore, config: Config) -> int:
    """Handle the add command."""
    if args.name in store.list_names():
        print(f"✗ '{args.name}' already exists. Use 'remove' first.", file=sys.stderr)
        return 1

    try:
        secret = read_secret()
    except (ValueError, EOFError, KeyboardInterrupt):
        print("✗ No secret provided", file=sys.stderr)
        return 1

    # Validate secret by generating a test code
    try:
        totp.generate(secret, period=config.period, digits=config.digits)
    except totp.InvalidSecret:
        print("✗ Invalid TOTP secret (must be base32 encoded)", file=sys.stderr)
        return 1

    try:
        store.store(args.name, base32.normalize(secret))
    except SecretExistsError as e:
        print(f"✗ {e}", file=sys.stderr)
        return 1
    print(f"✓ Stored '{args.name}'")
    return 0


def remove_command(args: argparse.Namespace, store: SecretStore, config: Config) -> int:
    """Handle the remove command."""
    store.delete(args.name)
    print(f"✓ Removed '{args.name}'")
    return 0


def list_command(args: argparse.Namespace, store: SecretStore, config: Config) -> int:
    """Handle the list command."""
    names = store.list_names()
    if not names:
        print("No TOTP secrets stored")
        return 0

    print("Stored TOTP secrets:")
    for name in sorted(names):
        print(f"  • {name}")
    return 0


def get_command(args: argparse.Namespace, store: SecretStore, config: Config) -> int:
    """Handle the get command."""
    try:
        secret = store.retrieve(args.name)
    except SecretNotFoundError as e:
        print(f"✗ {e}", file=sys.stderr)
        return 1

    code = totp.generate(secret, period=config.period, digits=config.digits)
    if args.show_time:
        print(f"{code} ({totp.time_remaining(period=config.period)}s)")
    else:
        print(code)
    return 0


def verify_command(args: argparse.Namespace, store: SecretStore, config: Config) -> int:
    """Handle the verify command."""
    try:
        secret = store.retrieve(args.name)
    except SecretNotFoundError as e:
        print(f"✗ {e}", file=sys.stderr)
        return 1

    window = config.window if args.window is None else args.window
    valid = totp.verify(
        secret, args.code, window=window, period=config.period, digits=config.digits
    )
    logger.debug("Verification for '%s' with window %d: %s", args.name, window, valid)
    print("valid" if valid else "invalid")
    return 0 if valid else 1


def time_command(args: argparse.Namespace, store: SecretStore, config: Config) -> int:
    """Handle the time command."""
    print(totp.time_remaining(period=config.period))
    return 0


COMMANDS = {
    "add": add_command,
    "remove": remove_command,
    "rm": remove_command,
    "list": list_command,
    "ls": list_command,
    "get": get_command,
    "code": get_command,
    "verify": verify_command,
    "time": time_command,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="totp-vault",
        description="Secure TOTP code generator that never exposes secrets",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--backend",
        "-b",
        choices=BACKENDS,
        default=None,
        help="Secret store backend (default: $TOTP_VAULT_BACKEND or keychain)",
    )
    parser.add_argument(
        "--period",
        "-p",
        type=int,
        default=None,
        help="Time step in seconds (default: 30)",
    )
    parser.add_argument(
        "--digits",
        "-d",
        type=int,
        default=None,
        choices=[6, 7, 8],
        help="Number of digits in the code (default: 6)",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable debug logging on stderr",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Add command
    add_parser = subparsers.add_parser(
        "add",
        help="Add a new TOTP secret (interactive - for humans only)",
    )
    add_parser.add_argument("name", help="Name for this TOTP secret")

    # Remove command
    remove_parser = subparsers.add_parser(
        "remove",
        aliases=["rm"],
        help="Remove a stored TOTP secret",
    )
    remove_parser.add_argument("name", help="Name of the TOTP secret to remove")

    # List command
    subparsers.add_parser(
        "list",
        aliases=["ls"],
        help="List all stored TOTP names (not the secrets)",
    )

    # Get command
    get_parser = subparsers.add_parser(
        "get",
        aliases=["code"],
        help="Get the current TOTP code (agent-safe)",
    )
    get_parser.add_argument("name", help="Name of the TOTP secret")
    get_parser.add_argument(
        "--show-time",
        "-t",
        action="store_true",
        help="Show time remaining until rotation",
    )

    # Verify command
    verify_parser = subparsers.add_parser(
        "verify",
        help="Verify a TOTP code (agent-safe)",
    )
    verify_parser.add_argument("name", help="Name of the TOTP secret")
    verify_parser.add_argument("code", help="Code to verify")
    verify_parser.add_argument(
        "--window",
        "-w",
        type=int,
        default=None,
        help="Adjacent time steps to accept for clock drift (default: 1)",
    )

    # Time command
    subparsers.add_parser(
        "time",
        help="Show seconds until code rotates",
    )

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    if not args.command:
        parser.print_help()
        return 1

    try:
        config = load_config()
    except ValueError as e:
        print(f"✗ {e}", file=sys.stderr)
        return 1
    if args.backend is not None:
        config.backend = args.backend
    if args.period is not None:
        config.period = args.period
    if args.digits is not None:
        config.digits = args.digits

    try:
        store = open_store(config)
        return COMMANDS[args.command](args, store, config)
    except SecretStoreError as e:
        print(f"✗ {e}", file=sys.stderr)
        return 1
    except ValueError as e:
        print(f"✗ {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
