#!/usr/bin/env python3
"""
generate_admin_hash.py - Print a bcrypt hash for ADMIN_PASSWORD_HASH

Usage:
    python scripts/generate_admin_hash.py "your-secure-password"
    python scripts/generate_admin_hash.py            # prompts for the password

Flags:
    --rounds N   bcrypt cost factor (default 12)
    --quiet      Print only the hash
"""

import argparse
import getpass
import sys

import bcrypt

DEFAULT_ROUNDS = 12


def hash_password(password: str, rounds: int = DEFAULT_ROUNDS) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds)).decode("utf-8")


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Generate a bcrypt hash for the admin password",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("password", nargs="?", help="Password to hash (prompted if omitted)")
    parser.add_argument("--rounds", type=int, default=DEFAULT_ROUNDS, help="bcrypt cost factor")
    parser.add_argument("--quiet", "-q", action="store_true", help="Print only the hash")

    args = parser.parse_args()

    password = args.password
    if not password:
        password = getpass.getpass("Admin password: ")
        if password != getpass.getpass("Repeat password: "):
            print("Passwords do not match", file=sys.stderr)
            return 1
    if not password:
        print("Password must not be empty", file=sys.stderr)
        return 1
    if not 4 <= args.rounds <= 31:
        print("--rounds must be between 4 and 31", file=sys.stderr)
        return 1

    hashed = hash_password(password, args.rounds)

    if args.quiet:
        print(hashed)
        return 0

    print("\n🔐 Generated admin password hash:")
    print("=" * 50)
    print(f"Hash: {hashed}")
    print("=" * 50)
    print("\n📝 Add this to your .env file:")
    print(f"ADMIN_PASSWORD_HASH={hashed}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
