#!/usr/bin/env python3
"""
Print a password hash for ADMIN_PASSWORD_HASH or SITE_PASSWORD_HASH.

Usage: python scripts/hash_password.py <password>
"""
import argparse
import sys

from portfolio.services.auth import hash_password


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Hash a password for the portfolio gates")
    parser.add_argument("password", help="plain-text password to hash")
    args = parser.parse_args(argv)

    if not args.password:
        print("Password must not be empty", file=sys.stderr)
        return 1

    print(hash_password(args.password))
    return 0


if __name__ == "__main__":
    sys.exit(main())
