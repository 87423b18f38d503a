#!/usr/bin/env python3
"""Create a user who can log in to the REST API.

Usage:
    python scripts/create_user.py --username alice --password 'secret'
    python scripts/create_user.py --username alice --generate-password

Uses DATABASE_URL from the environment (or .env).
"""

import argparse
import asyncio
import secrets
import sys

from headless_api.core import async_session_maker, engine, setup_logging
from headless_api.services.users import UserDirectory


async def _create(username: str, password: str) -> None:
    try:
        user = await UserDirectory(async_session_maker).create_user(username, password)
    finally:
        await engine.dispose()
    print(f"Created user {user.username} ({user.id})")


def main() -> None:
    parser = argparse.ArgumentParser(description="Create a REST API user")
    parser.add_argument("--username", required=True)
    group = parser.add_mutually_exclusive_group(required=True)
    group.add_argument("--password")
    group.add_argument("--generate-password", action="store_true")
    args = parser.parse_args()

    username = args.username.strip()
    if not username:
        print("ERROR: username must not be empty.")
        sys.exit(1)

    password = args.password
    if args.generate_password:
        password = secrets.token_urlsafe(18)
        print(f"Generated password: {password}")
    if not password:
        print("ERROR: password must not be empty.")
        sys.exit(1)

    setup_logging(level="INFO")
    try:
        asyncio.run(_create(username, password))
    except ValueError as e:
        print(f"ERROR: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
