"""Credential verification and user lookup against the ``users`` table.

These are the default adapters for the host's login system. Anything that
satisfies ``CredentialVerifier`` and ``UserDeserializer`` can replace them
when the app is composed.
"""

import logging
from datetime import UTC, datetime
from typing import Any, Protocol
from uuid import UUID

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError, VerifyMismatchError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from headless_api.models.user import User

logger = logging.getLogger(__name__)

# Argon2 password hasher with recommended parameters
# Memory: 64 MiB, Time: 3 iterations, Parallelism: 4
ph = PasswordHasher(
    time_cost=3,
    memory_cost=65536,
    parallelism=4,
    hash_len=32,
    salt_len=16,
)

# Verified against when the username is unknown so both paths cost the same
_DUMMY_HASH = ph.hash("dummy-password-for-timing")


class CredentialVerifier(Protocol):
    """Returns the user for a username/password pair, or None.

    Raises on internal failure; a wrong password is not an error.
    """

    async def verify_credentials(self, username: str, password: str) -> Any | None: ...


class UserDeserializer(Protocol):
    """Returns the current user record for an id, or None if gone/disabled."""

    async def deserialize_user(self, user_id: UUID) -> Any | None: ...


def hash_password(password: str) -> str:
    """Hash a password using Argon2id."""
    return ph.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """Verify a password against its hash using constant-time comparison."""
    try:
        ph.verify(password_hash, password)
        return True
    except (VerifyMismatchError, VerificationError, InvalidHashError):
        return False


class UserDirectory:
    """Default CredentialVerifier and UserDeserializer over SQLAlchemy."""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self._session_maker = session_maker

    async def get_user_by_username(self, session: AsyncSession, username: str) -> User | None:
        result = await session.execute(select(User).where(User.username == username))
        return result.scalar_one_or_none()

    async def verify_credentials(self, username: str, password: str) -> User | None:
        async with self._session_maker() as session:
            user = await self.get_user_by_username(session, username)

            if user is None:
                verify_password(password, _DUMMY_HASH)
                return None

            if not verify_password(password, user.password_hash):
                return None

            if not user.is_active:
                logger.info(f"Login refused for inactive user {user.id}")
                return None

            user.last_login_at = datetime.now(UTC)
            await session.commit()
            return user

    async def deserialize_user(self, user_id: UUID) -> User | None:
        async with self._session_maker() as session:
            result = await session.execute(select(User).where(User.id == user_id))
            user = result.scalar_one_or_none()
        if user is None or not user.is_active:
            return None
        return user

    async def create_user(self, username: str, password: str) -> User:
        """Create a user with an Argon2 password hash."""
        async with self._session_maker() as session:
            if await self.get_user_by_username(session, username) is not None:
                raise ValueError(f"User already exists: {username}")
            user = User(username=username, password_hash=hash_password(password))
            session.add(user)
            await session.commit()
            await session.refresh(user)

        logger.info(f"Created user: {username}")
        return user
