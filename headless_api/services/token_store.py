"""Bearer token store backed by the ``bearer_tokens`` table.

Tokens are opaque random strings. Validity is decided at lookup time by
comparing ``expires_at`` with the current time; the periodic sweep only
reclaims space and is never relied on to reject an expired token.
"""

import asyncio
import logging
import secrets
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime, timedelta
from typing import Any, Protocol, TypeVar
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.engine import CursorResult
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from headless_api.core.errors import StorageError
from headless_api.models.bearer_token import BearerToken

logger = logging.getLogger(__name__)

T = TypeVar("T")

# 32 bytes -> 43 url-safe characters, fits the String(64) column
TOKEN_BYTES = 32


def generate_token_id() -> str:
    """Return a fresh unguessable token id."""
    return secrets.token_urlsafe(TOKEN_BYTES)


def token_fingerprint(token: str) -> str:
    """Short, non-reversible prefix used when a token must appear in logs."""
    return token[:6] + "..." if len(token) > 6 else "***"


class TokenStore(Protocol):
    """Contract the bearer middleware and login endpoints depend on."""

    async def issue(self, owner_user_id: UUID, lifetime_seconds: int) -> str: ...

    async def lookup(self, token_id: str) -> UUID | None: ...

    async def revoke(self, owner_user_id: UUID, token_id: str) -> None: ...


class SQLAlchemyTokenStore:
    """Token store using an async SQLAlchemy session factory.

    Every operation opens its own session and closes it before returning, so
    the store holds no connection between calls and is safe to share across
    concurrent requests.
    """

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        timeout_seconds: float = 5.0,
    ):
        self._session_maker = session_maker
        self._timeout = timeout_seconds

    async def _run(self, op: str, fn: Callable[[AsyncSession], Awaitable[T]]) -> T:
        async def _with_session() -> T:
            async with self._session_maker() as session:
                try:
                    return await fn(session)
                except BaseException:
                    await session.rollback()
                    raise

        try:
            return await asyncio.wait_for(_with_session(), timeout=self._timeout)
        except TimeoutError as e:
            raise StorageError(f"Token store {op} timed out after {self._timeout}s") from e
        except (SQLAlchemyError, OSError) as e:
            raise StorageError(f"Token store {op} failed: {e}") from e

    async def issue(self, owner_user_id: UUID, lifetime_seconds: int) -> str:
        """Persist a new token for ``owner_user_id`` and return its id."""
        token_id = generate_token_id()
        expires_at = datetime.now(UTC) + timedelta(seconds=lifetime_seconds)

        async def _insert(session: AsyncSession) -> None:
            session.add(BearerToken(id=token_id, user_id=owner_user_id, expires_at=expires_at))
            await session.commit()

        await self._run("issue", _insert)
        logger.debug(f"Issued bearer token for user {owner_user_id}, expires {expires_at}")
        return token_id

    async def lookup(self, token_id: str) -> UUID | None:
        """Return the owner of an unexpired token, or None."""

        async def _select(session: AsyncSession) -> UUID | None:
            result = await session.execute(
                select(BearerToken.user_id).where(
                    BearerToken.id == token_id,
                    BearerToken.expires_at >= datetime.now(UTC),
                )
            )
            return result.scalar_one_or_none()

        return await self._run("lookup", _select)

    async def revoke(self, owner_user_id: UUID, token_id: str) -> None:
        """Delete the token only if it belongs to ``owner_user_id``. Idempotent."""

        async def _delete(session: AsyncSession) -> int:
            result: CursorResult[Any] = await session.execute(  # type: ignore[assignment]
                delete(BearerToken).where(
                    BearerToken.id == token_id,
                    BearerToken.user_id == owner_user_id,
                )
            )
            await session.commit()
            return result.rowcount

        removed = await self._run("revoke", _delete)
        if not removed:
            logger.debug(f"Revoke of {token_fingerprint(token_id)} matched no token")

    async def revoke_all(self, owner_user_id: UUID) -> int:
        """Delete every token owned by a user. Returns count removed."""

        async def _delete(session: AsyncSession) -> int:
            result: CursorResult[Any] = await session.execute(  # type: ignore[assignment]
                delete(BearerToken).where(BearerToken.user_id == owner_user_id)
            )
            await session.commit()
            return result.rowcount

        return await self._run("revoke_all", _delete)

    async def purge_expired(self) -> int:
        """Remove expired tokens. Returns count removed."""

        async def _delete(session: AsyncSession) -> int:
            result: CursorResult[Any] = await session.execute(  # type: ignore[assignment]
                delete(BearerToken).where(BearerToken.expires_at < datetime.now(UTC))
            )
            await session.commit()
            return result.rowcount

        return await self._run("purge_expired", _delete)


async def token_sweep_loop(store: SQLAlchemyTokenStore, interval_seconds: int) -> None:
    """Periodically remove expired bearer tokens."""
    while True:
        try:
            await asyncio.sleep(interval_seconds)
            removed = await store.purge_expired()
            if removed > 0:
                logger.info(f"Cleaned up {removed} expired bearer tokens")
        except asyncio.CancelledError:
            break
        except StorageError:
            logger.exception("Error cleaning up expired bearer tokens")
