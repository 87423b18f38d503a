"""Explicit deadlines for calls into injected collaborators."""

import asyncio
from collections.abc import Awaitable
from typing import TypeVar

from headless_api.core.errors import DependencyError, HeadlessAPIError, StorageError

T = TypeVar("T")


async def _bounded(
    name: str, aw: Awaitable[T], timeout: float, error_cls: type[HeadlessAPIError]
) -> T:
    try:
        return await asyncio.wait_for(aw, timeout=timeout)
    except HeadlessAPIError:
        raise
    except TimeoutError as e:
        raise error_cls(f"{name} timed out after {timeout}s") from e
    except Exception as e:
        raise error_cls(f"{name} failed: {e}") from e


async def call_dependency(name: str, aw: Awaitable[T], timeout: float) -> T:
    """Await a collaborator call, mapping timeouts and failures to DependencyError.

    Errors that already belong to the API taxonomy pass through unchanged.
    """
    return await _bounded(name, aw, timeout, DependencyError)


async def call_store(op: str, aw: Awaitable[T], timeout: float) -> T:
    """Await a token store call, mapping timeouts and failures to StorageError."""
    return await _bounded(f"token store {op}", aw, timeout, StorageError)
