"""Tests for deadline-bounded collaborator calls."""

import asyncio

import pytest

from headless_api.core.deadline import call_dependency, call_store
from headless_api.core.errors import DependencyError, StorageError


async def _value():
    return 42


async def _slow():
    await asyncio.sleep(1)


async def _boom():
    raise RuntimeError("connection reset")


async def _storage_failure():
    raise StorageError("pg down")


@pytest.mark.asyncio
async def test_returns_result():
    assert await call_dependency("answer", _value(), timeout=1.0) == 42


@pytest.mark.asyncio
async def test_timeout_becomes_dependency_error():
    with pytest.raises(DependencyError, match="timed out"):
        await call_dependency("slow thing", _slow(), timeout=0.01)


@pytest.mark.asyncio
async def test_failure_becomes_dependency_error():
    with pytest.raises(DependencyError) as exc_info:
        await call_dependency("verifier", _boom(), timeout=1.0)
    assert exc_info.value.to_body() == {"error": "error"}
    assert isinstance(exc_info.value.__cause__, RuntimeError)


@pytest.mark.asyncio
async def test_taxonomy_errors_pass_through():
    with pytest.raises(StorageError):
        await call_dependency("store", _storage_failure(), timeout=1.0)


@pytest.mark.asyncio
async def test_store_timeout_becomes_storage_error():
    with pytest.raises(StorageError, match="token store lookup timed out"):
        await call_store("lookup", _slow(), timeout=0.01)


@pytest.mark.asyncio
async def test_store_failure_becomes_storage_error():
    with pytest.raises(StorageError) as exc_info:
        await call_store("issue", _boom(), timeout=1.0)
    assert exc_info.value.to_body() == {"error": "error"}
    assert isinstance(exc_info.value.__cause__, RuntimeError)


@pytest.mark.asyncio
async def test_store_taxonomy_errors_pass_through():
    with pytest.raises(StorageError, match="pg down"):
        await call_store("revoke", _storage_failure(), timeout=1.0)
