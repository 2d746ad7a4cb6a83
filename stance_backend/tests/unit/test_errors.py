import asyncio

import pytest
from sqlalchemy.exc import OperationalError

from stance_backend.services.errors import BackingStoreUnavailable, InvalidInput, call_with_timeout


@pytest.mark.asyncio
async def test_call_with_timeout_returns_result():
    async def quick():
        return 42

    assert await call_with_timeout(quick(), "quick", timeout=1) == 42


@pytest.mark.asyncio
async def test_timeout_becomes_backing_store_unavailable():
    with pytest.raises(BackingStoreUnavailable, match="slow_query timed out"):
        await call_with_timeout(asyncio.sleep(1), "slow_query", timeout=0.01)


@pytest.mark.asyncio
async def test_connection_errors_become_backing_store_unavailable():
    async def broken():
        raise OperationalError("SELECT 1", {}, Exception("connection refused"))

    with pytest.raises(BackingStoreUnavailable):
        await call_with_timeout(broken(), "select", timeout=1)


@pytest.mark.asyncio
async def test_other_errors_propagate_unchanged():
    async def buggy():
        raise KeyError("take_id")

    with pytest.raises(KeyError):
        await call_with_timeout(buggy(), "buggy", timeout=1)


def test_invalid_input_is_a_value_error():
    assert issubclass(InvalidInput, ValueError)
