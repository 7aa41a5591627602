"""Tests for with_deadline."""

import asyncio

import pytest
from checkpulse.core.deadlines import with_deadline
from checkpulse.core.exceptions import ProviderTimeout, ProviderUnavailable


async def answer(value: int, delay: float = 0.0) -> int:
    await asyncio.sleep(delay)
    return value


async def refuse() -> int:
    raise ConnectionRefusedError("refused")


class TestWithDeadline:
    """Tests for with_deadline."""

    async def test_returns_result(self) -> None:
        assert await with_deadline(answer(7), 1.0, "user_store") == 7

    async def test_no_timeout(self) -> None:
        assert await with_deadline(answer(7, 0.01), None, "user_store") == 7

    async def test_timeout(self) -> None:
        with pytest.raises(ProviderTimeout) as exc_info:
            await with_deadline(answer(7, 1.0), 0.01, "checkin_store")

        assert exc_info.value.provider == "checkin_store"

    async def test_connection_error(self) -> None:
        with pytest.raises(ProviderUnavailable, match="user_store is unreachable") as exc_info:
            await with_deadline(refuse(), 1.0, "user_store")

        assert not isinstance(exc_info.value, ProviderTimeout)

    async def test_other_errors_propagate(self) -> None:
        async def broken() -> int:
            raise ValueError("bad row")

        with pytest.raises(ValueError, match="bad row"):
            await with_deadline(broken(), 1.0, "user_store")
