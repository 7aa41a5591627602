"""Deadline enforcement for collaborator calls."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable
from typing import TypeVar

from .exceptions import ProviderTimeout, ProviderUnavailable

T = TypeVar("T")


async def with_deadline(awaitable: Awaitable[T], timeout: float | None, provider: str) -> T:
    """Await a collaborator call, failing instead of hanging.

    Args:
        awaitable: The collaborator call.
        timeout: Seconds to wait; None waits indefinitely.
        provider: Collaborator name used in error messages.

    Returns:
        The call's result.

    Raises:
        ProviderTimeout: If the call exceeds ``timeout``.
        ProviderUnavailable: If the call fails at the connection level.
    """
    try:
        return await asyncio.wait_for(awaitable, timeout)
    except TimeoutError as e:
        raise ProviderTimeout(f"{provider} did not answer within {timeout}s", provider) from e
    except OSError as e:
        raise ProviderUnavailable(f"{provider} is unreachable: {e}", provider) from e
