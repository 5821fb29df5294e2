"""
Bounded awaits.

Every call that leaves the process (provider fetches, provider health
checks) goes through :func:`bounded_call` so a hung upstream turns into
a typed :class:`ProviderTimeoutError` instead of an indefinite block.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable
from typing import TypeVar

from playscanner.errors import ProviderTimeoutError

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def bounded_call(
    awaitable: Awaitable[T],
    timeout: float,
    *,
    label: str,
    provider: str = "unknown",
) -> T:
    """Await *awaitable*, giving up after *timeout* seconds."""
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning("%s timed out after %.1fs", label, timeout)
        raise ProviderTimeoutError(
            f"Timeout after {timeout:g}s for {label}",
            provider=provider,
        ) from None
