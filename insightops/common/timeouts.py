"""
Timeout boundary for blocking external calls.

Embedding, provider and store clients are synchronous SDKs. Every call to
them goes through ``run_with_timeout`` so a hung dependency cannot block a
request or batch item indefinitely.
"""

import asyncio
import logging
from typing import Any, Callable, Optional, TypeVar

from .errors import ExternalTimeout

logger = logging.getLogger("insightops.common.timeouts")

T = TypeVar("T")


async def run_with_timeout(
    fn: Callable[..., T],
    *args: Any,
    timeout: Optional[float],
    label: str = "external call",
    **kwargs: Any,
) -> T:
    """
    Run a blocking callable in a worker thread, bounded by ``timeout``.

    Cancellation of the awaiting task propagates (asyncio.CancelledError is
    never swallowed). The worker thread itself cannot be interrupted; its
    result is discarded once the deadline passes.

    Raises:
        ExternalTimeout: If the call does not finish within ``timeout`` seconds
    """
    try:
        return await asyncio.wait_for(
            asyncio.to_thread(fn, *args, **kwargs),
            timeout=timeout,
        )
    except asyncio.TimeoutError as e:
        logger.warning("%s timed out after %ss", label, timeout)
        raise ExternalTimeout(f"{label} timed out after {timeout}s") from e
