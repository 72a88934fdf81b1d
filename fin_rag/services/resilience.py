# =============================================================================
# Resilience - Timeouts, Retry with Backoff, Strategy Chains
# =============================================================================
#
# Every external call (embedding request, vector-store upsert, completion)
# goes through one of these helpers:
#
#   with_timeout()      - race an awaitable against a deadline; a timeout
#                         raises ProviderTimeoutError
#   retry_async()       - up to N attempts, exponential backoff (0.5s,
#                         1s, 2s, ...), each attempt under with_timeout();
#                         the last error is re-raised
#   first_successful()  - try an ordered list of strategies (providers,
#                         extraction methods) and return the first usable
#                         result, or None when all of them fail
#
# ConfigurationError is never retried: it propagates on the first attempt.
# Sync SDK calls are wrapped with asyncio.to_thread() by the caller; an
# abandoned thread finishes in the background and its result is dropped.
# =============================================================================

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Sequence, TypeVar

from fin_rag.exceptions import ConfigurationError, ProviderTimeoutError

logger = logging.getLogger(__name__)

T = TypeVar("T")
S = TypeVar("S")


async def with_timeout(awaitable: Awaitable[T], seconds: float | None, label: str) -> T:
    """
    Await *awaitable*, abandoning it after *seconds*.

    Raises:
        ProviderTimeoutError: If the deadline passes first.
    """
    if not seconds or seconds <= 0:
        return await awaitable
    try:
        return await asyncio.wait_for(awaitable, timeout=seconds)
    except asyncio.TimeoutError as exc:
        raise ProviderTimeoutError(f"{label} timed out after {seconds}s") from exc


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    *,
    label: str,
    attempts: int = 3,
    initial_delay: float = 0.5,
    timeout: float | None = 30.0,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """
    Run *operation* with bounded retries and exponential backoff.

    Args:
        operation: Zero-argument factory returning a fresh awaitable per
            attempt.
        label: Name used in log lines and timeout messages.
        attempts: Maximum number of attempts (>= 1).
        initial_delay: Delay before the second attempt; doubles afterwards.
        timeout: Per-attempt deadline in seconds (None/0 = no deadline).
        sleep: Injected for tests.

    Raises:
        ConfigurationError: Immediately, without retrying.
        Exception: The last attempt's error once attempts are exhausted.
    """
    delay = initial_delay
    for attempt in range(1, attempts + 1):
        try:
            return await with_timeout(operation(), timeout, label)
        except ConfigurationError:
            raise
        except Exception as exc:
            logger.warning(
                "%s attempt %d/%d failed: %s", label, attempt, attempts, exc,
            )
            if attempt == attempts:
                raise
            await sleep(delay)
            delay *= 2
    raise RuntimeError("unreachable")  # attempts < 1


async def first_successful(
    strategies: Sequence[S],
    attempt: Callable[[S], Awaitable[T | None]],
    *,
    label: str,
) -> T | None:
    """
    Try each strategy in order; return the first non-None result.

    A strategy that raises or returns None counts as a miss and the next
    one is tried. Returns None when every strategy misses.
    """
    for strategy in strategies:
        name = getattr(strategy, "name", type(strategy).__name__)
        try:
            result = await attempt(strategy)
        except Exception as exc:
            logger.warning("%s: strategy %s failed: %s", label, name, exc)
            continue
        if result is not None:
            logger.info("%s: strategy %s succeeded", label, name)
            return result
        logger.info("%s: strategy %s produced no result", label, name)
    return None
