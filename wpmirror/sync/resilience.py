"""
Resilience utilities: bounded retry with a fixed delay.

Only transient network-level failures are retried. Anything else propagates
on the first attempt so that authorization errors and similar problems abort
the endpoint immediately.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Tuple, Type, TypeVar

import aiohttp

from ..config import DEFAULT_FETCH_RETRIES, DEFAULT_RETRY_DELAY_SECONDS
from .error_tracker import TransientUpstreamError
from .logging_manager import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

TRANSIENT_EXCEPTIONS: Tuple[Type[BaseException], ...] = (
    aiohttp.ClientConnectionError,
    aiohttp.ClientPayloadError,
    asyncio.TimeoutError,
    TransientUpstreamError,
)


@dataclass
class RetryPolicy:
    retries: int = DEFAULT_FETCH_RETRIES  # attempts after the first one
    delay_seconds: float = DEFAULT_RETRY_DELAY_SECONDS
    retry_on_exceptions: Tuple[Type[BaseException], ...] = TRANSIENT_EXCEPTIONS

    @property
    def max_attempts(self) -> int:
        return self.retries + 1


async def with_retry(fn: Callable[[], Awaitable[T]], *, policy: RetryPolicy, description: Optional[str] = None) -> T:
    """
    Await `fn()` and retry it on transient failures.

    - Retries up to `policy.retries` times, sleeping `policy.delay_seconds`
      between attempts.
    - Exceptions outside `policy.retry_on_exceptions` are raised immediately.
    - When retries are exhausted the last transient exception is raised.
    """
    last_exc: Optional[BaseException] = None
    for attempt in range(policy.max_attempts):
        try:
            return await fn()
        except policy.retry_on_exceptions as exc:  # type: ignore
            last_exc = exc
            if attempt >= policy.max_attempts - 1:
                logger.error(f"All {policy.max_attempts} attempts failed for {description or 'request'}: {exc}")
                break
            logger.warning(f"Attempt {attempt + 1}/{policy.max_attempts} failed for {description or 'request'}: {exc}")
            await asyncio.sleep(policy.delay_seconds)

    if last_exc:
        raise last_exc
    raise RuntimeError("with_retry exhausted without exception context")
