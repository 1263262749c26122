"""HTTP utilities providing retry/backoff semantics for idempotent reads."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

import httpx

logger = logging.getLogger(__name__)

_RETRYABLE_STATUS = frozenset({429, 500, 502, 503, 504})


class RetryConfig:
    def __init__(self, *, attempts: int = 3, backoff_seconds: float = 1.0) -> None:
        self.attempts = attempts
        self.backoff_seconds = backoff_seconds


async def request_with_retry(
    func: Callable[..., Awaitable[httpx.Response]],
    *args,
    retry_config: RetryConfig | None = None,
    **kwargs,
) -> httpx.Response:
    """Call ``func`` until it yields a non-retryable response.

    Transport failures, throttling and 5xx responses are retried with linear
    backoff. Any other 4xx response is returned to the caller immediately,
    as is the last response once attempts are exhausted.
    """
    config = retry_config or RetryConfig()
    attempt = 0

    while True:
        attempt += 1
        try:
            response = await func(*args, **kwargs)
        except httpx.TransportError as exc:
            if attempt >= config.attempts:
                raise
            logger.warning("Transport error on attempt %s: %s", attempt, exc)
        else:
            if response.status_code not in _RETRYABLE_STATUS or attempt >= config.attempts:
                return response
            logger.warning(
                "Retryable status %s on attempt %s", response.status_code, attempt
            )
        await asyncio.sleep(config.backoff_seconds * attempt)


__all__ = ["RetryConfig", "request_with_retry"]
