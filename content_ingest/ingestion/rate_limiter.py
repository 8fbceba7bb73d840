"""
Fixed-window rate limiter with exponential backoff on 429 responses.

A RateLimiter enforces two limits on call starts:
- at most `requests_per_minute` starts per fixed window
- at least `window_seconds / requests_per_minute` between consecutive starts

The window is fixed, not sliding: it resets once `window_seconds` have
passed since it began, so a burst straddling a boundary can briefly reach
twice the budget. Share one instance across importers to enforce a single
budget for a whole platform.
"""

import asyncio
import inspect
import logging
import random
import time
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import httpx

from content_ingest.config.settings import get_settings
from content_ingest.observability.metrics import get_metrics

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Jitter is drawn uniformly from [0, JITTER_FRACTION * delay]
JITTER_FRACTION = 0.25


class RateLimitExceeded(Exception):
    """Raised when a call is still rate limited after all retries."""

    def __init__(self, message: str, last_error: BaseException | None = None):
        super().__init__(message)
        self.last_error = last_error


def is_rate_limit_error(exc: BaseException) -> bool:
    """
    Check whether an exception signals HTTP 429 / rate limiting.

    Recognizes httpx status errors, exceptions carrying a `status_code` or
    `status` attribute, and messages mentioning "429" or "rate limit".
    """
    if isinstance(exc, httpx.HTTPStatusError):
        if exc.response.status_code == 429:
            return True

    for attr in ("status_code", "status"):
        if getattr(exc, attr, None) == 429:
            return True

    message = str(exc).lower()
    return "429" in message or "rate limit" in message


class RateLimiter:
    """
    Requests-per-window budget with minimum spacing and 429 retries.

    Usage:
        limiter = RateLimiter(requests_per_minute=10)
        posts = await limiter.execute(lambda: fetch_listing("pizza"), "fetch")
    """

    def __init__(
        self,
        requests_per_minute: int | None = None,
        max_retries: int | None = None,
        base_delay: float | None = None,
        max_delay: float | None = None,
        window_seconds: float = 60.0,
    ):
        """
        Initialize rate limiter.

        Args:
            requests_per_minute: Call starts allowed per window
            max_retries: Total attempts for a rate limited call
            base_delay: Backoff base in seconds
            max_delay: Backoff cap in seconds (before jitter)
            window_seconds: Window length in seconds
        """
        settings = get_settings()
        self.requests_per_minute = (
            requests_per_minute
            if requests_per_minute is not None
            else settings.default_requests_per_minute
        )
        self.max_retries = (
            max_retries if max_retries is not None else settings.rate_limit_max_retries
        )
        self.base_delay = base_delay if base_delay is not None else settings.rate_limit_base_delay
        self.max_delay = max_delay if max_delay is not None else settings.rate_limit_max_delay
        if self.requests_per_minute < 1:
            raise ValueError(
                f"requests_per_minute must be at least 1, got {self.requests_per_minute}"
            )
        if self.max_retries < 1:
            raise ValueError(f"max_retries must be at least 1, got {self.max_retries}")
        self.window_seconds = window_seconds
        self.min_interval = window_seconds / self.requests_per_minute

        self._last_request: float | None = None
        self._request_count = 0
        self._window_start = self._now()
        self._lock = asyncio.Lock()

    @property
    def request_count(self) -> int:
        """Call starts recorded in the current window."""
        return self._request_count

    def _now(self) -> float:
        return time.monotonic()

    async def _sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)

    async def wait_for_slot(self) -> None:
        """Suspend until a call may start, then record the start."""
        async with self._lock:
            now = self._now()

            if now - self._window_start >= self.window_seconds:
                self._window_start = now
                self._request_count = 0

            if self._request_count >= self.requests_per_minute:
                wait_time = self.window_seconds - (now - self._window_start)
                if wait_time > 0:
                    logger.info(f"Rate limit reached, waiting {wait_time:.1f}s")
                    await self._sleep(wait_time)
                now = self._now()
                self._window_start = now
                self._request_count = 0

            if self._last_request is not None:
                since_last = now - self._last_request
                if since_last < self.min_interval:
                    await self._sleep(self.min_interval - since_last)

            self._last_request = self._now()
            self._request_count += 1

    def calculate_backoff(self, attempt: int) -> float:
        """
        Calculate backoff duration for a given retry attempt.

        Formula: min(max_delay, 2^attempt * base_delay) * (1 + U(0, 0.25))

        Args:
            attempt: The attempt number (0-indexed)

        Returns:
            Backoff duration in seconds with jitter applied
        """
        delay = min(self.max_delay, (2**attempt) * self.base_delay)
        jitter = delay * random.random() * JITTER_FRACTION
        return delay + jitter

    async def execute(
        self,
        fn: Callable[[], Awaitable[T] | T],
        context: str = "request",
    ) -> T:
        """
        Run `fn` under the rate limit, retrying on 429 signals.

        Args:
            fn: Zero-argument callable, sync or async
            context: Label used in logs and errors

        Returns:
            Whatever `fn` returns

        Raises:
            RateLimitExceeded: If every attempt was rate limited
            Exception: Any non rate limit error from `fn`, unchanged
        """
        last_error: BaseException | None = None

        for attempt in range(self.max_retries):
            await self.wait_for_slot()

            try:
                result: Any = fn()
                if inspect.isawaitable(result):
                    result = await result
                return result
            except Exception as e:
                if not is_rate_limit_error(e):
                    raise
                last_error = e

            if attempt + 1 >= self.max_retries:
                break

            delay = self.calculate_backoff(attempt)
            logger.warning(
                f"{context}: rate limited (attempt {attempt + 1}/{self.max_retries}), "
                f"backing off {delay:.2f}s"
            )
            get_metrics().record_backoff(context)
            await self._sleep(delay)

        raise RateLimitExceeded(
            f"{context}: max retries ({self.max_retries}) exceeded. "
            f"Last error: {last_error}",
            last_error=last_error,
        ) from last_error

    def reset(self) -> None:
        """Clear counters and start a new window."""
        self._last_request = None
        self._request_count = 0
        self._window_start = self._now()
