"""Cooperative deadlines for external calls.

A Deadline is created once per logical operation (ingest one document,
answer one question) and threaded through every network call it makes.
Expiry cancels the pending awaitable at its next suspension point.
"""

import asyncio
import time
from typing import Awaitable, TypeVar

from src.errors import DeadlineExceededError

T = TypeVar("T")


class Deadline:
    """A point in monotonic time after which external calls are abandoned."""

    def __init__(self, seconds: float | None = None):
        if seconds is not None and seconds < 0:
            raise ValueError("seconds must be >= 0")
        self._expires_at = None if seconds is None else time.monotonic() + seconds

    @classmethod
    def after(cls, seconds: float | None) -> "Deadline":
        return cls(seconds)

    @classmethod
    def never(cls) -> "Deadline":
        return cls(None)

    @property
    def expired(self) -> bool:
        return self._expires_at is not None and time.monotonic() >= self._expires_at

    def remaining(self) -> float | None:
        """Seconds left, or None for an unbounded deadline.

        Raises DeadlineExceededError once the deadline has passed.
        """
        if self._expires_at is None:
            return None
        left = self._expires_at - time.monotonic()
        if left <= 0:
            raise DeadlineExceededError("Deadline exceeded")
        return left

    async def run(self, awaitable: Awaitable[T]) -> T:
        """Await the given awaitable within the remaining budget."""
        try:
            left = self.remaining()
        except DeadlineExceededError:
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            raise
        if left is None:
            return await awaitable
        try:
            return await asyncio.wait_for(awaitable, timeout=left)
        except asyncio.TimeoutError as e:
            raise DeadlineExceededError(
                f"Deadline exceeded after waiting {left:.2f}s"
            ) from e

    def __repr__(self) -> str:
        if self._expires_at is None:
            return "Deadline(never)"
        return f"Deadline(remaining={self._expires_at - time.monotonic():.2f}s)"
