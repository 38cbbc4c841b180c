"""Async once-cell for lazily initialized shared resources."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Generic, TypeVar

T = TypeVar("T")


class AsyncOnceCell(Generic[T]):
    """A value that is absent until its first successful construction.

    Concurrent callers of get_or_init() await a single in-flight
    construction instead of racing to build duplicates. A failed
    construction leaves the cell empty, so a later call may try again.
    """

    def __init__(self) -> None:
        self._value: T | None = None
        self._initialized = False
        self._lock = asyncio.Lock()

    @property
    def initialized(self) -> bool:
        return self._initialized

    def get(self) -> T | None:
        """Return the value if constructed, else None."""
        return self._value

    async def get_or_init(self, factory: Callable[[], Awaitable[T]]) -> T:
        """Return the value, constructing it with factory on first use.

        Args:
            factory: Coroutine function producing the value

        Returns:
            The shared value

        Raises:
            Whatever factory raises; the cell stays empty in that case.
        """
        if self._initialized:
            return self._value  # type: ignore[return-value]

        async with self._lock:
            # Double-check after acquiring lock
            if self._initialized:
                return self._value  # type: ignore[return-value]
            value = await factory()
            self._value = value
            self._initialized = True
            return value

    def reset(self) -> T | None:
        """Empty the cell and return the previous value (for shutdown and tests)."""
        value = self._value
        self._value = None
        self._initialized = False
        return value
