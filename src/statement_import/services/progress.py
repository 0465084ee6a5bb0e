"""
Latest-value progress stream.

Holds one value at a time. New subscribers receive the current value
first, then every later value; a slow subscriber skips intermediate
values rather than queueing them.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from typing import Generic, TypeVar

T = TypeVar("T")


class ProgressStream(Generic[T]):
    def __init__(self, initial: T):
        self._value = initial
        self._version = 0
        self._waiters: list[asyncio.Future] = []

    @property
    def value(self) -> T:
        return self._value

    def set(self, value: T) -> None:
        """Publish a new value and wake every waiting subscriber."""
        self._value = value
        self._version += 1
        waiters, self._waiters = self._waiters, []
        for waiter in waiters:
            if not waiter.done():
                waiter.set_result(None)

    async def subscribe(self) -> AsyncIterator[T]:
        """Yield the current value, then each newer value as it arrives."""
        seen = self._version
        yield self._value
        while True:
            if self._version == seen:
                waiter = asyncio.get_running_loop().create_future()
                self._waiters.append(waiter)
                await waiter
            seen = self._version
            yield self._value

    def __aiter__(self) -> AsyncIterator[T]:
        return self.subscribe()
