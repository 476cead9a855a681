"""Observable values for UI-facing state."""
from __future__ import annotations

import logging
import threading
from typing import AsyncIterator, Callable, Generic, TypeVar

from ..store.feed import Subscription

logger = logging.getLogger(__name__)

T = TypeVar("T")


class LiveValue(Generic[T]):
    """Holds the latest value and notifies watchers on every change.

    A new watcher is called immediately with the current value. Setting a value
    equal to the current one notifies nobody.
    """

    def __init__(self, initial: T) -> None:
        self._value = initial
        self._watchers: list[Callable[[T], None]] = []
        self._lock = threading.Lock()

    @property
    def value(self) -> T:
        return self._value

    def set(self, value: T) -> None:
        with self._lock:
            if value == self._value:
                return
            self._value = value
            watchers = list(self._watchers)
        for watcher in watchers:
            try:
                watcher(value)
            except Exception:
                logger.exception("Live value watcher failed")

    def subscribe(self, callback: Callable[[T], None]) -> Callable[[], None]:
        """Register ``callback`` and return a function that unregisters it."""

        with self._lock:
            self._watchers.append(callback)
        callback(self._value)

        def _unwatch() -> None:
            with self._lock:
                if callback in self._watchers:
                    self._watchers.remove(callback)

        return _unwatch

    async def changes(self) -> AsyncIterator[T]:
        """Yield the current value, then every later one, until the consumer stops."""

        feed: Subscription[T] = Subscription(buffered=True)
        feed.bind(self.subscribe(feed.deliver))
        async with feed:
            async for value in feed:
                yield value


__all__ = ["LiveValue"]
