"""Change feed subscriptions handed out by the document store."""
from __future__ import annotations

import asyncio
import logging
from collections import deque
from typing import Callable, Generic, TypeVar

from .base import SnapshotEvent

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Subscription(Generic[T]):
    """A live registration on the change feed.

    Deliveries reach every callback added with :meth:`add_callback`. A buffered
    subscription also queues them so it can be consumed with ``async for``.
    :meth:`close` detaches from the store immediately: once it returns no
    callback fires again and a pending ``async for`` loop ends.

    Deliveries may come from any thread; the async consumer is woken through
    its own event loop.
    """

    def __init__(self, *, buffered: bool = True) -> None:
        self._buffered = buffered
        self._pending: deque[T] = deque()
        self._callbacks: list[Callable[[T], None]] = []
        self._closed = False
        self._detach: Callable[[], None] | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._wakeup: asyncio.Event | None = None

    @property
    def closed(self) -> bool:
        return self._closed

    def bind(self, detach: Callable[[], None]) -> None:
        self._detach = detach

    def add_callback(self, callback: Callable[[T], None]) -> None:
        self._callbacks.append(callback)

    def deliver(self, item: T) -> None:
        if self._closed:
            return
        for callback in list(self._callbacks):
            callback(item)
        if self._buffered and not self._closed:
            self._pending.append(item)
            self._wake()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._pending.clear()
        self._callbacks.clear()
        if self._detach is not None:
            self._detach()
            self._detach = None
        self._wake()

    def drain(self) -> list[T]:
        """Return and forget every buffered delivery without waiting."""

        items = list(self._pending)
        self._pending.clear()
        return items

    def _wake(self) -> None:
        event, loop = self._wakeup, self._loop
        if event is None or loop is None or loop.is_closed():
            return
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is loop:
            event.set()
        else:
            loop.call_soon_threadsafe(event.set)

    def __aiter__(self) -> Subscription[T]:
        return self

    async def __anext__(self) -> T:
        while True:
            if self._pending:
                return self._pending.popleft()
            if self._closed:
                raise StopAsyncIteration
            self._loop = asyncio.get_running_loop()
            self._wakeup = asyncio.Event()
            if self._pending or self._closed:
                continue
            await self._wakeup.wait()

    def __enter__(self) -> Subscription[T]:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    async def __aenter__(self) -> Subscription[T]:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.close()


class MappedSubscription(Subscription[T]):
    """Subscription whose deliveries are derived from store snapshot events.

    ``transform`` turns one :class:`SnapshotEvent` into zero or more items.
    """

    def __init__(self, store, target, transform: Callable[[SnapshotEvent], list[T]]) -> None:
        super().__init__(buffered=True)
        self._transform = transform
        source = store.listen(target, self._forward)
        self.bind(source.close)

    def _forward(self, event: SnapshotEvent) -> None:
        for item in self._transform(event):
            self.deliver(item)


__all__ = ["Subscription", "MappedSubscription"]
