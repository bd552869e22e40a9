"""Broadcast state holders shared by the session, preference and schedule layers.

A StateStream always has a value. Subscribers receive the current value first
and every later value in the order it was set. Subscriptions are async
iterators and async context managers, so a consumer can write:

    async with stream.subscribe() as values:
        async for value in values:
            ...
"""

import asyncio
from collections.abc import Callable
from typing import Generic, TypeVar

T = TypeVar("T")


class Subscription(Generic[T]):
    """One consumer's ordered view of a StateStream."""

    def __init__(self, first: T, on_close: Callable[["Subscription[T]"], None]) -> None:
        self._queue: asyncio.Queue[T] = asyncio.Queue()
        self._queue.put_nowait(first)
        self._on_close = on_close
        self._closed = False
        self._waiter: asyncio.Future[None] | None = None

    @property
    def closed(self) -> bool:
        return self._closed

    def push(self, value: T) -> None:
        if not self._closed:
            self._queue.put_nowait(value)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._on_close(self)
        if self._waiter is not None and not self._waiter.done():
            self._waiter.cancel()

    def __aiter__(self) -> "Subscription[T]":
        return self

    async def __anext__(self) -> T:
        if self._closed:
            raise StopAsyncIteration
        if not self._queue.empty():
            return self._queue.get_nowait()
        self._waiter = asyncio.ensure_future(self._queue.get())
        try:
            return await self._waiter
        except asyncio.CancelledError:
            # close() cancels the pending get; an outer cancellation propagates
            if self._closed:
                raise StopAsyncIteration from None
            raise
        finally:
            self._waiter = None

    async def __aenter__(self) -> "Subscription[T]":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.close()


class StateStream(Generic[T]):
    """Always-valued broadcast holder with replay of the latest value."""

    def __init__(self, initial: T) -> None:
        self._value = initial
        self._subscribers: list[Subscription[T]] = []

    @property
    def value(self) -> T:
        return self._value

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def set(self, value: T) -> None:
        """Replace the value and hand it to every subscriber."""
        self._value = value
        for subscription in list(self._subscribers):
            subscription.push(value)

    def update(self, transform: Callable[[T], T]) -> T:
        """Apply a pure transformation to the current value and publish it."""
        self.set(transform(self._value))
        return self._value

    def subscribe(self) -> Subscription[T]:
        subscription = Subscription(self.value, self._unsubscribe)
        self._subscribers.append(subscription)
        return subscription

    def _unsubscribe(self, subscription: Subscription[T]) -> None:
        if subscription in self._subscribers:
            self._subscribers.remove(subscription)
