"""Shared fixtures - an in-memory stand-in for the D-Bus connection."""

from __future__ import annotations

import asyncio
from typing import Any

import pytest

from upmon.filters import SubscriptionFilter

DISPLAY_DEVICE = "/org/freedesktop/UPower/devices/DisplayDevice"
LINE_POWER = "/org/freedesktop/UPower/devices/line_power_AC"

_END = object()


class FakeStream:
    """Notification stream fed from a queue; exceptions in the queue are raised."""

    def __init__(self, queue: asyncio.Queue[Any]) -> None:
        self._queue = queue
        self.entered = False
        self.exited = False

    async def __aenter__(self) -> FakeStream:
        self.entered = True
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        self.exited = True

    def __aiter__(self) -> FakeStream:
        return self

    async def __anext__(self) -> dict[str, Any]:
        item = await self._queue.get()
        if item is _END:
            raise StopAsyncIteration
        if isinstance(item, BaseException):
            raise item
        return item


class FakeConnection:
    """Per-path queues in place of bus signal delivery."""

    def __init__(self) -> None:
        self._queues: dict[str, asyncio.Queue[Any]] = {}
        self.subscriptions: list[SubscriptionFilter] = []
        self.closed = False

    def _queue(self, path: str) -> asyncio.Queue[Any]:
        return self._queues.setdefault(path, asyncio.Queue())

    def subscribe(self, subscription: SubscriptionFilter) -> FakeStream:
        self.subscriptions.append(subscription)
        return FakeStream(self._queue(subscription.path))

    def emit(self, path: str, changed: dict[str, Any]) -> None:
        self._queue(path).put_nowait(changed)

    def fail(self, path: str, exc: BaseException) -> None:
        self._queue(path).put_nowait(exc)

    def end(self, path: str) -> None:
        self._queue(path).put_nowait(_END)

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def connection() -> FakeConnection:
    return FakeConnection()
