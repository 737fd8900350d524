"""Thin asyncio adapter over the ``dbus-fast`` message bus.

Provides:
- ``BusConnection``      - owns the shared :class:`MessageBus` and watches
                           it for disconnects.
- ``NotificationStream`` - per-filter async iterator of changed-property
                           mappings, registered with ``AddMatch``.

Every stream on a connection sees every incoming message and keeps only
those its :class:`SubscriptionFilter` selects, so any number of devices
can share one connection.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Any

from dbus_fast import BusType, Message, MessageType, Variant
from dbus_fast.aio import MessageBus
from dbus_fast.errors import DBusError

from upmon.errors import ConnectionLost, MalformedMessage
from upmon.filters import SubscriptionFilter

__all__ = ["BusConnection", "NotificationStream"]

logger = logging.getLogger("upmon.bus")

_PROPERTIES_CHANGED_SIGNATURE = "sa{sv}as"


class NotificationStream:
    """Changed-property mappings for one subscription, in arrival order.

    Use as an async context manager, then iterate::

        async with connection.subscribe(rule) as stream:
            async for changed in stream:
                ...

    Each item maps a property name to its :class:`dbus_fast.Variant`.
    Iteration raises :class:`MalformedMessage` or :class:`ConnectionLost`
    when the stream can no longer be read; it never ends on its own.
    """

    def __init__(self, connection: BusConnection, subscription: SubscriptionFilter) -> None:
        self._connection = connection
        self._subscription = subscription
        self._queue: asyncio.Queue[dict[str, Variant] | BaseException] = asyncio.Queue()
        self._open = False

    @property
    def subscription(self) -> SubscriptionFilter:
        return self._subscription

    async def __aenter__(self) -> NotificationStream:
        # Attach first: signals read together with the AddMatch reply are
        # dispatched before this coroutine resumes.
        self._open = True
        self._connection.attach(self)
        try:
            await self._connection.add_match(self._subscription.to_wire_string())
        except BaseException:
            self._open = False
            self._connection.detach(self)
            raise
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        self._open = False
        self._connection.detach(self)
        if self._connection.connected:
            await self._connection.remove_match(self._subscription.to_wire_string())

    def __aiter__(self) -> NotificationStream:
        return self

    async def __anext__(self) -> dict[str, Variant]:
        item = await self._queue.get()
        if isinstance(item, BaseException):
            raise item
        return item

    # -- called by BusConnection --

    def on_message(self, msg: Message) -> None:
        """Message handler; queues the changed properties of matching signals."""
        if not self._open or not self._subscription.matches(msg):
            return None
        if msg.signature != _PROPERTIES_CHANGED_SIGNATURE:
            self._queue.put_nowait(
                MalformedMessage(
                    f"{self._subscription.member} on {msg.path} has signature "
                    f"'{msg.signature}', expected '{_PROPERTIES_CHANGED_SIGNATURE}'"
                )
            )
            return None
        _interface, changed, _invalidated = msg.body
        self._queue.put_nowait(changed)
        return None

    def fail(self, exc: BaseException) -> None:
        """Make the next read raise ``exc``."""
        self._queue.put_nowait(exc)


class BusConnection:
    """A D-Bus connection shared read-only by all device listeners.

    Parameters:
        bus: A connected :class:`dbus_fast.aio.MessageBus`.
    """

    def __init__(self, bus: MessageBus) -> None:
        self._bus = bus
        self._streams: set[NotificationStream] = set()
        self._watch_task: asyncio.Task[None] | None = None
        self._closing = False

    @classmethod
    async def system(cls) -> BusConnection:
        """Connect to the system bus and start watching for disconnects."""
        bus = await MessageBus(bus_type=BusType.SYSTEM).connect()
        connection = cls(bus)
        connection.start_watching()
        logger.info("Connected to system bus as %s", bus.unique_name)
        return connection

    @property
    def connected(self) -> bool:
        return self._bus.connected

    def subscribe(self, subscription: SubscriptionFilter) -> NotificationStream:
        """Return a stream of notifications selected by ``subscription``."""
        return NotificationStream(self, subscription)

    def start_watching(self) -> None:
        self._watch_task = asyncio.create_task(self._watch_disconnect(), name="bus-disconnect-watch")

    async def close(self) -> None:
        """Stop watching and disconnect from the bus."""
        self._closing = True
        if self._watch_task and not self._watch_task.done():
            self._watch_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._watch_task
        if self._bus.connected:
            self._bus.disconnect()

    # -- stream registration --

    def attach(self, stream: NotificationStream) -> None:
        self._streams.add(stream)
        self._bus.add_message_handler(stream.on_message)

    def detach(self, stream: NotificationStream) -> None:
        self._streams.discard(stream)
        self._bus.remove_message_handler(stream.on_message)

    async def add_match(self, rule: str) -> None:
        await self._call_bus_daemon("AddMatch", rule)
        logger.debug("Added match rule %s", rule)

    async def remove_match(self, rule: str) -> None:
        await self._call_bus_daemon("RemoveMatch", rule)
        logger.debug("Removed match rule %s", rule)

    # -- internal --

    async def _call_bus_daemon(self, member: str, rule: str) -> None:
        reply = await self._bus.call(
            Message(
                destination="org.freedesktop.DBus",
                path="/org/freedesktop/DBus",
                interface="org.freedesktop.DBus",
                member=member,
                signature="s",
                body=[rule],
            )
        )
        if reply is not None and reply.message_type == MessageType.ERROR:
            text = reply.body[0] if reply.body else ""
            raise DBusError(reply.error_name, text, reply)

    async def _watch_disconnect(self) -> None:
        """Fail every open stream once the bus connection ends."""
        cause: BaseException | None = None
        try:
            await self._bus.wait_for_disconnect()
        except Exception as exc:
            cause = exc
        if self._closing:
            return
        logger.error("Lost connection to the bus: %s", cause or "disconnected")
        for stream in list(self._streams):
            err = ConnectionLost(f"Bus connection lost: {cause or 'disconnected'}")
            err.__cause__ = cause
            stream.fail(err)
