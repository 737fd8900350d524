"""Per-device change listener.

A :class:`ChangeListener` subscribes to the ``PropertiesChanged`` signals
of one device, keeps the properties it was configured for, and hands
every non-empty change record to the shared writer.  It waits for each
write to finish before reading the next notification, so a device's
output lines follow bus delivery order.

States::

    SUBSCRIBING -> LISTENING -> TERMINATED

There is no successful end state; a listener runs until its stream or
writer fails, or until it is cancelled.
"""

from __future__ import annotations

import asyncio
import logging

from upmon.bus import BusConnection
from upmon.errors import ConnectionLost, ListenerError
from upmon.filters import build
from upmon.properties import StrEnum
from upmon.targets import DeviceTargetConfig
from upmon.writers.base import Writer

__all__ = ["ChangeListener", "ListenerState"]

logger = logging.getLogger("upmon.listener")


class ListenerState(StrEnum):
    SUBSCRIBING = "subscribing"
    LISTENING = "listening"
    TERMINATED = "terminated"


class ChangeListener:
    """Listen for changes to one device's properties and write them.

    Parameters:
        config: Device path and the properties to report.
        connection: Bus connection shared with the other listeners.
        writer: Writer shared with the other listeners.
    """

    def __init__(self, config: DeviceTargetConfig, connection: BusConnection, writer: Writer) -> None:
        self.config = config
        self._connection = connection
        self._writer = writer
        self.state = ListenerState.SUBSCRIBING
        self.records_written = 0

    @property
    def device_path(self) -> str:
        return self.config.path

    async def run(self) -> None:
        """Listen until failure.

        Raises:
            ListenerError: the subscription, stream or writer failed.  The
                original exception is available as ``cause``.
        """
        try:
            await self._listen()
        except asyncio.CancelledError:
            self.state = ListenerState.TERMINATED
            logger.debug("Listener for %s cancelled", self.device_path)
            raise
        except Exception as exc:
            self.state = ListenerState.TERMINATED
            raise ListenerError(self.device_path, exc) from exc

    async def _listen(self) -> None:
        subscription = build(self.config)
        async with self._connection.subscribe(subscription) as stream:
            self.state = ListenerState.LISTENING
            logger.info("Listening on %s for %s", self.device_path, ",".join(self.config.targets))
            async for changed in stream:
                changes = self.config.collect_changes(changed)
                if not changes:
                    continue
                await self._writer.write(self.device_path, changes)
                self.records_written += 1
        raise ConnectionLost(f"Notification stream for {self.device_path} ended")
