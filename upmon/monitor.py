"""Monitor - top-level orchestrator that runs one listener per device
against a shared bus connection and a shared writer.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal
from collections.abc import Sequence

from upmon.bus import BusConnection
from upmon.errors import ListenerError
from upmon.listener import ChangeListener
from upmon.targets import DeviceTargetConfig
from upmon.writers.base import Writer

__all__ = ["Monitor", "run_all"]

logger = logging.getLogger("upmon")


async def _supervise(listener: ChangeListener, running: list[ChangeListener]) -> ListenerError | None:
    """Run ``listener`` and turn its failure into a logged return value."""
    try:
        await listener.run()
    except ListenerError as err:
        running.remove(listener)
        logger.error("Listener for %s terminated: %s", err.device_path, err.cause)
        logger.info("%d listener(s) still running", len(running))
        return err
    return None


async def run_all(
    connection: BusConnection,
    configs: Sequence[DeviceTargetConfig],
    writer: Writer,
) -> list[ListenerError]:
    """Listen on every configured device until all listeners have ended.

    Each listener runs in its own task; a failing listener never cancels
    the others.  Cancelling ``run_all`` cancels every listener.

    Returns:
        The failure of each listener that terminated, tagged with its
        device path.
    """
    listeners = [ChangeListener(cfg, connection, writer) for cfg in configs]
    running = list(listeners)
    tasks = [
        asyncio.create_task(_supervise(listener, running), name=f"listen-{listener.device_path}")
        for listener in listeners
    ]
    results = await asyncio.gather(*tasks)
    return [err for err in results if err is not None]


class Monitor:
    """High-level API for monitoring UPower devices.

    Example::

        from upmon import DeviceTargetConfig, Monitor
        from upmon.writers import StreamWriter

        configs = DeviceTargetConfig.create_many(
            ["/org/freedesktop/UPower/devices/DisplayDevice", "Percentage,State"]
        )
        Monitor(configs, StreamWriter(timestamp=True)).run()

    Parameters:
        configs:
            Devices to monitor.
        writer:
            Destination for change records.  Connected on start and
            closed on shutdown.
        connection:
            Bus connection to use.  When omitted, the system bus is
            connected on start and disconnected on shutdown.
    """

    def __init__(
        self,
        configs: Sequence[DeviceTargetConfig],
        writer: Writer,
        *,
        connection: BusConnection | None = None,
    ) -> None:
        self._configs = list(configs)
        self._writer = writer
        self._connection = connection
        self._stop_requested = False
        self._runner: asyncio.Task[list[ListenerError]] | None = None

    @property
    def configs(self) -> list[DeviceTargetConfig]:
        return list(self._configs)

    def run(self) -> list[ListenerError]:
        """Blocking entry point - starts the event loop.

        Returns the listener failures once every listener has ended, or
        an empty list after Ctrl-C.
        """
        try:
            return asyncio.run(self.run_async())
        except KeyboardInterrupt:
            logger.info("Interrupted by user")
            return []

    def stop(self) -> None:
        """Cancel all listeners.  Safe to call from a signal handler."""
        self._stop_requested = True
        if self._runner and not self._runner.done():
            self._runner.cancel()

    async def run_async(self) -> list[ListenerError]:
        """Async entry point - runs inside an existing event loop."""
        if not self._configs:
            logger.warning("No devices configured - nothing to do.")
            return []

        await self._writer.connect()
        owns_connection = self._connection is None
        try:
            connection = self._connection or await BusConnection.system()
        except BaseException:
            await self._writer.close()
            raise

        logger.info("Starting monitor: %d devices", len(self._configs))

        # NotImplementedError: raised on Windows where signal handlers are unsupported.
        # RuntimeError: raised when running in a non-main thread.
        loop = asyncio.get_running_loop()
        self._runner = asyncio.create_task(run_all(connection, self._configs, self._writer), name="upmon-listeners")
        installed: list[signal.Signals] = []
        for sig in (signal.SIGINT, signal.SIGTERM):
            with contextlib.suppress(NotImplementedError, RuntimeError):
                loop.add_signal_handler(sig, self.stop)
                installed.append(sig)

        try:
            failures = await self._runner
            logger.info("All listeners have terminated")
            return failures
        except asyncio.CancelledError:
            if not self._stop_requested:
                raise
            logger.info("Stop signal received - shutting down")
            return []
        finally:
            for sig in installed:
                loop.remove_signal_handler(sig)
            await self._writer.close()
            if owns_connection:
                await connection.close()
