"""Tests for upmon.listener - the per-device listen loop."""

from __future__ import annotations

import io

import pytest
from dbus_fast import Variant
from dbus_fast.errors import InvalidObjectPathError

from upmon.errors import ConnectionLost, ListenerError, MalformedMessage
from upmon.listener import ChangeListener, ListenerState
from upmon.properties import ChangeRecord
from upmon.targets import DeviceTargetConfig
from upmon.writers import CallbackWriter, StreamWriter

from tests.conftest import DISPLAY_DEVICE, FakeConnection


def _listener(connection: FakeConnection, targets: str = "TimeToFull,State") -> tuple[ChangeListener, io.StringIO]:
    buf = io.StringIO()
    cfg = DeviceTargetConfig.create(DISPLAY_DEVICE, targets)
    return ChangeListener(cfg, connection, StreamWriter(stream=buf)), buf


class TestListenerState:
    """States compare equal to their string values."""

    def test_string_values(self) -> None:
        assert list(ListenerState) == ["subscribing", "listening", "terminated"]
        assert ListenerState.LISTENING == "listening"


class TestListen:
    """Steady-state behaviour of a listener."""

    @pytest.mark.asyncio
    async def test_writes_targeted_changes(self, connection: FakeConnection) -> None:
        listener, buf = _listener(connection)
        connection.emit(DISPLAY_DEVICE, {"TimeToFull": Variant("x", 54321), "Energy": Variant("d", 3.0)})
        connection.fail(DISPLAY_DEVICE, MalformedMessage("stop"))

        with pytest.raises(ListenerError):
            await listener.run()

        assert buf.getvalue() == f"{DISPLAY_DEVICE} TimeToFull=15:05:21\n"
        assert listener.records_written == 1

    @pytest.mark.asyncio
    async def test_subscribes_with_device_rule(self, connection: FakeConnection) -> None:
        listener, _ = _listener(connection)
        connection.end(DISPLAY_DEVICE)
        with pytest.raises(ListenerError):
            await listener.run()
        assert [s.path for s in connection.subscriptions] == [DISPLAY_DEVICE]

    @pytest.mark.asyncio
    async def test_untargeted_notifications_write_nothing(self, connection: FakeConnection) -> None:
        listener, buf = _listener(connection, "Online")
        connection.emit(DISPLAY_DEVICE, {"Percentage": Variant("d", 10.0)})
        connection.emit(DISPLAY_DEVICE, {})
        connection.end(DISPLAY_DEVICE)
        with pytest.raises(ListenerError):
            await listener.run()
        assert buf.getvalue() == ""
        assert listener.records_written == 0

    @pytest.mark.asyncio
    async def test_preserves_arrival_order(self, connection: FakeConnection) -> None:
        listener, buf = _listener(connection, "State")
        for code in (1, 2, 3, 4):
            connection.emit(DISPLAY_DEVICE, {"State": Variant("u", code)})
        connection.end(DISPLAY_DEVICE)
        with pytest.raises(ListenerError):
            await listener.run()
        assert [line.split("=")[1] for line in buf.getvalue().splitlines()] == [
            "Charging",
            "Discharging",
            "Empty",
            "FullyCharged",
        ]

    @pytest.mark.asyncio
    async def test_mistyped_target_skipped(self, connection: FakeConnection) -> None:
        listener, buf = _listener(connection)
        connection.emit(DISPLAY_DEVICE, {"TimeToFull": Variant("s", "soon"), "State": Variant("u", 1)})
        connection.end(DISPLAY_DEVICE)
        with pytest.raises(ListenerError):
            await listener.run()
        assert buf.getvalue() == f"{DISPLAY_DEVICE} State=Charging\n"


class TestTermination:
    """Every way a listener ends, and the state it ends in."""

    @pytest.mark.asyncio
    async def test_malformed_message(self, connection: FakeConnection) -> None:
        listener, _ = _listener(connection)
        assert listener.state == ListenerState.SUBSCRIBING
        connection.fail(DISPLAY_DEVICE, MalformedMessage("bad body"))
        with pytest.raises(ListenerError) as exc_info:
            await listener.run()
        assert exc_info.value.device_path == DISPLAY_DEVICE
        assert isinstance(exc_info.value.cause, MalformedMessage)
        assert listener.state == ListenerState.TERMINATED

    @pytest.mark.asyncio
    async def test_stream_end_is_connection_loss(self, connection: FakeConnection) -> None:
        listener, _ = _listener(connection)
        connection.end(DISPLAY_DEVICE)
        with pytest.raises(ListenerError) as exc_info:
            await listener.run()
        assert isinstance(exc_info.value.cause, ConnectionLost)

    @pytest.mark.asyncio
    async def test_invalid_path(self, connection: FakeConnection) -> None:
        cfg = DeviceTargetConfig.create("not/a/path", "Online")
        listener = ChangeListener(cfg, connection, StreamWriter(stream=io.StringIO()))
        with pytest.raises(ListenerError) as exc_info:
            await listener.run()
        assert isinstance(exc_info.value.cause, InvalidObjectPathError)
        assert connection.subscriptions == []

    @pytest.mark.asyncio
    async def test_writer_failure(self, connection: FakeConnection) -> None:
        def broken(path: str, changes: ChangeRecord) -> None:
            raise OSError("No space left on device")

        cfg = DeviceTargetConfig.create(DISPLAY_DEVICE, "State")
        listener = ChangeListener(cfg, connection, CallbackWriter(broken))
        connection.emit(DISPLAY_DEVICE, {"State": Variant("u", 1)})
        with pytest.raises(ListenerError) as exc_info:
            await listener.run()
        assert isinstance(exc_info.value.cause, OSError)
        assert listener.state == ListenerState.TERMINATED
