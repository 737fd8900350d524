"""Exception hierarchy for upmon.

Every error raised by the library derives from :class:`UpmonError` so
callers can catch the whole family in one place.  Configuration errors
are also ``ValueError`` subclasses, matching what a caller would expect
from bad input.
"""

from __future__ import annotations

__all__ = [
    "ConfigError",
    "ConnectionLost",
    "EmptyTargetList",
    "ListenerError",
    "MalformedMessage",
    "OddArgumentCount",
    "PropertyError",
    "PropertyRenderError",
    "StreamError",
    "TypeMismatch",
    "UnknownProperty",
    "UnrecognizedProperty",
    "UpmonError",
]


class UpmonError(Exception):
    """Base class for all upmon errors."""


# -----------------------------------------------------------------------
# Property model
# -----------------------------------------------------------------------


class PropertyError(UpmonError):
    """A raw bus value could not be turned into a :class:`Property`."""


class UnknownProperty(PropertyError):
    def __init__(self, name: str) -> None:
        super().__init__(f"Unknown property: {name}")
        self.name = name


class TypeMismatch(PropertyError):
    """The value for a known property arrived with the wrong type."""

    def __init__(self, name: str, expected: str, actual: str) -> None:
        super().__init__(f"Property {name} expects type '{expected}', got '{actual}'")
        self.name = name
        self.expected = expected
        self.actual = actual


class PropertyRenderError(UpmonError, RuntimeError):
    """A property value has no human-readable form (e.g. unknown State code)."""


# -----------------------------------------------------------------------
# Configuration
# -----------------------------------------------------------------------


class ConfigError(UpmonError, ValueError):
    """Invalid device or file configuration."""


class EmptyTargetList(ConfigError):
    def __init__(self, path: str = "") -> None:
        msg = "Must specify one or more target properties to monitor"
        super().__init__(f"{msg} (device {path})" if path else msg)
        self.path = path


class UnrecognizedProperty(ConfigError):
    def __init__(self, name: str) -> None:
        super().__init__(f"Unexpected target property: {name}")
        self.name = name


class OddArgumentCount(ConfigError):
    def __init__(self, count: int) -> None:
        super().__init__(f"Invalid aggregate number of path arguments: {count}")
        self.count = count


# -----------------------------------------------------------------------
# Streams and listeners
# -----------------------------------------------------------------------


class StreamError(UpmonError):
    """The notification stream for a device can no longer be read."""


class MalformedMessage(StreamError):
    """A matching signal did not carry a ``PropertiesChanged`` body."""


class ConnectionLost(StreamError):
    """The bus connection shared by all streams went away."""


class ListenerError(UpmonError):
    """A single device's listener terminated.

    Attributes:
        device_path: Object path of the device whose listener failed.
        cause: The exception that ended the listener.
    """

    def __init__(self, device_path: str, cause: BaseException) -> None:
        super().__init__(f"Listener for {device_path} failed: {cause}")
        self.device_path = device_path
        self.cause = cause
