"""D-Bus match rules for ``PropertiesChanged`` signals of a device."""

from __future__ import annotations

from dbus_fast import Message, MessageType
from dbus_fast.validators import assert_object_path_valid
from pydantic import BaseModel

from upmon.targets import DeviceTargetConfig

__all__ = [
    "PROPERTIES_CHANGED",
    "PROPERTIES_INTERFACE",
    "SubscriptionFilter",
    "build",
    "to_wire_string",
]

PROPERTIES_INTERFACE = "org.freedesktop.DBus.Properties"
PROPERTIES_CHANGED = "PropertiesChanged"


class SubscriptionFilter(BaseModel):
    """Match rule selecting the property-change signals of one object path."""

    model_config = {"frozen": True}

    type: str = "signal"
    interface: str = PROPERTIES_INTERFACE
    member: str = PROPERTIES_CHANGED
    path: str

    def to_wire_string(self) -> str:
        """Return the rule in D-Bus match-rule syntax, as passed to ``AddMatch``."""
        return (
            f"type='{self.type}',"
            f"interface='{self.interface}',"
            f"member='{self.member}',"
            f"path='{self.path}'"
        )

    def matches(self, msg: Message) -> bool:
        """Whether ``msg`` is a signal selected by this rule."""
        return (
            msg.message_type == MessageType.SIGNAL
            and msg.interface == self.interface
            and msg.member == self.member
            and msg.path == self.path
        )

    def __str__(self) -> str:
        return self.to_wire_string()


def build(config: DeviceTargetConfig) -> SubscriptionFilter:
    """Build the match rule for ``config``.

    Raises:
        dbus_fast.errors.InvalidObjectPathError: ``config.path`` is not a
            valid D-Bus object path.
    """
    assert_object_path_valid(config.path)
    return SubscriptionFilter(path=config.path)


def to_wire_string(subscription: SubscriptionFilter) -> str:
    """Match-rule text for ``subscription``, as passed to ``AddMatch``."""
    return subscription.to_wire_string()
