"""Monitorable properties of the ``org.freedesktop.UPower.Device`` interface.

Only a small number of properties are supported.  Support for another
property is added by extending :class:`PropertyName` and the
``_PROPERTY_TABLE`` below; parsing, rendering and the ``--list-properties``
output all read from that one table.

See https://upower.freedesktop.org/docs/Device.html for every property
UPower exposes and its meaning.
"""

from __future__ import annotations

import math
from collections.abc import Callable
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, NamedTuple

try:
    from enum import StrEnum
except ImportError:  # Python < 3.11
    from enum import Enum

    class StrEnum(str, Enum):  # type: ignore[no-redef]
        """Minimal backport of ``enum.StrEnum`` for Python 3.10."""

from dbus_fast import Variant
from pydantic import BaseModel, StrictBool, StrictFloat, StrictInt, model_validator

from upmon.errors import PropertyRenderError, TypeMismatch, UnknownProperty

__all__ = [
    "ChangeRecord",
    "Property",
    "PropertyName",
    "names",
    "parse",
    "render",
]


class PropertyName(StrEnum):
    """Names of the properties upmon can monitor."""

    UPDATE_TIME = "UpdateTime"
    ONLINE = "Online"
    TIME_TO_EMPTY = "TimeToEmpty"
    TIME_TO_FULL = "TimeToFull"
    PERCENTAGE = "Percentage"
    IS_PRESENT = "IsPresent"
    STATE = "State"


# -----------------------------------------------------------------------
# Renderers
# -----------------------------------------------------------------------

_STATE_NAMES = (
    "Unknown",
    "Charging",
    "Discharging",
    "Empty",
    "FullyCharged",
    "PendingCharge",
    "PendingDischarge",
)


def _render_timestamp(seconds: int) -> str:
    try:
        dt = datetime.fromtimestamp(seconds, tz=timezone.utc)
    except (OverflowError, OSError, ValueError) as err:
        raise PropertyRenderError(f"Could not parse datetime from UpdateTime value {seconds}") from err
    return dt.strftime("%Y-%m-%dT%H:%M:%SZ")


def _render_duration(seconds: int) -> str:
    """Format seconds as ``HH:MM:SS``.  Hours are not wrapped at 24."""
    if seconds <= 0:
        return "00:00:00"
    hours, rest = divmod(seconds, 3600)
    minutes, secs = divmod(rest, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


def _render_bool(value: bool) -> str:
    return "true" if value else "false"


def _render_percentage(value: float) -> str:
    # 100.0 -> "100", 54.22 -> "54.22", 1e-05 -> "0.00001"
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "inf" if value > 0 else "-inf"
    return format(Decimal(repr(value)).normalize(), "f")


def _render_state(code: int) -> str:
    if 0 <= code < len(_STATE_NAMES):
        return _STATE_NAMES[code]
    raise PropertyRenderError(f"Unexpected value for State: {code}")


# -----------------------------------------------------------------------
# Property table
# -----------------------------------------------------------------------


class _PropertySpec(NamedTuple):
    signature: str
    renderer: Callable[[Any], str]


_PROPERTY_TABLE: dict[PropertyName, _PropertySpec] = {
    PropertyName.UPDATE_TIME: _PropertySpec("t", _render_timestamp),
    PropertyName.ONLINE: _PropertySpec("b", _render_bool),
    PropertyName.TIME_TO_EMPTY: _PropertySpec("x", _render_duration),
    PropertyName.TIME_TO_FULL: _PropertySpec("x", _render_duration),
    PropertyName.PERCENTAGE: _PropertySpec("d", _render_percentage),
    PropertyName.IS_PRESENT: _PropertySpec("b", _render_bool),
    PropertyName.STATE: _PropertySpec("u", _render_state),
}

# Inclusive bounds of the D-Bus integer types used above
_INT_BOUNDS: dict[str, tuple[int, int]] = {
    "t": (0, 2**64 - 1),
    "x": (-(2**63), 2**63 - 1),
    "u": (0, 2**32 - 1),
}


def _value_fits(signature: str, value: Any) -> bool:
    """Strict check of a plain Python value against a D-Bus signature."""
    if signature == "b":
        return type(value) is bool
    if signature == "d":
        return type(value) is float
    if signature in _INT_BOUNDS:
        if type(value) is not int:
            return False
        low, high = _INT_BOUNDS[signature]
        return low <= value <= high
    return False


# -----------------------------------------------------------------------
# Property model
# -----------------------------------------------------------------------


class Property(BaseModel):
    """A single typed property value.

    The payload type always matches the one mandated for ``name``;
    constructing a ``Property`` with a mismatching value raises a
    pydantic ``ValidationError``.  Use :func:`parse` to build one from a
    raw bus value.

    Attributes:
        name: Which UPower property this is.
        value: The typed payload (``bool``, ``int`` or ``float``).
    """

    model_config = {"frozen": True}

    name: PropertyName
    value: StrictBool | StrictInt | StrictFloat

    @model_validator(mode="after")
    def _check_payload_type(self) -> Property:
        signature = _PROPERTY_TABLE[self.name].signature
        if not _value_fits(signature, self.value):
            raise ValueError(
                f"{self.name} requires a value of D-Bus type '{signature}', got {self.value!r}"
            )
        return self

    def render(self) -> str:
        """Human-readable form of the value."""
        return _PROPERTY_TABLE[self.name].renderer(self.value)

    def __str__(self) -> str:
        return self.render()


ChangeRecord = dict[str, Property]
"""Requested property name -> new value, for one notification."""


def names() -> tuple[str, ...]:
    """Return every supported property name, in table order."""
    return tuple(name.value for name in _PROPERTY_TABLE)


def parse(name: str, raw_value: Any) -> Property:
    """Convert a raw value from a ``PropertiesChanged`` signal to a :class:`Property`.

    ``raw_value`` is normally a :class:`dbus_fast.Variant`, whose
    signature must match exactly.  Plain Python values are accepted too
    and checked strictly; nothing is coerced.

    Raises:
        UnknownProperty: ``name`` is not a supported property.
        TypeMismatch: ``raw_value`` has the wrong type for ``name``.
    """
    try:
        pname = PropertyName(name)
    except ValueError:
        raise UnknownProperty(name) from None

    signature = _PROPERTY_TABLE[pname].signature
    if isinstance(raw_value, Variant):
        if raw_value.signature != signature:
            raise TypeMismatch(name, signature, raw_value.signature)
        value = raw_value.value
    else:
        value = raw_value

    if not _value_fits(signature, value):
        raise TypeMismatch(name, signature, type(value).__name__)
    return Property(name=pname, value=value)


def render(prop: Property) -> str:
    """Render ``prop`` as a string.  See :meth:`Property.render`."""
    return prop.render()
