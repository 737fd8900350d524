"""upmon - monitor UPower devices over D-Bus and report property changes
as easily parsable lines.

Quick start::

    from upmon import DeviceTargetConfig, Monitor
    from upmon.writers import StreamWriter

    configs = DeviceTargetConfig.create_many(
        ["/org/freedesktop/UPower/devices/DisplayDevice", "Percentage,State"]
    )
    Monitor(configs, StreamWriter(timestamp=True)).run()
"""

from __future__ import annotations

from upmon.filters import SubscriptionFilter
from upmon.monitor import Monitor, run_all
from upmon.properties import ChangeRecord, Property, PropertyName
from upmon.targets import DeviceTargetConfig

__all__ = [
    "ChangeRecord",
    "DeviceTargetConfig",
    "Monitor",
    "Property",
    "PropertyName",
    "SubscriptionFilter",
    "run_all",
]

__version__ = "0.1.0"
