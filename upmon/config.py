"""Configuration loader for upmon YAML files.

Parses YAML files with the following top-level sections::

    devices:     # devices to monitor and their properties
    output:      # output file and line format
    log_level:   # logging level name

Example:

.. code-block:: yaml

    devices:
      - path: /org/freedesktop/UPower/devices/DisplayDevice
        properties: [Percentage, State]
      - path: /org/freedesktop/UPower/devices/line_power_AC
        properties: Online

    output:
      file: /var/log/upmon.log
      separator: "="
      delimiter: " "
      timestamp: true

    log_level: INFO
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field, ValidationError

from upmon.errors import ConfigError
from upmon.targets import DeviceTargetConfig

__all__ = ["MonitorYAMLConfig", "OutputConfig", "load_yaml_config"]

logger = logging.getLogger("upmon.config")


class OutputConfig(BaseModel):
    """Output section of the YAML file.

    Attributes:
        file: Append records to this file.  ``None`` writes to stdout.
        separator: Between a property name and its value.
        delimiter: Between property-value pairs.
        timestamp: Prefix each line with an ISO 8601 timestamp.
    """

    file: str | None = None
    separator: str = "="
    delimiter: str = " "
    timestamp: bool = False


class MonitorYAMLConfig(BaseModel):
    """Parsed representation of the full YAML configuration.

    Attributes:
        devices: Validated device configurations.
        output: Output destination and line format.
        log_level: Logging level string.
    """

    devices: list[DeviceTargetConfig] = Field(default_factory=list)
    output: OutputConfig = Field(default_factory=OutputConfig)
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "WARNING"


def load_yaml_config(path: str | Path) -> MonitorYAMLConfig:
    """Load and validate a YAML configuration file.

    Raises:
        FileNotFoundError: ``path`` does not exist.
        ConfigError: the file is not a valid configuration.  Device
            errors are raised as the specific :class:`ConfigError`
            subclass (e.g. :class:`UnrecognizedProperty`).
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with path.open("r") as fh:
        try:
            raw = yaml.safe_load(fh) or {}
        except yaml.YAMLError as err:
            raise ConfigError(f"Invalid YAML in {path}: {err}") from err

    if not isinstance(raw, dict):
        raise ConfigError(f"Config file {path} must contain a mapping at the top level")

    devices = _parse_devices(raw.get("devices") or [])

    try:
        config = MonitorYAMLConfig(
            devices=devices,
            output=OutputConfig.model_validate(raw.get("output") or {}),
            log_level=str(raw.get("log_level", "WARNING")).upper(),
        )
    except ValidationError as err:
        raise ConfigError(f"Invalid configuration in {path}: {err}") from err

    logger.info("Loaded config: %d devices", len(config.devices))
    return config


def _parse_devices(entries: list[Any]) -> list[DeviceTargetConfig]:
    """Convert raw YAML device entries into ``DeviceTargetConfig`` instances."""
    devices: list[DeviceTargetConfig] = []
    for entry in entries:
        if not isinstance(entry, dict) or "path" not in entry:
            raise ConfigError(f"Device entry must be a mapping with a 'path' key: {entry!r}")
        properties = entry.get("properties") or ""
        # Accept either a YAML list or the CLI's comma-delimited form
        if isinstance(properties, list):
            properties = ",".join(str(p) for p in properties)
        devices.append(DeviceTargetConfig.create(str(entry["path"]), str(properties)))
    return devices
