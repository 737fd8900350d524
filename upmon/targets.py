"""Device target configuration - which properties to watch on which device."""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any

from pydantic import BaseModel, field_validator

from upmon.errors import EmptyTargetList, OddArgumentCount, TypeMismatch, UnrecognizedProperty
from upmon.properties import ChangeRecord, names, parse

__all__ = ["DeviceTargetConfig"]

logger = logging.getLogger("upmon.targets")


class DeviceTargetConfig(BaseModel):
    """A single configured device.

    Attributes:
        path: The device's D-Bus object path.  Stored verbatim; syntax is
              checked when the subscription filter is built.
        targets: Names of the properties to monitor for this device.
    """

    model_config = {"frozen": True}

    path: str
    targets: tuple[str, ...]

    @field_validator("targets")
    @classmethod
    def _check_targets(cls, targets: tuple[str, ...]) -> tuple[str, ...]:
        if not targets:
            raise EmptyTargetList()
        known = names()
        for target in targets:
            if target not in known:
                raise UnrecognizedProperty(target)
        return targets

    # ------------------------------------------------------------------
    # Construction from user input
    # ------------------------------------------------------------------

    @classmethod
    def create(cls, path: str, targets: str) -> DeviceTargetConfig:
        """Build a config from a path and a comma-delimited property list.

        Raises:
            EmptyTargetList: ``targets`` is empty.
            UnrecognizedProperty: a listed property is not supported.
        """
        if not targets:
            raise EmptyTargetList(path)
        tokens = targets.split(",")
        known = names()
        for token in tokens:
            if token not in known:
                raise UnrecognizedProperty(token)
        return cls(path=path, targets=tuple(tokens))

    @classmethod
    def create_many(cls, args: Sequence[str]) -> list[DeviceTargetConfig]:
        """Build configs from a flat ``[path, targets, path, targets, ...]`` list.

        Raises:
            OddArgumentCount: ``args`` does not hold complete pairs.
            EmptyTargetList, UnrecognizedProperty: from :meth:`create`,
                for the first invalid pair.
        """
        if len(args) % 2 != 0:
            raise OddArgumentCount(len(args))
        return [cls.create(args[i], args[i + 1]) for i in range(0, len(args), 2)]

    # ------------------------------------------------------------------
    # Notification handling
    # ------------------------------------------------------------------

    def collect_changes(self, changed: Mapping[str, Any]) -> ChangeRecord:
        """Pick the targeted properties out of a ``PropertiesChanged`` mapping.

        Targets absent from ``changed`` are skipped.  A target present with
        the wrong type is logged and left out rather than coerced.
        """
        changes: ChangeRecord = {}
        for target in self.targets:
            if target not in changed:
                continue
            try:
                changes[target] = parse(target, changed[target])
            except TypeMismatch as exc:
                logger.warning("Ignoring %s on %s: %s", target, self.path, exc)
        return changes
