"""Writer abstraction - one output line per change record.

Provides:
- ``WriterConfig`` - line formatting knobs (separator, delimiter, timestamp).
- ``Writer``       - abstract base class every concrete writer implements.
                     Serialises concurrent ``write()`` calls with a lock so
                     lines from different devices never interleave.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel

from upmon.properties import ChangeRecord

__all__ = ["Writer", "WriterConfig", "format_timestamp"]

# -----------------------------------------------------------------------
# Line format configuration
# -----------------------------------------------------------------------


class WriterConfig(BaseModel):
    """Line formatting knobs.

    Attributes:
        separator: Placed between a property name and its value.
        delimiter: Placed between two ``name<separator>value`` pairs.
        timestamp: Prefix each line with the current UTC time.
    """

    separator: str = "="
    delimiter: str = " "
    timestamp: bool = False


def format_timestamp(now: datetime | None = None) -> str:
    """ISO 8601 UTC timestamp with millisecond precision, e.g. ``2024-02-11T17:19:36.123Z``."""
    now = (now or datetime.now(timezone.utc)).astimezone(timezone.utc)
    return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"


# -----------------------------------------------------------------------
# Writer ABC
# -----------------------------------------------------------------------


class Writer(ABC):
    """Abstract base class for all writers.

    Concrete writers implement ``_emit`` (deliver one finished line) and
    may override ``connect``, ``flush`` and ``close``.  ``write`` formats
    the line and emits it while holding the writer's lock.
    """

    def __init__(
        self,
        *,
        separator: str = "=",
        delimiter: str = " ",
        timestamp: bool = False,
    ) -> None:
        self.writer_config = WriterConfig(
            separator=separator,
            delimiter=delimiter,
            timestamp=timestamp,
        )
        self._lock = asyncio.Lock()

    def format_line(self, device_path: str, changes: ChangeRecord) -> str:
        """Return the newline-terminated output line for one record."""
        cfg = self.writer_config
        props = cfg.delimiter.join(f"{name}{cfg.separator}{prop.render()}" for name, prop in changes.items())
        prefix = f"{format_timestamp()} " if cfg.timestamp else ""
        return f"{prefix}{device_path} {props}\n"

    async def write(self, device_path: str, changes: ChangeRecord) -> None:
        """Write the changes of one notification as a single line.

        Raises:
            OSError: the line could not be written.  Not retried.
        """
        async with self._lock:
            line = self.format_line(device_path, changes)
            await self._emit(device_path, changes, line)

    async def connect(self) -> None:
        """Open resources.  Default: nothing to open."""

    async def flush(self) -> None:
        """Flush buffered output.  Default: nothing buffered."""

    async def close(self) -> None:
        """Release resources.  Default: nothing to release."""

    async def __aenter__(self) -> Writer:
        await self.connect()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    @abstractmethod
    async def _emit(self, device_path: str, changes: ChangeRecord, line: str) -> None:
        """Deliver one formatted line.  Called with the writer lock held."""
