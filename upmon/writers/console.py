"""Stream writer - prints change records to stdout or any text stream."""

from __future__ import annotations

import sys
from typing import IO

from upmon.properties import ChangeRecord
from upmon.writers.base import Writer

__all__ = ["StreamWriter"]


class StreamWriter(Writer):
    """Writes lines to a text stream (``sys.stdout`` by default).

    Parameters:
        stream: Writable file-like object.  Never closed by the writer.
        **kwargs: Forwarded to :class:`Writer`.
    """

    def __init__(self, *, stream: IO[str] | None = None, **kwargs) -> None:
        super().__init__(**kwargs)
        self._stream = stream or sys.stdout

    async def _emit(self, device_path: str, changes: ChangeRecord, line: str) -> None:
        self._stream.write(line)
        self._stream.flush()

    async def flush(self) -> None:
        self._stream.flush()
