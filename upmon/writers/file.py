"""File writer - appends change records to a log file."""

from __future__ import annotations

import io
import logging
from pathlib import Path
from typing import Any

from upmon.properties import ChangeRecord
from upmon.writers.base import Writer

__all__ = ["FileWriter"]

logger = logging.getLogger("upmon.writers.file")


class FileWriter(Writer):
    """Append lines to a file, creating it if necessary.

    Each line is flushed as soon as it is written so that a failing
    device (full disk, closed file) surfaces from :meth:`write`.

    Parameters:
        path: File to append to.
        **kwargs: Forwarded to :class:`Writer`.
    """

    def __init__(self, path: str | Path, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._path = Path(path)
        self._file: io.TextIOWrapper | None = None

    @property
    def path(self) -> Path:
        return self._path

    async def connect(self) -> None:
        if self._file is None or self._file.closed:
            self._file = open(self._path, "a", encoding="utf-8")  # noqa: SIM115
            logger.info("FileWriter appending to %s", self._path)

    async def _emit(self, device_path: str, changes: ChangeRecord, line: str) -> None:
        if self._file is None or self._file.closed:
            raise OSError(f"Output file {self._path} is not open")
        self._file.write(line)
        self._file.flush()

    async def flush(self) -> None:
        if self._file and not self._file.closed:
            self._file.flush()

    async def close(self) -> None:
        if self._file and not self._file.closed:
            self._file.close()
        self._file = None
