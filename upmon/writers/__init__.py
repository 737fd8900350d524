"""Output writers for change records.

Import any writer you need directly from this package::

    from upmon.writers import StreamWriter, FileWriter, create_writer
"""

from __future__ import annotations

from pathlib import Path

from upmon.writers.base import Writer, WriterConfig, format_timestamp
from upmon.writers.callback import CallbackWriter
from upmon.writers.console import StreamWriter
from upmon.writers.file import FileWriter

__all__ = [
    "CallbackWriter",
    "FileWriter",
    "StreamWriter",
    "Writer",
    "WriterConfig",
    "create_writer",
    "format_timestamp",
]


def create_writer(
    output_file: str | Path | None = None,
    *,
    separator: str = "=",
    delimiter: str = " ",
    timestamp: bool = False,
) -> Writer:
    """Return a :class:`FileWriter` for ``output_file``, or a stdout :class:`StreamWriter`.

    The writer is not connected yet; use it as an async context manager
    or call ``connect()``.
    """
    if output_file:
        return FileWriter(output_file, separator=separator, delimiter=delimiter, timestamp=timestamp)
    return StreamWriter(separator=separator, delimiter=delimiter, timestamp=timestamp)
