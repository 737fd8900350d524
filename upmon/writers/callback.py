"""Callback writer - hands change records to a user-provided callable.

Lets embedding code receive structured records instead of text lines::

    writer = CallbackWriter(lambda path, changes: print(path, changes))
"""

from __future__ import annotations

import asyncio
import inspect
from typing import Any, Callable

from upmon.properties import ChangeRecord
from upmon.writers.base import Writer

__all__ = ["CallbackWriter"]


class CallbackWriter(Writer):
    """Wraps a user-supplied function as a writer.

    The callable receives ``(device_path, changes)`` for every record,
    one call at a time.  It can be a regular function or a coroutine
    function; exceptions it raises propagate to the listener.

    Parameters:
        callback: ``(device_path: str, changes: ChangeRecord) -> None`` or async variant.
        **kwargs: Forwarded to :class:`Writer`.
    """

    def __init__(self, callback: Callable[[str, ChangeRecord], Any], **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._callback = callback
        self._is_async = inspect.iscoroutinefunction(callback)

    async def _emit(self, device_path: str, changes: ChangeRecord, line: str) -> None:
        if self._is_async:
            await self._callback(device_path, changes)
        else:
            # Run sync callback in executor to avoid blocking the event loop
            loop = asyncio.get_running_loop()
            await loop.run_in_executor(None, self._callback, device_path, changes)
