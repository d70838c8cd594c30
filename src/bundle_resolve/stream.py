"""The readable archive stream returned by the resolution engine."""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from typing import Callable, Dict, List, Optional

from .errors import OutputClosedError

logger = logging.getLogger(__name__)

Listener = Callable[..., object]

# Events emitted on a ResolvedArchive.
RESOLVER = "resolver"
RESOLVED_NAME = "resolved-name"
ERROR = "error"
END = "end"

_EOF = object()


class ResolvedArchive:
    """
    An asynchronous stream of tar archive bytes, produced while the input is resolved.

    Iterate it (``async for chunk in archive``) or ``await archive.read()``. The
    producer waits whenever ``high_water_mark`` chunks are pending, so a consumer
    that stops reading stops the resolution too.

    Lifecycle events are delivered to listeners registered with ``on``:
      - 'resolver': name of the resolver that produced the Dockerfile
      - 'resolved-name': output path of a caller-specified Dockerfile
      - 'error': the exception that ended the resolution
      - 'end': the consumer has read the whole archive

    A failed resolution is also raised from iteration, after the 'error' event.
    """

    def __init__(self, high_water_mark: int = 16):
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=high_water_mark)
        self._listeners: Dict[str, List[Listener]] = defaultdict(list)
        self._error: Optional[BaseException] = None
        self._finished = False
        self._closed = False
        self._ended = False
        self._task: Optional[asyncio.Task] = None

    def on(self, event: str, listener: Listener) -> ResolvedArchive:
        self._listeners[event].append(listener)
        return self

    def emit(self, event: str, *args: object) -> None:
        for listener in list(self._listeners.get(event, ())):
            try:
                listener(*args)
            except Exception:
                logger.exception("Listener for '%s' raised", event)

    def has_listeners(self, event: str) -> bool:
        return bool(self._listeners.get(event))

    @property
    def error(self) -> Optional[BaseException]:
        return self._error

    @property
    def finished(self) -> bool:
        return self._finished

    # -- producer side --------------------------------------------------------

    async def write(self, chunk: bytes) -> None:
        if self._closed:
            raise OutputClosedError("Output stream was closed by the consumer")
        if self._finished:
            raise RuntimeError("write() after the stream was finished")
        await self._queue.put(chunk)
        if self._closed:
            raise OutputClosedError("Output stream was closed by the consumer")

    async def finish(self) -> None:
        """Signals that the archive is complete."""
        self._finished = True
        if not self._closed:
            await self._queue.put(_EOF)

    def fail(self, error: BaseException) -> None:
        """Ends the stream with ``error``; pending data is discarded."""
        if self._finished:
            return
        self._finished = True
        self._error = error
        self._discard_pending()
        self._queue.put_nowait(_EOF)
        if self.has_listeners(ERROR):
            self.emit(ERROR, error)
        else:
            logger.error("Unhandled error while resolving bundle: %s", error, exc_info=error)

    def attach(self, task: asyncio.Task) -> None:
        self._task = task

    async def wait(self) -> None:
        """Waits for the producing task, without consuming the stream."""
        if self._task is not None:
            await asyncio.shield(self._task)

    # -- consumer side --------------------------------------------------------

    def __aiter__(self) -> ResolvedArchive:
        return self

    async def __anext__(self) -> bytes:
        if self._closed or self._ended:
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _EOF:
            self._ended = True
            if self._error is not None:
                raise self._error
            self.emit(END)
            raise StopAsyncIteration
        return item

    async def read(self) -> bytes:
        """Reads the whole archive, raising the resolution error if there was one."""
        parts = []
        async for chunk in self:
            parts.append(chunk)
        return b"".join(parts)

    def close(self) -> None:
        """Stops consuming; the resolution fails with OutputClosedError at its next write."""
        self._closed = True
        self._discard_pending()

    def _discard_pending(self) -> None:
        while True:
            try:
                self._queue.get_nowait()
            except asyncio.QueueEmpty:
                break
