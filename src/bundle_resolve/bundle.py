"""The resolution target: input stream plus device metadata."""

from __future__ import annotations

import inspect
from typing import Awaitable, Callable, Optional, Protocol, Union


class ArchiveStream(Protocol):
    """Anything with an awaitable ``read(n)``, e.g. asyncio.StreamReader."""

    async def read(self, n: int = -1) -> bytes: ...


DockerfileHook = Callable[[str], Union[None, Awaitable[None]]]


def _empty_hook(contents: str) -> None:
    return None


class Bundle:
    """
    A tar archive stream together with the device it is being resolved for.

    Args:
        archive_stream: Stream producing the tar archive. It is read exactly once.
        device_type: Machine name of the targeted device (e.g. 'raspberrypi3').
        architecture: Architecture of the targeted device (e.g. 'armv7hf').
        hook: Called with the final Dockerfile text. May return an awaitable,
            which the resolver waits on before ending the output stream.
    """

    def __init__(
        self,
        archive_stream: ArchiveStream,
        device_type: str,
        architecture: str,
        hook: Optional[DockerfileHook] = None,
    ):
        self.archive_stream = archive_stream
        self.device_type = device_type
        self.architecture = architecture
        self._dockerfile_hook = hook or _empty_hook

    async def call_dockerfile_hook(self, contents: str) -> None:
        result = self._dockerfile_hook(contents)
        if inspect.isawaitable(result):
            await result
