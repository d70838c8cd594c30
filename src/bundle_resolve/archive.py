"""Single-pass tar archive reading and writing over asynchronous byte streams.

Only the header encoding is delegated to :mod:`tarfile`; the framing is handled
here so that an archive can be consumed entry by entry while it is still
arriving, and re-emitted without holding it in memory.

A tar archive is a sequence of 512-byte blocks:
  - a header block per entry (optionally preceded by GNU long-name or pax
    extended header entries),
  - the entry data, padded with NULs to a block boundary,
  - two zero blocks marking the end of the archive.
"""

from __future__ import annotations

import asyncio
import io
import logging
import tarfile
from typing import BinaryIO, Dict, Optional, Protocol

from .errors import ArchiveError
from .file_info import FileInfo

logger = logging.getLogger(__name__)

BLOCKSIZE = tarfile.BLOCKSIZE
RECORDSIZE = tarfile.RECORDSIZE
CHUNK_SIZE = 64 * 1024
ENCODING = "utf-8"

# Generated entries get a fixed timestamp (1980-01-01 00:00:00) so that the
# same input always produces the same archive.
DETERMINISTIC_MTIME = 315532800

_ZERO_BLOCK = tarfile.NUL * BLOCKSIZE


class ByteSink(Protocol):
    async def write(self, data: bytes) -> None: ...


class BytesReader:
    """Serves an in-memory archive through the asynchronous ``read`` interface."""

    def __init__(self, data: bytes, chunk_size: Optional[int] = None):
        self._buffer = io.BytesIO(data)
        self._chunk_size = chunk_size

    async def read(self, n: int = -1) -> bytes:
        if self._chunk_size is not None and (n < 0 or n > self._chunk_size):
            n = self._chunk_size
        return self._buffer.read(n)


class FileReader:
    """Reads a blocking binary file object without stalling the event loop."""

    def __init__(self, fileobj: BinaryIO):
        self._fileobj = fileobj

    async def read(self, n: int = -1) -> bytes:
        return await asyncio.to_thread(self._fileobj.read, n)


def _padding(size: int) -> int:
    remainder = size % BLOCKSIZE
    return BLOCKSIZE - remainder if remainder else 0


def _nts(data: bytes) -> str:
    return data.split(tarfile.NUL, 1)[0].decode(ENCODING, "surrogateescape")


def _has_data(info: tarfile.TarInfo) -> bool:
    # Same rule tarfile uses: only regular files and unknown types carry data.
    return info.isreg() or info.type not in tarfile.SUPPORTED_TYPES


def parse_pax_headers(data: bytes) -> Dict[str, str]:
    """Parses pax extended header records of the form b'<len> <key>=<value>\\n'."""
    headers: Dict[str, str] = {}
    pos = 0
    while pos < len(data) and data[pos : pos + 1] != tarfile.NUL:
        try:
            space = data.index(b" ", pos)
            length = int(data[pos:space])
        except ValueError as error:
            raise ArchiveError(f"Invalid pax header record at offset {pos}") from error
        if length <= 0:
            raise ArchiveError(f"Invalid pax header record at offset {pos}")
        record = data[space + 1 : pos + length - 1]
        key, sep, value = record.partition(b"=")
        if not sep:
            raise ArchiveError(f"Invalid pax header record at offset {pos}")
        headers[key.decode("utf-8")] = value.decode("utf-8", "surrogateescape")
        pos += length
    return headers


def _apply_pax(info: tarfile.TarInfo, headers: Dict[str, str]) -> None:
    if "path" in headers:
        info.name = headers["path"]
        if info.isdir():
            info.name = info.name.rstrip("/")
    if "linkpath" in headers:
        info.linkname = headers["linkpath"]
    if "size" in headers:
        try:
            info.size = int(headers["size"])
        except ValueError as error:
            raise ArchiveError(f"Invalid pax size for {info.name}") from error


def make_tar_info(file: FileInfo, mtime: int = DETERMINISTIC_MTIME) -> tarfile.TarInfo:
    """Builds the header for a generated regular file."""
    info = tarfile.TarInfo(file.name)
    info.size = file.size
    info.mode = 0o644
    info.mtime = mtime
    return info


class TarEntry:
    """
    The data of one archive entry, readable only while it is the current entry.

    Advancing the reader drains whatever has not been read.
    """

    def __init__(self, reader: TarReader, info: tarfile.TarInfo, size: int):
        self.info = info
        self.size = size
        self._reader = reader
        self._remaining = size

    @property
    def name(self) -> str:
        return self.info.name

    @property
    def remaining(self) -> int:
        return self._remaining

    async def read(self, n: int = CHUNK_SIZE) -> bytes:
        if self._remaining <= 0:
            return b""
        chunk = await self._reader._stream.read(min(n, self._remaining))
        if not chunk:
            raise ArchiveError(f"Unexpected end of archive in entry {self.info.name}")
        self._remaining -= len(chunk)
        return chunk

    async def read_all(self) -> bytes:
        parts = []
        while True:
            chunk = await self.read()
            if not chunk:
                break
            parts.append(chunk)
        return b"".join(parts)

    async def drain(self) -> None:
        while await self.read():
            pass


class TarReader:
    """
    Iterates the entries of a tar archive arriving on an asynchronous stream.

    Exactly one entry is in flight at a time:

        async for entry in TarReader(stream):
            data = await entry.read_all()
    """

    def __init__(self, stream):
        self._stream = stream
        self._current: Optional[TarEntry] = None
        self._global_pax: Dict[str, str] = {}
        self._finished = False

    def __aiter__(self) -> TarReader:
        return self

    async def __anext__(self) -> TarEntry:
        entry = await self.next_entry()
        if entry is None:
            raise StopAsyncIteration
        return entry

    async def next_entry(self) -> Optional[TarEntry]:
        if self._finished:
            return None

        if self._current is not None:
            await self._current.drain()
            await self._skip(_padding(self._current.size))
            self._current = None

        info = await self._read_header()
        if info is None:
            self._finished = True
            await self._drain_trailer()
            return None

        if _has_data(info):
            size = info.size
        else:
            size = info.size = 0
        self._current = TarEntry(self, info, size)
        return self._current

    async def _read_header(self) -> Optional[tarfile.TarInfo]:
        pax: Dict[str, str] = {}
        long_name: Optional[str] = None
        long_link: Optional[str] = None

        while True:
            block = await self._read_exact(BLOCKSIZE)
            if not block:
                # Some producers stop without the end-of-archive blocks.
                return None
            if len(block) < BLOCKSIZE:
                raise ArchiveError("Unexpected end of archive while reading a header")
            if block == _ZERO_BLOCK:
                return None

            try:
                info = tarfile.TarInfo.frombuf(block, ENCODING, "surrogateescape")
            except tarfile.TarError as error:
                raise ArchiveError(f"Invalid tar header: {error}") from error

            if info.type == tarfile.GNUTYPE_LONGNAME:
                long_name = _nts(await self._read_payload(info.size))
            elif info.type == tarfile.GNUTYPE_LONGLINK:
                long_link = _nts(await self._read_payload(info.size))
            elif info.type == tarfile.XHDTYPE:
                pax.update(parse_pax_headers(await self._read_payload(info.size)))
            elif info.type == tarfile.XGLTYPE:
                self._global_pax.update(
                    parse_pax_headers(await self._read_payload(info.size))
                )
            else:
                break

        if long_name is not None:
            info.name = long_name.rstrip("/") if info.isdir() else long_name
        if long_link is not None:
            info.linkname = long_link
        if self._global_pax:
            _apply_pax(info, self._global_pax)
        if pax:
            _apply_pax(info, pax)
            info.pax_headers = pax
        return info

    async def _read_payload(self, size: int) -> bytes:
        data = await self._read_exact(size)
        if len(data) < size:
            raise ArchiveError("Unexpected end of archive in an extended header")
        await self._skip(_padding(size))
        return data

    async def _read_exact(self, n: int) -> bytes:
        parts = []
        remaining = n
        while remaining > 0:
            chunk = await self._stream.read(remaining)
            if not chunk:
                break
            parts.append(chunk)
            remaining -= len(chunk)
        return b"".join(parts)

    async def _skip(self, n: int) -> None:
        if n and len(await self._read_exact(n)) < n:
            raise ArchiveError("Unexpected end of archive while skipping padding")

    async def _drain_trailer(self) -> None:
        # Consume the second zero block and record padding so the producer can finish.
        while await self._stream.read(CHUNK_SIZE):
            pass


class TarWriter:
    """Writes a tar archive to an asynchronous sink, one entry at a time."""

    def __init__(self, sink: ByteSink, format: int = tarfile.PAX_FORMAT):
        self._sink = sink
        self._format = format
        self._offset = 0
        self._closed = False

    async def add_file(self, info: tarfile.TarInfo, contents: bytes) -> None:
        if info.size != len(contents):
            raise ValueError(f"Header size does not match contents for {info.name}")
        await self._write_header(info)
        if contents:
            await self._write(contents)
            await self._pad(len(contents))

    async def add_stream(self, info: tarfile.TarInfo, source: TarEntry) -> None:
        """Copies an entry straight from a reader without buffering it whole."""
        await self._write_header(info)
        copied = 0
        while True:
            chunk = await source.read(CHUNK_SIZE)
            if not chunk:
                break
            await self._write(chunk)
            copied += len(chunk)
        if copied != info.size:
            raise ArchiveError(
                f"Entry {info.name} produced {copied} bytes, expected {info.size}"
            )
        await self._pad(copied)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self._write(_ZERO_BLOCK * 2)
        remainder = self._offset % RECORDSIZE
        if remainder:
            await self._write(tarfile.NUL * (RECORDSIZE - remainder))

    async def _write_header(self, info: tarfile.TarInfo) -> None:
        if self._closed:
            raise ArchiveError("Cannot add entries to a finalized archive")
        await self._write(info.tobuf(self._format, ENCODING, "surrogateescape"))

    async def _pad(self, size: int) -> None:
        padding = _padding(size)
        if padding:
            await self._write(tarfile.NUL * padding)

    async def _write(self, data: bytes) -> None:
        await self._sink.write(data)
        self._offset += len(data)
