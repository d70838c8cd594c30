"""Shared fixtures: in-memory archives and a helper that runs a full resolution."""

import io
import tarfile
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

import pytest

from bundle_resolve import Bundle, BytesReader, VersionCatalog, get_default_resolvers, resolve_input

# Enable pytest-asyncio
pytest_plugins = ("pytest_asyncio",)

NODE_VERSIONS = ["0.10.22", "4.2.1", "6.9.0", "6.10.3", "8.1.0", "latest", "slim"]


def build_archive(files, format=tarfile.PAX_FORMAT) -> bytes:
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w", format=format) as tar:
        for name, contents in files.items():
            if contents is None:
                info = tarfile.TarInfo(name)
                info.type = tarfile.DIRTYPE
                info.mode = 0o755
                tar.addfile(info)
                continue
            if isinstance(contents, str):
                contents = contents.encode("utf-8")
            info = tarfile.TarInfo(name)
            info.size = len(contents)
            tar.addfile(info, io.BytesIO(contents))
    return buf.getvalue()


def extract_archive(data: bytes) -> List[Tuple[str, bytes]]:
    entries = []
    with tarfile.open(fileobj=io.BytesIO(data), mode="r") as tar:
        for member in tar:
            f = tar.extractfile(member)
            entries.append((member.name, f.read() if f is not None else b""))
    return entries


@dataclass
class Resolution:
    raw: bytes
    entries: List[Tuple[str, bytes]]
    events: Dict[str, list]
    hook_calls: List[str] = field(default_factory=list)

    @property
    def names(self) -> List[str]:
        return [name for name, _ in self.entries]

    def file(self, name: str) -> str:
        # Later entries override earlier ones when the archive is extracted
        matches = [contents for entry_name, contents in self.entries if entry_name == name]
        assert matches, f"{name} not in {self.names}"
        return matches[-1].decode("utf-8")


@pytest.fixture
def make_archive():
    return build_archive


@pytest.fixture
def read_archive():
    return extract_archive


@pytest.fixture
def fetched_device_types():
    return []


@pytest.fixture
def catalog(fetched_device_types):
    def fetch(device_type):
        fetched_device_types.append(device_type)
        return list(NODE_VERSIONS)

    return VersionCatalog(fetch=fetch)


@pytest.fixture
def resolve_archive(catalog):
    """Runs ``files`` (a dict or raw archive bytes) through resolve_input."""

    async def run(
        files,
        device_type: str = "",
        architecture: str = "",
        dockerfile: Optional[str] = None,
        resolvers=None,
        hook=None,
        chunk_size: Optional[int] = None,
    ) -> Resolution:
        data = files if isinstance(files, bytes) else build_archive(files)
        events = defaultdict(list)
        hook_calls: List[str] = []

        def record(event):
            return lambda *args: events[event].append(args[0] if args else None)

        bundle = Bundle(
            BytesReader(data, chunk_size),
            device_type,
            architecture,
            hook or hook_calls.append,
        )
        listeners = {
            event: [record(event)] for event in ("resolver", "resolved-name", "error", "end")
        }
        output = resolve_input(
            bundle,
            resolvers if resolvers is not None else get_default_resolvers(catalog),
            listeners,
            dockerfile,
        )
        raw = await output.read()
        return Resolution(raw, extract_archive(raw), events, hook_calls)

    return run
