"""Resolution of a bundle's tar stream into a Docker-compatible tar stream.

The input archive is read once. Entries that no resolver cares about are
piped straight to the output; entries a resolver asked for are read into
memory, handed to the resolvers and then written out unchanged. Once the input
ends, the highest priority satisfied resolver generates the Dockerfile, which
is appended to the output before the archive is finalized.
"""

from __future__ import annotations

import asyncio
import enum
import hashlib
import logging
from typing import Callable, Dict, Iterable, List, Mapping, Optional

from .archive import TarEntry, TarReader, TarWriter, make_tar_info
from .bundle import Bundle
from .errors import ResolutionError, SpecifiedDockerfileNotFoundError
from .file_info import FileInfo
from .resolver import Resolver
from .resolvers import (
    ArchDockerfileResolver,
    DockerfileResolver,
    DockerfileTemplateResolver,
    NodeResolver,
)
from .stream import RESOLVED_NAME, RESOLVER, ResolvedArchive
from .utils import normalize_tar_entry
from .versions import VersionCatalog

logger = logging.getLogger(__name__)

ResolveListeners = Mapping[str, Iterable[Callable[..., object]]]


class RunState(str, enum.Enum):
    STREAMING = "streaming"
    DECIDING = "deciding"
    EMITTING = "emitting"
    DONE = "done"
    FAILED = "failed"


def get_default_resolvers(catalog: Optional[VersionCatalog] = None) -> List[Resolver]:
    """Returns a fresh set of the built-in resolvers; never reuse one across bundles."""
    return [
        DockerfileResolver(),
        DockerfileTemplateResolver(),
        ArchDockerfileResolver(),
        NodeResolver(catalog),
    ]


def _digest(contents: bytes) -> str:
    return hashlib.sha256(contents).hexdigest()


def _by_priority(resolvers: Iterable[Resolver]) -> List[Resolver]:
    # sorted() is stable, so equal priorities keep the caller's order
    return sorted(resolvers, key=lambda r: r.priority, reverse=True)


def resolve_input(
    bundle: Bundle,
    resolvers: Optional[List[Resolver]] = None,
    listeners: Optional[ResolveListeners] = None,
    dockerfile: Optional[str] = None,
) -> ResolvedArchive:
    """
    Reads ``bundle.archive_stream`` and resolves it to a Docker-compatible archive.

    Must be called from a running event loop. The returned stream is filled in
    the background while it is consumed.

    Args:
        bundle: Bundle including the input archive stream.
        resolvers: Resolver instances to choose from. Defaults to a fresh
            get_default_resolvers().
        listeners: Event listeners ('resolver', 'resolved-name', 'error', 'end'),
            attached before resolution starts so that no event is missed. Always
            handle 'error', or consume the stream, which raises the error.
        dockerfile: User-selected Dockerfile path (docker-compose `dockerfile:`).
            Only that file is resolved when given.
    """
    output = ResolvedArchive()
    for event, event_listeners in (listeners or {}).items():
        for listener in event_listeners:
            output.on(event, listener)

    if resolvers is None:
        resolvers = get_default_resolvers()
    run = ResolutionRun(bundle, resolvers, output, dockerfile)
    output.attach(asyncio.get_running_loop().create_task(run.execute()))
    return output


class ResolutionRun:
    """One pass of a bundle through the resolvers."""

    def __init__(
        self,
        bundle: Bundle,
        resolvers: List[Resolver],
        output: ResolvedArchive,
        dockerfile: Optional[str] = None,
    ):
        self.bundle = bundle
        self.resolvers = list(resolvers)
        self.output = output
        # Ensure that this will match the entry in the tar archive
        self.dockerfile = normalize_tar_entry(dockerfile) if dockerfile is not None else None
        self.specified_resolver: Optional[Resolver] = None
        self.state = RunState.STREAMING
        self._writer = TarWriter(output)
        # Digests of the buffered input entries, by normalized name
        self._inputs: Dict[str, str] = {}

    async def execute(self) -> None:
        try:
            async for entry in TarReader(self.bundle.archive_stream):
                await self._on_entry(entry)
            self.state = RunState.DECIDING
            await self._on_finish()
            self.state = RunState.DONE
        except Exception as error:
            self.state = RunState.FAILED
            logger.debug("Resolution failed: %s", error)
            self.output.fail(error)
        except asyncio.CancelledError:
            self.state = RunState.FAILED
            self.output.fail(ResolutionError("Resolution was cancelled"))
            raise

    async def _on_entry(self, entry: TarEntry) -> None:
        name = normalize_tar_entry(entry.name)
        if not name:
            await entry.drain()
            return

        if self.dockerfile is not None:
            if self.specified_resolver is None and name == self.dockerfile:
                self.specified_resolver = await self._resolve_specified(entry, name)
                return
        else:
            for resolver in self.resolvers:
                resolver.observe(name)
            potentials = [r for r in self.resolvers if r.needs_entry(name)]
            if potentials:
                file_info = await self._read_file_info(entry, name)
                logger.debug(
                    "Entry %s read for %s", name, ", ".join(r.name for r in potentials)
                )
                for resolver in potentials:
                    resolver.entry(file_info)
                # Also add it to the output
                self._inputs[name] = _digest(file_info.contents)
                await self._writer.add_file(entry.info, file_info.contents)
                return

        await self._writer.add_stream(entry.info, entry)

    async def _on_finish(self) -> None:
        # Firstly, check that if the user specified a dockerfile, that dockerfile
        # has been found and processed
        if self.dockerfile is not None:
            if self.specified_resolver is None:
                raise SpecifiedDockerfileNotFoundError(self.dockerfile)
            resolver = self.specified_resolver
        else:
            satisfied = _by_priority(r for r in self.resolvers if r.is_satisfied(self.bundle))
            if not satisfied:
                raise ResolutionError("Resolution could not be performed")
            resolver = satisfied[0]
            logger.info("Resolving bundle with %s", resolver.name)
            self.state = RunState.EMITTING
            await self._add_resolver_output(resolver)

        self.output.emit(RESOLVER, resolver.name)
        if self.dockerfile is not None:
            self.output.emit(RESOLVED_NAME, resolver.get_canonical_name(self.dockerfile))

        # The hook must observe the final Dockerfile before the output ends
        await self.bundle.call_dockerfile_hook(resolver.dockerfile_contents or "")
        await self._writer.close()
        await self.output.finish()

    async def _resolve_specified(self, entry: TarEntry, name: str) -> Resolver:
        potentials = _by_priority(
            r for r in self.resolvers if r.allow_specified_dockerfile and r.needs_entry(name)
        )
        if potentials:
            resolver = potentials[0]
        else:
            # Assume that this is a plain Dockerfile, without touching the caller's list
            resolver = DockerfileResolver()
        logger.info("Resolving specified file %s with %s", name, resolver.name)

        file_info = await self._read_file_info(entry, name)
        resolver.entry(file_info)
        self.state = RunState.EMITTING
        generated = await self._add_resolver_output(resolver, name)
        # Add it to the stream too, unless the resolver already wrote it unchanged
        if not any(f.name == name and f.contents == file_info.contents for f in generated):
            await self._writer.add_file(entry.info, file_info.contents)
        self.state = RunState.STREAMING
        return resolver

    async def _add_resolver_output(
        self, resolver: Resolver, specified_path: Optional[str] = None
    ) -> List[FileInfo]:
        generated = await resolver.resolve(self.bundle, specified_path)
        for file in generated:
            if self._inputs.get(file.name) == _digest(file.contents):
                logger.debug("%s is unchanged from the input, not writing it again", file.name)
                continue
            await self._writer.add_file(make_tar_info(file), file.contents)
        return generated

    @staticmethod
    async def _read_file_info(entry: TarEntry, name: str) -> FileInfo:
        return FileInfo.from_bytes(name, await entry.read_all())
