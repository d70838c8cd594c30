"""Resolver for Dockerfiles that target one architecture or device type.

A bundle can carry several variants, e.g. Dockerfile.armv7hf, Dockerfile.i386
and Dockerfile.raspberrypi3. The variant named after the bundle's device type
is preferred over the one named after its architecture. Variants are always
processed as templates.
"""

from __future__ import annotations

import logging
import posixpath
from typing import List, Optional, Tuple

from ..errors import ResolverError
from ..resolver import Bundle, FileInfo, Resolver
from ..template import render_dockerfile
from ..utils import extension, remove_extension

logger = logging.getLogger(__name__)

# (extension, file)
ArchSpecificDockerfile = Tuple[str, FileInfo]


class ArchDockerfileResolver(Resolver):
    # Above Dockerfile.template: a more specific file always wins
    priority = 3
    name = "Architecture-specific Dockerfile"
    allow_specified_dockerfile = True

    def __init__(self) -> None:
        super().__init__()
        self._arch_dockerfiles: List[ArchSpecificDockerfile] = []

    def needs_entry(self, filename: str) -> bool:
        basename = posixpath.basename(filename)
        return basename.startswith("Dockerfile.") and not basename.endswith(".template")

    def entry(self, file: FileInfo) -> None:
        self._arch_dockerfiles.append((extension(file.name), file))

    def _match(self, bundle: Bundle) -> Optional[ArchSpecificDockerfile]:
        satisfied_arch: Optional[ArchSpecificDockerfile] = None
        for dockerfile in self._arch_dockerfiles:
            if not dockerfile[0]:
                continue
            if dockerfile[0] == bundle.device_type:
                return dockerfile
            if dockerfile[0] == bundle.architecture and satisfied_arch is None:
                satisfied_arch = dockerfile
        return satisfied_arch

    def is_satisfied(self, bundle: Bundle) -> bool:
        return self._match(bundle) is not None

    async def resolve(
        self, bundle: Bundle, specified_path: Optional[str] = None
    ) -> List[FileInfo]:
        if specified_path is not None:
            satisfied = next(
                (d for d in self._arch_dockerfiles if d[1].name == specified_path), None
            )
        else:
            satisfied = self._match(bundle)
        if satisfied is None:
            raise ResolverError(
                "Resolve called without a satisfied architecture specific dockerfile"
            )

        ext, file = satisfied
        logger.debug("Using %s for extension '%s'", file.name, ext)
        name = self.get_canonical_name(specified_path) if specified_path else "Dockerfile"
        dockerfile = FileInfo.from_text(name, render_dockerfile(file.contents, bundle))
        self.dockerfile_contents = dockerfile.text()
        return [dockerfile]

    def get_canonical_name(self, specified_path: str) -> str:
        return remove_extension(specified_path)
