"""Resolver for projects that ship a plain Dockerfile."""

from __future__ import annotations

import posixpath
from typing import List, Optional

from ..errors import ResolverError
from ..resolver import Bundle, FileInfo, Resolver


class DockerfileResolver(Resolver):
    priority = 0
    name = "Standard Dockerfile"
    allow_specified_dockerfile = True

    def __init__(self) -> None:
        super().__init__()
        self._dockerfile: Optional[FileInfo] = None

    def needs_entry(self, filename: str) -> bool:
        return posixpath.basename(filename) == "Dockerfile"

    def entry(self, file: FileInfo) -> None:
        # The Dockerfile at the root of the bundle wins over nested ones
        if self._dockerfile is None or file.name == "Dockerfile":
            self._dockerfile = file

    def is_satisfied(self, bundle: Bundle) -> bool:
        return self._dockerfile is not None

    async def resolve(
        self, bundle: Bundle, specified_path: Optional[str] = None
    ) -> List[FileInfo]:
        if self._dockerfile is None:
            raise ResolverError("Resolve called without a Dockerfile")

        self.dockerfile_contents = self._dockerfile.text()
        name = self.get_canonical_name(specified_path) if specified_path else "Dockerfile"
        return [FileInfo.from_bytes(name, self._dockerfile.contents)]
