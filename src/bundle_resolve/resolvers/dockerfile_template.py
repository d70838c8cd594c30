"""Resolver for Dockerfile.template projects."""

from __future__ import annotations

import posixpath
from typing import List, Optional

from ..errors import ResolverError
from ..resolver import Bundle, FileInfo, Resolver
from ..template import render_dockerfile
from ..utils import remove_extension


class DockerfileTemplateResolver(Resolver):
    priority = 2
    name = "Dockerfile.template"
    allow_specified_dockerfile = True

    def __init__(self) -> None:
        super().__init__()
        self._template: Optional[bytes] = None

    def needs_entry(self, filename: str) -> bool:
        return posixpath.basename(filename) == "Dockerfile.template"

    def entry(self, file: FileInfo) -> None:
        self._template = file.contents

    def is_satisfied(self, bundle: Bundle) -> bool:
        return self._template is not None

    async def resolve(
        self, bundle: Bundle, specified_path: Optional[str] = None
    ) -> List[FileInfo]:
        if self._template is None:
            raise ResolverError("Resolve called without a Dockerfile.template")

        name = self.get_canonical_name(specified_path or "Dockerfile")
        dockerfile = FileInfo.from_text(name, render_dockerfile(self._template, bundle))
        self.dockerfile_contents = dockerfile.text()
        return [dockerfile]

    def get_canonical_name(self, specified_path: str) -> str:
        # All that needs to be done for this class of Dockerfile is to remove the extension
        return remove_extension(specified_path)
