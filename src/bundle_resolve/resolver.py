"""Base contract shared by every project type resolver."""

from __future__ import annotations

import abc
from typing import List, Optional

from .bundle import Bundle
from .file_info import FileInfo

# Make the types available to implementers
__all__ = ["Bundle", "FileInfo", "Resolver"]


class Resolver(abc.ABC):
    """
    A strategy that turns the entries of a bundle into a Dockerfile.

    Instances are stateful and single-use: they collect evidence while the
    archive streams past and must not be shared between two resolutions.
    """

    priority: int = 0
    """Ranking among satisfied resolvers; the highest priority wins."""

    name: str = ""
    """Friendly name of the project type, reported through the 'resolver' event."""

    allow_specified_dockerfile: bool = False
    """Whether a caller may point this resolver at an explicitly named file."""

    def __init__(self) -> None:
        self.dockerfile_contents: Optional[str] = None

    @abc.abstractmethod
    def needs_entry(self, filename: str) -> bool:
        """Returns True if ``entry`` should receive the contents of this file."""

    def observe(self, filename: str) -> None:
        """Sees the name of every entry during auto-detection, without its contents."""

    @abc.abstractmethod
    def entry(self, file: FileInfo) -> None:
        """Receives the contents of an entry that ``needs_entry`` asked for."""

    @abc.abstractmethod
    def is_satisfied(self, bundle: Bundle) -> bool:
        """Returns True once enough has been seen to produce a Dockerfile."""

    @abc.abstractmethod
    async def resolve(
        self, bundle: Bundle, specified_path: Optional[str] = None
    ) -> List[FileInfo]:
        """
        Produces the files to add to the bundle so that it can be built.

        Sets ``dockerfile_contents`` to the final Dockerfile text.
        """

    def get_canonical_name(self, specified_path: str) -> str:
        """Returns where the resolved Dockerfile for ``specified_path`` ends up."""
        return specified_path

    def __repr__(self) -> str:
        return f"<{type(self).__name__} name={self.name!r} priority={self.priority}>"
