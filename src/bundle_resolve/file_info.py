"""In-memory snapshot of a single archive entry."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class FileInfo:
    """
    An archive entry whose full contents a resolver asked for.

    The contents are immutable bytes owned by the pipeline; resolvers may keep a
    reference but build new objects for anything they transform.
    """

    name: str
    size: int
    contents: bytes

    def __post_init__(self) -> None:
        if self.size != len(self.contents):
            raise ValueError(
                f"FileInfo size mismatch for {self.name}: "
                f"size={self.size}, contents={len(self.contents)}"
            )

    @classmethod
    def from_bytes(cls, name: str, contents: bytes) -> FileInfo:
        return cls(name=name, size=len(contents), contents=bytes(contents))

    @classmethod
    def from_text(cls, name: str, text: str) -> FileInfo:
        # surrogateescape restores bytes that were not valid UTF-8 on the way in
        return cls.from_bytes(name, text.encode("utf-8", "surrogateescape"))

    def text(self) -> str:
        """The contents for display; invalid UTF-8 is replaced, never raised."""
        return self.contents.decode("utf-8", "replace")
