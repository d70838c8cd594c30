"""Path helpers shared by the engine and the resolvers."""

from __future__ import annotations

import posixpath


def normalize_tar_entry(name: str) -> str:
    """
    Normalizes a tar entry name so that differently created archives compare equal.

        ./Dockerfile      -> Dockerfile
        /Dockerfile       -> Dockerfile
        ./a/b/Dockerfile  -> a/b/Dockerfile
        ./                -> ''  (archive root)
    """
    normalized = posixpath.normpath(name.replace("\\", "/"))
    normalized = normalized.lstrip("/")
    if normalized == ".":
        return ""
    return normalized


def remove_extension(filename: str) -> str:
    """Strips the last extension from the basename: test/Dockerfile.template -> test/Dockerfile."""
    root, _ = posixpath.splitext(filename)
    return root


def extension(filename: str) -> str:
    """Returns the text after the last '.' of the basename, without the dot."""
    return posixpath.splitext(filename)[1][1:]
