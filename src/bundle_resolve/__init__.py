"""Resolve a bundle's tar archive into a Docker-compatible build context."""

from .archive import BytesReader, FileReader
from .bundle import Bundle
from .engine import ResolveListeners, get_default_resolvers, resolve_input
from .errors import (
    ArchiveError,
    BundleResolveError,
    ManifestError,
    ManifestParseError,
    ManifestValidationError,
    OutputClosedError,
    ResolutionError,
    ResolverError,
    SpecifiedDockerfileNotFoundError,
    TemplateVariableError,
    VersionLookupError,
    VersionNotSatisfiableError,
)
from .file_info import FileInfo
from .resolver import Resolver
from .resolvers import (
    ArchDockerfileResolver,
    DockerfileResolver,
    DockerfileTemplateResolver,
    NodeResolver,
)
from .stream import ResolvedArchive
from .versions import VersionCatalog

__all__ = [
    "ArchDockerfileResolver",
    "ArchiveError",
    "Bundle",
    "BundleResolveError",
    "BytesReader",
    "DockerfileResolver",
    "DockerfileTemplateResolver",
    "FileInfo",
    "FileReader",
    "ManifestError",
    "ManifestParseError",
    "ManifestValidationError",
    "NodeResolver",
    "OutputClosedError",
    "ResolutionError",
    "ResolveListeners",
    "ResolvedArchive",
    "Resolver",
    "ResolverError",
    "SpecifiedDockerfileNotFoundError",
    "TemplateVariableError",
    "VersionCatalog",
    "VersionLookupError",
    "VersionNotSatisfiableError",
    "get_default_resolvers",
    "resolve_input",
]
