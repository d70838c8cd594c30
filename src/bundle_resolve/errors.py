"""Exception hierarchy for bundle resolution."""

from __future__ import annotations


class BundleResolveError(Exception):
    """Base exception for all resolution errors."""

    pass


# --- 1. Strategy selection ---
class ResolutionError(BundleResolveError):
    """Raised when no resolver could make sense of the bundle."""

    pass


class SpecifiedDockerfileNotFoundError(ResolutionError):
    """Raised when a caller-specified Dockerfile never appeared in the archive."""

    def __init__(self, dockerfile: str):
        super().__init__(f"Specified dockerfile could not be resolved: {dockerfile}")
        self.dockerfile = dockerfile


class ResolverError(BundleResolveError):
    """Raised when a resolver is used outside of its contract."""

    pass


# --- 2. Content processing ---
class TemplateVariableError(BundleResolveError):
    """Raised when a template references a variable that cannot be resolved."""

    def __init__(self, variable: str):
        super().__init__(f"Unknown template variable: %%{variable}%%")
        self.variable = variable


class ManifestError(BundleResolveError):
    """Base class for errors in a project manifest such as package.json."""

    pass


class ManifestParseError(ManifestError):
    """Raised when the manifest is not valid JSON."""

    pass


class ManifestValidationError(ManifestError):
    """Raised when the manifest parses but has the wrong shape."""

    pass


class VersionNotSatisfiableError(BundleResolveError):
    """Raised when no catalogued runtime version matches a requested range."""

    def __init__(self, device_type: str, version_range: str, reason: str = ""):
        message = f"Couldn't satisfy node version {version_range} for {device_type}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.device_type = device_type
        self.version_range = version_range


class VersionLookupError(BundleResolveError):
    """Raised when the available runtime versions could not be fetched."""

    def __init__(self, device_type: str, reason: str):
        super().__init__(f"Couldn't list node versions for {device_type}: {reason}")
        self.device_type = device_type


# --- 3. Streams ---
class ArchiveError(BundleResolveError):
    """Raised for truncated or malformed tar input."""

    pass


class OutputClosedError(BundleResolveError):
    """Raised when the consumer closed the output stream before resolution finished."""

    pass
