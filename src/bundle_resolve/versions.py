"""Lookup of the node versions published for a device type's base images."""

from __future__ import annotations

import asyncio
import logging
import re
import time
from typing import Callable, Dict, List, Optional, Tuple

import requests
from semantic_version import NpmSpec, Version

from .errors import VersionLookupError, VersionNotSatisfiableError

logger = logging.getLogger(__name__)

DOCKER_HUB_TAGS_URL = "https://hub.docker.com/v2/repositories/resin/{device_type}-node/tags/"
DEFAULT_TTL = 60 * 60  # one hour

_VERSION_TAG = re.compile(r"^\d+\.\d+\.\d+$")

VersionFetcher = Callable[[str], List[str]]


def fetch_docker_hub_versions(device_type: str, timeout: float = 10) -> List[str]:
    """
    Lists the plain x.y.z tags of resin/<device_type>-node on Docker Hub.

    Follows the paginated 'next' links until the listing is exhausted.
    """
    url: Optional[str] = DOCKER_HUB_TAGS_URL.format(device_type=device_type)
    params: Optional[Dict[str, int]] = {"page_size": 100}
    versions = []
    while url:
        response = requests.get(url, params=params, timeout=timeout)
        response.raise_for_status()
        payload = response.json()
        for result in payload.get("results", []):
            tag = result.get("name", "")
            if _VERSION_TAG.match(tag):
                versions.append(tag)
        url = payload.get("next")
        params = None  # the 'next' link already carries the query
    return versions


class VersionCatalog:
    """
    Caches the available node versions per device type for a limited time.

    Args:
        fetch: Blocking function returning version strings for a device type.
            It runs in a worker thread.
        ttl: Seconds before a cached listing is fetched again.
        clock: Monotonic time source, replaceable in tests.
    """

    def __init__(
        self,
        fetch: VersionFetcher = fetch_docker_hub_versions,
        ttl: float = DEFAULT_TTL,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._fetch = fetch
        self.ttl = ttl
        self._clock = clock
        self._entries: Dict[str, Tuple[float, List[Version]]] = {}

    async def versions(self, device_type: str) -> List[Version]:
        now = self._clock()
        cached = self._entries.get(device_type)
        if cached is not None and now - cached[0] < self.ttl:
            logger.debug("Version cache hit for %s", device_type)
            return cached[1]

        logger.debug("Fetching node versions for %s", device_type)
        try:
            raw = await asyncio.to_thread(self._fetch, device_type)
        except requests.RequestException as error:
            raise VersionLookupError(device_type, str(error)) from error
        versions = []
        for tag in raw:
            try:
                versions.append(Version(tag))
            except ValueError:
                logger.debug("Ignoring non-semver tag %s", tag)
        # Concurrent lookups may both land here; storing the same listing twice is harmless.
        self._entries[device_type] = (now, versions)
        return versions

    async def resolve_version(self, device_type: str, version_range: str) -> str:
        """
        Returns the highest available version satisfying an npm-style range.

        Raises:
            VersionNotSatisfiableError: The range is invalid or nothing matches.
        """
        try:
            spec = NpmSpec(version_range)
        except ValueError as error:
            raise VersionNotSatisfiableError(device_type, version_range, str(error)) from error

        best = spec.select(await self.versions(device_type))
        if best is None:
            raise VersionNotSatisfiableError(device_type, version_range)
        return str(best)

    def clear(self) -> None:
        self._entries.clear()


_shared_catalog: Optional[VersionCatalog] = None


def shared_catalog() -> VersionCatalog:
    """The process-wide catalog used when a resolver is not given one."""
    global _shared_catalog
    if _shared_catalog is None:
        _shared_catalog = VersionCatalog()
    return _shared_catalog
