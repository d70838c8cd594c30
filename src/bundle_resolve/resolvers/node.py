"""Resolver that generates a Dockerfile for NodeJS projects from their package.json."""

from __future__ import annotations

import json
import logging
import posixpath
from typing import Any, Dict, List, Optional

from jinja2 import Template
from pydantic import BaseModel, ConfigDict, Field

from ..errors import ManifestParseError, ManifestValidationError, ResolverError
from ..resolver import Bundle, FileInfo, Resolver
from ..versions import VersionCatalog, shared_catalog

logger = logging.getLogger(__name__)

MANIFEST_NAME = "package.json"
INSTALL_SCRIPTS = ("preinstall", "install", "postinstall")

# Install scripts may need any file in the project, so the whole tree is
# copied before installing.
SCRIPTS_DOCKERFILE_TEMPLATE = """FROM {{ base_image }}
WORKDIR /usr/src/app
RUN ln -s /usr/src/app /app
COPY . /usr/src/app
RUN DEBIAN_FRONTEND=noninteractive JOBS=MAX npm install --unsafe-perm
CMD [ "npm", "start" ]
"""

# Without install scripts only package.json is needed, which keeps the
# dependency layer cached until the manifest changes.
MANIFEST_DOCKERFILE_TEMPLATE = """FROM {{ base_image }}
WORKDIR /usr/src/app
RUN ln -s /usr/src/app /app

COPY package.json .
RUN DEBIAN_FRONTEND=noninteractive JOBS=MAX npm install --unsafe-perm

COPY . ./
CMD [ "npm", "start" ]
"""


class PackageManifest(BaseModel):
    """The parts of package.json that shape the generated Dockerfile."""

    model_config = ConfigDict(extra="allow")

    # npm tolerates odd shapes here (e.g. the legacy "engines": ["node >= 0.4"]),
    # so both are only used when they are objects
    scripts: Any = Field(default_factory=dict)
    engines: Any = Field(default_factory=dict)

    def install_scripts(self) -> List[str]:
        if not isinstance(self.scripts, dict):
            return []
        return [script for script in INSTALL_SCRIPTS if script in self.scripts]

    def node_range(self) -> Optional[str]:
        if not isinstance(self.engines, dict):
            return None
        node = self.engines.get("node")
        return node if isinstance(node, str) and node else None


def parse_manifest(contents: bytes) -> PackageManifest:
    try:
        data = json.loads(contents.decode("utf-8"))
    except ValueError as error:
        raise ManifestParseError(f"{MANIFEST_NAME}: {error}") from error

    if not isinstance(data, dict):
        raise ManifestValidationError(f"{MANIFEST_NAME}: must be a JSON object")
    return PackageManifest.model_validate(data)


class NodeResolver(Resolver):
    priority = 0
    name = "NodeJS"
    # A package.json heuristic makes no sense for an explicitly named file
    allow_specified_dockerfile = False

    def __init__(self, catalog: Optional[VersionCatalog] = None):
        super().__init__()
        self.catalog = catalog
        self._manifest: Optional[bytes] = None
        self._has_scripts = False

    def needs_entry(self, filename: str) -> bool:
        return filename == MANIFEST_NAME

    def observe(self, filename: str) -> None:
        # Native addons are built during install, like an install script
        if posixpath.basename(filename) == "wscript" or filename.endswith(".gyp"):
            self._has_scripts = True

    def entry(self, file: FileInfo) -> None:
        self._manifest = file.contents

    def is_satisfied(self, bundle: Bundle) -> bool:
        return self._manifest is not None

    async def resolve(
        self, bundle: Bundle, specified_path: Optional[str] = None
    ) -> List[FileInfo]:
        if self._manifest is None:
            raise ResolverError(f"Resolve called without a {MANIFEST_NAME}")

        manifest = parse_manifest(self._manifest)
        has_scripts = self._has_scripts or bool(manifest.install_scripts())

        base_image = f"resin/{bundle.device_type}-node"
        node_range = manifest.node_range()
        if node_range:
            catalog = self.catalog or shared_catalog()
            version = await catalog.resolve_version(bundle.device_type, node_range)
            logger.info("Resolved node %s to %s", node_range, version)
            base_image = f"{base_image}:{version}"

        template = SCRIPTS_DOCKERFILE_TEMPLATE if has_scripts else MANIFEST_DOCKERFILE_TEMPLATE
        self.dockerfile_contents = Template(template, keep_trailing_newline=True).render(
            base_image=base_image
        )
        return [FileInfo.from_text("Dockerfile", self.dockerfile_contents)]
