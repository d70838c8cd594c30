"""Configuration schema for bundle resolution using Pydantic."""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import List, Optional, Union

import yaml
from pydantic import BaseModel, Field

from .resolver import Resolver
from .resolvers import (
    ArchDockerfileResolver,
    DockerfileResolver,
    DockerfileTemplateResolver,
    NodeResolver,
)
from .versions import DEFAULT_TTL, VersionCatalog, fetch_docker_hub_versions


class ResolverKind(str, Enum):
    """The built-in resolvers that can be enabled."""

    DOCKERFILE = "dockerfile"
    DOCKERFILE_TEMPLATE = "dockerfile-template"
    ARCH_DOCKERFILE = "arch-dockerfile"
    NODE = "node"


DEFAULT_RESOLVERS = [
    ResolverKind.DOCKERFILE,
    ResolverKind.DOCKERFILE_TEMPLATE,
    ResolverKind.ARCH_DOCKERFILE,
    ResolverKind.NODE,
]


class ResolveConfig(BaseModel):
    """Root configuration for resolving a bundle."""

    device_type: str = ""
    """Machine name of the targeted device (e.g. 'raspberrypi3')."""

    architecture: str = ""
    """Architecture of the targeted device (e.g. 'armv7hf')."""

    dockerfile: Optional[str] = None
    """Path of a specific Dockerfile to resolve instead of auto-detecting one."""

    resolvers: List[ResolverKind] = Field(default_factory=lambda: list(DEFAULT_RESOLVERS))
    """Enabled resolvers. Among equal priorities, earlier entries win."""

    version_cache_ttl: float = DEFAULT_TTL
    """Seconds that a device type's list of node versions stays cached."""

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> ResolveConfig:
        """Loads and validates a ResolveConfig from a YAML file."""
        with open(path, "r") as f:
            data = yaml.safe_load(f)
        return cls.model_validate(data or {})

    def build_catalog(self) -> VersionCatalog:
        return VersionCatalog(fetch_docker_hub_versions, ttl=self.version_cache_ttl)

    def build_resolvers(self, catalog: Optional[VersionCatalog] = None) -> List[Resolver]:
        """Creates fresh resolver instances in the configured order."""
        resolvers: List[Resolver] = []
        for kind in self.resolvers:
            if kind == ResolverKind.DOCKERFILE:
                resolvers.append(DockerfileResolver())
            elif kind == ResolverKind.DOCKERFILE_TEMPLATE:
                resolvers.append(DockerfileTemplateResolver())
            elif kind == ResolverKind.ARCH_DOCKERFILE:
                resolvers.append(ArchDockerfileResolver())
            elif kind == ResolverKind.NODE:
                resolvers.append(NodeResolver(catalog))
        return resolvers
