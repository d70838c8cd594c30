from .arch_dockerfile import ArchDockerfileResolver
from .dockerfile import DockerfileResolver
from .dockerfile_template import DockerfileTemplateResolver
from .node import NodeResolver

__all__ = [
    "ArchDockerfileResolver",
    "DockerfileResolver",
    "DockerfileTemplateResolver",
    "NodeResolver",
]
