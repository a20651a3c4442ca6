"""
Node - the per-run facts a recipe is built from.
"""

from dataclasses import dataclass, field
from typing import Any

from webcook.attributes import Attributes
from webcook.core.resource import Platform
from webcook.transport.base import Transport

CONTAINER_MARKER = "/.dockerenv"


@dataclass
class Node:
    """
    Attributes, platform and transport of the host being converged.

    Example:
        node["apache"]["port"]         # 80
        node.attr("apache.site_title")
        node.platform.distro           # "ubuntu"
    """
    transport: Transport
    platform: Platform
    attributes: Attributes = field(default_factory=Attributes)

    def __getitem__(self, key: str) -> Any:
        return self.attributes[key]

    def attr(self, key: str, default: Any = None) -> Any:
        return self.attributes.get(key, default)

    def in_container(self) -> bool:
        """True when the host is a Docker container."""
        return self.transport.file_exists(CONTAINER_MARKER)
