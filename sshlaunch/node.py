"""
Node descriptors supplied by the caller.

A node describes where the worker lives on the remote host (its remote
filesystem root) and carries property records that runtime providers
consult to find extra interpreter locations.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Union

JDK_TOOL_TYPE = "jdk"


@dataclass(frozen=True)
class EnvironmentVariablesProperty:
    """Environment variables declared for the node."""

    env: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ToolLocation:
    """Install location of a named tool on the node."""

    type: str
    name: str
    home: str


@dataclass(frozen=True)
class ToolLocationProperty:
    """Tool installations declared for the node."""

    locations: List[ToolLocation] = field(default_factory=list)


NodeProperty = Union[EnvironmentVariablesProperty, ToolLocationProperty]


def normalize_working_directory(path: str) -> str:
    """
    Strip trailing separators from a remote directory path.

    Args:
        path: Remote directory as configured

    Returns:
        The path without trailing slashes

    Raises:
        ValueError: If nothing but separators (or nothing at all) remains
    """
    normalized = (path or "").rstrip("/")
    if not normalized:
        raise ValueError(f"Remote working directory is empty: {path!r}")
    return normalized


@dataclass
class NodeDescriptor:
    """The remote node a worker is launched on."""

    name: str
    remote_fs: str
    properties: List[NodeProperty] = field(default_factory=list)

    @property
    def working_directory(self) -> str:
        return normalize_working_directory(self.remote_fs)
