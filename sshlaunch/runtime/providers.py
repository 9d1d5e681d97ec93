"""
Runtime candidate providers.

A provider yields candidate interpreter paths for a node. Providers are
kept in a registry and consulted in registration order by the resolver.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Iterable, List

from ..listener import Listener
from ..node import (
    JDK_TOOL_TYPE,
    EnvironmentVariablesProperty,
    NodeDescriptor,
    ToolLocationProperty,
)

logger = logging.getLogger(__name__)

WELL_KNOWN_JAVAS = [
    "java",
    "/usr/bin/java",
    "/usr/java/default/bin/java",
    "/usr/java/latest/bin/java",
    "/usr/local/bin/java",
    "/usr/local/java/bin/java",
]


@dataclass(frozen=True)
class ResolutionContext:
    """What a provider may inspect when proposing candidates."""

    node: NodeDescriptor
    working_directory: str
    listener: Listener


@dataclass(frozen=True)
class CandidateRuntime:
    """A runtime path and the provider that proposed it."""

    path: str
    provider: "RuntimeProvider"


class RuntimeProvider(ABC):
    """Source of candidate runtime executables."""

    @abstractmethod
    def candidates(self, context: ResolutionContext) -> Iterable[str]:
        """
        Yield candidate runtime paths, most preferred first.

        Args:
            context: Node and working directory of the launch

        Returns:
            Iterable of executable paths or command names
        """
        pass

    def __repr__(self) -> str:
        return type(self).__name__


class DefaultRuntimeProvider(RuntimeProvider):
    """Well-known Java locations plus those declared on the node."""

    def candidates(self, context: ResolutionContext) -> List[str]:
        javas = list(WELL_KNOWN_JAVAS)
        # Conventional location of a runtime installed next to the worker
        javas.append(f"{context.working_directory}/jdk/bin/java")

        # One candidate per declaration, in the order the node lists them
        for prop in context.node.properties:
            if isinstance(prop, EnvironmentVariablesProperty):
                java_home = prop.env.get("JAVA_HOME")
                if java_home:
                    javas.append(f"{java_home}/bin/java")
            elif isinstance(prop, ToolLocationProperty):
                for location in prop.locations:
                    if location.type == JDK_TOOL_TYPE:
                        javas.append(f"{location.home}/bin/java")

        if len(javas) == len(WELL_KNOWN_JAVAS) + 1:
            logger.debug(f"No runtime locations declared for {context.node.name}")
        return javas


class StaticRuntimeProvider(RuntimeProvider):
    """Provider returning a fixed list, for configuration-declared runtimes."""

    def __init__(self, paths: Iterable[str]):
        self.paths = list(paths)

    def candidates(self, context: ResolutionContext) -> List[str]:
        return list(self.paths)

    def __repr__(self) -> str:
        return f"StaticRuntimeProvider({self.paths})"


_providers: List[RuntimeProvider] = []


def register_provider(provider: RuntimeProvider) -> None:
    """Append a provider to the registry."""
    if provider not in _providers:
        _providers.append(provider)


def unregister_provider(provider: RuntimeProvider) -> None:
    if provider in _providers:
        _providers.remove(provider)


def all_providers() -> List[RuntimeProvider]:
    """Registered providers in registration order."""
    return list(_providers)


register_provider(DefaultRuntimeProvider())
