"""
Launch request and connection target configuration.

This module defines the immutable description of where and how to launch
a worker (host, credentials, runtime options) along with the tunables
that control the bootstrap sequence.
"""

import getpass
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

DEFAULT_SSH_PORT = 22
MASK = "******"


class Secret:
    """Opaque wrapper that keeps credentials out of logs and reprs."""

    __slots__ = ("_value",)

    def __init__(self, value: Optional[str]):
        self._value = value or ""

    def reveal(self) -> str:
        return self._value

    def __bool__(self) -> bool:
        return bool(self._value)

    def __eq__(self, other) -> bool:
        if isinstance(other, Secret):
            return self._value == other._value
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._value)

    def __repr__(self) -> str:
        return f"Secret({MASK})" if self._value else "Secret('')"

    def __str__(self) -> str:
        return MASK if self._value else ""


@dataclass(frozen=True)
class LaunchRequest:
    """Connection target and credentials for one launch attempt."""

    host: str
    port: int = DEFAULT_SSH_PORT
    username: str = ""
    password: Secret = field(default_factory=lambda: Secret(""))
    private_key: str = ""
    runtime_options: str = ""
    runtime_path: str = ""

    def __post_init__(self):
        """Validate the target and apply defaults."""
        if not self.host:
            raise ValueError("Launch request must include a host")
        # Frozen dataclass: normalise through object.__setattr__
        if not self.port:
            object.__setattr__(self, "port", DEFAULT_SSH_PORT)
        if not isinstance(self.password, Secret):
            object.__setattr__(self, "password", Secret(self.password))
        object.__setattr__(self, "username", self.username or "")
        object.__setattr__(self, "private_key", self.private_key or "")
        object.__setattr__(self, "runtime_options", self.runtime_options or "")
        object.__setattr__(self, "runtime_path", self.runtime_path or "")

    @property
    def effective_username(self) -> str:
        """Configured user, or the local account name when unset."""
        if self.username:
            return self.username
        user = getpass.getuser()
        logger.debug(f"Defaulting the user name to {user}")
        return user

    @property
    def private_key_path(self) -> Optional[Path]:
        if not self.private_key:
            return None
        return Path(self.private_key).expanduser()

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"

    def __str__(self) -> str:
        return f"LaunchRequest(host={self.address}, username={self.username or '-'})"


@dataclass(frozen=True)
class LaunchSettings:
    """Tunables for the bootstrap sequence."""

    payload_name: str = "agent.jar"
    min_runtime_version: float = 1.5
    exit_status_timeout: float = 3.0
    connect_timeout: Optional[float] = 30.0
    strict_host_keys: bool = False
    known_hosts: str = "~/.ssh/known_hosts"
