"""
Payload sources: where the worker bytes come from.
"""

from pathlib import Path
from typing import Union


class FilePayloadSource:
    """Reads the payload from a local file each time it is needed."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path).expanduser()

    @property
    def name(self) -> str:
        return self.path.name

    def read(self) -> bytes:
        return self.path.read_bytes()

    def __repr__(self) -> str:
        return f"FilePayloadSource({self.path})"


class BytesPayloadSource:
    """Payload already held in memory."""

    def __init__(self, data: bytes, name: str = "agent.jar"):
        self.data = data
        self.name = name

    def read(self) -> bytes:
        return self.data

    def __repr__(self) -> str:
        return f"BytesPayloadSource({self.name}, {len(self.data)} bytes)"
