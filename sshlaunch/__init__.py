"""
This package launches a worker process on a remote host over SSH.

It connects and authenticates, checks that the remote shell is quiet,
finds a suitable runtime, copies the worker payload over SFTP (or SCP),
starts the worker and bridges its streams to the caller.
"""

# __init__.py

__version__ = "1.0.0"

from .bootstrap import LaunchResult, LaunchState, SSHLauncher  # noqa: E402
from .config import LaunchRequest, LaunchSettings  # noqa: E402
from .errors import (  # noqa: E402
    AuthError,
    ChannelJunkError,
    LaunchError,
    ResolutionError,
    SSHConnectionError,
    SSHLaunchError,
    TransferError,
)
from .listener import FileListener, Listener, StreamListener  # noqa: E402
from .node import NodeDescriptor  # noqa: E402

__all__ = [
    "SSHLauncher",
    "LaunchResult",
    "LaunchState",
    "LaunchRequest",
    "LaunchSettings",
    "NodeDescriptor",
    "Listener",
    "StreamListener",
    "FileListener",
    "SSHLaunchError",
    "SSHConnectionError",
    "AuthError",
    "ChannelJunkError",
    "ResolutionError",
    "TransferError",
    "LaunchError",
]
