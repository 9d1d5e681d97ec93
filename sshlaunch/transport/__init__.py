"""
SSH transport package for sshlaunch.

- TransportSession: one authenticated SSH connection per launch attempt
- CommandExecutor: one-shot remote commands with concurrent stream draining
- registry: process-wide bookkeeping of live connections
- PuTTY key conversion for explicitly configured key files
"""

from . import registry
from .executor import UNKNOWN_EXIT_STATUS, CommandExecutor, NullSink
from .keys import DEFAULT_KEY_NAMES, default_key_files, load_private_key
from .putty import is_putty_key_file, putty_to_openssh
from .session import Closed, Connected, SessionState, TransportSession, Unconnected

__all__ = [
    "TransportSession",
    "SessionState",
    "Unconnected",
    "Connected",
    "Closed",
    "CommandExecutor",
    "NullSink",
    "UNKNOWN_EXIT_STATUS",
    "DEFAULT_KEY_NAMES",
    "default_key_files",
    "load_private_key",
    "is_putty_key_file",
    "putty_to_openssh",
    "registry",
]
