"""
Configuration package for sshlaunch.

- target: launch request, credentials and bootstrap tunables
- manager: OmegaConf-based loading of system, user and environment files
"""

from .manager import ConfigLoadError, ConfigManager, config_manager, setup_logging
from .target import DEFAULT_SSH_PORT, MASK, LaunchRequest, LaunchSettings, Secret

__all__ = [
    "ConfigLoadError",
    "ConfigManager",
    "config_manager",
    "setup_logging",
    "DEFAULT_SSH_PORT",
    "MASK",
    "LaunchRequest",
    "LaunchSettings",
    "Secret",
]
