"""
Configuration manager for sshlaunch with XDG-compliant paths.

Handles loading and merging configuration from system, user, and environment
sources with hierarchical precedence, and turns named targets into launch
requests and node descriptors.
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import click
import yaml
from omegaconf import DictConfig, OmegaConf

from ..node import (
    EnvironmentVariablesProperty,
    NodeDescriptor,
    ToolLocation,
    ToolLocationProperty,
)
from .target import DEFAULT_SSH_PORT, MASK, LaunchRequest, LaunchSettings

SECRET_KEYS = ("password",)


class ConfigLoadError(Exception):
    """Raised when a target is missing or incompletely configured."""

    pass


class ConfigManager:
    """Manages sshlaunch configuration loading and merging."""

    def __init__(self):
        self.system_config: Optional[DictConfig] = None
        self.user_config: Optional[DictConfig] = None
        self.env_config: Optional[DictConfig] = None
        self.merged_config: Optional[DictConfig] = None
        self._load_configs()

    def _get_xdg_config_dirs(self) -> List[Path]:
        """Get XDG config directories in precedence order."""
        xdg_config_dirs = os.environ.get("XDG_CONFIG_DIRS", "/etc/xdg")
        return [Path(d) / "sshlaunch" for d in xdg_config_dirs.split(":") if d]

    def _get_user_config_dir(self) -> Path:
        """Get user config directory following the XDG base directory layout."""
        xdg_config_home = os.environ.get("XDG_CONFIG_HOME")
        if xdg_config_home:
            return Path(xdg_config_home) / "sshlaunch"
        return Path.home() / ".config" / "sshlaunch"

    def _load_file(self, config_file: Path, kind: str) -> Optional[DictConfig]:
        try:
            return OmegaConf.load(config_file)
        except Exception as e:  # pylint: disable=broad-exception-caught
            click.echo(f"Warning: Failed to load {kind} config {config_file}: {e}", err=True)
            return None

    def _load_system_config(self) -> Optional[DictConfig]:
        """Load system-wide configuration."""
        for config_dir in self._get_xdg_config_dirs():
            config_file = config_dir / "config.yaml"
            if config_file.exists():
                return self._load_file(config_file, "system")
        return None

    def _load_user_config(self) -> Optional[DictConfig]:
        """Load user configuration."""
        config_file = self._get_user_config_dir() / "config.yaml"
        if config_file.exists():
            return self._load_file(config_file, "user")
        return None

    def _load_env_config(self) -> Optional[DictConfig]:
        """Load the file named by SSHLAUNCH_CONFIG, if any."""
        env_file = os.environ.get("SSHLAUNCH_CONFIG")
        if not env_file:
            return None
        config_file = Path(env_file).expanduser()
        if not config_file.exists():
            click.echo(f"Warning: SSHLAUNCH_CONFIG file {config_file} does not exist", err=True)
            return None
        return self._load_file(config_file, "environment")

    def _load_configs(self):
        """Load and merge all configuration files."""
        self.system_config = self._load_system_config()
        self.user_config = self._load_user_config()
        self.env_config = self._load_env_config()

        # Merge configurations in precedence order:
        # system < user < environment
        configs = [
            c for c in (self.system_config, self.user_config, self.env_config) if c
        ]
        if configs:
            self.merged_config = OmegaConf.merge(*configs)
        else:
            self.merged_config = OmegaConf.create({})

    def reload_configs(self):
        """Reload configuration files."""
        self._load_configs()

    def get_config_files(self) -> Dict[str, Path]:
        """Get paths to all relevant config files."""
        files = {}
        for i, config_dir in enumerate(self._get_xdg_config_dirs()):
            files[f"system_{i}"] = config_dir / "config.yaml"
        files["user"] = self._get_user_config_dir() / "config.yaml"
        if os.environ.get("SSHLAUNCH_CONFIG"):
            files["environment"] = Path(os.environ["SSHLAUNCH_CONFIG"]).expanduser()
        return files

    def get_config_value(self, key_path: str) -> Any:
        """Get configuration value by dot-separated path (e.g., 'defaults.port')."""
        if not self.merged_config:
            return None
        try:
            return OmegaConf.select(self.merged_config, key_path)
        except Exception:  # pylint: disable=broad-exception-caught
            return None

    def get_defaults(self) -> Dict[str, Any]:
        """Get default configuration values."""
        if not self.merged_config or "defaults" not in self.merged_config:
            return {}
        return OmegaConf.to_container(self.merged_config.defaults, resolve=True)

    def settings(self) -> LaunchSettings:
        """Build the bootstrap tunables from the defaults section."""
        defaults = self.get_defaults()
        base = LaunchSettings()
        return LaunchSettings(
            payload_name=defaults.get("payload_name") or base.payload_name,
            min_runtime_version=float(
                defaults.get("min_runtime_version", base.min_runtime_version)
            ),
            exit_status_timeout=float(
                defaults.get("exit_status_timeout", base.exit_status_timeout)
            ),
            connect_timeout=defaults.get("connect_timeout", base.connect_timeout),
            strict_host_keys=bool(defaults.get("strict_host_keys", base.strict_host_keys)),
            known_hosts=defaults.get("known_hosts") or base.known_hosts,
        )

    def list_targets(self) -> List[str]:
        """List all configured target names."""
        if not self.merged_config or "targets" not in self.merged_config:
            return []
        return list(self.merged_config.targets.keys())

    def get_target_definition(self, name: str) -> Optional[Dict[str, Any]]:
        """Get the raw definition of a target."""
        if (
            not self.merged_config
            or "targets" not in self.merged_config
            or name not in self.merged_config.targets
        ):
            return None
        return OmegaConf.to_container(self.merged_config.targets[name], resolve=True)

    def get_target(self, name: str) -> Tuple[LaunchRequest, NodeDescriptor]:
        """
        Build the launch request and node descriptor for a named target.

        Target values override the defaults section. A password may be
        read from the environment variable named by password_env.

        Raises:
            ConfigLoadError: If the target is unknown or lacks host/remote_fs
        """
        definition = self.get_target_definition(name)
        if definition is None:
            raise ConfigLoadError(f"Target '{name}' not found")

        defaults = self.get_defaults()
        if not definition.get("host"):
            raise ConfigLoadError(f"Target '{name}' does not define a host")
        if not definition.get("remote_fs"):
            raise ConfigLoadError(f"Target '{name}' does not define remote_fs")

        password = definition.get("password") or ""
        password_env = definition.get("password_env")
        if password_env:
            if password_env not in os.environ:
                raise ConfigLoadError(
                    f"Target '{name}' reads its password from ${password_env}, which is not set"
                )
            password = os.environ[password_env]

        request = LaunchRequest(
            host=definition["host"],
            port=int(definition.get("port") or defaults.get("port") or DEFAULT_SSH_PORT),
            username=definition.get("username") or "",
            password=password,
            private_key=definition.get("private_key") or "",
            runtime_options=definition.get(
                "runtime_options", defaults.get("runtime_options", "")
            )
            or "",
            runtime_path=definition.get("runtime_path") or "",
        )

        properties = []
        env = definition.get("env")
        if env:
            properties.append(
                EnvironmentVariablesProperty({str(k): str(v) for k, v in env.items()})
            )
        tools = definition.get("tools")
        if tools:
            locations = [
                ToolLocation(
                    type=tool.get("type", "jdk"),
                    name=tool.get("name", ""),
                    home=tool["home"],
                )
                for tool in tools
            ]
            properties.append(ToolLocationProperty(locations))

        node = NodeDescriptor(name=name, remote_fs=definition["remote_fs"], properties=properties)
        return request, node

    def masked_config(self) -> Dict[str, Any]:
        """Merged configuration with secrets replaced by a mask."""
        container = OmegaConf.to_container(self.merged_config, resolve=True) or {}
        return _mask_secrets(container)

    def masked_yaml(self) -> str:
        return yaml.safe_dump(self.masked_config(), default_flow_style=False, sort_keys=False)


def _mask_secrets(value: Any) -> Any:
    if isinstance(value, dict):
        return {
            k: (MASK if k in SECRET_KEYS and v else _mask_secrets(v))
            for k, v in value.items()
        }
    if isinstance(value, list):
        return [_mask_secrets(item) for item in value]
    return value


def setup_logging(verbosity: Optional[int] = None):
    """
    Configures the logging level based on the verbosity provided by the user.

    Args:
        verbosity (int): The number of '-v' flags used, or from config.
                       - 0: ERROR level (default)
                       - 1: WARNING level
                       - 2: INFO level
                       - 3 or more: DEBUG level
    """
    if verbosity is None:
        verbosity = config_manager.get_config_value("defaults.verbosity") or 0

    root_logger = logging.getLogger()

    # Remove existing handlers to avoid conflicts
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    if verbosity == 1:
        level = logging.WARNING
        format_str = "%(levelname)s: %(message)s"
    elif verbosity == 2:
        level = logging.INFO
        format_str = "%(levelname)s: %(message)s"
    elif verbosity >= 3:
        level = logging.DEBUG
        format_str = "%(levelname)s:%(name)s: %(message)s"
    else:
        level = logging.ERROR
        format_str = "%(levelname)s: %(message)s"

    root_logger.setLevel(level)
    handler = logging.StreamHandler()
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(format_str))
    root_logger.addHandler(handler)


# Global config manager instance
config_manager = ConfigManager()
