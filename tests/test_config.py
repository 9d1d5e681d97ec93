"""
Tests for configuration loading and target resolution.
"""

import pytest
import yaml

from sshlaunch.config.manager import ConfigLoadError, ConfigManager
from sshlaunch.config.target import LaunchSettings
from sshlaunch.node import EnvironmentVariablesProperty, ToolLocationProperty


@pytest.fixture
def config_home(tmp_path, monkeypatch):
    """Point every config source at a temporary directory."""
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "user"))
    monkeypatch.setenv("XDG_CONFIG_DIRS", str(tmp_path / "system"))
    monkeypatch.delenv("SSHLAUNCH_CONFIG", raising=False)
    return tmp_path


def _write(path, data):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(yaml.safe_dump(data))
    return path


USER_CONFIG = {
    "defaults": {"runtime_options": "-Xmx128m", "exit_status_timeout": 5},
    "targets": {
        "build": {
            "host": "build.example.com",
            "port": 2222,
            "username": "builder",
            "password": "secret",
            "remote_fs": "/home/builder/agent/",
            "env": {"JAVA_HOME": "/opt/jdk11"},
            "tools": [{"type": "jdk", "name": "jdk8", "home": "/opt/jdk8"}],
        },
        "nohost": {"remote_fs": "/srv"},
    },
}


class TestConfigManager:
    """Test merging and target lookup."""

    def test_empty_configuration(self, config_home):
        """Test loading with no configuration files."""
        manager = ConfigManager()

        assert manager.list_targets() == []
        assert manager.get_defaults() == {}
        assert manager.settings() == LaunchSettings()

    def test_user_overrides_system(self, config_home):
        """Test that user configuration overrides system configuration."""
        _write(config_home / "system" / "sshlaunch" / "config.yaml", {"defaults": {"payload_name": "system.jar"}})
        _write(config_home / "user" / "sshlaunch" / "config.yaml", {"defaults": {"payload_name": "user.jar"}})

        assert ConfigManager().settings().payload_name == "user.jar"

    def test_env_file_has_highest_precedence(self, config_home, monkeypatch):
        """Test that SSHLAUNCH_CONFIG overrides user configuration."""
        _write(config_home / "user" / "sshlaunch" / "config.yaml", {"defaults": {"payload_name": "user.jar"}})
        env_file = _write(config_home / "env.yaml", {"defaults": {"payload_name": "env.jar"}})
        monkeypatch.setenv("SSHLAUNCH_CONFIG", str(env_file))

        assert ConfigManager().settings().payload_name == "env.jar"

    def test_bad_file_is_skipped_with_warning(self, config_home, capsys):
        """Test that an unreadable file is skipped with a warning."""
        bad = config_home / "user" / "sshlaunch" / "config.yaml"
        bad.parent.mkdir(parents=True)
        bad.write_text("defaults: [unclosed\n")

        manager = ConfigManager()

        assert manager.list_targets() == []
        assert "Warning: Failed to load user config" in capsys.readouterr().err

    def test_settings_from_defaults(self, config_home):
        """Test building launch settings from the defaults section."""
        _write(config_home / "user" / "sshlaunch" / "config.yaml", USER_CONFIG)

        settings = ConfigManager().settings()

        assert settings.exit_status_timeout == 5.0
        assert settings.min_runtime_version == 1.5

    def test_get_target(self, config_home):
        """Test building a launch request and node from a target."""
        _write(config_home / "user" / "sshlaunch" / "config.yaml", USER_CONFIG)

        request, node = ConfigManager().get_target("build")

        assert request.host == "build.example.com"
        assert request.port == 2222
        assert request.username == "builder"
        assert request.password.reveal() == "secret"
        assert request.runtime_options == "-Xmx128m"
        assert node.name == "build"
        assert node.working_directory == "/home/builder/agent"
        assert isinstance(node.properties[0], EnvironmentVariablesProperty)
        assert isinstance(node.properties[1], ToolLocationProperty)
        assert node.properties[1].locations[0].home == "/opt/jdk8"

    def test_password_from_environment(self, config_home, monkeypatch):
        """Test reading the password from password_env."""
        data = {"targets": {"ci": {"host": "ci", "remote_fs": "/srv", "password_env": "CI_PASS"}}}
        _write(config_home / "user" / "sshlaunch" / "config.yaml", data)
        monkeypatch.setenv("CI_PASS", "from-env")

        request, _ = ConfigManager().get_target("ci")

        assert request.password.reveal() == "from-env"

    def test_missing_password_env(self, config_home, monkeypatch):
        """Test that an unset password_env variable raises an error."""
        data = {"targets": {"ci": {"host": "ci", "remote_fs": "/srv", "password_env": "CI_PASS"}}}
        _write(config_home / "user" / "sshlaunch" / "config.yaml", data)
        monkeypatch.delenv("CI_PASS", raising=False)

        with pytest.raises(ConfigLoadError, match="CI_PASS"):
            ConfigManager().get_target("ci")

    def test_unknown_target(self, config_home):
        """Test that an unknown target raises an error."""
        with pytest.raises(ConfigLoadError, match="not found"):
            ConfigManager().get_target("missing")

    def test_target_without_host(self, config_home):
        """Test that a target without a host raises an error."""
        _write(config_home / "user" / "sshlaunch" / "config.yaml", USER_CONFIG)

        with pytest.raises(ConfigLoadError, match="host"):
            ConfigManager().get_target("nohost")

    def test_masked_config(self, config_home):
        """Test that passwords are masked in the displayed configuration."""
        _write(config_home / "user" / "sshlaunch" / "config.yaml", USER_CONFIG)

        manager = ConfigManager()

        assert manager.masked_config()["targets"]["build"]["password"] == "******"
        assert "secret" not in manager.masked_yaml()
