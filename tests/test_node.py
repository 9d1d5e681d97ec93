"""
Tests for node descriptors, launch requests and the listener.
"""

import io
import re

import pytest

from sshlaunch.config.target import LaunchRequest, Secret
from sshlaunch.listener import FileListener, StreamListener, timestamp
from sshlaunch.node import (
    EnvironmentVariablesProperty,
    NodeDescriptor,
    ToolLocation,
    ToolLocationProperty,
    normalize_working_directory,
)


class TestWorkingDirectory:
    """Test remote working directory normalisation."""

    @pytest.mark.parametrize(
        "path,expected",
        [
            ("/home/builder/agent/", "/home/builder/agent"),
            ("/home/builder/agent///", "/home/builder/agent"),
            ("/home/builder/agent", "/home/builder/agent"),
            ("relative/dir/", "relative/dir"),
        ],
    )
    def test_trailing_separators_stripped(self, path, expected):
        """Test stripping trailing separators."""
        assert normalize_working_directory(path) == expected

    def test_idempotent(self):
        """Test that normalisation is idempotent."""
        once = normalize_working_directory("/srv/agent//")
        assert normalize_working_directory(once) == once

    @pytest.mark.parametrize("path", ["", "/", "///", None])
    def test_empty_rejected(self, path):
        """Test that empty directories are rejected."""
        with pytest.raises(ValueError):
            normalize_working_directory(path)


class TestNodeDescriptor:
    """Test node property lookups."""

    def test_properties_keep_declaration_order(self):
        """Test that property records are kept in the order they were declared."""
        env = EnvironmentVariablesProperty({"JAVA_HOME": "/opt/jdk8"})
        tools = ToolLocationProperty([ToolLocation("jdk", "jdk11", "/opt/jdk11")])
        node = NodeDescriptor(name="node1", remote_fs="/srv/agent", properties=[tools, env])
        assert node.properties == [tools, env]


class TestLaunchRequest:
    """Test launch request defaults and secret handling."""

    def test_port_zero_defaults_to_22(self):
        """Test that port 0 becomes the default SSH port."""
        assert LaunchRequest(host="node1", port=0).port == 22

    def test_host_required(self):
        """Test that a request without a host raises error."""
        with pytest.raises(ValueError):
            LaunchRequest(host="")

    def test_password_wrapped_in_secret(self):
        """Test that plain passwords are wrapped in a Secret."""
        request = LaunchRequest(host="node1", password="secret")
        assert isinstance(request.password, Secret)
        assert request.password.reveal() == "secret"
        assert "secret" not in repr(request)
        assert "secret" not in str(request)

    def test_default_username(self, monkeypatch):
        """Test the username fallback."""
        monkeypatch.setattr("getpass.getuser", lambda: "localuser")
        assert LaunchRequest(host="node1").effective_username == "localuser"
        assert LaunchRequest(host="node1", username="builder").effective_username == "builder"

    def test_private_key_path(self):
        """Test private key path expansion."""
        assert LaunchRequest(host="node1").private_key_path is None
        assert LaunchRequest(host="node1", private_key="/keys/id").private_key_path.name == "id"


class TestListener:
    """Test the caller-facing log sink."""

    def test_timestamp_format(self):
        """Test the bracketed timestamp format."""
        assert re.fullmatch(r"\[\d\d/\d\d/\d\d \d\d:\d\d:\d\d\]", timestamp())

    def test_stream_accepts_bytes_and_text(self):
        """Test writing both bytes and text to a listener stream."""
        buffer = io.StringIO()
        listener = StreamListener(buffer)

        listener.get_logger().write(b"remote \xff bytes\n")
        listener.get_logger().println("text line")

        assert buffer.getvalue() == "remote \ufffd bytes\ntext line\n"

    def test_error_marker(self):
        """Test the error label written before details."""
        buffer = io.StringIO()
        StreamListener(buffer).error("Authentication failed.").println("details")
        assert buffer.getvalue() == "ERROR: Authentication failed.\ndetails\n"

    def test_file_listener_appends(self, tmp_path):
        """Test that a file listener appends to an existing log."""
        log_file = tmp_path / "logs" / "node1.log"

        first = FileListener(log_file)
        first.log("first")
        first.close()
        second = FileListener(log_file)
        second.log("second")
        second.close()

        lines = log_file.read_text().splitlines()
        assert lines[0].endswith(" first")
        assert lines[1].endswith(" second")
