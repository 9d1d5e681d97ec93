"""
End-to-end tests of the bootstrap orchestrator against the fake transport.
"""

from unittest.mock import patch

import pytest

from sshlaunch.bootstrap import LaunchState, SSHLauncher
from sshlaunch.config.target import LaunchRequest
from sshlaunch.errors import (
    AuthError,
    ChannelJunkError,
    ResolutionError,
    SFTPUnavailableError,
    SSHConnectionError,
)
from sshlaunch.payload import BytesPayloadSource
from sshlaunch.runtime import StaticRuntimeProvider
from sshlaunch.transport import registry
from sshlaunch.transport.executor import NullSink
from sshlaunch.transport.session import TransportSession

JAVA_OK = (b"", b'java version "1.8.0_212"\n', 0)


@pytest.fixture
def no_sftp():
    with patch.object(
        TransportSession, "open_sftp", side_effect=SFTPUnavailableError("no sftp")
    ):
        yield


@pytest.fixture
def bound():
    return {}


@pytest.fixture
def launcher(request_with_password, settings, transport_factory, bound):
    def binder(stdout, stdin, log, on_close):
        bound.update(stdout=stdout, stdin=stdin, on_close=on_close)
        return "bound channel"

    created = SSHLauncher(
        request_with_password,
        settings,
        payload=BytesPayloadSource(b"payload bytes"),
        binder=binder,
        transport_factory=transport_factory,
        providers=[StaticRuntimeProvider(["/usr/bin/java"])],
    )
    yield created
    if created.session is not None:
        registry.unregister(created.session)
        created.session.close()


class TestSuccessfulLaunch:
    """Test the full launch and disconnect sequence."""

    def test_launch_and_disconnect(self, launcher, fake_transport, node, listener, log_buffer, no_sftp):
        """Test the full launch sequence and payload cleanup on disconnect."""
        fake_transport.script = {
            "/usr/bin/java -version": JAVA_OK,
            "cd *": (b"", b"", None),
        }

        result = launcher.launch(node, listener)

        assert result.success, result.error
        assert result.state == LaunchState.RUNNING
        assert result.runtime == "/usr/bin/java"
        assert result.working_directory == "/home/builder/agent"
        assert result.transfer.protocol == "scp"
        assert result.transfer.bytes_transferred == len(b"payload bytes")
        assert result.channel == "bound channel"
        assert fake_transport.commands == [
            "true",
            "set",
            "/usr/bin/java -version",
            "test -d /home/builder/agent",
            "rm /home/builder/agent/agent.jar",
            "scp -t -d /home/builder/agent",
            "cd '/home/builder/agent' && /usr/bin/java -jar agent.jar",
        ]
        assert launcher.session in registry.active_sessions()

        session = launcher.session
        launcher.after_disconnect(node, listener)

        assert fake_transport.commands[-1] == "rm /home/builder/agent/agent.jar"
        assert launcher.session is None
        assert launcher.state == LaunchState.CLOSED
        assert session not in registry.active_sessions()
        assert fake_transport.closed
        assert "Connection closed." in log_buffer.getvalue()

    def test_check_resolves_and_disconnects(self, launcher, fake_transport, node, listener):
        """Test that check resolves a runtime without copying the payload."""
        fake_transport.script = {"/usr/bin/java -version": JAVA_OK}

        result = launcher.check(node, listener)

        assert result.success
        assert result.runtime == "/usr/bin/java"
        assert result.state == LaunchState.CLOSED
        assert launcher.session is None
        assert fake_transport.closed
        assert not any(c.startswith("scp") for c in fake_transport.commands)

    def test_runtime_override_skips_probe(self, settings, transport_factory, fake_transport, node, listener):
        """Test that a configured runtime path is used without probing."""
        request = LaunchRequest(
            host="node1.example.com",
            username="builder",
            password="secret",
            runtime_path="/opt/jdk/bin/java",
        )
        launcher = SSHLauncher(request, settings, transport_factory=transport_factory)

        result = launcher.check(node, listener)

        assert result.runtime == "/opt/jdk/bin/java"
        assert fake_transport.commands == ["true", "set"]


class TestFailedLaunch:
    """Every failure before RUNNING closes and clears the session."""

    def _assert_closed(self, launcher, result, fake_transport, log_buffer):
        assert not result.success
        assert result.state == LaunchState.CLOSED
        assert launcher.session is None
        assert fake_transport.closed
        assert "Connection closed." in log_buffer.getvalue()

    def test_authentication_failure(self, settings, transport_factory, fake_transport, node, listener, log_buffer):
        """Test that rejected credentials close the session."""
        request = LaunchRequest(host="node1.example.com", username="builder", password="wrong")
        launcher = SSHLauncher(
            request, settings, BytesPayloadSource(b"x"), transport_factory=transport_factory
        )

        result = launcher.launch(node, listener)

        assert isinstance(result.error, AuthError)
        assert fake_transport.commands == []
        assert "ERROR: Authentication failed." in log_buffer.getvalue()
        self._assert_closed(launcher, result, fake_transport, log_buffer)

    def test_no_credentials_falls_through_to_empty_password(
        self, settings, transport_factory, fake_transport, node, listener, log_buffer
    ):
        """Test that no key, no password and no default keys try an empty password."""
        request = LaunchRequest(host="node1.example.com", username="builder")
        launcher = SSHLauncher(
            request, settings, BytesPayloadSource(b"x"), transport_factory=transport_factory
        )

        with patch("sshlaunch.transport.session.default_key_files", return_value=[]):
            result = launcher.launch(node, listener)

        assert isinstance(result.error, AuthError)
        assert fake_transport.auth_attempts == [("password", "")]
        self._assert_closed(launcher, result, fake_transport, log_buffer)

    def test_channel_junk(self, launcher, fake_transport, node, listener, log_buffer):
        """Test that output from a quiet command aborts the launch."""
        fake_transport.script = {"true": (b"Welcome to node1!\n", b"", 0)}

        result = launcher.launch(node, listener)

        assert isinstance(result.error, ChannelJunkError)
        assert result.error.junk == "Welcome to node1!\n"
        assert fake_transport.commands == ["true"]
        self._assert_closed(launcher, result, fake_transport, log_buffer)

    def test_no_supported_runtime(self, launcher, fake_transport, node, listener, log_buffer):
        """Test that a launch with no usable runtime stops before the transfer."""
        fake_transport.script = {"/usr/bin/java -version": (b"", b'java version "1.4.2"\n', 0)}

        result = launcher.launch(node, listener)

        assert isinstance(result.error, ResolutionError)
        assert result.error.tried == ["/usr/bin/java"]
        assert result.transfer is None
        self._assert_closed(launcher, result, fake_transport, log_buffer)

    def test_connection_refused(self, request_with_password, settings, node, listener):
        """Test that a refused connection leaves no session behind."""
        def refuse(host, port, timeout):
            raise ConnectionRefusedError("Connection refused")

        launcher = SSHLauncher(request_with_password, settings, transport_factory=refuse)

        result = launcher.launch(node, listener)

        assert isinstance(result.error, SSHConnectionError)
        assert launcher.session is None
        assert launcher.state == LaunchState.CLOSED

    def test_empty_working_directory(self, launcher, fake_transport, listener, log_buffer):
        """Test that a root-only remote directory is rejected."""
        from sshlaunch.node import NodeDescriptor

        result = launcher.launch(NodeDescriptor(name="bad", remote_fs="/"), listener)

        assert isinstance(result.error, ValueError)
        self._assert_closed(launcher, result, fake_transport, log_buffer)


class TestExec:
    def test_exec_without_session(self, launcher):
        """Test exec before any session is connected."""
        assert launcher.exec("true", NullSink()) == -1

    def test_after_disconnect_without_session(self, launcher, node, listener):
        """Test cleanup when nothing was launched."""
        launcher.after_disconnect(node, listener)
        assert launcher.state == LaunchState.CLOSED
