"""
Shared fixtures: in-memory stand-ins for the paramiko transport and channels.
"""

import io
import threading
from typing import Callable, Dict, List, Optional, Tuple, Union
from unittest.mock import Mock

import paramiko
import pytest

from sshlaunch.config.target import LaunchRequest, LaunchSettings
from sshlaunch.listener import StreamListener
from sshlaunch.node import NodeDescriptor

Response = Tuple[bytes, bytes, Optional[int]]
Script = Dict[str, Union[Response, Callable[[str], Response]]]


class FakeChannel:
    """Minimal paramiko.Channel replacement driven by a command script."""

    def __init__(self, transport: "FakeTransport"):
        self.transport = transport
        self.command = None
        self.closed = False
        self.write_shutdown = False
        self.exit_status = -1
        self.status_event = threading.Event()
        self.stdin = io.BytesIO()
        self.sent = b""
        self._stdout = b""
        self._stderr = b""
        self._acks = bytearray(b"".join(transport.scp_acks))

    def exec_command(self, command):
        self.command = command
        self.transport.commands.append(command)
        stdout, stderr, status = self.transport.respond(command)
        self._stdout, self._stderr = stdout, stderr
        if status is not None:
            self.exit_status = status
            self.status_event.set()

    def makefile(self, mode="rb"):
        return io.BytesIO(self._stdout)

    def makefile_stderr(self, mode="rb"):
        return io.BytesIO(self._stderr)

    def makefile_stdin(self, mode="wb"):
        return self.stdin

    def exit_status_ready(self):
        return self.status_event.is_set()

    def shutdown_write(self):
        self.write_shutdown = True

    def sendall(self, data):
        self.sent += data

    def recv(self, size):
        data = bytes(self._acks[:size])
        del self._acks[:size]
        return data

    def close(self):
        self.closed = True


class FakeTransport:
    """Minimal paramiko.Transport replacement."""

    def __init__(
        self,
        script: Optional[Script] = None,
        accept_password: Optional[str] = None,
        accept_keys: Tuple = (),
    ):
        self.script = script or {}
        self.accept_password = accept_password
        self.accept_keys = accept_keys
        self.auth_attempts: List[Tuple[str, object]] = []
        self.authenticated = False
        self.commands: List[str] = []
        self.channels: List[FakeChannel] = []
        self.closed = False
        self.keepalive = None
        self.scp_acks: List[bytes] = [b"\x00", b"\x00", b"\x00"]
        self.server_key = Mock()
        self.server_key.get_name.return_value = "ssh-ed25519"
        self.server_key.get_fingerprint.return_value = b"\x01\x02"

    def respond(self, command: str) -> Response:
        response = self.script.get(command)
        if response is None:
            for prefix, candidate in self.script.items():
                if prefix.endswith("*") and command.startswith(prefix[:-1]):
                    response = candidate
                    break
        if callable(response):
            return response(command)
        return response or (b"", b"", 0)

    def get_remote_server_key(self):
        return self.server_key

    def set_keepalive(self, interval):
        self.keepalive = interval

    def auth_publickey(self, username, key):
        self.auth_attempts.append(("publickey", key))
        if key in self.accept_keys:
            self.authenticated = True
            return []
        raise _auth_failed()

    def auth_password(self, username, password):
        self.auth_attempts.append(("password", password))
        if self.accept_password is not None and password == self.accept_password:
            self.authenticated = True
            return []
        raise _auth_failed()

    def is_authenticated(self):
        return self.authenticated

    def open_session(self):
        channel = FakeChannel(self)
        self.channels.append(channel)
        return channel

    def close(self):
        self.closed = True


def _auth_failed():
    return paramiko.AuthenticationException("Authentication failed.")


@pytest.fixture
def fake_transport():
    return FakeTransport(accept_password="secret")


@pytest.fixture
def transport_factory(fake_transport):
    def factory(host, port, timeout):
        return fake_transport

    return factory


@pytest.fixture
def log_buffer():
    return io.StringIO()


@pytest.fixture
def listener(log_buffer):
    return StreamListener(log_buffer)


@pytest.fixture
def request_with_password():
    return LaunchRequest(host="node1.example.com", username="builder", password="secret")


@pytest.fixture
def settings(tmp_path):
    return LaunchSettings(
        exit_status_timeout=0.1,
        known_hosts=str(tmp_path / "known_hosts"),
    )


@pytest.fixture
def node():
    return NodeDescriptor(name="node1", remote_fs="/home/builder/agent/")


@pytest.fixture
def session(transport_factory, tmp_path):
    """A TransportSession already connected to the fake transport."""
    from sshlaunch.transport.session import TransportSession

    connected = TransportSession(
        "node1.example.com",
        22,
        known_hosts=str(tmp_path / "known_hosts"),
        transport_factory=transport_factory,
    )
    connected.connect()
    return connected


@pytest.fixture
def connect_fake(tmp_path):
    """Connect a session to a freshly configured FakeTransport."""
    from sshlaunch.transport.session import TransportSession

    def connect(**transport_kwargs):
        transport = FakeTransport(**transport_kwargs)
        connected = TransportSession(
            "node1.example.com",
            22,
            known_hosts=str(tmp_path / "known_hosts"),
            transport_factory=lambda host, port, timeout: transport,
        )
        connected.connect()
        return connected, transport

    return connect
