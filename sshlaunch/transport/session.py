"""
SSH transport session.

One TransportSession owns exactly one SSH connection for one launch
attempt. Its lifecycle is modelled as an explicit state value
(Unconnected, Connected or Closed) so operations that need a live
connection fail loudly instead of checking for None everywhere.
"""

import logging
import socket
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, Union

import paramiko

from ..config.target import MASK, LaunchRequest
from ..errors import SFTPUnavailableError, SSHConnectionError
from ..listener import Listener
from .keys import default_key_files, load_private_key

logger = logging.getLogger(__name__)

KEEPALIVE_INTERVAL = 30


class Unconnected:
    """No connection has been opened yet."""

    def __repr__(self) -> str:
        return "Unconnected()"


@dataclass(frozen=True)
class Connected:
    """A live, started SSH transport."""

    transport: paramiko.Transport


class Closed:
    """The connection was closed; the session cannot be reused."""

    def __repr__(self) -> str:
        return "Closed()"


SessionState = Union[Unconnected, Connected, Closed]

TransportFactory = Callable[[str, int, Optional[float]], paramiko.Transport]


def open_transport(host: str, port: int, timeout: Optional[float]) -> paramiko.Transport:
    """Open a TCP connection and run the SSH handshake."""
    sock = socket.create_connection((host, port), timeout=timeout)
    transport = paramiko.Transport(sock)
    try:
        transport.start_client(timeout=timeout)
    except Exception:
        transport.close()
        raise
    return transport


class TransportSession:
    """Owns one SSH connection and opens sub-sessions on it."""

    def __init__(
        self,
        host: str,
        port: int,
        connect_timeout: Optional[float] = None,
        strict_host_keys: bool = False,
        known_hosts: str = "~/.ssh/known_hosts",
        transport_factory: Optional[TransportFactory] = None,
    ):
        self.host = host
        self.port = port
        self.connect_timeout = connect_timeout
        self.strict_host_keys = strict_host_keys
        self.known_hosts = known_hosts
        self._transport_factory = transport_factory or open_transport
        self._state: SessionState = Unconnected()
        self._lock = threading.Lock()

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return isinstance(self._state, Connected)

    def _transport(self) -> paramiko.Transport:
        state = self._state
        if not isinstance(state, Connected):
            raise SSHConnectionError(
                f"SSH session to {self.host}:{self.port} is not connected ({state!r})",
                host=self.host,
            )
        return state.transport

    def connect(self) -> None:
        """
        Open the connection and complete the SSH handshake.

        Raises:
            SSHConnectionError: If the host cannot be reached, the handshake
                fails, or strict host key checking rejects the server key
        """
        with self._lock:
            if not isinstance(self._state, Unconnected):
                raise SSHConnectionError(
                    f"SSH session already used ({self._state!r})", host=self.host
                )
            try:
                transport = self._transport_factory(
                    self.host, self.port, self.connect_timeout
                )
            except (OSError, EOFError, paramiko.SSHException) as e:
                self._state = Closed()
                raise SSHConnectionError(
                    f"Failed to connect to {self.host}:{self.port}: {e}", host=self.host
                ) from e

            try:
                self._verify_host_key(transport)
            except SSHConnectionError:
                transport.close()
                self._state = Closed()
                raise

            transport.set_keepalive(KEEPALIVE_INTERVAL)
            self._state = Connected(transport)

    def _verify_host_key(self, transport: paramiko.Transport) -> None:
        key = transport.get_remote_server_key()
        lookup = self.host if self.port == 22 else f"[{self.host}]:{self.port}"
        host_keys = paramiko.HostKeys()
        known_hosts = Path(self.known_hosts).expanduser()
        if known_hosts.exists():
            try:
                host_keys.load(str(known_hosts))
            except (OSError, paramiko.SSHException) as e:
                logger.warning(f"Could not read {known_hosts}: {e}")

        if host_keys.check(lookup, key):
            logger.debug(f"Host key for {lookup} verified against {known_hosts}")
            return
        if self.strict_host_keys:
            raise SSHConnectionError(
                f"Host key verification failed for {lookup}: "
                f"{key.get_name()} key is not in {known_hosts}",
                host=self.host,
            )
        logger.info(
            f"Accepting unverified {key.get_name()} host key for {lookup} "
            f"({key.get_fingerprint().hex()})"
        )

    def authenticate(self, request: LaunchRequest, listener: Listener) -> bool:
        """
        Try public key and password authentication in a fixed order.

        1. With neither key nor password configured, the default key files
           in ~/.ssh are tried one by one.
        2. An explicit key file (PuTTY keys are converted first) is tried
           with the password as passphrase.
        3. Password authentication with the (possibly empty) password.

        Returns:
            True only when the server reports authentication as complete
        """
        transport = self._transport()
        username = request.effective_username
        password = request.password.reveal()
        key_path = request.private_key_path
        authenticated = False

        if key_path is None and not password:
            for key_file in default_key_files():
                listener.log(f"Authenticating as {username} with {key_file}")
                try:
                    key = load_private_key(key_file)
                except (paramiko.SSHException, ValueError, OSError) as e:
                    logger.debug(f"Skipping default key {key_file}: {e}")
                    continue
                authenticated = self._auth_publickey(transport, username, key)
                if authenticated:
                    break

        if not authenticated and key_path is not None:
            if key_path.exists():
                listener.log(f"Authenticating as {username} with {key_path}")
                try:
                    key = load_private_key(key_path, password)
                except (paramiko.SSHException, ValueError, OSError) as e:
                    listener.log(f"Could not load private key {key_path}: {e}")
                else:
                    authenticated = self._auth_publickey(transport, username, key)
            else:
                logger.debug(f"Private key {key_path} does not exist")

        if not authenticated:
            listener.log(f"Authenticating as {username}/{MASK}")
            authenticated = self._auth_password(transport, username, password)

        return authenticated and transport.is_authenticated()

    def _auth_publickey(
        self, transport: paramiko.Transport, username: str, key: paramiko.PKey
    ) -> bool:
        try:
            transport.auth_publickey(username, key)
        except paramiko.AuthenticationException as e:
            logger.debug(f"Public key authentication failed: {e}")
            return False
        except paramiko.SSHException as e:
            raise SSHConnectionError(
                f"Connection lost during authentication: {e}", host=self.host
            ) from e
        return transport.is_authenticated()

    def _auth_password(
        self, transport: paramiko.Transport, username: str, password: str
    ) -> bool:
        try:
            transport.auth_password(username, password)
        except paramiko.AuthenticationException as e:
            logger.debug(f"Password authentication failed: {e}")
            return False
        except paramiko.SSHException as e:
            raise SSHConnectionError(
                f"Connection lost during authentication: {e}", host=self.host
            ) from e
        return transport.is_authenticated()

    def open_command_channel(self) -> paramiko.Channel:
        """Open a session channel for a single remote command."""
        try:
            return self._transport().open_session()
        except paramiko.SSHException as e:
            raise SSHConnectionError(
                f"Could not open a session channel: {e}", host=self.host
            ) from e

    def open_sftp(self) -> paramiko.SFTPClient:
        """
        Open an SFTP sub-session.

        Raises:
            SFTPUnavailableError: If the server refuses the sftp subsystem
        """
        transport = self._transport()
        try:
            client = paramiko.SFTPClient.from_transport(transport)
        except (paramiko.SSHException, EOFError, OSError) as e:
            raise SFTPUnavailableError(f"SFTP subsystem is not available: {e}") from e
        if client is None:
            raise SFTPUnavailableError("SFTP subsystem is not available")
        return client

    def close(self) -> None:
        """Close the connection. Safe to call in any state, any number of times."""
        with self._lock:
            state = self._state
            self._state = Closed()
        if isinstance(state, Connected):
            state.transport.close()
            logger.debug(f"Closed SSH connection to {self.host}:{self.port}")

    def __repr__(self) -> str:
        return f"TransportSession({self.host}:{self.port}, {self._state!r})"
