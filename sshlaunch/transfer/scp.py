"""
Minimal SCP sink client over an exec channel.

Used when the remote host has no SFTP subsystem. Only the single-file
upload ("scp -t") half of the protocol is implemented.
"""

import logging
import shlex

from ..errors import TransferError
from ..transport.session import TransportSession

logger = logging.getLogger(__name__)

_OK = b"\x00"
_WARNING = b"\x01"
_ERROR = b"\x02"


class SCPClient:
    """Uploads in-memory data with the remote `scp -t` sink."""

    def __init__(self, session: TransportSession):
        self.session = session

    def put(self, data: bytes, remote_file_name: str, remote_dir: str, mode: str = "0644") -> int:
        """
        Upload a byte block as remote_dir/remote_file_name.

        Returns:
            Number of bytes sent

        Raises:
            TransferError: If the remote scp rejects the upload
        """
        channel = self.session.open_command_channel()
        try:
            channel.exec_command(f"scp -t -d {shlex.quote(remote_dir)}")
            self._read_ack(channel)

            header = f"C{mode} {len(data)} {remote_file_name}\n"
            channel.sendall(header.encode("utf-8"))
            self._read_ack(channel)

            channel.sendall(data)
            channel.sendall(_OK)
            self._read_ack(channel)

            channel.shutdown_write()
            logger.debug(f"Sent {len(data)} bytes to {remote_dir}/{remote_file_name} via scp")
            return len(data)
        finally:
            channel.close()

    @staticmethod
    def _read_ack(channel) -> None:
        code = channel.recv(1)
        if code == _OK:
            return
        if not code:
            raise TransferError("Remote scp terminated unexpectedly")

        message = b""
        while not message.endswith(b"\n"):
            chunk = channel.recv(1)
            if not chunk:
                break
            message += chunk
        text = message.decode("utf-8", errors="replace").strip()
        if code in (_WARNING, _ERROR):
            raise TransferError(f"Remote scp terminated with error ({text})")
        raise TransferError(f"Remote scp sent illegal response code {code!r}: {text}")
