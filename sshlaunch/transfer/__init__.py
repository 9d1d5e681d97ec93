"""
Payload transfer package for sshlaunch.

SFTP is the primary protocol. When the remote host does not offer the
SFTP subsystem the payload is pushed with SCP instead. Once an SFTP
session is open, any later failure is fatal and never falls back.
"""

import logging
from dataclasses import dataclass

import paramiko

from ..errors import SFTPUnavailableError, SSHLaunchError, TransferError
from ..listener import Listener, timestamp
from ..transport.executor import CommandExecutor, NullSink
from ..transport.session import TransportSession
from . import sftp
from .scp import SCPClient

logger = logging.getLogger(__name__)

PAYLOAD_MODE = "0644"


@dataclass(frozen=True)
class TransferOutcome:
    """Result of copying the payload, used for reporting."""

    success: bool
    bytes_transferred: int
    protocol: str


class PayloadTransfer:
    """Copies the worker payload into the remote working directory."""

    def __init__(self, session: TransportSession, executor: CommandExecutor, listener: Listener):
        self.session = session
        self.executor = executor
        self.listener = listener

    def transfer(self, payload: bytes, remote_dir: str, file_name: str) -> TransferOutcome:
        """
        Copy the payload to remote_dir/file_name.

        Raises:
            TransferError: If the copy failed with either protocol
        """
        self.listener.log("Starting sftp client.")
        try:
            client = self.session.open_sftp()
        except SFTPUnavailableError as e:
            logger.debug(f"Falling back to scp: {e}")
            return self._transfer_with_scp(payload, remote_dir, file_name)

        try:
            written = sftp.upload(client, payload, remote_dir, file_name, self.listener)
        finally:
            client.close()
        return TransferOutcome(success=True, bytes_transferred=written, protocol="sftp")

    def _transfer_with_scp(self, payload: bytes, remote_dir: str, file_name: str) -> TransferOutcome:
        self.listener.log("Starting scp client.")
        out = self.listener.get_logger()
        try:
            if self.executor.exec(f"test -d {remote_dir}", out) != 0:
                out.println(
                    f"{timestamp()} Remote file system root {remote_dir} "
                    "does not exist. Will try to create it..."
                )
                if self.executor.exec(f"mkdir -p {remote_dir}", out) != 0:
                    out.println(f"Failed to create {remote_dir}")

            # Delete the previous payload as we do with SFTP
            self.executor.exec(f"rm {remote_dir}/{file_name}", NullSink())

            out.println(f"{timestamp()} Copying {file_name} over SCP")
            written = SCPClient(self.session).put(payload, file_name, remote_dir, PAYLOAD_MODE)
        except TransferError:
            raise
        except (SSHLaunchError, OSError, EOFError, paramiko.SSHException) as e:
            raise TransferError(f"Error copying {file_name} with scp: {e}") from e

        out.println(f"{timestamp()} Copied {written} bytes.")
        return TransferOutcome(success=True, bytes_transferred=written, protocol="scp")

    def remove(self, remote_dir: str, file_name: str) -> None:
        """Delete a previously transferred payload, logging any failure."""
        target = f"{remote_dir}/{file_name}"
        try:
            client = self.session.open_sftp()
        except SFTPUnavailableError:
            try:
                self.executor.exec(f"rm {target}", self.listener.get_logger())
            except (SSHLaunchError, OSError, paramiko.SSHException) as e:
                self.listener.print_exception(e, f"{timestamp()} Error deleting file.")
            return
        except SSHLaunchError as e:
            self.listener.print_exception(e, f"{timestamp()} Error deleting file.")
            return

        try:
            client.remove(target)
        except (OSError, paramiko.SSHException) as e:
            self.listener.print_exception(e, f"{timestamp()} Error deleting file.")
        finally:
            client.close()


__all__ = ["PayloadTransfer", "TransferOutcome", "SCPClient", "PAYLOAD_MODE"]
