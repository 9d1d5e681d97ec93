"""
Payload upload over SFTP.
"""

import logging
import posixpath
import stat

import paramiko

from ..errors import TransferError
from ..listener import Listener, timestamp

logger = logging.getLogger(__name__)

CHUNK_SIZE = 32 * 1024
DIRECTORY_MODE = 0o700


def stat_or_none(sftp: paramiko.SFTPClient, path: str):
    """Return the attributes of a remote path, or None if it does not exist."""
    try:
        return sftp.stat(path)
    except FileNotFoundError:
        return None


def makedirs(sftp: paramiko.SFTPClient, path: str, mode: int = DIRECTORY_MODE) -> None:
    """Create a remote directory and any missing parents."""
    parent = posixpath.dirname(path)
    if parent and parent != path and stat_or_none(sftp, parent) is None:
        makedirs(sftp, parent, mode)
    sftp.mkdir(path, mode)


def upload(
    sftp: paramiko.SFTPClient,
    payload: bytes,
    remote_dir: str,
    file_name: str,
    listener: Listener,
) -> int:
    """
    Copy the payload into remote_dir, replacing any previous copy.

    Returns:
        Number of bytes written

    Raises:
        TransferError: If remote_dir is a regular file or any step fails
    """
    out = listener.get_logger()
    target = f"{remote_dir}/{file_name}"

    try:
        attributes = stat_or_none(sftp, remote_dir)
        if attributes is None:
            out.println(
                f"{timestamp()} Remote file system root {remote_dir} "
                "does not exist. Will try to create it..."
            )
            makedirs(sftp, remote_dir, DIRECTORY_MODE)
        elif stat.S_ISREG(attributes.st_mode or 0):
            raise TransferError(f"{remote_dir} is a file, not a directory")

        # A shorter payload must not leave the tail of an older one behind
        try:
            sftp.remove(target)
        except IOError:
            logger.debug(f"Couldn't delete {target}. File doesn't exist.")

        out.println(f"{timestamp()} Copying {file_name} over SFTP")
        written = 0
        with sftp.open(target, "wb") as remote_file:
            for offset in range(0, len(payload), CHUNK_SIZE):
                chunk = payload[offset : offset + CHUNK_SIZE]
                remote_file.write(chunk)
                written += len(chunk)
    except TransferError:
        raise
    except (OSError, EOFError, paramiko.SSHException) as e:
        raise TransferError(f"Error copying {file_name} to {target}: {e}") from e

    out.println(f"{timestamp()} Copied {written} bytes.")
    return written
