"""
Private key discovery and loading.
"""

import logging
from pathlib import Path
from typing import List, Optional

import paramiko

from .putty import is_putty_key_file, load_putty_key

logger = logging.getLogger(__name__)

# Probed in order when no key and no password were configured
DEFAULT_KEY_NAMES = ("id_rsa", "id_dsa", "identity", "id_ecdsa", "id_ed25519")

KEY_CLASSES = (paramiko.RSAKey, paramiko.Ed25519Key, paramiko.ECDSAKey)


def default_key_files(home: Optional[Path] = None) -> List[Path]:
    """Return the default key files that exist under ~/.ssh, in probe order."""
    ssh_dir = (home or Path.home()) / ".ssh"
    found = []
    for name in DEFAULT_KEY_NAMES:
        key = ssh_dir / name
        if key.exists():
            found.append(key)
        else:
            logger.debug(f"Default key {key} does not exist")
    return found


def load_private_key(path: Path, passphrase: Optional[str] = None) -> paramiko.PKey:
    """
    Load a private key, converting PuTTY keys to the OpenSSH format first.

    Args:
        path: Key file on the local disk
        passphrase: Passphrase for encrypted keys

    Returns:
        A paramiko key object

    Raises:
        paramiko.SSHException: If the key cannot be read or decrypted
    """
    if is_putty_key_file(path):
        logger.debug(f"{path} is a PuTTY key file")
        return load_putty_key(path, passphrase or "")
    last_error: Optional[Exception] = None
    for key_class in KEY_CLASSES:
        try:
            return key_class.from_private_key_file(str(path), password=passphrase or None)
        except paramiko.PasswordRequiredException:
            raise
        except (paramiko.SSHException, ValueError) as e:
            last_error = e
    raise paramiko.SSHException(f"Could not parse private key {path}: {last_error}")
