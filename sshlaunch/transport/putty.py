"""
PuTTY private key (.ppk) conversion.

PuTTY stores keys in its own text container. paramiko only reads OpenSSH
and PEM keys, so PuTTY keys are decoded here and re-serialised to the
OpenSSH format in memory. Supported: format 2 and 3 unencrypted keys and
format 2 keys encrypted with aes256-cbc, for RSA, Ed25519 and ECDSA.
"""

import base64
import hashlib
import hmac
import io
import logging
import struct
from pathlib import Path
from typing import Dict, List, Tuple, Union

import paramiko
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec, ed25519, rsa
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

logger = logging.getLogger(__name__)

PUTTY_HEADER_PREFIX = "PuTTY-User-Key-File-"

_CURVES = {
    "nistp256": ec.SECP256R1,
    "nistp384": ec.SECP384R1,
    "nistp521": ec.SECP521R1,
}


def is_putty_key_file(path: Union[str, Path]) -> bool:
    """Check whether a key file uses the PuTTY container format."""
    try:
        with open(path, "r", encoding="utf-8", errors="replace") as f:
            first = f.readline()
    except OSError:
        return False
    return first.startswith(PUTTY_HEADER_PREFIX)


def _ssh_string(data: bytes) -> bytes:
    return struct.pack(">I", len(data)) + data


def _parse(text: str) -> Tuple[int, Dict[str, str], bytes, bytes]:
    """Split a .ppk file into format version, headers and the two blobs."""
    lines = text.splitlines()
    headers: Dict[str, str] = {}
    blobs: Dict[str, bytes] = {}
    version = 0
    i = 0
    while i < len(lines):
        line = lines[i].strip()
        i += 1
        if not line or ":" not in line:
            continue
        key, value = (part.strip() for part in line.split(":", 1))
        if key.startswith(PUTTY_HEADER_PREFIX):
            version = int(key[len(PUTTY_HEADER_PREFIX):])
            headers["Algorithm"] = value
        elif key in ("Public-Lines", "Private-Lines"):
            count = int(value)
            chunk: List[str] = [ln.strip() for ln in lines[i : i + count]]
            i += count
            blobs[key] = base64.b64decode("".join(chunk))
        else:
            headers[key] = value

    if version not in (2, 3):
        raise paramiko.SSHException(f"Unsupported PuTTY key format version: {version}")
    if "Public-Lines" not in blobs or "Private-Lines" not in blobs:
        raise paramiko.SSHException("Truncated PuTTY key file")
    return version, headers, blobs["Public-Lines"], blobs["Private-Lines"]


def _decrypt_v2(private_blob: bytes, passphrase: str) -> bytes:
    secret = passphrase.encode("utf-8")
    key = (
        hashlib.sha1(b"\x00\x00\x00\x00" + secret).digest()
        + hashlib.sha1(b"\x00\x00\x00\x01" + secret).digest()
    )[:32]
    decryptor = Cipher(algorithms.AES(key), modes.CBC(b"\x00" * 16)).decryptor()
    return decryptor.update(private_blob) + decryptor.finalize()


def _verify_mac(
    version: int,
    headers: Dict[str, str],
    public_blob: bytes,
    private_blob: bytes,
    passphrase: str,
) -> None:
    expected = headers.get("Private-MAC")
    if not expected:
        raise paramiko.SSHException("PuTTY key file has no Private-MAC")

    encryption = headers.get("Encryption", "none")
    data = b"".join(
        _ssh_string(value)
        for value in (
            headers["Algorithm"].encode(),
            encryption.encode(),
            headers.get("Comment", "").encode(),
            public_blob,
            private_blob,
        )
    )
    if version == 2:
        mac_key = hashlib.sha1(
            b"putty-private-key-file-mac-key"
            + (passphrase.encode("utf-8") if encryption != "none" else b"")
        ).digest()
        actual = hmac.new(mac_key, data, hashlib.sha1).hexdigest()
    else:
        actual = hmac.new(b"", data, hashlib.sha256).hexdigest()

    if not hmac.compare_digest(actual, expected.lower()):
        raise paramiko.PasswordRequiredException(
            "PuTTY key MAC mismatch (wrong passphrase or corrupted file)"
        )


def _private_key(algorithm: str, public_blob: bytes, private_blob: bytes):
    pub = paramiko.Message(public_blob)
    priv = paramiko.Message(private_blob)
    if pub.get_text() != algorithm:
        raise paramiko.SSHException("PuTTY key algorithm does not match its public blob")

    if algorithm == "ssh-rsa":
        e = pub.get_mpint()
        n = pub.get_mpint()
        d = priv.get_mpint()
        p = priv.get_mpint()
        q = priv.get_mpint()
        iqmp = priv.get_mpint()
        numbers = rsa.RSAPrivateNumbers(
            p=p,
            q=q,
            d=d,
            dmp1=rsa.rsa_crt_dmp1(d, p),
            dmq1=rsa.rsa_crt_dmq1(d, q),
            iqmp=iqmp,
            public_numbers=rsa.RSAPublicNumbers(e, n),
        )
        return numbers.private_key(), paramiko.RSAKey
    if algorithm == "ssh-ed25519":
        return (
            ed25519.Ed25519PrivateKey.from_private_bytes(priv.get_binary()),
            paramiko.Ed25519Key,
        )
    if algorithm.startswith("ecdsa-sha2-"):
        curve_name = pub.get_text()
        curve = _CURVES.get(curve_name)
        if curve is None:
            raise paramiko.SSHException(f"Unsupported ECDSA curve: {curve_name}")
        return ec.derive_private_key(priv.get_mpint(), curve()), paramiko.ECDSAKey
    raise paramiko.SSHException(f"Unsupported PuTTY key algorithm: {algorithm}")


def _convert(text: str, passphrase: str):
    version, headers, public_blob, private_blob = _parse(text)
    encryption = headers.get("Encryption", "none")
    if encryption == "aes256-cbc":
        if version != 2:
            raise paramiko.SSHException(
                "Encrypted PuTTY format 3 keys are not supported; "
                "re-export the key in OpenSSH format"
            )
        private_blob = _decrypt_v2(private_blob, passphrase)
    elif encryption != "none":
        raise paramiko.SSHException(f"Unsupported PuTTY key encryption: {encryption}")

    _verify_mac(version, headers, public_blob, private_blob, passphrase)
    key, key_class = _private_key(headers["Algorithm"], public_blob, private_blob)
    pem = key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.OpenSSH,
        encryption_algorithm=serialization.NoEncryption(),
    )
    logger.debug(f"Decoded PuTTY format {version} {headers['Algorithm']} key")
    return pem.decode("ascii"), key_class


def putty_to_openssh(text: str, passphrase: str = "") -> str:
    """
    Convert the contents of a PuTTY key file into an OpenSSH private key.

    Args:
        text: Contents of the .ppk file
        passphrase: Passphrase for encrypted keys

    Returns:
        The unencrypted key in OpenSSH PEM form

    Raises:
        paramiko.SSHException: If the key cannot be decoded
    """
    pem, _ = _convert(text, passphrase)
    return pem


def load_putty_key(path: Union[str, Path], passphrase: str = "") -> paramiko.PKey:
    """Read a PuTTY key file and return it as a paramiko key."""
    pem, key_class = _convert(Path(path).read_text(encoding="utf-8"), passphrase)
    return key_class.from_private_key(io.StringIO(pem))
