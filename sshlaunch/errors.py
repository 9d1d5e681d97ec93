"""
Exception hierarchy for sshlaunch.

Every failure of the bootstrap sequence is reported as a subclass of
SSHLaunchError so the orchestrator can catch them at a single boundary.
"""

from typing import List, Optional


class SSHLaunchError(Exception):
    """Base exception for remote launch errors."""

    pass


class SSHConnectionError(SSHLaunchError):
    """Raised when the SSH connection cannot be established."""

    def __init__(self, message: str, host: Optional[str] = None):
        super().__init__(message)
        self.host = host
        self.suggestions = self._get_suggestions()

    def _get_suggestions(self) -> List[str]:
        """Get troubleshooting suggestions for connection failures."""
        target = self.host or "hostname"
        return [
            "Verify network connectivity and VPN if required",
            f"Test connection manually: ssh {target} true",
            "Check that the host key is present in ~/.ssh/known_hosts",
        ]


class AuthError(SSHLaunchError):
    """Raised when no authentication method succeeded."""

    pass


class ChannelJunkError(SSHLaunchError):
    """Raised when the remote shell emits banner text on a clean command."""

    def __init__(self, junk: str):
        super().__init__(
            "SSH connection reports a garbage before a command execution. "
            "Check your .bashrc, .profile, and so on to make sure it is quiet."
        )
        self.junk = junk


class ResolutionError(SSHLaunchError):
    """Raised when no runtime candidate passed the version check."""

    def __init__(self, tried: List[str]):
        super().__init__(
            "Could not find any known supported runtime version in "
            f"{tried}, please install one on the remote node"
        )
        self.tried = list(tried)


class TransferError(SSHLaunchError):
    """Raised when the payload could not be copied to the remote host."""

    pass


class SFTPUnavailableError(TransferError):
    """Raised when the remote host does not offer the SFTP subsystem."""

    pass


class LaunchError(SSHLaunchError):
    """Raised when the remote process cannot be started or bound."""

    pass
