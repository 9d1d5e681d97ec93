"""
Runtime discovery on the remote host.

Candidates from every registered provider are probed with
`<candidate> <options> -version` until one reports a version at or above
the configured minimum.
"""

import io
import logging
import re
from typing import Iterable, List, Optional

from ..errors import ResolutionError, SSHLaunchError
from ..listener import Listener, timestamp
from ..transport.executor import CommandExecutor
from .providers import CandidateRuntime, ResolutionContext, RuntimeProvider, all_providers

logger = logging.getLogger(__name__)

VERSION_BANNER = re.compile(r'^\s*([\w.+-]+) version "([^"]*)"', re.IGNORECASE)
_LEADING_NUMBER = re.compile(r"^\d+(?:\.\d+)?")


def parse_version_number(value: str) -> float:
    """
    Parse the leading numeric part of a version string.

    Only the digits up to the second separator matter, so "1.8.0_212"
    gives 1.8 and "11.0.2" gives 11.0.

    Raises:
        ValueError: If the string does not start with a number
    """
    match = _LEADING_NUMBER.match(value.strip())
    if not match:
        raise ValueError(f"Not a version number: {value!r}")
    return float(match.group(0))


def check_version_output(
    lines: Iterable[str],
    minimum: float,
    logger_stream=None,
    command: str = "",
) -> Optional[str]:
    """
    Scan `-version` output for an acceptable version banner.

    Args:
        lines: Output lines of the version command
        minimum: Lowest acceptable version number
        logger_stream: Optional listener stream for progress messages
        command: The runtime being checked, for messages

    Returns:
        The accepted version string, or None if no line qualified
    """
    for line in lines:
        match = VERSION_BANNER.match(line)
        if not match:
            continue
        version = match.group(2)
        if logger_stream is not None:
            logger_stream.println(f"{timestamp()} {command} -version returned {version}.")
        try:
            number = parse_version_number(version)
        except ValueError:
            logger.debug(f"Unparseable version banner: {line.strip()}")
            continue
        if number < minimum:
            logger.debug(f"Version {version} of {command} is older than {minimum}")
            continue
        return version
    return None


class RuntimeResolver:
    """Finds a runtime on the remote host that is new enough."""

    def __init__(
        self,
        executor: CommandExecutor,
        listener: Listener,
        runtime_options: str = "",
        minimum_version: float = 1.5,
        providers: Optional[List[RuntimeProvider]] = None,
    ):
        self.executor = executor
        self.listener = listener
        self.runtime_options = runtime_options
        self.minimum_version = minimum_version
        self.providers = providers

    def version_command(self, candidate: str) -> str:
        return " ".join(p for p in (candidate, self.runtime_options, "-version") if p)

    def candidates(self, context: ResolutionContext) -> Iterable[CandidateRuntime]:
        providers = self.providers if self.providers is not None else all_providers()
        for provider in providers:
            for path in provider.candidates(context):
                yield CandidateRuntime(path=path, provider=provider)

    def probe(self, candidate: str) -> Optional[str]:
        """Run the version check for one candidate and return its accepted version."""
        out = self.listener.get_logger()
        out.println(f"{timestamp()} Checking java version of {candidate}")
        buffer = io.BytesIO()
        self.executor.exec(self.version_command(candidate), buffer)
        output = buffer.getvalue().decode("utf-8", errors="replace")
        version = check_version_output(
            output.splitlines(), self.minimum_version, out, candidate
        )
        if version is None:
            out.println(f"Unknown version string from {candidate}")
            out.write(output)
        return version

    def resolve(self, context: ResolutionContext, override: str = "") -> str:
        """
        Return the runtime to launch the payload with.

        Args:
            context: Node and working directory of the launch
            override: Explicitly configured runtime path, used without probing

        Raises:
            ResolutionError: If no candidate reports a supported version
        """
        if override and override.strip():
            return override

        tried: List[str] = []
        for candidate in self.candidates(context):
            logger.debug(f"Trying runtime at {candidate.path} from {candidate.provider!r}")
            tried.append(candidate.path)
            try:
                if self.probe(candidate.path) is not None:
                    return candidate.path
            except (SSHLaunchError, OSError) as e:
                logger.debug(f"Failed to check the version of {candidate.path}: {e}")
        raise ResolutionError(tried)
