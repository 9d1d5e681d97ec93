"""
Runtime discovery package for sshlaunch.

Providers propose candidate interpreter paths; the resolver probes them on
the remote host and returns the first one with a supported version.
"""

from .providers import (
    CandidateRuntime,
    DefaultRuntimeProvider,
    ResolutionContext,
    RuntimeProvider,
    StaticRuntimeProvider,
    all_providers,
    register_provider,
    unregister_provider,
)
from .resolver import (
    VERSION_BANNER,
    RuntimeResolver,
    check_version_output,
    parse_version_number,
)

__all__ = [
    "CandidateRuntime",
    "DefaultRuntimeProvider",
    "ResolutionContext",
    "RuntimeProvider",
    "StaticRuntimeProvider",
    "all_providers",
    "register_provider",
    "unregister_provider",
    "VERSION_BANNER",
    "RuntimeResolver",
    "check_version_output",
    "parse_version_number",
]
