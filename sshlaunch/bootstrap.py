"""
Bootstrap orchestrator.

SSHLauncher drives one launch attempt through its stages: connect,
authenticate, verify the channel is quiet, report the remote environment,
resolve a runtime, copy the payload and start the worker. Any failure
before the worker is running closes the connection and is reported in the
returned LaunchResult instead of propagating.
"""

import io
import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, List, Optional, Tuple

from .config.target import LaunchRequest, LaunchSettings
from .errors import AuthError, ChannelJunkError
from .launcher import ChannelBinder, LaunchedProcess, ProcessLauncher
from .listener import Listener
from .node import NodeDescriptor
from .runtime import ResolutionContext, RuntimeProvider, RuntimeResolver
from .transfer import PayloadTransfer, TransferOutcome
from .transport import registry
from .transport.executor import UNKNOWN_EXIT_STATUS, CommandExecutor, OutputSink
from .transport.session import TransportFactory, TransportSession

logger = logging.getLogger(__name__)


class LaunchState(Enum):
    """Stages of a launch attempt, in order."""

    IDLE = "idle"
    CONNECTING = "connecting"
    AUTHENTICATING = "authenticating"
    VERIFYING_CHANNEL = "verifying_channel"
    REPORTING_ENVIRONMENT = "reporting_environment"
    RESOLVING_RUNTIME = "resolving_runtime"
    TRANSFERRING_PAYLOAD = "transferring_payload"
    LAUNCHING = "launching"
    RUNNING = "running"
    DISCONNECTING = "disconnecting"
    CLOSED = "closed"


@dataclass
class LaunchResult:
    """Outcome of a launch or check attempt."""

    success: bool
    state: LaunchState
    runtime: Optional[str] = None
    working_directory: Optional[str] = None
    transfer: Optional[TransferOutcome] = None
    process: Optional[LaunchedProcess] = None
    error: Optional[BaseException] = None

    @property
    def channel(self) -> Any:
        """The caller's bound channel, if the worker was launched."""
        return self.process.bound_channel if self.process else None


class SSHLauncher:
    """
    Launches a worker on a remote host over SSH.

    One instance handles one node. launch() and after_disconnect() are
    serialised by a re-entrant lock.
    """

    def __init__(
        self,
        request: LaunchRequest,
        settings: Optional[LaunchSettings] = None,
        payload=None,
        binder: Optional[ChannelBinder] = None,
        transport_factory: Optional[TransportFactory] = None,
        providers: Optional[List[RuntimeProvider]] = None,
    ):
        self.request = request
        self.settings = settings or LaunchSettings()
        self.payload = payload
        self.binder = binder
        self.transport_factory = transport_factory
        self.providers = providers
        self.session: Optional[TransportSession] = None
        self._state = LaunchState.IDLE
        self._lock = threading.RLock()

    @property
    def state(self) -> LaunchState:
        return self._state

    def _set_state(self, state: LaunchState) -> None:
        logger.debug(f"{self.request.address}: {self._state.value} -> {state.value}")
        self._state = state

    def _executor(self) -> CommandExecutor:
        return CommandExecutor(self.session, self.settings.exit_status_timeout)

    def exec(self, command: str, sink: OutputSink) -> int:
        """Run a command on the current connection; -1 when not connected."""
        if self.session is None:
            return UNKNOWN_EXIT_STATUS
        return self._executor().exec(command, sink)

    def _bring_up(self, node: NodeDescriptor, listener: Listener) -> Tuple[str, str]:
        """Run the stages up to runtime resolution; returns (runtime, working dir)."""
        self._set_state(LaunchState.CONNECTING)
        listener.log(f"Opening SSH connection to {self.request.address}.")
        self.session = TransportSession(
            self.request.host,
            self.request.port,
            connect_timeout=self.settings.connect_timeout,
            strict_host_keys=self.settings.strict_host_keys,
            known_hosts=self.settings.known_hosts,
            transport_factory=self.transport_factory,
        )
        self.session.connect()

        self._set_state(LaunchState.AUTHENTICATING)
        if not self.session.authenticate(self.request, listener):
            listener.error("Authentication failed.")
            raise AuthError(
                f"Authentication failed for {self.request.effective_username}"
                f"@{self.request.address}"
            )
        listener.log("Authentication successful.")

        self._set_state(LaunchState.VERIFYING_CHANNEL)
        self._verify_no_junk(listener)

        self._set_state(LaunchState.REPORTING_ENVIRONMENT)
        listener.log("Remote environment:")
        self.exec("set", listener.get_logger())

        self._set_state(LaunchState.RESOLVING_RUNTIME)
        working_directory = node.working_directory
        resolver = RuntimeResolver(
            self._executor(),
            listener,
            runtime_options=self.request.runtime_options,
            minimum_version=self.settings.min_runtime_version,
            providers=self.providers,
        )
        context = ResolutionContext(node, working_directory, listener)
        runtime = resolver.resolve(context, self.request.runtime_path)
        listener.log(f"Using runtime {runtime}")
        return runtime, working_directory

    def _verify_no_junk(self, listener: Listener) -> None:
        listener.log("Verifying that the ssh channel is clean.")
        buffer = io.BytesIO()
        self.exec("true", buffer)
        junk = buffer.getvalue()
        if junk:
            text = junk.decode("utf-8", errors="replace")
            listener.error("Unexpected output from a clean command:").write(text)
            raise ChannelJunkError(text)

    def launch(self, node: NodeDescriptor, listener: Listener) -> LaunchResult:
        """
        Bootstrap the worker on the node.

        Returns:
            LaunchResult; on failure success is False, error holds the
            cause and the connection has been closed
        """
        with self._lock:
            runtime = working_directory = transfer = None
            try:
                runtime, working_directory = self._bring_up(node, listener)

                self._set_state(LaunchState.TRANSFERRING_PAYLOAD)
                if self.payload is None:
                    raise ValueError("No payload configured for the launch")
                data = self.payload.read() if hasattr(self.payload, "read") else bytes(self.payload)
                transfer = PayloadTransfer(self.session, self._executor(), listener).transfer(
                    data, working_directory, self.settings.payload_name
                )

                self._set_state(LaunchState.LAUNCHING)
                if self.binder is None:
                    raise ValueError("No channel binder configured for the launch")
                process = ProcessLauncher(self.session, listener).launch(
                    runtime,
                    working_directory,
                    self.request.runtime_options,
                    self.settings.payload_name,
                    self.binder,
                )
            except Exception as e:  # pylint: disable=broad-exception-caught
                return self._fail(e, listener, runtime, working_directory, transfer)

            registry.register(self.session)
            self._set_state(LaunchState.RUNNING)
            return LaunchResult(
                success=True,
                state=self._state,
                runtime=runtime,
                working_directory=working_directory,
                transfer=transfer,
                process=process,
            )

    def check(self, node: NodeDescriptor, listener: Listener) -> LaunchResult:
        """Connect, authenticate, verify and resolve a runtime, then disconnect."""
        with self._lock:
            try:
                runtime, working_directory = self._bring_up(node, listener)
            except Exception as e:  # pylint: disable=broad-exception-caught
                return self._fail(e, listener)
            self._close(listener)
            return LaunchResult(
                success=True,
                state=self._state,
                runtime=runtime,
                working_directory=working_directory,
            )

    def _fail(
        self,
        error: BaseException,
        listener: Listener,
        runtime: Optional[str] = None,
        working_directory: Optional[str] = None,
        transfer: Optional[TransferOutcome] = None,
    ) -> LaunchResult:
        logger.debug(f"Launch on {self.request.address} failed during {self._state.value}: {error}")
        listener.print_exception(error, str(error))
        self._close(listener)
        return LaunchResult(
            success=False,
            state=self._state,
            runtime=runtime,
            working_directory=working_directory,
            transfer=transfer,
            error=error,
        )

    def _close(self, listener: Listener) -> None:
        if self.session is not None:
            self.session.close()
            registry.unregister(self.session)
            self.session = None
            listener.log("Connection closed.")
        self._set_state(LaunchState.CLOSED)

    def after_disconnect(self, node: NodeDescriptor, listener: Listener) -> None:
        """Remove the payload from the node and close the connection."""
        with self._lock:
            if self.session is None:
                self._set_state(LaunchState.CLOSED)
                return
            self._set_state(LaunchState.DISCONNECTING)
            try:
                working_directory = node.working_directory
            except ValueError as e:
                listener.print_exception(e, "Error deleting file.")
            else:
                PayloadTransfer(self.session, self._executor(), listener).remove(
                    working_directory, self.settings.payload_name
                )
            self._close(listener)
