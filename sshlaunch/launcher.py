"""
Starts the worker process on the remote host and hands its streams to the
caller's channel binder.
"""

import logging
import threading
from typing import BinaryIO, Callable, List, Optional, Tuple

import paramiko

from .errors import LaunchError, SSHLaunchError
from .listener import Listener, ListenerStream
from .transport.executor import BUFFER_SIZE
from .transport.session import TransportSession

logger = logging.getLogger(__name__)

CloseCallback = Callable[[Optional[BaseException]], None]
ChannelBinder = Callable[[BinaryIO, BinaryIO, ListenerStream, CloseCallback], object]


def launch_command(runtime: str, working_directory: str, options: str, payload_name: str) -> str:
    """Build the remote command line that starts the worker."""
    parts = [runtime, options, "-jar", payload_name]
    command = " ".join(p for p in parts if p)
    return f"cd '{working_directory}' && {command}"


class StreamCopyThread(threading.Thread):
    """Copies the remote stderr into the listener log until EOF."""

    def __init__(self, name: str, source: BinaryIO, sink: ListenerStream):
        super().__init__(name=name, daemon=True)
        self.source = source
        self.sink = sink

    def run(self):
        try:
            while True:
                data = self.source.read(BUFFER_SIZE)
                if not data:
                    return
                self.sink.write(data)
        except (OSError, EOFError, ValueError) as e:
            # ValueError: the listener was closed while the worker still wrote
            logger.debug(f"{self.name} stopped: {e}")


class LaunchedProcess:
    """The remote worker process and the resources to release when it ends."""

    def __init__(
        self,
        channel: paramiko.Channel,
        stdout: BinaryIO,
        stderr: BinaryIO,
        listener: Listener,
    ):
        self.channel = channel
        self.stdout = stdout
        self.stderr = stderr
        self.listener = listener
        self.bound_channel = None
        self._closed = False
        self._lock = threading.Lock()

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def exit_status(self) -> int:
        """Exit status of the worker, or -1 while it is still running."""
        return self.channel.exit_status if self.channel.exit_status_ready() else -1

    def on_close(self, cause: Optional[BaseException] = None) -> None:
        """
        Release the command channel and its streams.

        Each step runs even if an earlier one failed. Calling this more
        than once has no further effect.
        """
        with self._lock:
            if self._closed:
                return
            self._closed = True

        if cause is not None:
            self.listener.print_exception(cause, "Terminated")

        steps: List[Tuple[str, Callable[[], None]]] = [
            ("command channel", self.channel.close),
            ("stdout", self.stdout.close),
            ("stderr", self.stderr.close),
        ]
        for name, close in steps:
            try:
                close()
            except Exception as e:  # pylint: disable=broad-exception-caught
                self.listener.print_exception(e, f"Failed to close {name}")


class ProcessLauncher:
    """Executes the worker command and binds it to the caller's channel."""

    def __init__(self, session: TransportSession, listener: Listener):
        self.session = session
        self.listener = listener

    def launch(
        self,
        runtime: str,
        working_directory: str,
        options: str,
        payload_name: str,
        binder: ChannelBinder,
    ) -> LaunchedProcess:
        """
        Start the worker and hand its streams to the binder.

        Args:
            runtime: Resolved runtime executable
            working_directory: Remote directory holding the payload
            options: Extra runtime options, may be empty
            payload_name: File name of the payload inside working_directory
            binder: Receives (stdout, stdin, log stream, close callback)

        Returns:
            The launched process with the caller's bound channel attached

        Raises:
            LaunchError: If the command cannot be started or binding is
                cancelled
        """
        command = launch_command(runtime, working_directory, options, payload_name)
        self.listener.log(f"Starting agent process: {command}")

        try:
            channel = self.session.open_command_channel()
        except SSHLaunchError as e:
            raise LaunchError(f"Could not open a channel for the agent: {e}") from e

        try:
            channel.exec_command(command)
            stdout = channel.makefile("rb")
            stderr = channel.makefile_stderr("rb")
            stdin = channel.makefile_stdin("wb")
        except (OSError, EOFError, paramiko.SSHException) as e:
            channel.close()
            raise LaunchError(f"Failed to start {command}: {e}") from e

        process = LaunchedProcess(channel, stdout, stderr, self.listener)
        StreamCopyThread(
            f"stderr copier for {self.session.host}", stderr, self.listener.get_logger()
        ).start()

        try:
            process.bound_channel = binder(
                stdout, stdin, self.listener.get_logger(), process.on_close
            )
        except (InterruptedError, KeyboardInterrupt) as e:
            channel.close()
            raise LaunchError("Aborted during connection open") from e

        logger.debug(f"Agent bound on {self.session.host}")
        return process
