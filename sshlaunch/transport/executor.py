"""
One-shot remote command execution.

Each exec opens its own session channel, drains stdout and stderr on two
pump threads so neither pipe can fill up and stall the remote process,
and waits a bounded time for the exit status once both streams hit EOF.
"""

import logging
import threading
from typing import BinaryIO, Optional, Protocol

from .session import TransportSession

logger = logging.getLogger(__name__)

BUFFER_SIZE = 1024
UNKNOWN_EXIT_STATUS = -1


class OutputSink(Protocol):
    def write(self, data: bytes) -> int: ...


class NullSink:
    """Sink that discards everything written to it."""

    def write(self, data: bytes) -> int:
        return len(data)


class PumpThread(threading.Thread):
    """Copies a remote stream into a sink until EOF."""

    def __init__(self, source: BinaryIO, sink: OutputSink, name: str = "pump thread"):
        super().__init__(name=name, daemon=True)
        self.source = source
        self.sink = sink
        self.error: Optional[BaseException] = None

    def run(self):
        try:
            while True:
                data = self.source.read(BUFFER_SIZE)
                if not data:
                    self.source.close()
                    return
                self.sink.write(data)
        except (OSError, EOFError) as e:
            self.error = e
            logger.debug(f"{self.name} stopped: {e}")


class CommandExecutor:
    """Runs remote commands on a transport session, one at a time."""

    def __init__(self, session: Optional[TransportSession], exit_status_timeout: float = 3.0):
        self.session = session
        self.exit_status_timeout = exit_status_timeout

    def exec(self, command: str, sink: OutputSink) -> int:
        """
        Execute a command remotely and block until it completes.

        Args:
            command: Shell command line to run on the remote host
            sink: Receives the combined stdout and stderr bytes

        Returns:
            The remote exit status, or -1 when it did not arrive in time
            or there is no live session
        """
        if self.session is None or not self.session.is_connected:
            return UNKNOWN_EXIT_STATUS

        logger.debug(f"Executing remote command: {command}")
        channel = self.session.open_command_channel()
        try:
            channel.exec_command(command)
            stdout = channel.makefile("rb")
            stderr = channel.makefile_stderr("rb")

            out_pump = PumpThread(stdout, sink, name=f"stdout pump: {command}")
            err_pump = PumpThread(stderr, sink, name=f"stderr pump: {command}")
            out_pump.start()
            err_pump.start()

            # No interactive input is ever sent
            channel.shutdown_write()

            out_pump.join()
            err_pump.join()

            # Exit status delivery often lags behind EOF on the data streams
            if channel.status_event.wait(self.exit_status_timeout):
                return channel.exit_status
            logger.debug(
                f"No exit status for {command!r} after {self.exit_status_timeout}s"
            )
            return UNKNOWN_EXIT_STATUS
        finally:
            channel.close()
