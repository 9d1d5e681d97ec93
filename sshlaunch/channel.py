"""
Caller-side channel that bridges local streams to the remote worker.

The CLI uses this to connect its own stdin/stdout to the worker. Other
callers can supply any binder with the same signature.
"""

import logging
import threading
from typing import BinaryIO, Callable, Optional

from .launcher import CloseCallback
from .listener import ListenerStream
from .transport.executor import BUFFER_SIZE

logger = logging.getLogger(__name__)


class PipeChannel:
    """Copies local input to the worker and worker output to a local stream."""

    def __init__(
        self,
        remote_out: BinaryIO,
        remote_in: BinaryIO,
        log: ListenerStream,
        close_listener: CloseCallback,
        local_in: Optional[BinaryIO] = None,
        local_out: Optional[BinaryIO] = None,
    ):
        self.remote_out = remote_out
        self.remote_in = remote_in
        self.log = log
        self.close_listener = close_listener
        self.local_in = local_in
        self.local_out = local_out
        self._closed = threading.Event()
        self._lock = threading.Lock()
        self._threads = []

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def start(self) -> "PipeChannel":
        """Start the copy threads."""
        if self.local_out is not None:
            self._spawn("worker output", self._copy_output)
        if self.local_in is not None:
            self._spawn("worker input", self._copy_input)
        return self

    def _spawn(self, name: str, target: Callable[[], None]) -> None:
        thread = threading.Thread(name=name, target=target, daemon=True)
        self._threads.append(thread)
        thread.start()

    def _copy_output(self):
        try:
            while True:
                data = self.remote_out.read(BUFFER_SIZE)
                if not data:
                    break
                self.local_out.write(data)
                self.local_out.flush()
        except (OSError, EOFError) as e:
            self.close(e)
            return
        self.close()

    def _copy_input(self):
        # read1 returns as soon as some input is available
        read = getattr(self.local_in, "read1", self.local_in.read)
        try:
            while not self.closed:
                data = read(BUFFER_SIZE)
                if not data:
                    break
                self.remote_in.write(data)
                self.remote_in.flush()
        except (OSError, EOFError) as e:
            logger.debug(f"Input copy stopped: {e}")
        finally:
            try:
                self.remote_in.close()
            except OSError as e:
                logger.debug(f"Failed to close worker input: {e}")

    def close(self, cause: Optional[BaseException] = None) -> None:
        """Close the channel once, notifying the launcher."""
        with self._lock:
            if self._closed.is_set():
                return
            self._closed.set()
        self.close_listener(cause)

    def join(self, timeout: Optional[float] = None) -> bool:
        """Wait until the worker output reaches EOF or the channel is closed."""
        return self._closed.wait(timeout)


def pipe_binder(local_in: Optional[BinaryIO], local_out: Optional[BinaryIO]):
    """Return a channel binder that bridges the given local streams."""

    def bind(remote_out, remote_in, log, close_listener) -> PipeChannel:
        return PipeChannel(
            remote_out, remote_in, log, close_listener, local_in=local_in, local_out=local_out
        ).start()

    return bind
