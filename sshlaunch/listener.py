"""
Caller-facing output sinks.

A Listener is the only observability surface the launcher needs from its
caller: an append-only text stream obtained with get_logger(), and an
error(label) variant that marks what follows as an error. Remote command
output arrives as bytes from pump threads, so streams accept both bytes
and text and serialise writes.
"""

import threading
import traceback
from datetime import datetime
from pathlib import Path
from typing import Optional, TextIO, Union


def timestamp(now: Optional[datetime] = None) -> str:
    """Return the bracketed timestamp used to prefix launcher messages."""
    now = now or datetime.now()
    return now.strftime("[%m/%d/%y %H:%M:%S]")


class ListenerStream:
    """Thread-safe text stream that also accepts raw bytes."""

    def __init__(self, target: TextIO, lock: threading.Lock):
        self._target = target
        self._lock = lock

    def write(self, data: Union[bytes, str]) -> int:
        if isinstance(data, (bytes, bytearray)):
            text = bytes(data).decode("utf-8", errors="replace")
        else:
            text = data
        with self._lock:
            self._target.write(text)
            self._target.flush()
        return len(data)

    def println(self, line: str = "") -> None:
        self.write(f"{line}\n")

    def flush(self) -> None:
        with self._lock:
            self._target.flush()

    def close(self) -> None:
        # The underlying target is owned by the Listener
        pass


class Listener:
    """Append-only sink for launch progress and remote diagnostics."""

    def __init__(self, target: TextIO):
        self._lock = threading.Lock()
        self._stream = ListenerStream(target, self._lock)

    def get_logger(self) -> ListenerStream:
        return self._stream

    def error(self, label: str) -> ListenerStream:
        """Write an error marker and return the stream for the details."""
        self._stream.println(f"ERROR: {label}")
        return self._stream

    def log(self, message: str) -> None:
        """Write a timestamped line."""
        self._stream.println(f"{timestamp()} {message}")

    def print_exception(self, exc: BaseException, label: Optional[str] = None) -> None:
        """Write a traceback, optionally under an error label."""
        stream = self.error(label) if label else self._stream
        text = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
        stream.write(text)

    def close(self) -> None:
        pass


class StreamListener(Listener):
    """Listener writing to an existing text stream such as stderr."""

    pass


class FileListener(Listener):
    """Listener appending to a log file, one per launch target."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path).expanduser()
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._file = open(self.path, "a", encoding="utf-8")
        super().__init__(self._file)

    def close(self) -> None:
        if not self._file.closed:
            self._file.close()
