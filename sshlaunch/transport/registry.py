"""
Process-wide registry of live launcher connections.

Sessions that reach the running state are registered so they can all be
closed when the hosting process shuts down.
"""

import logging
import threading
from typing import List

from .session import TransportSession

logger = logging.getLogger(__name__)

_lock = threading.Lock()
_sessions: List[TransportSession] = []


def register(session: TransportSession) -> None:
    with _lock:
        if session not in _sessions:
            _sessions.append(session)


def unregister(session: TransportSession) -> None:
    with _lock:
        if session in _sessions:
            _sessions.remove(session)


def active_sessions() -> List[TransportSession]:
    with _lock:
        return list(_sessions)


def close_all() -> None:
    """Close every registered session, logging individual failures."""
    with _lock:
        sessions = list(_sessions)
        _sessions.clear()
    for session in sessions:
        try:
            session.close()
        except Exception as e:  # pylint: disable=broad-exception-caught
            logger.warning(f"Failed to close {session}: {e}")
