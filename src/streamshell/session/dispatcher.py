"""Request dispatcher: the single-flight state machine of a session.

State transitions:

    IDLE --begin()--> DISPATCHING --mark_streaming()--> STREAMING
    DISPATCHING/STREAMING --complete()--> IDLE
    any --invalidate()--> IDLE   (the in-flight request id goes stale)

The busy flag and the current request id are only ever read or written
together, under one lock. A callback holding an old id fails the liveness
check and must not touch session state.
"""

from __future__ import annotations

import sys
import threading
from enum import Enum

MAX_REQUEST_ID = sys.maxsize


class SessionState(Enum):
    """Lifecycle state of the session's current request."""

    IDLE = "idle"
    DISPATCHING = "dispatching"
    STREAMING = "streaming"


class RequestDispatcher:
    """Owns the request id counter and the busy flag."""

    def __init__(self, start_id: int = 0) -> None:
        self._lock = threading.Lock()
        self._request_id = start_id
        self._state = SessionState.IDLE

    @property
    def busy(self) -> bool:
        with self._lock:
            return self._state is not SessionState.IDLE

    @property
    def request_id(self) -> int:
        with self._lock:
            return self._request_id

    @property
    def state(self) -> SessionState:
        with self._lock:
            return self._state

    def _advance(self) -> int:
        self._request_id = self._request_id + 1 if self._request_id < MAX_REQUEST_ID else 0
        return self._request_id

    def begin(self) -> int | None:
        """Allocate a new request id and mark the session busy.

        Returns:
            The new request id, or None if a request is already in flight.
        """
        with self._lock:
            if self._state is not SessionState.IDLE:
                return None
            self._state = SessionState.DISPATCHING
            return self._advance()

    def is_live(self, request_id: int) -> bool:
        """True if ``request_id`` is the in-flight request."""
        with self._lock:
            return self._state is not SessionState.IDLE and request_id == self._request_id

    def mark_streaming(self, request_id: int) -> bool:
        """Record that output has started arriving for ``request_id``.

        Returns:
            False if the request is stale.
        """
        with self._lock:
            if self._state is SessionState.IDLE or request_id != self._request_id:
                return False
            self._state = SessionState.STREAMING
            return True

    def complete(self, request_id: int) -> bool:
        """Finish ``request_id`` and return to idle.

        Returns:
            False if the request is stale (nothing changes).
        """
        with self._lock:
            if self._state is SessionState.IDLE or request_id != self._request_id:
                return False
            self._state = SessionState.IDLE
            return True

    def invalidate(self) -> int | None:
        """Supersede whatever request is in flight.

        Advances the id so every outstanding callback goes stale, and
        returns to idle.

        Returns:
            The id of the request that was in flight, or None if idle.
        """
        with self._lock:
            previous = self._request_id if self._state is not SessionState.IDLE else None
            self._advance()
            self._state = SessionState.IDLE
            return previous
