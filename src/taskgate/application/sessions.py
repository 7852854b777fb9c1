"""
SessionManager: registry of caller sessions.

Sessions attribute lock ownership and carry the caller's current
project context. A session that closes or goes idle past the timeout
has every lock it holds released.
"""

import dataclasses
import logging
import threading
from collections.abc import Callable
from datetime import datetime

from taskgate.application.locking import EntityLockCoordinator
from taskgate.domain.exceptions import NotFound
from taskgate.domain.models import WorkSession, new_id, utcnow

logger = logging.getLogger("taskgate.sessions")

DEFAULT_CLIENT_ID = "anonymous"


class SessionManager:
    """Thread-safe session registry tied to a lock coordinator."""

    def __init__(
        self,
        coordinator: EntityLockCoordinator,
        timeout_seconds: float = 7200.0,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._coordinator = coordinator
        self._timeout = timeout_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._sessions: dict[str, WorkSession] = {}

    def open(
        self, client_id: str = DEFAULT_CLIENT_ID, session_id: str | None = None
    ) -> WorkSession:
        """Register a new session, or return the live one with this id."""
        if session_id is None:
            session_id = new_id()
        now = self._clock()
        with self._lock:
            existing = self._sessions.get(session_id)
            if existing is not None:
                return existing
            session = WorkSession(
                session_id=session_id,
                client_id=client_id,
                started_at=now,
                last_activity=now,
            )
            self._sessions[session_id] = session
        logger.info("Opened session %s for client %s", session_id, client_id)
        return session

    def ensure(self, session_id: str, client_id: str = DEFAULT_CLIENT_ID) -> WorkSession:
        """Create on first use, otherwise refresh activity."""
        try:
            return self.touch(session_id)
        except NotFound:
            return self.open(client_id=client_id, session_id=session_id)

    def get(self, session_id: str) -> WorkSession:
        """
        Raises:
            NotFound: If the session is not registered
        """
        with self._lock:
            session = self._sessions.get(session_id)
        if session is None:
            raise NotFound("session", session_id)
        return session

    def touch(self, session_id: str) -> WorkSession:
        return self._replace(session_id, last_activity=self._clock())

    def set_project_context(self, session_id: str, project_id: str | None) -> WorkSession:
        """Set (or clear with None) the session's active project."""
        session = self._replace(
            session_id, project_id=project_id, last_activity=self._clock()
        )
        logger.debug("Session %s project context -> %s", session_id, project_id)
        return session

    def project_context(self, session_id: str) -> str | None:
        with self._lock:
            session = self._sessions.get(session_id)
        return session.project_id if session else None

    def close(self, session_id: str) -> int:
        """
        Tear down a session and release its locks.

        Returns:
            Number of locks released
        """
        with self._lock:
            removed = self._sessions.pop(session_id, None)
        released = self._coordinator.release_session(session_id)
        if removed is not None:
            logger.info("Closed session %s (%d lock(s) released)", session_id, released)
        return released

    def expire_inactive(self) -> list[str]:
        """Close every session idle longer than the timeout; returns their ids."""
        now = self._clock()
        with self._lock:
            expired = [
                sid
                for sid, session in self._sessions.items()
                if session.is_inactive(now, self._timeout)
            ]
            for sid in expired:
                del self._sessions[sid]
        for sid in expired:
            released = self._coordinator.release_session(sid)
            logger.info("Expired idle session %s (%d lock(s) released)", sid, released)
        return expired

    def active_sessions(self) -> tuple[WorkSession, ...]:
        with self._lock:
            return tuple(self._sessions.values())

    def _replace(self, session_id: str, **changes) -> WorkSession:
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                raise NotFound("session", session_id)
            session = dataclasses.replace(session, **changes)
            self._sessions[session_id] = session
            return session
