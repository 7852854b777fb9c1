"""
EntityLockCoordinator: per-entity mutual exclusion scoped to sessions.

One holder per (entity_type, entity_id) within the process. Contended
acquires queue in FIFO order and wait at most a bounded time before
failing with EntityLocked. A session may re-acquire a key it already
holds; each acquire must be paired with a release.
"""

import logging
import threading
import time
import uuid
from collections import deque
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from taskgate.domain.exceptions import EntityLocked, ValidationError
from taskgate.domain.models import LockHandle, LockKey, utcnow

logger = logging.getLogger("taskgate.locking")


@dataclass
class _Holder:
    """Mutable lock-table entry; never leaves the coordinator."""

    session_id: str
    token: str
    acquired_at: datetime
    depth: int = 1


def _key(entity_type: "str | Enum", entity_id: str) -> LockKey:
    type_name = entity_type.value if isinstance(entity_type, Enum) else entity_type
    if not type_name or not entity_id:
        raise ValidationError("Lock keys need both an entity type and an entity id")
    return LockKey(entity_type=str(type_name), entity_id=entity_id)


class EntityLockCoordinator:
    """
    In-memory lock table guarded by a single condition variable.

    All reads and writes of the table happen while holding the
    condition's lock; waiters are woken on every release.
    """

    def __init__(
        self,
        timeout_seconds: float = 0.2,
        clock: Callable[[], datetime] = utcnow,
    ):
        """
        Args:
            timeout_seconds: Default bounded wait for a contended acquire
            clock: Source of acquisition timestamps
        """
        if timeout_seconds < 0:
            raise ValidationError("Lock timeout must be >= 0")
        self._timeout = timeout_seconds
        self._clock = clock
        self._cond = threading.Condition()
        self._holders: dict[LockKey, _Holder] = {}
        self._waiters: dict[LockKey, deque[object]] = {}

    def acquire(
        self,
        entity_type: "str | Enum",
        entity_id: str,
        session_id: str,
        timeout: float | None = None,
    ) -> LockHandle:
        """
        Acquire the lock for one entity on behalf of a session.

        Args:
            entity_type: Kind of entity (EntityType or plain string)
            entity_id: Identity of the entity
            session_id: Owning session
            timeout: Override of the default bounded wait (seconds)

        Returns:
            Handle to pass to release()

        Raises:
            EntityLocked: If another session still holds the key when the
                wait expires
            ValidationError: If the key or session id is empty
        """
        if not session_id:
            raise ValidationError("Session ID must not be empty")
        key = _key(entity_type, entity_id)
        wait = self._timeout if timeout is None else timeout
        started = time.monotonic()
        deadline = started + wait

        with self._cond:
            holder = self._holders.get(key)
            if holder is not None and holder.session_id == session_id:
                holder.depth += 1
                logger.debug(
                    "Re-entered %s for session %s (depth %d)",
                    key,
                    session_id,
                    holder.depth,
                )
                return self._handle(key, holder)

            ticket = object()
            queue = self._waiters.setdefault(key, deque())
            queue.append(ticket)
            try:
                while True:
                    holder = self._holders.get(key)
                    if holder is None and queue[0] is ticket:
                        break
                    if holder is not None and holder.session_id == session_id:
                        holder.depth += 1
                        return self._handle(key, holder)
                    remaining = deadline - time.monotonic()
                    if remaining <= 0:
                        logger.debug(
                            "Session %s gave up on %s after %.3fs",
                            session_id,
                            key,
                            time.monotonic() - started,
                        )
                        raise EntityLocked(
                            key.entity_type,
                            key.entity_id,
                            holder_session_id=holder.session_id if holder else None,
                            acquired_at=holder.acquired_at if holder else None,
                            waited_seconds=time.monotonic() - started,
                        )
                    self._cond.wait(remaining)

                holder = _Holder(
                    session_id=session_id,
                    token=str(uuid.uuid4()),
                    acquired_at=self._clock(),
                )
                self._holders[key] = holder
                logger.debug("Acquired %s for session %s", key, session_id)
                return self._handle(key, holder)
            finally:
                queue.remove(ticket)
                if not queue:
                    self._waiters.pop(key, None)
                self._cond.notify_all()

    def release(self, handle: LockHandle) -> bool:
        """
        Release one acquisition of a lock.

        Returns:
            False if the handle is stale (lock already force-released or
            re-granted to someone else), True otherwise
        """
        with self._cond:
            holder = self._holders.get(handle.key)
            if holder is None or holder.token != handle.token:
                logger.warning(
                    "Ignoring stale release of %s by session %s",
                    handle.key,
                    handle.session_id,
                )
                return False
            holder.depth -= 1
            if holder.depth == 0:
                del self._holders[handle.key]
                logger.debug("Released %s for session %s", handle.key, handle.session_id)
                self._cond.notify_all()
            return True

    def with_lock[T](
        self,
        entity_type: "str | Enum",
        entity_id: str,
        session_id: str,
        operation: Callable[[], T],
        timeout: float | None = None,
    ) -> T:
        """Run operation while holding the entity lock; always releases."""
        handle = self.acquire(entity_type, entity_id, session_id, timeout=timeout)
        try:
            return operation()
        finally:
            self.release(handle)

    @contextmanager
    def locked(
        self,
        entity_type: "str | Enum",
        entity_id: str,
        session_id: str,
        timeout: float | None = None,
    ) -> Iterator[LockHandle]:
        """Context-manager form of with_lock()."""
        handle = self.acquire(entity_type, entity_id, session_id, timeout=timeout)
        try:
            yield handle
        finally:
            self.release(handle)

    def release_session(self, session_id: str) -> int:
        """
        Forcibly release every lock held by a session.

        Returns:
            Number of locks released
        """
        with self._cond:
            keys = [k for k, h in self._holders.items() if h.session_id == session_id]
            for key in keys:
                del self._holders[key]
            if keys:
                logger.info(
                    "Force-released %d lock(s) held by session %s",
                    len(keys),
                    session_id,
                )
                self._cond.notify_all()
            return len(keys)

    def holder_of(self, entity_type: "str | Enum", entity_id: str) -> LockHandle | None:
        key = _key(entity_type, entity_id)
        with self._cond:
            holder = self._holders.get(key)
            return self._handle(key, holder) if holder else None

    def locks_held_by(self, session_id: str) -> tuple[LockHandle, ...]:
        with self._cond:
            return tuple(
                self._handle(k, h)
                for k, h in self._holders.items()
                if h.session_id == session_id
            )

    def waiting_count(self, entity_type: "str | Enum", entity_id: str) -> int:
        """Number of sessions queued behind the current holder of a key."""
        key = _key(entity_type, entity_id)
        with self._cond:
            return len(self._waiters.get(key, ()))

    @property
    def active_lock_count(self) -> int:
        with self._cond:
            return len(self._holders)

    @staticmethod
    def _handle(key: LockKey, holder: _Holder) -> LockHandle:
        return LockHandle(
            key=key,
            session_id=holder.session_id,
            token=holder.token,
            acquired_at=holder.acquired_at,
        )
