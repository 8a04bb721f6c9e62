"""Per-group mutual exclusion for replay-affecting operations."""

from __future__ import annotations

from collections.abc import Callable, Iterator
from contextlib import AbstractContextManager, contextmanager
import logging
import threading

from domain.errors import GroupBusyError

logger = logging.getLogger(__name__)

DEFAULT_LOCK_TIMEOUT_SECONDS = 30.0

# (group_id, timeout_seconds) -> context manager held while the group is locked
AdvisoryLock = Callable[[str, float], AbstractContextManager[None]]


class GroupLocks:
    """Registry of one lock per group id.

    Share a single instance between every recorder, recalculator and
    regeneration run that may touch the same groups. ``advisory`` adds a lock
    that also excludes other processes (for example a database advisory lock);
    it is taken once, on the outermost ``hold`` of a group.
    """

    def __init__(
        self,
        *,
        timeout_seconds: float = DEFAULT_LOCK_TIMEOUT_SECONDS,
        advisory: AdvisoryLock | None = None,
    ) -> None:
        if timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be greater than 0")
        self.timeout_seconds = timeout_seconds
        self.advisory = advisory
        self._guard = threading.Lock()
        self._locks: dict[str, threading.RLock] = {}
        self._depth: dict[str, int] = {}

    def _lock_for(self, group_id: str) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(group_id)
            if lock is None:
                lock = threading.RLock()
                self._locks[group_id] = lock
            return lock

    @contextmanager
    def hold(self, group_id: str) -> Iterator[None]:
        """Hold the group's lock, raising ``GroupBusyError`` after the timeout.

        The lock is re-entrant so an edit can trigger a recalculation of the
        same group from the same thread.
        """
        lock = self._lock_for(group_id)
        if not lock.acquire(timeout=self.timeout_seconds):
            logger.warning("timed out waiting for rating lock group_id=%s", group_id)
            raise GroupBusyError(group_id, self.timeout_seconds)
        # Only the thread owning ``lock`` touches this group's depth.
        depth = self._depth.get(group_id, 0)
        self._depth[group_id] = depth + 1
        try:
            if depth == 0 and self.advisory is not None:
                with self.advisory(group_id, self.timeout_seconds):
                    yield
            else:
                yield
        finally:
            if depth == 0:
                self._depth.pop(group_id, None)
            else:
                self._depth[group_id] = depth
            lock.release()


__all__ = ["AdvisoryLock", "DEFAULT_LOCK_TIMEOUT_SECONDS", "GroupLocks"]
