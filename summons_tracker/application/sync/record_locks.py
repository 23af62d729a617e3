from __future__ import annotations

import contextlib
import logging
import threading
from collections.abc import Iterator

from summons_tracker.core.errors import RecordBusyError

logger = logging.getLogger(__name__)

DEFAULT_LOCK_TIMEOUT_SECONDS = 10.0


class _Entry:
    __slots__ = ("lock", "users")

    def __init__(self) -> None:
        self.lock = threading.RLock()
        self.users = 0


class RecordLockRegistry:
    """One re-entrant lock per record identifier.

    ``hold`` acquires in sorted order and gives up after ``timeout_seconds``
    so a pull batch and a push on overlapping ids cannot wait on each other
    forever. An entry lives only while some thread holds or waits on it.
    """

    def __init__(self, timeout_seconds: float = DEFAULT_LOCK_TIMEOUT_SECONDS) -> None:
        self._timeout_seconds = timeout_seconds
        self._guard = threading.Lock()
        self._entries: dict[str, _Entry] = {}

    def active_count(self) -> int:
        with self._guard:
            return len(self._entries)

    def _checkout(self, record_id: str) -> _Entry:
        with self._guard:
            entry = self._entries.get(record_id)
            if entry is None:
                entry = _Entry()
                self._entries[record_id] = entry
            entry.users += 1
            return entry

    def _checkin(self, record_id: str, entry: _Entry) -> None:
        with self._guard:
            entry.users -= 1
            if entry.users == 0:
                del self._entries[record_id]

    @contextlib.contextmanager
    def hold(self, *record_ids: str) -> Iterator[None]:
        acquired: list[tuple[str, _Entry]] = []
        try:
            for record_id in sorted({record_id for record_id in record_ids if record_id}):
                entry = self._checkout(record_id)
                if not entry.lock.acquire(timeout=self._timeout_seconds):
                    self._checkin(record_id, entry)
                    logger.warning("record_lock_timeout", extra={"extra": {"record_id": record_id}})
                    raise RecordBusyError(f"Record {record_id} is busy with another sync operation")
                acquired.append((record_id, entry))
            yield
        finally:
            for record_id, entry in reversed(acquired):
                entry.lock.release()
                self._checkin(record_id, entry)
