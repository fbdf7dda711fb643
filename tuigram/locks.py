"""Per-entity locks that serialise read-modify-write cycles.

Uploads and network calls run in worker threads, so two actions on the same
post or user can overlap. Each mutation holds the locks of the entities it
touches for the whole read-modify-write. A lock lives only while someone
holds or waits for it.
"""
import threading
from contextlib import contextmanager
from typing import Dict, Hashable, Iterator, List, Tuple


class _Entry:
    __slots__ = ("lock", "users")

    def __init__(self):
        self.lock = threading.RLock()
        self.users = 0


class EntityLocks:
    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[Hashable, _Entry] = {}

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)

    def _checkout(self, key: Hashable) -> _Entry:
        with self._guard:
            entry = self._locks.get(key)
            if entry is None:
                entry = self._locks[key] = _Entry()
            entry.users += 1
            return entry

    def _checkin(self, key: Hashable, entry: _Entry) -> None:
        with self._guard:
            entry.users -= 1
            if entry.users == 0:
                del self._locks[key]

    @contextmanager
    def hold(self, *keys: Tuple[str, str]) -> Iterator[None]:
        """Acquire the locks for ``keys`` in sorted order."""
        ordered = sorted(set(keys), key=repr)
        acquired: List[Tuple[Hashable, _Entry]] = []
        try:
            for key in ordered:
                entry = self._checkout(key)
                try:
                    entry.lock.acquire()
                except BaseException:
                    self._checkin(key, entry)
                    raise
                acquired.append((key, entry))
            yield
        finally:
            for key, entry in reversed(acquired):
                entry.lock.release()
                self._checkin(key, entry)
