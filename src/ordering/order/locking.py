"""Per-key re-entrant locks.

Each order id (and each coupon code) gets its own lock while somebody holds
it, so two requests for the same order are serialized while unrelated
orders proceed in parallel. Entries are dropped once nobody holds them.
"""

import threading
from contextlib import contextmanager


class KeyedLocks:
    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._entries: dict[str, list] = {}  # key -> [RLock, holders]

    @contextmanager
    def hold(self, key: str):
        with self._guard:
            entry = self._entries.setdefault(key, [threading.RLock(), 0])
            entry[1] += 1
        entry[0].acquire()
        try:
            yield
        finally:
            entry[0].release()
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    self._entries.pop(key, None)

    def __len__(self) -> int:
        return len(self._entries)
