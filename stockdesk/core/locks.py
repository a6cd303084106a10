from collections.abc import Hashable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from threading import Lock


@dataclass
class _KeyedEntry:
    lock: Lock = field(default_factory=Lock)
    holders: int = 0


class KeyedLock:
    """
    One mutex per key, created on first use and dropped once nobody holds or
    waits for it. Different keys never block each other.
    """

    def __init__(self):
        self._entries: dict[Hashable, _KeyedEntry] = {}
        self._guard = Lock()

    @contextmanager
    def hold(self, key: Hashable) -> Iterator[None]:
        with self._guard:
            entry = self._entries.setdefault(key, _KeyedEntry())
            entry.holders += 1
        entry.lock.acquire()
        try:
            yield
        finally:
            entry.lock.release()
            with self._guard:
                entry.holders -= 1
                if entry.holders == 0:
                    self._entries.pop(key, None)

    def active_keys(self) -> int:
        with self._guard:
            return len(self._entries)

    def clear(self) -> None:
        with self._guard:
            self._entries.clear()
