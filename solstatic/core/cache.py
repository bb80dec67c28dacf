"""In-process memo cache for expensive analysis artifacts.

Every artifact the target pool hands out (sources, ASTs, target maps, CFGs,
assembled targets) is computed through a :class:`Memo`, which guarantees the
computation for a key runs at most once for the lifetime of the cache.

Usage:
    from solstatic.core.cache import Memo

    asts = Memo("ast")
    tree = asts.get_or_compute(path, lambda: builder.build(source))

Concurrent callers asking for the same key while it is being computed wait
for the in-flight computation instead of starting their own. A computation
that raises is not stored, so a later call retries it.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Generic, Hashable, Iterator, TypeVar

logger = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


@dataclass
class MemoStats:
    """Hit/miss counters for one memo."""
    name: str
    hits: int = 0
    misses: int = 0
    size: int = 0

    def as_dict(self) -> dict[str, Any]:
        return {"name": self.name, "hits": self.hits, "misses": self.misses, "size": self.size}


class Memo(Generic[K, V]):
    """Thread-safe at-most-once memoisation keyed by ``K``."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._values: dict[K, V] = {}
        self._key_locks: dict[K, threading.Lock] = {}
        self._registry_lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    def __contains__(self, key: object) -> bool:
        return key in self._values

    def __len__(self) -> int:
        return len(self._values)

    def __iter__(self) -> Iterator[K]:
        return iter(list(self._values))

    def get(self, key: K) -> V | None:
        """Return the memoised value, or None if the key was never computed."""
        return self._values.get(key)

    def get_or_compute(self, key: K, compute: Callable[[], V]) -> V:
        """Return the value for ``key``, computing it on first access."""
        if key in self._values:
            self._hits += 1
            return self._values[key]

        with self._registry_lock:
            key_lock = self._key_locks.setdefault(key, threading.Lock())

        try:
            with key_lock:
                # Another thread may have finished while we waited on the lock
                if key in self._values:
                    self._hits += 1
                    return self._values[key]

                self._misses += 1
                logger.debug("%s cache miss for %s", self.name, key)
                value = compute()
                self._values[key] = value
        finally:
            with self._registry_lock:
                self._key_locks.pop(key, None)
        return value

    def stats(self) -> MemoStats:
        return MemoStats(name=self.name, hits=self._hits, misses=self._misses, size=len(self._values))
