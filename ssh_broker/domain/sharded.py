"""
Sharded map used for per-user registries.

Keys are spread over a fixed number of shards, each guarded by its own lock,
so operations on unrelated users do not contend on a single mutex.
"""

from __future__ import annotations

import threading
from typing import Callable, Generic, Iterator, TypeVar

K = TypeVar("K")
V = TypeVar("V")

DEFAULT_SHARDS = 32

_MISSING = object()


class _Shard(Generic[K, V]):
    __slots__ = ("lock", "data")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.data: dict[K, V] = {}


class ShardedMap(Generic[K, V]):
    """Thread-safe mapping with one lock per shard."""

    def __init__(self, shards: int = DEFAULT_SHARDS) -> None:
        if shards < 1:
            raise ValueError("shards must be >= 1")
        self._shards: list[_Shard[K, V]] = [_Shard() for _ in range(shards)]

    def _shard(self, key: K) -> _Shard[K, V]:
        return self._shards[hash(key) % len(self._shards)]

    def get(self, key: K, default: V | None = None) -> V | None:
        shard = self._shard(key)
        with shard.lock:
            return shard.data.get(key, default)

    def set(self, key: K, value: V) -> V | None:
        """Store ``value`` and return the previous value, if any."""
        shard = self._shard(key)
        with shard.lock:
            previous = shard.data.get(key)
            shard.data[key] = value
            return previous

    def setdefault(self, key: K, factory: Callable[[], V]) -> V:
        shard = self._shard(key)
        with shard.lock:
            value = shard.data.get(key, _MISSING)
            if value is _MISSING:
                value = factory()
                shard.data[key] = value
            return value  # type: ignore[return-value]

    def compute(self, key: K, fn: Callable[[V | None], V]) -> V:
        """
        Atomically replace the value for ``key`` with ``fn(current)``.

        ``fn`` runs while the shard lock is held: it must be quick and must
        not touch this map again.
        """
        shard = self._shard(key)
        with shard.lock:
            value = fn(shard.data.get(key))
            shard.data[key] = value
            return value

    def pop_if(self, key: K, predicate: Callable[[V], bool]) -> bool:
        """Remove ``key`` if present and ``predicate(value)`` holds."""
        shard = self._shard(key)
        with shard.lock:
            value = shard.data.get(key, _MISSING)
            if value is _MISSING or not predicate(value):  # type: ignore[arg-type]
                return False
            del shard.data[key]
            return True

    def items(self) -> list[tuple[K, V]]:
        """Snapshot of all entries, taken one shard at a time."""
        result: list[tuple[K, V]] = []
        for shard in self._shards:
            with shard.lock:
                result.extend(shard.data.items())
        return result

    def keys(self) -> list[K]:
        return [k for k, _ in self.items()]

    def __contains__(self, key: object) -> bool:
        shard = self._shard(key)  # type: ignore[arg-type]
        with shard.lock:
            return key in shard.data

    def __len__(self) -> int:
        return sum(len(shard.data) for shard in self._shards)

    def __iter__(self) -> Iterator[K]:
        return iter(self.keys())
