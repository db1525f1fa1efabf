"""Bounded mapping that evicts in insertion order."""
from __future__ import annotations

from collections import OrderedDict
from typing import Iterator, MutableMapping, TypeVar

K = TypeVar("K")
V = TypeVar("V")


class FifoCache(MutableMapping[K, V]):
    """Capacity-bounded cache with first-in-first-out eviction.

    Reads never refresh an entry, so the oldest inserted key is always the
    next one to go, however often it is looked up. Overwriting an existing
    key keeps its original position.
    """

    def __init__(self, capacity: int) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self.capacity = capacity
        self._entries: OrderedDict[K, V] = OrderedDict()

    def __getitem__(self, key: K) -> V:
        return self._entries[key]

    def __setitem__(self, key: K, value: V) -> None:
        self._entries[key] = value
        while len(self._entries) > self.capacity:
            self._entries.popitem(last=False)

    def __delitem__(self, key: K) -> None:
        del self._entries[key]

    def __iter__(self) -> Iterator[K]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)


__all__ = ["FifoCache"]
