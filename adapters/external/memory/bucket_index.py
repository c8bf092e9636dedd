from __future__ import annotations

import bisect
from typing import Dict, Generic, List, Optional, TypeVar

T = TypeVar("T")


class BucketIndex(Generic[T]):
    """
    Buckets of one series keyed by bucket start (ms), with a sorted key list.

    In-order inserts hit the append fast path; late buckets go through bisect.insort.
    tail(n) only touches the last n keys.
    """

    def __init__(self) -> None:
        self._items: Dict[int, T] = {}
        self._keys: List[int] = []

    def __len__(self) -> int:
        return len(self._keys)

    def get(self, key: int) -> Optional[T]:
        return self._items.get(key)

    def put(self, key: int, item: T) -> None:
        if key in self._items:
            self._items[key] = item
            return

        self._items[key] = item
        if not self._keys or key > self._keys[-1]:
            self._keys.append(key)
        else:
            bisect.insort(self._keys, key)

    def last_key(self) -> Optional[int]:
        return self._keys[-1] if self._keys else None

    def tail(self, n: int) -> List[T]:
        if n <= 0 or not self._keys:
            return []
        return [self._items[k] for k in self._keys[-n:]]

    def drop_oldest(self, keep: int) -> int:
        excess = len(self._keys) - max(0, int(keep))
        if excess <= 0:
            return 0
        for k in self._keys[:excess]:
            del self._items[k]
        del self._keys[:excess]
        return excess
