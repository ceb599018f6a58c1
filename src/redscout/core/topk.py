from __future__ import annotations

import heapq
import itertools
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class BigKey:
    key: str
    size: int


@dataclass(frozen=True, slots=True)
class HotKey:
    key: str
    rate: float


class BoundedMinHeap(Generic[T]):
    """Fixed-capacity min-heap keeping the K largest items seen by ``metric``.

    The root is always the current Kth-largest candidate, so a new item either
    loses to it in O(1) or replaces it in O(log K). Ties keep the incumbent.
    """

    __slots__ = ("capacity", "_metric", "_heap", "_seq")

    def __init__(self, capacity: int, metric: Callable[[T], float]) -> None:
        if capacity < 0:
            raise ValueError("capacity must be >= 0")
        self.capacity = capacity
        self._metric = metric
        self._heap: list[tuple[float, int, T]] = []
        self._seq = itertools.count()

    def __len__(self) -> int:
        return len(self._heap)

    def peek_min(self) -> T | None:
        return self._heap[0][2] if self._heap else None

    def offer(self, item: T) -> bool:
        """Offer an item; return True when it was retained."""

        if self.capacity == 0:
            return False
        value = self._metric(item)
        entry = (value, next(self._seq), item)
        if len(self._heap) < self.capacity:
            heapq.heappush(self._heap, entry)
            return True
        if self._heap[0][0] < value:
            heapq.heapreplace(self._heap, entry)
            return True
        return False

    def drain(self) -> list[T]:
        """Empty the heap and return its items largest first."""

        items: list[T] = []
        while self._heap:
            items.append(heapq.heappop(self._heap)[2])
        items.reverse()
        return items


def select_top_k(items: Iterable[T], k: int, metric: Callable[[T], float]) -> list[T]:
    """Stream ``items`` once and return the ``k`` largest by ``metric``, descending."""

    heap: BoundedMinHeap[T] = BoundedMinHeap(k, metric)
    for item in items:
        heap.offer(item)
    return heap.drain()


__all__ = ["BigKey", "HotKey", "BoundedMinHeap", "select_top_k"]
