"""Per-namespace accumulation and extrapolation.

Raw records are folded into :class:`NamespaceSnapshot` accumulators, one per
immediate child segment of the current drill-down prefix. Snapshots are then
projected into :class:`NamespaceMetrics`, scaling the sampled counts up to the
server's key total and dividing operation counts by the observed monitor time.
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field

from .keys import Key, KeyModelError, KeyParser
from .ops import OpClass, classify_command

logger = logging.getLogger(__name__)

DEFAULT_SORT = "keys"


@dataclass
class NamespaceSnapshot:
    namespace: str
    keys: int = 0
    keys_with_ttl: int = 0
    total_memory: int = 0
    total_ttl: int = 0
    ops_frequency: Counter[str] = field(default_factory=Counter)
    types: set[str] = field(default_factory=set)

    def add_key(self, memory: int, ttl: int, key_type: str) -> None:
        self.keys += 1
        self.total_memory += memory
        if ttl > 0:
            self.keys_with_ttl += 1
            self.total_ttl += ttl
        self.types.add(key_type)

    def add_op(self, command: str) -> None:
        self.ops_frequency[command] += 1

    def to_metrics(
        self, *, total_server_keys: int, total_sampled_keys: int, monitor_seconds: float
    ) -> NamespaceMetrics:
        est_keys = 0
        mem_per_key = 0.0
        ttl_percent = 0.0
        avg_ttl = 0
        if self.keys:
            if total_sampled_keys:
                est_keys = total_server_keys * self.keys // total_sampled_keys
            mem_per_key = self.total_memory / self.keys
            ttl_percent = self.keys_with_ttl / self.keys
        if self.keys_with_ttl:
            avg_ttl = self.total_ttl // self.keys_with_ttl

        ops: dict[OpClass, float] = {}
        if monitor_seconds > 0:
            counts: Counter[OpClass] = Counter()
            for command, count in self.ops_frequency.items():
                counts[classify_command(command)] += count
            for op_class, count in counts.items():
                ops[op_class] = count / monitor_seconds
            ops[OpClass.TOTAL] = sum(ops.values())

        return NamespaceMetrics(
            namespace=self.namespace,
            est_keys=est_keys,
            est_memory=int(est_keys * mem_per_key),
            mem_per_key=mem_per_key,
            ttl_percent=ttl_percent,
            avg_ttl=avg_ttl,
            ops=ops,
            types=tuple(sorted(self.types)),
        )


@dataclass(frozen=True)
class NamespaceMetrics:
    namespace: str
    est_keys: int
    est_memory: int
    mem_per_key: float
    ttl_percent: float
    avg_ttl: int
    ops: Mapping[OpClass, float]
    types: tuple[str, ...]

    def rate(self, op_class: OpClass) -> float:
        return self.ops.get(op_class, 0.0)


SORT_KEYS: dict[str, Callable[[NamespaceMetrics], float]] = {
    "keys": lambda m: m.est_keys,
    "memory": lambda m: m.est_memory,
    "ttl": lambda m: m.avg_ttl,
    "get": lambda m: m.rate(OpClass.GET),
    "set": lambda m: m.rate(OpClass.SET),
    "del": lambda m: m.rate(OpClass.DEL),
    "total": lambda m: m.rate(OpClass.TOTAL),
}


def sort_namespace_metrics(
    metrics: Iterable[NamespaceMetrics], by: str = DEFAULT_SORT
) -> list[NamespaceMetrics]:
    """Sort metrics descending by a named column; unknown names raise ValueError."""

    try:
        sort_key = SORT_KEYS[by]
    except KeyError:
        raise ValueError(f"Unknown namespace sort key: {by!r}") from None
    return sorted(metrics, key=sort_key, reverse=True)


class NamespaceAggregator:
    """Fold raw key and operation records into snapshots below one prefix."""

    def __init__(self, parser: KeyParser, prefix: Key = ()) -> None:
        self.parser = parser
        self.prefix = prefix
        self.snapshots: dict[str, NamespaceSnapshot] = {}

    def _snapshot_for(self, raw_key: str) -> NamespaceSnapshot | None:
        key = self.parser.tokenize(raw_key, infer_ids=True)
        try:
            namespace = self.parser.namespace_of(key, self.prefix, infer_ids=True)
        except KeyModelError:
            return None
        snapshot = self.snapshots.get(namespace)
        if snapshot is None:
            snapshot = NamespaceSnapshot(namespace=namespace)
            self.snapshots[namespace] = snapshot
        return snapshot

    def add_key(self, raw_key: str, memory: int, ttl: int, key_type: str) -> bool:
        snapshot = self._snapshot_for(raw_key)
        if snapshot is None:
            return False
        snapshot.add_key(memory, ttl, key_type)
        return True

    def add_op(self, raw_key: str, command: str) -> bool:
        snapshot = self._snapshot_for(raw_key)
        if snapshot is None:
            return False
        snapshot.add_op(command)
        return True

    def project(
        self,
        *,
        total_server_keys: int,
        total_sampled_keys: int,
        monitor_seconds: float,
        sort_by: str = DEFAULT_SORT,
    ) -> list[NamespaceMetrics]:
        metrics = [
            snapshot.to_metrics(
                total_server_keys=total_server_keys,
                total_sampled_keys=total_sampled_keys,
                monitor_seconds=monitor_seconds,
            )
            for snapshot in self.snapshots.values()
        ]
        logger.debug(
            "Projected %d namespaces (server_keys=%d sampled=%d monitor=%.1fs)",
            len(metrics),
            total_server_keys,
            total_sampled_keys,
            monitor_seconds,
        )
        return sort_namespace_metrics(metrics, sort_by)


__all__ = [
    "DEFAULT_SORT",
    "SORT_KEYS",
    "NamespaceAggregator",
    "NamespaceMetrics",
    "NamespaceSnapshot",
    "sort_namespace_metrics",
]
