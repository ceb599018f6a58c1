"""Shared scanner state and the bounded queue used to publish it."""

from __future__ import annotations

import logging
import queue
import threading
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from redscout.core.keys import Key
from redscout.core.namespace import NamespaceMetrics
from redscout.core.slowlog import SlowLogEntry
from redscout.core.topk import BigKey, HotKey
from redscout.metrics.info import InfoSnapshot

logger = logging.getLogger(__name__)


class Phase(StrEnum):
    """Lifecycle phases of the scanner."""

    IDLE = "idle"
    FETCHING_INFO = "fetching_info"
    VERSION_CHECK = "version_check"
    SCANNING = "scanning"
    MONITORING = "monitoring"
    AGGREGATING = "aggregating"
    READY = "ready"


@dataclass(frozen=True)
class StateSnapshot:
    """Immutable copy of :class:`State` handed to consumers."""

    current_prefix: Key
    cursor: int
    scanned_keys: int
    monitor_seconds: float
    info: InfoSnapshot | None
    last_info_check: float | None
    namespace_stats: tuple[NamespaceMetrics, ...]
    slow_logs: tuple[SlowLogEntry, ...]
    big_keys: tuple[BigKey, ...]
    hot_keys: tuple[HotKey, ...]
    status: str
    ready: bool
    phase: Phase


@dataclass
class State:
    """Mutable aggregate root; every write goes through :meth:`update`."""

    current_prefix: Key = ()
    cursor: int = 0
    scanned_keys: int = 0
    monitor_seconds: float = 0.0
    info: InfoSnapshot | None = None
    last_info_check: float | None = None
    namespace_stats: list[NamespaceMetrics] = field(default_factory=list)
    slow_logs: list[SlowLogEntry] = field(default_factory=list)
    big_keys: list[BigKey] = field(default_factory=list)
    hot_keys: list[HotKey] = field(default_factory=list)
    status: str = ""
    ready: bool = False
    phase: Phase = Phase.IDLE
    _lock: threading.RLock = field(default_factory=threading.RLock, repr=False, compare=False)

    @property
    def lock(self) -> threading.RLock:
        return self._lock

    def update(self, **changes: Any) -> None:
        with self._lock:
            for name, value in changes.items():
                if name.startswith("_") or not hasattr(self, name):
                    raise AttributeError(f"State has no field {name!r}")
                setattr(self, name, value)

    def snapshot(self) -> StateSnapshot:
        # InfoSnapshot is replaced wholesale by the poller, never mutated in place.
        with self._lock:
            return StateSnapshot(
                current_prefix=self.current_prefix,
                cursor=self.cursor,
                scanned_keys=self.scanned_keys,
                monitor_seconds=self.monitor_seconds,
                info=self.info,
                last_info_check=self.last_info_check,
                namespace_stats=tuple(self.namespace_stats),
                slow_logs=tuple(self.slow_logs),
                big_keys=tuple(self.big_keys),
                hot_keys=tuple(self.hot_keys),
                status=self.status,
                ready=self.ready,
                phase=self.phase,
            )


class PublishQueue:
    """Bounded single-consumer queue that never blocks its producers.

    When full, the oldest pending snapshot is discarded to make room.
    """

    def __init__(self, maxsize: int = 100) -> None:
        if maxsize <= 0:
            raise ValueError("maxsize must be positive")
        self._queue: queue.Queue[StateSnapshot] = queue.Queue(maxsize=maxsize)
        self._put_lock = threading.Lock()
        self.dropped = 0

    @property
    def maxsize(self) -> int:
        return self._queue.maxsize

    def qsize(self) -> int:
        return self._queue.qsize()

    def publish(self, snapshot: StateSnapshot) -> None:
        with self._put_lock:
            while True:
                try:
                    self._queue.put_nowait(snapshot)
                    return
                except queue.Full:
                    try:
                        self._queue.get_nowait()
                    except queue.Empty:
                        continue
                    self.dropped += 1
                    logger.debug("Publish queue full; dropped oldest snapshot")

    def get(self, timeout: float | None = None) -> StateSnapshot | None:
        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def drain(self) -> list[StateSnapshot]:
        items: list[StateSnapshot] = []
        while True:
            try:
                items.append(self._queue.get_nowait())
            except queue.Empty:
                return items

    def latest(self) -> StateSnapshot | None:
        """Drain pending snapshots and return only the newest, if any."""

        items = self.drain()
        return items[-1] if items else None


__all__ = ["Phase", "State", "StateSnapshot", "PublishQueue"]
