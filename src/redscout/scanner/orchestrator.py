"""Scanner: runs sampling, monitoring and aggregation against one live store.

Resources and their guards:

* the store connection, ``_store_lock`` (SCAN/pipeline, INFO, SLOWLOG and
  MONITOR setup; the MONITOR stream itself owns a dedicated connection);
* the scan log, ``scan_log.lock`` (writer: key sampling; readers: namespace
  stats and big keys);
* the operation log, ``ops_log.lock`` (writer: traffic sampling; readers:
  namespace stats and hot keys).

The two logs may be used concurrently with each other. Each completed
operation publishes an immutable :class:`StateSnapshot` on :attr:`Scanner.queue`.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import Counter
from collections.abc import Callable, Iterable
from functools import wraps
from typing import Any, TypeVar

from redis.exceptions import RedisError

from redscout.config import AppConfig
from redscout.contracts.error import ConnectivityError, ParseError
from redscout.core.keys import Key, KeyModelError, KeyParser
from redscout.core.namespace import NamespaceAggregator
from redscout.core.slowlog import sort_slow_log
from redscout.core.topk import BigKey, HotKey, select_top_k
from redscout.io.store import RedisStore, StoreGateway
from redscout.metrics.info import compute_deltas, ensure_supported_version, parse_info

from .logs import WorkingLog
from .poller import InfoPoller
from .records import OpRecord, ScanRecord, parse_monitor_line
from .state import Phase, PublishQueue, State, StateSnapshot

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])

_OPS_FLUSH_LINES = 500


def _operation(label: str) -> Callable[[F], F]:
    """Turn transient failures of a scanner operation into a status message.

    The wrapped call returns ``False`` instead of raising; nothing is retried.
    The phase falls back to READY once the scanner has been ready, otherwise
    to the phase the operation started from.
    """

    def decorate(fn: F) -> F:
        @wraps(fn)
        def _wrapped(self: Scanner, *args: Any, **kwargs: Any) -> Any:
            phase = self.state.phase
            try:
                return fn(self, *args, **kwargs)
            except (ConnectivityError, RedisError, OSError) as exc:
                logger.warning("%s failed: %s", label, exc)
                self._fail(f"{label} failed: {exc}", phase)
                return False

        return _wrapped  # type: ignore[return-value]

    return decorate


class Scanner:
    """Owns the store gateway, both working logs and the published state."""

    def __init__(
        self,
        config: AppConfig,
        store: StoreGateway | None = None,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.config = config
        sampling = config.sampling
        self.parser = KeyParser(sampling.delimiter, sampling.id_patterns)
        self.state = State()
        self.queue = PublishQueue(sampling.publish_queue_size)
        self._clock = clock
        self._store_lock = threading.Lock()
        self._cancel = threading.Event()

        logs_dir = sampling.resolved_logs_dir()
        self.scan_log = WorkingLog.create(logs_dir, "redscout_scan_")
        try:
            self.ops_log = WorkingLog.create(logs_dir, "redscout_monitor_")
        except Exception:
            self.scan_log.remove()
            raise

        self.store: StoreGateway = store if store is not None else RedisStore(config.connection)
        self._poller = InfoPoller(self.refresh_server_info, sampling.refresh_interval, self._cancel)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def start(self) -> StateSnapshot:
        """Run the initial pass: info, version check, sampling, aggregation.

        Connectivity failures while fetching the first info report, and an
        unsupported server version, are raised to the caller. Later failures
        become status messages.
        """

        self._enter(Phase.FETCHING_INFO, "Fetching server info")
        self._refresh_info()

        self._enter(Phase.VERSION_CHECK, "Checking server version")
        info = self.state.info
        version = ensure_supported_version(info.server.version if info else "")
        logger.info("Connected to server version %s", ".".join(map(str, version)))

        self._poller.start()
        self.sample_key_space()
        self.sample_traffic()
        self.fetch_slow_log()
        self._aggregate()
        self._ready("Initial data load complete")
        return self.state.snapshot()

    def close(self) -> None:
        self._cancel.set()
        self._poller.stop()
        self.scan_log.remove()
        self.ops_log.remove()
        with self._store_lock:
            self.store.close()
        logger.info("Scanner closed")

    def __enter__(self) -> Scanner:
        return self

    def __exit__(self, *_exc: object) -> None:
        self.close()

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    # ------------------------------------------------------------------
    # Sampling
    # ------------------------------------------------------------------
    @_operation("Key sampling")
    def sample_key_space(self) -> bool:
        """SCAN up to ``scan_size`` keys from the persisted cursor and log them."""

        sampling = self.config.sampling
        self._enter(Phase.SCANNING, "Scanning memory")
        logger.info("Memory scan started at cursor %d", self.state.cursor)

        discovered = 0
        written = 0
        with self._store_lock:
            while not self._cancel.is_set():
                cursor, keys = self.store.scan(self.state.cursor, sampling.scan_batch_size)
                # Counted before logging: every logged key is included in scanned_keys.
                with self.state.lock:
                    self.state.update(
                        cursor=cursor, scanned_keys=self.state.scanned_keys + len(keys)
                    )
                discovered += len(keys)
                written += self._record_keys(keys)
                if cursor == 0 or discovered >= sampling.scan_size:
                    break

        self.state.update(status="Memory scan completed")
        logger.info("Memory scan completed; discovered %d keys, logged %d", discovered, written)
        self._publish()
        return True

    def _record_keys(self, keys: list[str]) -> int:
        batch_size = self.config.sampling.pipeline_batch_size
        written = 0
        for start in range(0, len(keys), batch_size):
            described = self.store.describe_keys(keys[start : start + batch_size])
            lines = [
                ScanRecord(d.key, d.memory, d.ttl, d.type).to_line()
                for d in described
                if d is not None
            ]
            with self.scan_log.locked():
                written += self.scan_log.append_lines(lines)
        return written

    @_operation("Monitoring")
    def sample_traffic(self, duration: float | None = None) -> bool:
        """Record ``(key, command)`` pairs from MONITOR for ``duration`` seconds."""

        if duration is None:
            duration = self.config.sampling.monitor_duration
        self._enter(Phase.MONITORING, "Monitoring operations")
        logger.info("Ops monitor started for %.1fs", duration)

        with self._store_lock:
            session = self.store.open_monitor()

        observed = 0
        recorded = 0
        pending: list[str] = []
        started = time.monotonic()
        completed = False
        try:
            for line in session.lines(duration):
                observed += 1
                try:
                    record = parse_monitor_line(line)
                except ParseError:
                    logger.debug("Skipping monitor line %r", line)
                    continue
                if record is None:
                    continue
                pending.append(record.to_line())
                if len(pending) >= _OPS_FLUSH_LINES:
                    recorded += self._append_ops(pending)
                    pending = []
            completed = True
        finally:
            session.close()
            # Time is accounted for whatever reached the log: the full window on
            # success, the time actually streamed when the stream failed.
            elapsed = duration if completed else min(time.monotonic() - started, duration)
            with self.state.lock:
                self.state.update(monitor_seconds=self.state.monitor_seconds + elapsed)
            recorded += self._append_ops(pending)

        self.state.update(status="Monitoring completed")
        logger.info("Monitoring completed; observed %d entries, logged %d", observed, recorded)
        self._publish()
        return True

    def _append_ops(self, lines: list[str]) -> int:
        if not lines:
            return 0
        with self.ops_log.locked():
            return self.ops_log.append_lines(lines)

    @_operation("Server info refresh")
    def refresh_server_info(self) -> bool:
        self._refresh_info()
        return True

    def _refresh_info(self) -> None:
        with self._store_lock:
            text = self.store.info_text()
        now = self._clock()
        current = parse_info(text)
        with self.state.lock:
            previous = self.state.info
            last_check = self.state.last_info_check
            if previous is not None:
                elapsed_ms = (now - last_check) * 1000 if last_check is not None else None
                current.computed = compute_deltas(current, previous, elapsed_ms)
            self.state.update(info=current, last_info_check=now)
        logger.debug(
            "Server info refreshed (hit_rate=%.3f cpu=%.3f)",
            current.computed.hit_rate,
            current.computed.cpu_utilization,
        )
        self._publish()

    @_operation("Slow log fetch")
    def fetch_slow_log(self) -> bool:
        with self._store_lock:
            entries = self.store.slowlog(self.config.sampling.top_k)
        self.state.update(slow_logs=sort_slow_log(entries, by="timestamp"))
        logger.info("Fetched %d slow log entries", len(entries))
        self._publish()
        return True

    # ------------------------------------------------------------------
    # Aggregation
    # ------------------------------------------------------------------
    @_operation("Namespace aggregation")
    def compute_namespace_stats(self, prefix: Key | None = None) -> bool:
        """Fold both logs into per-namespace metrics below ``prefix``.

        ``prefix`` defaults to the current drill-down prefix. The prefix and the
        stats are committed together, and only when at least one namespace was
        found; otherwise state is left untouched and ``False`` is returned.
        """

        target = self.state.current_prefix if prefix is None else prefix
        label = self.parser.join(target) or "<root>"
        aggregator = NamespaceAggregator(self.parser, target)

        with self.scan_log.locked():
            for record in self._parse_lines(self.scan_log.iter_lines(), ScanRecord.parse):
                aggregator.add_key(record.key, record.memory, record.ttl, record.type)
        with self.ops_log.locked():
            for op in self._parse_lines(self.ops_log.iter_lines(), OpRecord.parse):
                aggregator.add_op(op.key, op.command)

        if not aggregator.snapshots:
            logger.info("No namespace metrics found for prefix %s", label)
            return False

        with self.state.lock:
            info = self.state.info
            total_sampled = self.state.scanned_keys
            monitor_seconds = self.state.monitor_seconds
        total_server = info.total_keys(self.config.connection.db) if info else 0
        metrics = aggregator.project(
            total_server_keys=total_server,
            total_sampled_keys=total_sampled,
            monitor_seconds=monitor_seconds,
            sort_by=self.config.sampling.namespace_sort,
        )
        self.state.update(current_prefix=target, namespace_stats=metrics)
        logger.info("Generated %d namespace metrics for prefix %s", len(metrics), label)
        self._publish()
        return True

    @_operation("Big key computation")
    def compute_big_keys(self) -> bool:
        with self.scan_log.locked():
            big_keys = select_top_k(
                (
                    BigKey(record.key, record.memory)
                    for record in self._parse_lines(self.scan_log.iter_lines(), ScanRecord.parse)
                ),
                self.config.sampling.top_k,
                lambda item: item.size,
            )
        self.state.update(big_keys=big_keys)
        logger.info("Computed %d big keys", len(big_keys))
        self._publish()
        return True

    @_operation("Hot key computation")
    def compute_hot_keys(self) -> bool:
        counts: Counter[str] = Counter()
        with self.ops_log.locked():
            for op in self._parse_lines(self.ops_log.iter_lines(), OpRecord.parse):
                counts[op.key] += 1

        seconds = self.state.monitor_seconds or 1.0
        hot_keys = select_top_k(
            (HotKey(key, count / seconds) for key, count in counts.items()),
            self.config.sampling.top_k,
            lambda item: item.rate,
        )
        self.state.update(hot_keys=hot_keys)
        logger.info("Computed %d hot keys over %.1fs", len(hot_keys), seconds)
        self._publish()
        return True

    @staticmethod
    def _parse_lines(lines: Iterable[str], parse: Callable[[str], Any]) -> Iterable[Any]:
        for line in lines:
            try:
                yield parse(line)
            except ParseError as exc:
                logger.debug("Skipping log line: %s", exc)

    # ------------------------------------------------------------------
    # Navigation and re-sampling
    # ------------------------------------------------------------------
    def drill_down(self, segment: str) -> bool:
        try:
            candidate = self.parser.append(self.state.current_prefix, segment)
        except KeyModelError as exc:
            logger.info("Cannot drill into %r: %s", segment, exc)
            return False
        return self.compute_namespace_stats(prefix=candidate)

    def level_up(self) -> bool:
        with self.state.lock:
            current = self.state.current_prefix
            if not current:
                return False
            parent = self.parser.pop(current)
            self.state.update(current_prefix=parent)
        self.compute_namespace_stats()
        return True

    def resample_keys(self) -> bool:
        ok = self.sample_key_space()
        self._aggregate()
        self._ready("Key space re-sampled" if ok else self.state.status)
        return ok

    def resample_traffic(self, duration: float | None = None) -> bool:
        ok = self.sample_traffic(duration)
        self._aggregate()
        self._ready("Traffic re-sampled" if ok else self.state.status)
        return ok

    def _aggregate(self) -> None:
        self._enter(Phase.AGGREGATING, "Aggregating")
        self.compute_namespace_stats()
        self.compute_big_keys()
        self.compute_hot_keys()

    # ------------------------------------------------------------------
    # State helpers
    # ------------------------------------------------------------------
    def _enter(self, phase: Phase, status: str) -> None:
        self.state.update(phase=phase, status=status)

    def _ready(self, status: str) -> None:
        self.state.update(phase=Phase.READY, ready=True, status=status)
        self._publish()

    def _fail(self, status: str, phase: Phase) -> None:
        with self.state.lock:
            changes: dict[str, Any] = {"status": status}
            # Only undo a phase the failed operation itself entered.
            if self.state.phase != phase:
                changes["phase"] = Phase.READY if self.state.ready else phase
            self.state.update(**changes)
        self._publish()

    def _publish(self) -> None:
        self.queue.publish(self.state.snapshot())


__all__ = ["Scanner"]
