"""In-memory stand-in for :class:`redscout.io.store.RedisStore`."""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Sequence

from redscout.contracts.error import ConnectivityError
from redscout.core.slowlog import SlowLogEntry
from redscout.io.store import KeyDescription


def info_report(
    *,
    version: str = "7.2.4",
    keys: int = 1000,
    hits: int = 100,
    misses: int = 50,
    cpu_user: float = 1.0,
    cpu_sys: float = 0.5,
    uptime: int = 3600,
) -> str:
    return "\r\n".join(
        [
            "# Server",
            f"redis_version:{version}",
            "os:Linux 6.1.0 x86_64",
            "arch_bits:64",
            f"uptime_in_seconds:{uptime}",
            "hz:10",
            "# Clients",
            "connected_clients:3",
            "blocked_clients:0",
            "# Memory",
            "used_memory:1048576",
            "used_memory_human:1.00M",
            "maxmemory:0",
            "maxmemory_human:0B",
            "maxmemory_policy:noeviction",
            "used_memory_peak_perc:87.50%",
            "# Stats",
            "total_connections_received:42",
            "instantaneous_ops_per_sec:17",
            f"keyspace_hits:{hits}",
            f"keyspace_misses:{misses}",
            "# CPU",
            f"used_cpu_sys:{cpu_sys}",
            f"used_cpu_user:{cpu_user}",
            "# Keyspace",
            f"db0:keys={keys},expires=1,avg_ttl=60000",
            "",
        ]
    )


class FakeMonitorSession:
    """Yields canned lines; with ``fail_after`` set the stream breaks after that many."""

    def __init__(self, lines: Iterable[str], fail_after: int | None = None) -> None:
        self._lines = list(lines)
        self.fail_after = fail_after
        self.durations: list[float] = []
        self.closed = False

    def lines(self, duration: float) -> Iterator[str]:
        self.durations.append(duration)
        for index, line in enumerate(self._lines):
            if self.fail_after is not None and index >= self.fail_after:
                raise ConnectivityError("monitor stream reset")
            yield line

    def close(self) -> None:
        self.closed = True


class FakeStore:
    """Serves a fixed key space page by page.

    ``fail_on`` names methods that raise; ``fail_scan_at`` breaks SCAN at one
    cursor and ``monitor_fail_after`` breaks MONITOR streams part way through.
    """

    def __init__(
        self,
        keys: dict[str, tuple[int, int, str]] | None = None,
        *,
        info_texts: Sequence[str] | None = None,
        monitor_lines: Iterable[str] = (),
        slow_entries: Iterable[SlowLogEntry] = (),
    ) -> None:
        self.keys = dict(keys or {})
        self.key_order = list(self.keys)
        self.info_texts = list(info_texts or [info_report()])
        self.monitor_lines = list(monitor_lines)
        self.slow_entries = list(slow_entries)
        self.failing_keys: set[str] = set()
        self.fail_on: set[str] = set()
        self.fail_scan_at: int | None = None
        self.monitor_fail_after: int | None = None
        self.scan_calls: list[tuple[int, int]] = []
        self.info_calls = 0
        self.monitors: list[FakeMonitorSession] = []
        self.closed = False

    def _maybe_fail(self, name: str) -> None:
        if name in self.fail_on:
            raise ConnectivityError(f"{name} unavailable")

    def ping(self) -> None:
        self._maybe_fail("ping")

    def scan(self, cursor: int, count: int) -> tuple[int, list[str]]:
        self._maybe_fail("scan")
        if cursor == self.fail_scan_at:
            raise ConnectivityError(f"scan at cursor {cursor} unavailable")
        self.scan_calls.append((cursor, count))
        batch = self.key_order[cursor : cursor + count]
        next_cursor = cursor + count
        return (0 if next_cursor >= len(self.key_order) else next_cursor), batch

    def describe_keys(self, keys: Sequence[str]) -> list[KeyDescription | None]:
        self._maybe_fail("describe_keys")
        described: list[KeyDescription | None] = []
        for key in keys:
            if key in self.failing_keys or key not in self.keys:
                described.append(None)
                continue
            memory, ttl, key_type = self.keys[key]
            described.append(KeyDescription(key, memory, ttl, key_type))
        return described

    def info_text(self) -> str:
        self._maybe_fail("info_text")
        text = self.info_texts[min(self.info_calls, len(self.info_texts) - 1)]
        self.info_calls += 1
        return text

    def slowlog(self, count: int) -> list[SlowLogEntry]:
        self._maybe_fail("slowlog")
        return self.slow_entries[:count]

    def open_monitor(self) -> FakeMonitorSession:
        self._maybe_fail("open_monitor")
        session = FakeMonitorSession(self.monitor_lines, self.monitor_fail_after)
        self.monitors.append(session)
        return session

    def close(self) -> None:
        self.closed = True


__all__ = ["FakeMonitorSession", "FakeStore", "info_report"]
