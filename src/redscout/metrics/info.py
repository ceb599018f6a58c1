"""Parse the server's INFO report and derive delta metrics between polls."""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from typing import Any

from redscout.contracts.error import ParseError, VersionUnsupportedError

logger = logging.getLogger(__name__)

MIN_SUPPORTED_VERSION: tuple[int, int, int] = (4, 0, 0)

_VERSION_RE = re.compile(r"^\s*v?(\d+)(?:\.(\d+))?(?:\.(\d+))?")
_KEYSPACE_RE = re.compile(r"^db\d+$")


@dataclass
class ServerInfo:
    version: str = ""
    os: str = ""
    arch_bits: int = 0
    uptime_seconds: int = 0
    hz: int = 0


@dataclass
class ClientsInfo:
    connected: int = 0
    blocked: int = 0


@dataclass
class MemoryInfo:
    used: int = 0
    used_human: str = ""
    max: int = 0
    max_human: str = ""
    policy: str = ""
    peak_percent: float = 0.0


@dataclass
class CPUInfo:
    user_seconds: float = 0.0
    system_seconds: float = 0.0

    @property
    def total_seconds(self) -> float:
        return self.user_seconds + self.system_seconds


@dataclass
class StatsInfo:
    total_connections: int = 0
    ops_per_sec: int = 0
    keyspace_hits: int = 0
    keyspace_misses: int = 0


@dataclass
class KeyspaceInfo:
    keys: int = 0
    expires: int = 0
    avg_ttl_seconds: int = 0


@dataclass
class ComputedStats:
    hit_rate: float = 0.0
    cpu_utilization: float = 0.0


@dataclass
class InfoSnapshot:
    server: ServerInfo = field(default_factory=ServerInfo)
    clients: ClientsInfo = field(default_factory=ClientsInfo)
    memory: MemoryInfo = field(default_factory=MemoryInfo)
    cpu: CPUInfo = field(default_factory=CPUInfo)
    stats: StatsInfo = field(default_factory=StatsInfo)
    keyspace: dict[str, KeyspaceInfo] = field(default_factory=dict)
    computed: ComputedStats = field(default_factory=ComputedStats)

    def total_keys(self, db: int = 0) -> int:
        entry = self.keyspace.get(f"db{db}")
        return entry.keys if entry is not None else 0


def _to_int(value: str) -> int:
    try:
        return int(value.strip())
    except ValueError as exc:
        raise ParseError(f"expected integer, got {value!r}") from exc


def _to_float(value: str) -> float:
    try:
        return float(value.strip().rstrip("%"))
    except ValueError as exc:
        raise ParseError(f"expected number, got {value!r}") from exc


# field name -> (section attribute, attribute, caster)
_FIELDS: dict[str, tuple[str, str, Callable[[str], Any]]] = {
    "redis_version": ("server", "version", str.strip),
    "os": ("server", "os", str.strip),
    "arch_bits": ("server", "arch_bits", _to_int),
    "uptime_in_seconds": ("server", "uptime_seconds", _to_int),
    "hz": ("server", "hz", _to_int),
    "connected_clients": ("clients", "connected", _to_int),
    "blocked_clients": ("clients", "blocked", _to_int),
    "used_cpu_sys": ("cpu", "system_seconds", _to_float),
    "used_cpu_user": ("cpu", "user_seconds", _to_float),
    "used_memory": ("memory", "used", _to_int),
    "used_memory_human": ("memory", "used_human", str.strip),
    "maxmemory": ("memory", "max", _to_int),
    "maxmemory_human": ("memory", "max_human", str.strip),
    "maxmemory_policy": ("memory", "policy", str.strip),
    "used_memory_peak_perc": ("memory", "peak_percent", _to_float),
    "total_connections_received": ("stats", "total_connections", _to_int),
    "instantaneous_ops_per_sec": ("stats", "ops_per_sec", _to_int),
    "keyspace_hits": ("stats", "keyspace_hits", _to_int),
    "keyspace_misses": ("stats", "keyspace_misses", _to_int),
}


def _parse_keyspace(value: str) -> KeyspaceInfo:
    entry = KeyspaceInfo()
    for pair in value.split(","):
        name, sep, raw = pair.partition("=")
        if not sep:
            continue
        try:
            if name == "keys":
                entry.keys = _to_int(raw)
            elif name == "expires":
                entry.expires = _to_int(raw)
            elif name == "avg_ttl":
                entry.avg_ttl_seconds = _to_int(raw) // 1000
        except ParseError:
            logger.debug("Ignored keyspace field %s=%r", name, raw)
    return entry


def parse_info(text: str) -> InfoSnapshot:
    """Parse a free-text ``key:value`` INFO report.

    Unknown fields and malformed values are skipped. The computed block starts
    from lifetime figures (hit rate over all queries, CPU seconds per uptime
    second); :func:`compute_deltas` replaces them with windowed values.
    """

    snapshot = InfoSnapshot()
    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        name, sep, value = line.partition(":")
        if not sep:
            continue
        target = _FIELDS.get(name)
        if target is not None:
            section, attr, caster = target
            try:
                setattr(getattr(snapshot, section), attr, caster(value))
            except ParseError:
                logger.debug("Ignored INFO field %s=%r", name, value)
            continue
        if _KEYSPACE_RE.match(name):
            snapshot.keyspace[name] = _parse_keyspace(value)

    queries = snapshot.stats.keyspace_hits + snapshot.stats.keyspace_misses
    snapshot.computed.hit_rate = snapshot.stats.keyspace_hits / queries if queries else 1.0
    cpu_total = snapshot.cpu.total_seconds
    if cpu_total > 0 and snapshot.server.uptime_seconds > 0:
        snapshot.computed.cpu_utilization = cpu_total / snapshot.server.uptime_seconds
    return snapshot


def compute_deltas(
    current: InfoSnapshot, previous: InfoSnapshot, elapsed_ms: float | None
) -> ComputedStats:
    """Derive windowed hit rate and CPU utilization against ``previous``.

    ``elapsed_ms`` is the wall-clock time since the previous poll, or ``None``
    on the first poll, in which case CPU utilization keeps the parser default.
    """

    computed = replace(current.computed)
    d_hits = current.stats.keyspace_hits - previous.stats.keyspace_hits
    d_misses = current.stats.keyspace_misses - previous.stats.keyspace_misses
    if d_hits + d_misses > 0:
        computed.hit_rate = d_hits / (d_hits + d_misses)
    else:
        computed.hit_rate = previous.computed.hit_rate

    if elapsed_ms is not None and elapsed_ms > 0:
        d_cpu = current.cpu.total_seconds - previous.cpu.total_seconds
        computed.cpu_utilization = d_cpu * 1000 / elapsed_ms
    return computed


def parse_version(text: str) -> tuple[int, int, int]:
    match = _VERSION_RE.match(text or "")
    if match is None:
        raise ParseError(f"Unrecognised server version {text!r}")
    major, minor, patch = (int(part) if part else 0 for part in match.groups())
    return major, minor, patch


def ensure_supported_version(
    text: str, minimum: tuple[int, int, int] = MIN_SUPPORTED_VERSION
) -> tuple[int, int, int]:
    """Return the parsed version or raise :class:`VersionUnsupportedError`."""

    required = ".".join(str(part) for part in minimum)
    try:
        version = parse_version(text)
    except ParseError as exc:
        raise VersionUnsupportedError(
            f"Cannot determine server version from {text!r}",
            hint=f"redscout requires server version >= {required}",
        ) from exc
    if version < minimum:
        raise VersionUnsupportedError(
            f"Unsupported server version {text}, must be at least v{required}",
            hint="Sampling commands (SCAN, MEMORY USAGE) are not guaranteed below this version",
        )
    return version


__all__ = [
    "MIN_SUPPORTED_VERSION",
    "ServerInfo",
    "ClientsInfo",
    "MemoryInfo",
    "CPUInfo",
    "StatsInfo",
    "KeyspaceInfo",
    "ComputedStats",
    "InfoSnapshot",
    "parse_info",
    "compute_deltas",
    "parse_version",
    "ensure_supported_version",
]
