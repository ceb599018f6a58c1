from .info import (
    MIN_SUPPORTED_VERSION,
    ComputedStats,
    InfoSnapshot,
    KeyspaceInfo,
    compute_deltas,
    ensure_supported_version,
    parse_info,
    parse_version,
)

__all__ = [
    "MIN_SUPPORTED_VERSION",
    "ComputedStats",
    "InfoSnapshot",
    "KeyspaceInfo",
    "compute_deltas",
    "ensure_supported_version",
    "parse_info",
    "parse_version",
]
