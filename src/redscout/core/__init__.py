from .keys import (
    WILDCARD,
    EmptyKeyError,
    EmptySegmentError,
    ExactMatchError,
    Key,
    KeyModelError,
    KeyParser,
    NotAChildError,
)
from .namespace import (
    NamespaceAggregator,
    NamespaceMetrics,
    NamespaceSnapshot,
    sort_namespace_metrics,
)
from .ops import OpClass, classify_command
from .slowlog import SlowLogEntry, sort_slow_log
from .topk import BigKey, BoundedMinHeap, HotKey, select_top_k

__all__ = [
    "WILDCARD",
    "Key",
    "KeyParser",
    "KeyModelError",
    "NotAChildError",
    "ExactMatchError",
    "EmptySegmentError",
    "EmptyKeyError",
    "NamespaceAggregator",
    "NamespaceMetrics",
    "NamespaceSnapshot",
    "sort_namespace_metrics",
    "OpClass",
    "classify_command",
    "SlowLogEntry",
    "sort_slow_log",
    "BigKey",
    "HotKey",
    "BoundedMinHeap",
    "select_top_k",
]
