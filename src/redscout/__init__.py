"""redscout: live key-space and traffic profiler for Redis-compatible servers."""

from . import config, contracts, core, io, metrics, scanner

__version__ = "0.1.0"

__all__ = [
    "config",
    "contracts",
    "core",
    "io",
    "metrics",
    "scanner",
    "__version__",
]
