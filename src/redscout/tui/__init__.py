"""Terminal dashboard for redscout."""

from .formatting import (
    format_bytes,
    format_duration,
    format_number,
    format_ops_per_sec,
    format_percent,
    progress_bar,
)

__all__ = [
    "format_bytes",
    "format_duration",
    "format_number",
    "format_ops_per_sec",
    "format_percent",
    "progress_bar",
]
