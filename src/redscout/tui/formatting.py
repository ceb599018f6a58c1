"""Human-readable formatting helpers for the dashboard and headless output."""

from __future__ import annotations

_BYTE_UNITS = "KMGTPE"

# (lower bound percent, Rich colour), checked top-down.
_BAR_COLOURS = (
    (90.0, "red"),
    (70.0, "dark_orange"),
    (50.0, "yellow"),
    (30.0, "green_yellow"),
    (0.0, "green"),
)


def format_bytes(size: int) -> str:
    """Format a byte count with 1024-based units, e.g. ``1.5 KB``."""

    if size < 0:
        return "-" + format_bytes(-size)
    if size < 1024:
        return f"{size} B"
    div, exp = 1024, 0
    n = size // 1024
    while n >= 1024 and exp < len(_BYTE_UNITS) - 1:
        div *= 1024
        exp += 1
        n //= 1024
    return f"{size / div:.1f} {_BYTE_UNITS[exp]}B"


def format_number(value: float) -> str:
    if value >= 1_000_000_000:
        return f"{value / 1_000_000_000:.1f}B"
    if value >= 1_000_000:
        return f"{value / 1_000_000:.1f}M"
    if value >= 1_000:
        return f"{value / 1_000:.1f}K"
    return f"{value:.0f}"


def format_ops_per_sec(value: float) -> str:
    return f"{format_number(value)}/s"


def format_duration(seconds: int) -> str:
    """Format seconds as ``1d 2h 3m 4s``, omitting zero units."""

    seconds = int(seconds)
    if seconds < 0:
        return "-" + format_duration(-seconds)
    if seconds == 0:
        return "0s"
    days, rem = divmod(seconds, 86_400)
    hours, rem = divmod(rem, 3_600)
    minutes, secs = divmod(rem, 60)
    parts = [
        f"{amount}{unit}"
        for amount, unit in ((days, "d"), (hours, "h"), (minutes, "m"), (secs, "s"))
        if amount
    ]
    return " ".join(parts)


def format_percent(ratio: float) -> str:
    return f"{ratio * 100:.1f}%"


def progress_bar(value: float, maximum: float = 100.0, width: int = 20) -> str:
    """Render ``value`` out of ``maximum`` as a Rich-markup bar with a percentage."""

    if maximum <= 0 or width <= 0:
        return f"\\[{' ' * max(width, 0)}] 0.0%"
    clamped = min(max(value, 0.0), maximum)
    percent = clamped / maximum * 100
    filled = int(clamped / maximum * width)
    colour = next(name for bound, name in _BAR_COLOURS if percent >= bound)
    bar = "|" * filled + " " * (width - filled)
    return f"[{colour}]\\[{bar}] {percent:.1f}%[/]"


__all__ = [
    "format_bytes",
    "format_number",
    "format_ops_per_sec",
    "format_duration",
    "format_percent",
    "progress_bar",
]
