"""Textual dashboard for a running :class:`~redscout.scanner.Scanner`."""

from __future__ import annotations

import logging
from collections.abc import Callable
from functools import partial
from typing import Any

from rich.markup import escape
from rich.text import Text
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.screen import ModalScreen
from textual.widgets import Button, DataTable, Footer, Header, Static, TabbedContent, TabPane

from redscout.contracts.error import EnvelopeError
from redscout.core.ops import OpClass
from redscout.metrics.info import InfoSnapshot
from redscout.scanner import Scanner, StateSnapshot

from .formatting import (
    format_bytes,
    format_duration,
    format_number,
    format_ops_per_sec,
    format_percent,
    progress_bar,
)

logger = logging.getLogger(__name__)

_DRAIN_INTERVAL = 0.25

DISCLAIMER = (
    "redscout samples traffic with the MONITOR command, which streams every\n"
    "command the server executes to this client. On a busy production server\n"
    "this can noticeably reduce throughput while monitoring is active.\n\n"
    "Continue only if that is acceptable for this instance."
)

_NAMESPACE_COLUMNS = (
    "Namespace",
    "Keys",
    "Memory",
    "Mem/key",
    "TTL %",
    "Avg TTL",
    "GET/s",
    "SET/s",
    "DEL/s",
    "Total/s",
    "Types",
)
_BIG_KEY_COLUMNS = ("Key", "Size")
_HOT_KEY_COLUMNS = ("Key", "Ops/s")
_SLOW_LOG_COLUMNS = ("ID", "Timestamp", "Duration", "Command", "Args")


class DisclaimerScreen(ModalScreen[bool]):
    """Ask for confirmation before MONITOR is started."""

    BINDINGS = [
        Binding("y", "accept", "Continue"),
        Binding("n,escape", "decline", "Quit"),
    ]

    CSS = """
    DisclaimerScreen { align: center middle; }
    #disclaimer { width: 80; height: auto; padding: 1 2; border: heavy $warning; background: $panel; }
    #disclaimer-buttons { height: auto; align: center middle; padding-top: 1; }
    #disclaimer-buttons Button { margin: 0 2; }
    """

    def compose(self) -> ComposeResult:
        with Vertical(id="disclaimer"):
            yield Static(DISCLAIMER)
            with Horizontal(id="disclaimer-buttons"):
                yield Button("Continue", id="accept", variant="warning")
                yield Button("Quit", id="decline")

    def on_button_pressed(self, event: Button.Pressed) -> None:
        self.dismiss(event.button.id == "accept")

    def action_accept(self) -> None:
        self.dismiss(True)

    def action_decline(self) -> None:
        self.dismiss(False)


def _server_summary(info: InfoSnapshot | None, db: int) -> str:
    if info is None:
        return "Waiting for server info…"
    server = info.server
    memory = info.memory
    max_label = (memory.max_human or format_bytes(memory.max)) if memory.max else "unlimited"
    lines = [
        (
            f"Version: {escape(server.version or 'n/a')}  OS: {escape(server.os or 'n/a')}  "
            f"Uptime: {format_duration(server.uptime_seconds)}  "
            f"Clients: {info.clients.connected} ({info.clients.blocked} blocked)"
        ),
        (
            f"Keys (db{db}): {format_number(info.total_keys(db))}  "
            f"Ops: {format_ops_per_sec(info.stats.ops_per_sec)}  "
            f"Hit rate: {format_percent(info.computed.hit_rate)}  "
            f"Policy: {escape(memory.policy or 'n/a')}"
        ),
        (
            f"Memory: {memory.used_human or format_bytes(memory.used)} / {max_label}  "
            + (progress_bar(memory.used, memory.max) if memory.max else "")
        ),
        f"CPU: {progress_bar(info.computed.cpu_utilization * 100)}",
    ]
    return "\n".join(lines)


def _status_line(snapshot: StateSnapshot, prefix_label: str) -> str:
    return (
        f"\\[{snapshot.phase.value}] {escape(snapshot.status)}  •  "
        f"Prefix: {escape(prefix_label)}  •  "
        f"Sampled keys: {format_number(snapshot.scanned_keys)}  •  "
        f"Monitored: {format_duration(int(snapshot.monitor_seconds))}"
    )


class RedScoutApp(App[None]):
    """Render published scanner snapshots and trigger scanner operations."""

    TITLE = "redscout"

    CSS = """
    Screen { layout: vertical; }
    #server { padding: 0 2; height: auto; background: #1f2937; color: #e5e7eb; }
    #status { padding: 0 2; height: 1; color: #94a3b8; }
    TabbedContent { height: 1fr; }
    """

    BINDINGS = [
        Binding("backspace,left", "level_up", "Up"),
        Binding("s", "rescan", "Re-scan"),
        Binding("m", "remonitor", "Re-monitor"),
        Binding("r", "refresh_info", "Refresh info"),
        Binding("q", "quit", "Quit"),
    ]

    def __init__(self, scanner: Scanner, *, require_confirmation: bool = True) -> None:
        super().__init__()
        self.scanner = scanner
        self.require_confirmation = require_confirmation
        self.fatal_error: EnvelopeError | None = None
        self.last_snapshot: StateSnapshot | None = None

    def compose(self) -> ComposeResult:
        yield Header(show_clock=True)
        yield Static("Waiting for server info…", id="server")
        yield Static("Starting…", id="status")
        with TabbedContent(initial="tab-namespaces"):
            with TabPane("Namespaces", id="tab-namespaces"):
                yield DataTable(id="namespaces", cursor_type="row", zebra_stripes=True)
            with TabPane("Big keys", id="tab-big-keys"):
                yield DataTable(id="big-keys", cursor_type="row", zebra_stripes=True)
            with TabPane("Hot keys", id="tab-hot-keys"):
                yield DataTable(id="hot-keys", cursor_type="row", zebra_stripes=True)
            with TabPane("Slow log", id="tab-slow-log"):
                yield DataTable(id="slow-log", cursor_type="row", zebra_stripes=True)
        yield Footer()

    def on_mount(self) -> None:
        self._server = self.query_one("#server", Static)
        self._status = self.query_one("#status", Static)
        self._namespaces = self.query_one("#namespaces", DataTable)
        self._big_keys = self.query_one("#big-keys", DataTable)
        self._hot_keys = self.query_one("#hot-keys", DataTable)
        self._slow_log = self.query_one("#slow-log", DataTable)
        for table, columns in (
            (self._namespaces, _NAMESPACE_COLUMNS),
            (self._big_keys, _BIG_KEY_COLUMNS),
            (self._hot_keys, _HOT_KEY_COLUMNS),
            (self._slow_log, _SLOW_LOG_COLUMNS),
        ):
            table.add_columns(*columns)
        self.set_interval(_DRAIN_INTERVAL, self.drain_updates)
        if self.require_confirmation:
            self.push_screen(DisclaimerScreen(), callback=self._on_disclaimer)
        else:
            self._on_disclaimer(True)

    def _on_disclaimer(self, accepted: bool | None) -> None:
        if not accepted:
            self.exit()
            return
        self.run_worker(self._start_scanner, thread=True, group="scanner", name="startup")

    def _start_scanner(self) -> None:
        try:
            self.scanner.start()
        except EnvelopeError as exc:
            logger.error("Scanner startup failed: %s", exc)
            self.fatal_error = exc
            self.call_from_thread(self.exit)

    def _run(self, label: str, fn: Callable[[], Any]) -> None:
        self.run_worker(fn, thread=True, group="scanner", name=label)

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------
    def on_data_table_row_selected(self, event: DataTable.RowSelected) -> None:
        if event.data_table.id != "namespaces" or event.row_key.value is None:
            return
        self._run("drill-down", partial(self.scanner.drill_down, event.row_key.value))

    def action_level_up(self) -> None:
        self._run("level-up", self.scanner.level_up)

    def action_rescan(self) -> None:
        self._run("rescan", self.scanner.resample_keys)

    def action_remonitor(self) -> None:
        self._run("remonitor", self.scanner.resample_traffic)

    def action_refresh_info(self) -> None:
        self._run("refresh-info", self.scanner.refresh_server_info)

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------
    def drain_updates(self) -> None:
        snapshot = self.scanner.queue.latest()
        if snapshot is not None:
            self.render_snapshot(snapshot)

    def render_snapshot(self, snapshot: StateSnapshot) -> None:
        previous = self.last_snapshot
        self.last_snapshot = snapshot
        parser = self.scanner.parser
        prefix_label = parser.join(snapshot.current_prefix) or "<root>"

        self._server.update(_server_summary(snapshot.info, self.scanner.config.connection.db))
        self._status.update(_status_line(snapshot, prefix_label))

        if previous is None or previous.namespace_stats != snapshot.namespace_stats:
            table = self._namespaces
            table.clear()
            for metrics in snapshot.namespace_stats:
                table.add_row(
                    Text(metrics.namespace),
                    format_number(metrics.est_keys),
                    format_bytes(metrics.est_memory),
                    format_bytes(int(metrics.mem_per_key)),
                    format_percent(metrics.ttl_percent),
                    format_duration(metrics.avg_ttl),
                    format_ops_per_sec(metrics.rate(OpClass.GET)),
                    format_ops_per_sec(metrics.rate(OpClass.SET)),
                    format_ops_per_sec(metrics.rate(OpClass.DEL)),
                    format_ops_per_sec(metrics.rate(OpClass.TOTAL)),
                    ", ".join(metrics.types),
                    key=metrics.namespace,
                )

        if previous is None or previous.big_keys != snapshot.big_keys:
            table = self._big_keys
            table.clear()
            for big in snapshot.big_keys:
                table.add_row(Text(big.key), format_bytes(big.size))

        if previous is None or previous.hot_keys != snapshot.hot_keys:
            table = self._hot_keys
            table.clear()
            for hot in snapshot.hot_keys:
                table.add_row(Text(hot.key), format_ops_per_sec(hot.rate))

        if previous is None or previous.slow_logs != snapshot.slow_logs:
            table = self._slow_log
            table.clear()
            for entry in snapshot.slow_logs:
                table.add_row(
                    str(entry.id),
                    f"{entry.timestamp:.0f}",
                    f"{entry.duration_us / 1000:.2f} ms",
                    Text(entry.command),
                    Text(" ".join(entry.args)),
                )


def run_tui(scanner: Scanner, *, require_confirmation: bool = True) -> None:
    """Run the dashboard until quit; startup failures are re-raised afterwards."""

    app = RedScoutApp(scanner, require_confirmation=require_confirmation)
    app.run()
    if app.fatal_error is not None:
        raise app.fatal_error


__all__ = ["DisclaimerScreen", "RedScoutApp", "run_tui"]
