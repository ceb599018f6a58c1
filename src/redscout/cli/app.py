"""Command-line entry point for redscout.

Flags follow redis-cli where they overlap (``-h`` is the host, so help is
``--help`` only). Without ``--headless`` the Textual dashboard owns the
terminal and logs go to ``<logs_dir>/redscout.log``.
"""

from __future__ import annotations

import argparse
import contextlib
import json
import logging
import sys
from collections.abc import Sequence
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

from redscout.config import AppConfig, load_app_config, split_id_patterns
from redscout.contracts.error import Exit, ResourceError, guard_cli
from redscout.core.namespace import SORT_KEYS
from redscout.scanner import Scanner, StateSnapshot

logger = logging.getLogger("redscout")

DEFAULT_LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DEFAULT_LOG_DATEFMT = "%Y-%m-%dT%H:%M:%S"
DEFAULT_LOG_MAX_BYTES = 5_000_000
DEFAULT_LOG_BACKUP_COUNT = 5
LOG_FILE_NAME = "redscout.log"


class JsonFormatter(logging.Formatter):
    """Render log records as JSON objects."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": self.formatTime(record, DEFAULT_LOG_DATEFMT),
            "level": record.levelname,
            "logger": record.name,
            "thread": record.threadName,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        if record.stack_info:
            payload["stack"] = self.formatStack(record.stack_info)
        return json.dumps(payload, ensure_ascii=False)


def configure_logging(
    use_json: bool = False,
    log_file: str | None = None,
    *,
    level: str = "INFO",
    console: bool = True,
    max_bytes: int = DEFAULT_LOG_MAX_BYTES,
    backup_count: int = DEFAULT_LOG_BACKUP_COUNT,
) -> None:
    """Configure console and/or rotating file logging for the ``redscout`` logger."""

    formatter: logging.Formatter
    if use_json:
        formatter = JsonFormatter()
    else:
        formatter = logging.Formatter(DEFAULT_LOG_FORMAT, DEFAULT_LOG_DATEFMT)

    for handler in list(logger.handlers):
        with contextlib.suppress(Exception):
            handler.close()
        logger.removeHandler(handler)
    logger.setLevel(level.upper())
    logger.propagate = False

    if console:
        stream = logging.StreamHandler()
        stream.setFormatter(formatter)
        logger.addHandler(stream)

    if log_file:
        try:
            Path(log_file).parent.mkdir(parents=True, exist_ok=True)
            handler = RotatingFileHandler(log_file, maxBytes=max_bytes, backupCount=backup_count)
        except OSError as exc:
            raise ResourceError(f"Cannot open log file {log_file}: {exc}") from exc
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    if not logger.handlers:
        logger.addHandler(logging.NullHandler())


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="redscout",
        description="Live key-space and traffic profiler for Redis-compatible servers.",
        add_help=False,
    )
    parser.add_argument("--help", action="help", help="Show this help message and exit")

    conn = parser.add_argument_group("connection")
    conn.add_argument("-h", "--host", help="Server hostname (default: localhost)")
    conn.add_argument("-p", "--port", type=int, help="Server port (default: 6379)")
    conn.add_argument("-u", "--user", dest="username", help="ACL username")
    conn.add_argument("-a", "--password", help="Password")
    conn.add_argument("-n", "--db", type=int, help="Database index (default: 0)")
    conn.add_argument(
        "--tls",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Connect over TLS (default: off)",
    )

    sampling = parser.add_argument_group("sampling")
    sampling.add_argument("--scan-size", type=int, help="Keys to sample per scan (default: 5000)")
    sampling.add_argument(
        "--monitor-duration", type=float, help="Seconds of MONITOR per traffic sample"
    )
    sampling.add_argument(
        "--refresh-interval", type=float, help="Seconds between server info refreshes"
    )
    sampling.add_argument("--delimiter", help="Key segment delimiter (default: ':')")
    sampling.add_argument("--logs-dir", help="Directory for working logs and the app log")
    sampling.add_argument(
        "--id-regex",
        help="Space-separated regexes; matching key segments collapse into {id}",
    )
    sampling.add_argument("--top-k", type=int, help="Rows kept for big/hot keys and slow log")
    sampling.add_argument(
        "--namespace-sort",
        choices=sorted(SORT_KEYS),
        help="Namespace table ordering (default: keys)",
    )

    runtime = parser.add_argument_group("runtime")
    runtime.add_argument("--config", help="TOML config file with [connection] and [sampling]")
    runtime.add_argument("--headless", action="store_true", help="Single pass, JSON summary")
    runtime.add_argument("--log-json", action="store_true", help="Emit logs as JSON lines")
    runtime.add_argument("--log-file", help="Log file path (rotating)")
    runtime.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level (default: %(default)s)",
    )
    return parser


def apply_cli_overrides(config: AppConfig, args: argparse.Namespace) -> AppConfig:
    """Apply explicitly passed flags on top of file and environment settings."""

    for attr in ("host", "port", "username", "password", "db", "tls"):
        value = getattr(args, attr)
        if value is not None:
            setattr(config.connection, attr, value)
    for attr in (
        "scan_size",
        "monitor_duration",
        "refresh_interval",
        "delimiter",
        "logs_dir",
        "top_k",
        "namespace_sort",
    ):
        value = getattr(args, attr)
        if value is not None:
            setattr(config.sampling, attr, value)
    if args.id_regex is not None:
        config.sampling.id_patterns = split_id_patterns(args.id_regex)
    config.validate()
    return config


def snapshot_to_dict(snapshot: StateSnapshot, delimiter: str) -> dict[str, Any]:
    info = snapshot.info
    server: dict[str, Any] = {}
    if info is not None:
        server = {
            "version": info.server.version,
            "uptime_seconds": info.server.uptime_seconds,
            "connected_clients": info.clients.connected,
            "used_memory": info.memory.used,
            "maxmemory": info.memory.max,
            "hit_rate": info.computed.hit_rate,
            "cpu_utilization": info.computed.cpu_utilization,
            "keyspace": {name: entry.keys for name, entry in info.keyspace.items()},
        }
    return {
        "status": snapshot.status,
        "phase": snapshot.phase.value,
        "prefix": delimiter.join(snapshot.current_prefix),
        "scanned_keys": snapshot.scanned_keys,
        "monitor_seconds": snapshot.monitor_seconds,
        "server": server,
        "namespaces": [
            {
                "namespace": m.namespace,
                "est_keys": m.est_keys,
                "est_memory": m.est_memory,
                "ttl_percent": m.ttl_percent,
                "avg_ttl": m.avg_ttl,
                "ops": {op_class.value: rate for op_class, rate in m.ops.items()},
                "types": list(m.types),
            }
            for m in snapshot.namespace_stats
        ],
        "big_keys": [{"key": b.key, "size": b.size} for b in snapshot.big_keys],
        "hot_keys": [{"key": h.key, "rate": h.rate} for h in snapshot.hot_keys],
        "slow_log": [
            {
                "id": e.id,
                "timestamp": e.timestamp,
                "duration_us": e.duration_us,
                "command": e.command,
                "args": list(e.args),
            }
            for e in snapshot.slow_logs
        ],
    }


@guard_cli
def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    config = apply_cli_overrides(load_app_config(args.config), args)

    log_file = args.log_file
    if log_file is None and not args.headless:
        log_file = str(config.sampling.resolved_logs_dir() / LOG_FILE_NAME)
    configure_logging(
        use_json=args.log_json,
        log_file=log_file,
        level=args.log_level,
        console=args.headless,
    )
    logger.info(
        "Starting redscout against %s:%d db=%d",
        config.connection.host,
        config.connection.port,
        config.connection.db,
    )

    scanner = Scanner(config)
    try:
        if args.headless:
            snapshot = scanner.start()
            print(json.dumps(snapshot_to_dict(snapshot, config.sampling.delimiter), indent=2))
        else:
            from redscout.tui.app import run_tui

            run_tui(scanner)
    finally:
        scanner.close()
    return int(Exit.OK)


def console_main() -> None:
    sys.exit(main())


__all__ = [
    "JsonFormatter",
    "apply_cli_overrides",
    "build_parser",
    "configure_logging",
    "console_main",
    "main",
    "snapshot_to_dict",
]
