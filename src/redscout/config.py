"""Typed configuration loader for redscout."""

from __future__ import annotations

import os
import re
import tempfile
import tomllib
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

from .contracts.error import ValidationError
from .core.namespace import SORT_KEYS

_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off"}


def _parse_bool(raw: Any, name: str) -> bool:
    if isinstance(raw, bool):
        return raw
    normalized = str(raw).strip().lower()
    if normalized in _TRUTHY:
        return True
    if normalized in _FALSY:
        return False
    raise ValidationError(f"{name} must be boolean")


@dataclass
class ConnectionSettings:
    host: str = "localhost"
    port: int = 6379
    username: str | None = None
    password: str = ""
    db: int = 0
    tls: bool = False
    client_name: str = "redscout"
    socket_timeout: float = 5.0

    def validate(self) -> None:
        if not self.host.strip():
            raise ValidationError("connection.host must be a non-empty string")
        if not 1 <= self.port <= 65535:
            raise ValidationError(f"connection.port must be between 1 and 65535, got {self.port}")
        if self.db < 0:
            raise ValidationError(f"connection.db must be non-negative, got {self.db}")
        if self.socket_timeout <= 0:
            raise ValidationError("connection.socket_timeout must be > 0")


@dataclass
class SamplingPolicy:
    scan_size: int = 5000
    scan_batch_size: int = 1000
    pipeline_batch_size: int = 500
    monitor_duration: float = 10.0
    refresh_interval: float = 5.0
    delimiter: str = ":"
    logs_dir: str | None = None
    top_k: int = 100
    id_patterns: list[str] = field(default_factory=list)
    publish_queue_size: int = 100
    namespace_sort: str = "keys"

    def validate(self) -> None:
        if self.scan_size <= 0:
            raise ValidationError(f"sampling.scan_size must be positive, got {self.scan_size}")
        if self.scan_batch_size <= 0:
            raise ValidationError("sampling.scan_batch_size must be > 0")
        if self.pipeline_batch_size <= 0:
            raise ValidationError("sampling.pipeline_batch_size must be > 0")
        if self.monitor_duration < 0:
            raise ValidationError(
                f"sampling.monitor_duration must be non-negative, got {self.monitor_duration}"
            )
        if self.refresh_interval <= 0:
            raise ValidationError(
                f"sampling.refresh_interval must be positive, got {self.refresh_interval}"
            )
        if not self.delimiter:
            raise ValidationError("sampling.delimiter cannot be empty")
        if self.top_k <= 0:
            raise ValidationError(f"sampling.top_k must be positive, got {self.top_k}")
        if self.publish_queue_size <= 0:
            raise ValidationError("sampling.publish_queue_size must be > 0")
        if self.namespace_sort not in SORT_KEYS:
            raise ValidationError(
                f"sampling.namespace_sort must be one of {', '.join(sorted(SORT_KEYS))}"
            )
        for pattern in self.id_patterns:
            try:
                re.compile(pattern)
            except re.error as exc:
                raise ValidationError(f"Invalid id pattern {pattern!r}: {exc}") from exc

    def resolved_logs_dir(self) -> Path:
        return Path(self.logs_dir).expanduser() if self.logs_dir else Path(tempfile.gettempdir())


def split_id_patterns(raw: str) -> list[str]:
    """Split a space-separated pattern list, dropping blanks."""

    return [pattern for pattern in (part.strip() for part in raw.split(" ")) if pattern]


def _section_data(data: dict[str, Any], section: str) -> dict[str, Any]:
    raw = data.get(section) or {}
    if not isinstance(raw, dict):
        raise ValidationError(f"[{section}] section must be a table")
    return dict(raw)


def _build_section(cls: type, data: dict[str, Any], section: str) -> Any:
    known = {f.name for f in fields(cls)}
    unknown = set(data) - known
    if unknown:
        raise ValidationError(f"Unknown [{section}] option(s): {', '.join(sorted(unknown))}")
    try:
        return cls(**data)
    except TypeError as exc:
        raise ValidationError(f"Invalid [{section}] section: {exc}") from exc


@dataclass
class AppConfig:
    connection: ConnectionSettings = field(default_factory=ConnectionSettings)
    sampling: SamplingPolicy = field(default_factory=SamplingPolicy)

    @classmethod
    def load(cls, path: Path | None, env: Mapping[str, str] | None = None) -> AppConfig:
        if path is None:
            cfg = cls()
        else:
            try:
                data = tomllib.loads(path.read_text(encoding="utf-8"))
            except FileNotFoundError as exc:
                raise ValidationError(f"Config file not found: {path}") from exc
            except tomllib.TOMLDecodeError as exc:
                raise ValidationError(f"Invalid TOML: {exc}") from exc
            cfg = cls.from_dict(data)
        cfg.apply_env_overrides(os.environ if env is None else env)
        cfg.validate()
        return cfg

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AppConfig:
        connection_data = _section_data(data, "connection")
        if "tls" in connection_data:
            connection_data["tls"] = _parse_bool(connection_data["tls"], "connection.tls")
        connection = _build_section(ConnectionSettings, connection_data, "connection")

        sampling_data = _section_data(data, "sampling")
        patterns = sampling_data.get("id_patterns")
        if isinstance(patterns, str):
            sampling_data["id_patterns"] = split_id_patterns(patterns)
        elif patterns is not None and not isinstance(patterns, list):
            raise ValidationError("sampling.id_patterns must be a list or a space-separated string")
        sampling = _build_section(SamplingPolicy, sampling_data, "sampling")
        return cls(connection=connection, sampling=sampling)

    def apply_env_overrides(self, env: Mapping[str, str]) -> None:
        connection_mapping: dict[str, tuple[str, Callable[[str], Any]]] = {
            "REDIS_HOST": ("host", str),
            "REDIS_PORT": ("port", int),
            "REDIS_USER": ("username", str),
            "REDIS_PASSWORD": ("password", str),
            "REDIS_DB": ("db", int),
        }
        for key, (attr, caster) in connection_mapping.items():
            raw_value = env.get(key)
            if raw_value is None or raw_value == "":
                continue
            try:
                value = caster(raw_value)
            except ValueError as exc:
                raise ValidationError(f"Invalid env override {key}={raw_value!r}") from exc
            setattr(self.connection, attr, value)

        raw_tls = env.get("REDIS_TLS")
        if raw_tls is not None:
            try:
                self.connection.tls = _parse_bool(raw_tls, "REDIS_TLS")
            except ValidationError as exc:
                raise ValidationError(f"Invalid env override REDIS_TLS={raw_tls!r}") from exc

        sampling_mapping: dict[str, tuple[str, Callable[[str], Any]]] = {
            "REDSCOUT_SCAN_SIZE": ("scan_size", int),
            "REDSCOUT_MONITOR_DURATION": ("monitor_duration", float),
            "REDSCOUT_REFRESH_INTERVAL": ("refresh_interval", float),
            "REDSCOUT_DELIMITER": ("delimiter", str),
            "REDSCOUT_LOGS_DIR": ("logs_dir", str),
            "REDSCOUT_TOP_K": ("top_k", int),
            "REDSCOUT_ID_REGEX": ("id_patterns", split_id_patterns),
        }
        for key, (attr, caster) in sampling_mapping.items():
            raw_value = env.get(key)
            if raw_value is None:
                continue
            try:
                value = caster(raw_value)
            except ValueError as exc:
                raise ValidationError(f"Invalid env override {key}={raw_value!r}") from exc
            setattr(self.sampling, attr, value)

    def validate(self) -> None:
        self.connection.validate()
        self.sampling.validate()


DEFAULT_CONFIG = AppConfig()


def load_app_config(path: str | None, env: Mapping[str, str] | None = None) -> AppConfig:
    config_path = Path(path) if path else None
    return AppConfig.load(config_path, env)


__all__ = [
    "AppConfig",
    "ConnectionSettings",
    "SamplingPolicy",
    "DEFAULT_CONFIG",
    "load_app_config",
    "split_id_patterns",
]
