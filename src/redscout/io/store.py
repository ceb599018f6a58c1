"""Store transport: the handful of server commands the scanner relies on.

Every redis-py failure is re-raised as :class:`ConnectivityError` so callers
deal with a single transient-failure type.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterator, Sequence
from dataclasses import dataclass
from typing import Any, Protocol

import redis
from redis.exceptions import RedisError

from redscout.config import ConnectionSettings
from redscout.contracts.error import ConnectivityError
from redscout.core.slowlog import SlowLogEntry

logger = logging.getLogger(__name__)

_MONITOR_POLL_SECONDS = 0.1
# Cap on entries drained after the monitor deadline; a busy server never goes quiet.
_MONITOR_DRAIN_LIMIT = 10_000


@dataclass(frozen=True, slots=True)
class KeyDescription:
    key: str
    memory: int
    ttl: int
    type: str


class MonitorSession(Protocol):
    def lines(self, duration: float) -> Iterator[str]: ...

    def close(self) -> None: ...


class StoreGateway(Protocol):
    def ping(self) -> None: ...

    def scan(self, cursor: int, count: int) -> tuple[int, list[str]]: ...

    def describe_keys(self, keys: Sequence[str]) -> list[KeyDescription | None]: ...

    def info_text(self) -> str: ...

    def slowlog(self, count: int) -> list[SlowLogEntry]: ...

    def open_monitor(self) -> MonitorSession: ...

    def close(self) -> None: ...


def _raw_info(response: Any, **_options: Any) -> str:
    if isinstance(response, bytes):
        return response.decode("utf-8", errors="replace")
    return str(response)


def build_client(settings: ConnectionSettings) -> redis.Redis:
    client = redis.Redis(
        host=settings.host,
        port=settings.port,
        username=settings.username,
        password=settings.password or None,
        db=settings.db,
        ssl=settings.tls,
        client_name=settings.client_name,
        socket_timeout=settings.socket_timeout,
        socket_connect_timeout=settings.socket_timeout,
        decode_responses=True,
    )
    # Keep INFO as the raw report; parsing happens in redscout.metrics.info.
    client.set_response_callback("INFO", _raw_info)
    return client


def _decode(value: Any) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)


class RedisMonitorSession:
    """Dedicated MONITOR connection, bounded by a deadline per ``lines`` call."""

    def __init__(self, client: redis.Redis) -> None:
        self._client = client
        try:
            self._monitor = client.monitor()
            self._monitor.__enter__()
        except RedisError as exc:
            client.close()
            raise ConnectivityError(f"MONITOR failed: {exc}") from exc

    def lines(self, duration: float) -> Iterator[str]:
        connection = self._monitor.connection
        deadline = time.monotonic() + duration
        try:
            while True:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    break
                if connection.can_read(timeout=min(remaining, _MONITOR_POLL_SECONDS)):
                    yield _decode(connection.read_response())
            drained = 0
            while drained < _MONITOR_DRAIN_LIMIT and connection.can_read(timeout=0):
                yield _decode(connection.read_response())
                drained += 1
        except RedisError as exc:
            raise ConnectivityError(f"MONITOR stream failed: {exc}") from exc

    def close(self) -> None:
        try:
            self._monitor.__exit__(None, None, None)
        except RedisError as exc:
            logger.debug("Ignoring error while closing MONITOR connection: %s", exc)
        finally:
            self._client.close()


class RedisStore:
    """Store gateway over a single redis-py client."""

    def __init__(
        self,
        settings: ConnectionSettings,
        client_factory: Callable[[ConnectionSettings], redis.Redis] = build_client,
    ) -> None:
        self.settings = settings
        self._client_factory = client_factory
        self._client = client_factory(settings)

    def _call(self, label: str, fn: Callable[[], Any]) -> Any:
        try:
            return fn()
        except RedisError as exc:
            raise ConnectivityError(
                f"{label} failed against {self.settings.host}:{self.settings.port}: {exc}"
            ) from exc

    def ping(self) -> None:
        self._call("PING", self._client.ping)

    def scan(self, cursor: int, count: int) -> tuple[int, list[str]]:
        next_cursor, keys = self._call(
            "SCAN", lambda: self._client.scan(cursor=cursor, match="*", count=count)
        )
        return int(next_cursor), [_decode(key) for key in keys]

    def describe_keys(self, keys: Sequence[str]) -> list[KeyDescription | None]:
        """Pipeline MEMORY USAGE, TTL and TYPE; keys with any failed reply map to None."""

        if not keys:
            return []

        def _execute() -> list[Any]:
            pipe = self._client.pipeline(transaction=False)
            for key in keys:
                pipe.memory_usage(key)
                pipe.ttl(key)
                pipe.type(key)
            return pipe.execute(raise_on_error=False)

        replies = self._call("MEMORY USAGE pipeline", _execute)
        described: list[KeyDescription | None] = []
        for index, key in enumerate(keys):
            memory, ttl, key_type = replies[index * 3 : index * 3 + 3]
            if any(isinstance(reply, Exception) for reply in (memory, ttl, key_type)):
                logger.debug("Dropping key %r after partial pipeline failure", key)
                described.append(None)
                continue
            if memory is None or _decode(key_type) == "none":
                # Key expired or was deleted between SCAN and the pipeline.
                described.append(None)
                continue
            described.append(
                KeyDescription(
                    key=key,
                    memory=int(memory),
                    ttl=max(int(ttl), 0),
                    type=_decode(key_type),
                )
            )
        return described

    def info_text(self) -> str:
        return _raw_info(self._call("INFO", lambda: self._client.execute_command("INFO")))

    def slowlog(self, count: int) -> list[SlowLogEntry]:
        raw_entries = self._call("SLOWLOG GET", lambda: self._client.slowlog_get(count))
        entries: list[SlowLogEntry] = []
        for raw in raw_entries:
            parts = _decode(raw.get("command", "")).split()
            entries.append(
                SlowLogEntry(
                    id=int(raw.get("id", 0)),
                    timestamp=float(raw.get("start_time", 0)),
                    duration_us=int(raw.get("duration", 0)),
                    command=parts[0] if parts else "",
                    args=tuple(parts[1:]),
                )
            )
        return entries

    def open_monitor(self) -> RedisMonitorSession:
        try:
            client = self._client_factory(self.settings)
        except RedisError as exc:
            raise ConnectivityError(f"Cannot open monitor connection: {exc}") from exc
        return RedisMonitorSession(client)

    def close(self) -> None:
        self._client.close()


__all__ = [
    "KeyDescription",
    "MonitorSession",
    "StoreGateway",
    "RedisMonitorSession",
    "RedisStore",
    "build_client",
]
