from __future__ import annotations

from unittest import mock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import ResponseError

from redscout.config import ConnectionSettings
from redscout.contracts.error import ConnectivityError
from redscout.core.slowlog import SlowLogEntry
from redscout.io import store as store_module
from redscout.io.store import KeyDescription, RedisStore


@pytest.fixture
def client() -> mock.MagicMock:
    return mock.MagicMock(name="redis-client")


@pytest.fixture
def store(client: mock.MagicMock) -> RedisStore:
    return RedisStore(ConnectionSettings(), client_factory=lambda _settings: client)


def test_build_client_passes_connection_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    fake_redis = mock.MagicMock(name="Redis")
    monkeypatch.setattr(store_module.redis, "Redis", fake_redis)
    settings = ConnectionSettings(
        host="cache.internal", port=6380, username="ops", password="s3cret", db=2, tls=True
    )

    client = store_module.build_client(settings)

    kwargs = fake_redis.call_args.kwargs
    assert kwargs["host"] == "cache.internal"
    assert kwargs["port"] == 6380
    assert kwargs["username"] == "ops"
    assert kwargs["password"] == "s3cret"
    assert kwargs["db"] == 2
    assert kwargs["ssl"] is True
    assert kwargs["client_name"] == "redscout"
    assert kwargs["decode_responses"] is True
    client.set_response_callback.assert_called_once()
    assert client.set_response_callback.call_args.args[0] == "INFO"


def test_empty_password_is_sent_as_none(monkeypatch: pytest.MonkeyPatch) -> None:
    fake_redis = mock.MagicMock(name="Redis")
    monkeypatch.setattr(store_module.redis, "Redis", fake_redis)
    store_module.build_client(ConnectionSettings())
    assert fake_redis.call_args.kwargs["password"] is None


def test_scan_returns_cursor_and_keys(store: RedisStore, client: mock.MagicMock) -> None:
    client.scan.return_value = (17, ["a", "b"])
    assert store.scan(0, 10) == (17, ["a", "b"])
    client.scan.assert_called_once_with(cursor=0, match="*", count=10)


def test_describe_keys_drops_partial_failures(store: RedisStore, client: mock.MagicMock) -> None:
    pipe = client.pipeline.return_value
    pipe.execute.return_value = [
        120, 60, "string",
        ResponseError("WRONGTYPE"), 5, "hash",
        None, -2, "none",
        30, -1, "set",
    ]  # fmt: skip

    described = store.describe_keys(["a", "b", "c", "d"])

    assert described == [
        KeyDescription("a", 120, 60, "string"),
        None,
        None,
        KeyDescription("d", 30, 0, "set"),
    ]
    client.pipeline.assert_called_once_with(transaction=False)
    pipe.execute.assert_called_once_with(raise_on_error=False)
    assert pipe.memory_usage.call_count == 4


def test_describe_no_keys_skips_pipeline(store: RedisStore, client: mock.MagicMock) -> None:
    assert store.describe_keys([]) == []
    client.pipeline.assert_not_called()


def test_redis_errors_become_connectivity_errors(
    store: RedisStore, client: mock.MagicMock
) -> None:
    client.ping.side_effect = RedisConnectionError("connection refused")
    with pytest.raises(ConnectivityError, match="PING failed against localhost:6379"):
        store.ping()


def test_info_text_is_raw(store: RedisStore, client: mock.MagicMock) -> None:
    client.execute_command.return_value = b"# Server\r\nredis_version:7.0.0\r\n"
    assert store.info_text() == "# Server\r\nredis_version:7.0.0\r\n"
    client.execute_command.assert_called_once_with("INFO")


def test_slowlog_entries(store: RedisStore, client: mock.MagicMock) -> None:
    client.slowlog_get.return_value = [
        {"id": 9, "start_time": 1700000000, "duration": 25000, "command": "HGETALL user:1"},
        {"id": 8, "start_time": 1699999999, "duration": 12000, "command": ""},
    ]
    assert store.slowlog(5) == [
        SlowLogEntry(9, 1700000000.0, 25000, "HGETALL", ("user:1",)),
        SlowLogEntry(8, 1699999999.0, 12000, "", ()),
    ]
    client.slowlog_get.assert_called_once_with(5)


def test_monitor_session_reads_until_deadline(store: RedisStore, client: mock.MagicMock) -> None:
    monitor = client.monitor.return_value
    connection = monitor.connection
    pending = ['1.0 [0 127.0.0.1:1] "GET" "a"', '1.1 [0 127.0.0.1:1] "SET" "b" "1"']
    connection.can_read.side_effect = lambda timeout=None: bool(pending)
    connection.read_response.side_effect = lambda: pending.pop(0)

    session = store.open_monitor()
    lines = list(session.lines(0.05))
    session.close()

    assert lines == ['1.0 [0 127.0.0.1:1] "GET" "a"', '1.1 [0 127.0.0.1:1] "SET" "b" "1"']
    monitor.__enter__.assert_called_once()
    monitor.__exit__.assert_called_once()
    client.close.assert_called_once()


def test_monitor_stream_errors_are_wrapped(store: RedisStore, client: mock.MagicMock) -> None:
    connection = client.monitor.return_value.connection
    connection.can_read.return_value = True
    connection.read_response.side_effect = RedisConnectionError("reset by peer")

    session = store.open_monitor()
    with pytest.raises(ConnectivityError):
        list(session.lines(1.0))
    session.close()


def test_close_closes_client(store: RedisStore, client: mock.MagicMock) -> None:
    store.close()
    client.close.assert_called_once()


def test_monitor_setup_failure_closes_dedicated_client(
    store: RedisStore, client: mock.MagicMock
) -> None:
    client.monitor.side_effect = RedisConnectionError("refused")
    with pytest.raises(ConnectivityError, match="MONITOR failed"):
        store.open_monitor()
    client.close.assert_called_once()
