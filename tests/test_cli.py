from __future__ import annotations

import json
import logging
import sys
from collections.abc import Iterator
from logging.handlers import RotatingFileHandler
from pathlib import Path

import pytest

from redscout.cli import app
from redscout.config import AppConfig
from redscout.contracts.error import Exit
from redscout.scanner import Scanner
from tests.util.fake_store import FakeStore, info_report

KEYS = {
    "user:1": (120, 60, "string"),
    "user:2": (80, 0, "hash"),
    "session:abc": (50, 0, "string"),
}


@pytest.fixture(autouse=True)
def _reset_logger() -> Iterator[None]:
    yield
    logger = logging.getLogger("redscout")
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


def _fake_scanner(store: FakeStore):
    def factory(config: AppConfig) -> Scanner:
        return Scanner(config, store=store)

    return factory


def test_json_formatter_with_exc_and_stack() -> None:
    formatter = app.JsonFormatter()
    try:
        raise RuntimeError("boom")
    except RuntimeError:
        record = logging.getLogger("test").makeRecord(
            "test", logging.ERROR, __file__, 0, "failure", (), sys.exc_info(), func="func"
        )
    record.stack_info = "trace info"
    payload = json.loads(formatter.format(record))
    assert payload["level"] == "ERROR"
    assert payload["msg"] == "failure"
    assert payload["thread"]
    assert "exc_info" in payload
    assert payload["stack"]


def test_configure_logging_json_and_file(tmp_path: Path) -> None:
    log_file = tmp_path / "nested" / "redscout.log"
    app.configure_logging(use_json=True, log_file=str(log_file), console=False)
    logger = logging.getLogger("redscout")
    logger.error("error message")
    assert any(isinstance(handler, RotatingFileHandler) for handler in logger.handlers)
    assert not any(type(handler) is logging.StreamHandler for handler in logger.handlers)
    for handler in logger.handlers:
        handler.flush()
    line = log_file.read_text(encoding="utf-8").splitlines()[-1]
    assert json.loads(line)["msg"] == "error message"


def test_configure_logging_without_outputs_is_silent() -> None:
    app.configure_logging(console=False)
    handlers = logging.getLogger("redscout").handlers
    assert len(handlers) == 1
    assert isinstance(handlers[0], logging.NullHandler)


def test_dash_h_is_host() -> None:
    args = app.build_parser().parse_args(["-h", "db.local", "-p", "7000", "-n", "2", "--tls"])
    assert args.host == "db.local"
    assert args.port == 7000
    assert args.db == 2
    assert args.tls is True


def test_cli_overrides_apply_on_top_of_config() -> None:
    args = app.build_parser().parse_args(
        ["-u", "ops", "--scan-size", "10", "--id-regex", r"\d+ [a-f]+", "--top-k", "5"]
    )
    config = app.apply_cli_overrides(AppConfig(), args)
    assert config.connection.username == "ops"
    assert config.connection.host == "localhost"
    assert config.sampling.scan_size == 10
    assert config.sampling.top_k == 5
    assert config.sampling.id_patterns == [r"\d+", "[a-f]+"]


def test_headless_run_prints_summary(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    store = FakeStore(KEYS, monitor_lines=['1.0 [0 127.0.0.1:1] "GET" "user:1"'])
    monkeypatch.setattr(app, "Scanner", _fake_scanner(store))

    code = app.main(
        ["--headless", "--logs-dir", str(tmp_path), "--monitor-duration", "0", "--log-level", "ERROR"]
    )

    assert code == int(Exit.OK)
    summary = json.loads(capsys.readouterr().out)
    assert summary["phase"] == "ready"
    assert summary["scanned_keys"] == 3
    assert summary["server"]["version"] == "7.2.4"
    assert [row["namespace"] for row in summary["namespaces"]] == ["user", "session"]
    assert summary["big_keys"][0] == {"key": "user:1", "size": 120}
    assert summary["hot_keys"][0]["key"] == "user:1"
    assert store.closed is True
    assert list(tmp_path.glob("redscout_*.log")) == []


def test_invalid_flag_value_exits_with_bad_input(capsys: pytest.CaptureFixture[str]) -> None:
    with pytest.raises(SystemExit) as raised:
        app.main(["--headless", "--port", "0"])
    assert raised.value.code == int(Exit.BAD_INPUT)
    envelope = json.loads(capsys.readouterr().err.splitlines()[-1])
    assert envelope["error"] == "Validation"


def test_old_server_exits_unsupported(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    store = FakeStore(KEYS, info_texts=[info_report(version="3.0.7")])
    monkeypatch.setattr(app, "Scanner", _fake_scanner(store))
    with pytest.raises(SystemExit) as raised:
        app.main(["--headless", "--logs-dir", str(tmp_path), "--log-level", "ERROR"])
    assert raised.value.code == int(Exit.UNSUPPORTED)
    assert store.closed is True


def test_unreachable_server_exits_connectivity(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    store = FakeStore(KEYS)
    store.fail_on = {"info_text"}
    monkeypatch.setattr(app, "Scanner", _fake_scanner(store))
    with pytest.raises(SystemExit) as raised:
        app.main(["--headless", "--logs-dir", str(tmp_path), "--log-level", "ERROR"])
    assert raised.value.code == int(Exit.CONNECTIVITY)
    envelope = json.loads(capsys.readouterr().err.splitlines()[-1])
    assert envelope["error"] == "Connectivity"
