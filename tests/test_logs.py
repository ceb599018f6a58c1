from __future__ import annotations

import threading
from pathlib import Path

import pytest

from redscout.contracts.error import ResourceError
from redscout.scanner.logs import WorkingLog


def test_append_then_reread_from_start(tmp_path: Path) -> None:
    log = WorkingLog.create(tmp_path, "scan_")
    try:
        with log.locked():
            assert log.append_lines(["a 1 0 string\n", "b 2 0 hash\n"]) == 2
            assert list(log.iter_lines()) == ["a 1 0 string", "b 2 0 hash"]
            log.append_lines(["c 3 0 set\n"])
            assert list(log.iter_lines()) == ["a 1 0 string", "b 2 0 hash", "c 3 0 set"]
        assert log.lines_written == 3
        assert log.path.parent == tmp_path
        assert log.path.name.startswith("scan_")
    finally:
        log.remove()
    assert not log.path.exists()
    assert log.closed


def test_lock_is_exclusive(tmp_path: Path) -> None:
    log = WorkingLog.create(tmp_path, "ops_")
    acquired = threading.Event()
    try:
        with log.locked():
            worker = threading.Thread(target=lambda: acquired.set() if log.lock.acquire() else None)
            worker.start()
            assert not acquired.wait(0.1)
        worker.join(timeout=1.0)
        assert acquired.is_set()
        log.lock.release()
    finally:
        log.remove()


def test_create_failure_is_resource_error(tmp_path: Path) -> None:
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("x", encoding="utf-8")
    with pytest.raises(ResourceError):
        WorkingLog.create(blocker / "logs", "scan_")


def test_remove_twice_is_harmless(tmp_path: Path) -> None:
    log = WorkingLog.create(tmp_path, "scan_")
    log.remove()
    log.remove()
