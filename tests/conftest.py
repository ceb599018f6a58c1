import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))
if SRC.exists():
    sys.path.insert(0, str(SRC))

# Register shared Hypothesis profiles for deterministic CI runs and fast local loops.
from tests.util import hypothesis_profiles  # noqa: E402,F401  pylint: disable=unused-import
from tests.util.fake_store import FakeStore  # noqa: E402

from redscout.config import AppConfig  # noqa: E402


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep connection and sampling overrides from the developer's shell out of tests."""

    for name in (
        "REDIS_HOST",
        "REDIS_PORT",
        "REDIS_USER",
        "REDIS_PASSWORD",
        "REDIS_DB",
        "REDIS_TLS",
        "REDSCOUT_SCAN_SIZE",
        "REDSCOUT_MONITOR_DURATION",
        "REDSCOUT_REFRESH_INTERVAL",
        "REDSCOUT_DELIMITER",
        "REDSCOUT_LOGS_DIR",
        "REDSCOUT_TOP_K",
        "REDSCOUT_ID_REGEX",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def app_config(tmp_path: Path) -> AppConfig:
    cfg = AppConfig()
    cfg.sampling.logs_dir = str(tmp_path / "logs")
    cfg.sampling.monitor_duration = 2.0
    cfg.sampling.refresh_interval = 60.0
    cfg.sampling.scan_batch_size = 2
    cfg.sampling.pipeline_batch_size = 2
    cfg.sampling.top_k = 3
    return cfg


@pytest.fixture
def fake_store() -> FakeStore:
    return FakeStore()
