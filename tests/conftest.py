import sys
from pathlib import Path

import pytest

# Ensure repository root is on sys.path so the in-tree package imports cleanly.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
    """Keep tests away from the real ~/.devhive and from inherited DEVHIVE_* settings."""
    from devhive.config import _reset_config_for_tests

    for name in (
        "DEVHIVE_DB_PATH",
        "DEVHIVE_PROJECT",
        "DEVHIVE_WORKER",
        "DEVHIVE_BUSY_TIMEOUT_MS",
        "DEVHIVE_WATCH_INTERVAL",
        "DEVHIVE_RETENTION_DAYS",
        "DEVHIVE_LOG_LEVEL",
        "DEVHIVE_LOG_JSON",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("DEVHIVE_HOME", str(tmp_path / "home"))
    _reset_config_for_tests()
    yield
    _reset_config_for_tests()


@pytest.fixture
def db(tmp_path: Path):
    from devhive.db.database import open_database

    return open_database(tmp_path / "state" / "state.db")


@pytest.fixture
def sprint_db(db):
    """Store with an active sprint S1 and workers fe (frontend) and be."""
    db.create_sprint("S1")
    db.create_role("frontend", description="UI work", role_file="roles/frontend.md")
    db.register_worker("fe", "S1", "feat/ui", role_name="frontend")
    db.register_worker("be", "S1", "feat/api")
    return db
