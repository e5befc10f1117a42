"""
DevHive Configuration

Pydantic-backed configuration loaded from environment variables (DEVHIVE_
prefix) plus resolution of the per-project state database path.
"""

import os
import threading
from pathlib import Path
from typing import Optional, Tuple

import yaml
from pydantic import BaseModel, ConfigDict, Field

from devhive.errors import ConfigError

COMPOSE_FILE_NAMES = (".devhive.yaml", ".devhive.yml", "devhive.yaml", "devhive.yml")
STATE_DB_NAME = "state.db"


class Config(BaseModel):
    """
    Configuration loaded from environment variables.

    Key env vars:
    - DEVHIVE_DB_PATH (explicit state database, wins over project detection)
    - DEVHIVE_PROJECT (project name used to locate the database)
    - DEVHIVE_HOME (default: ~/.devhive)
    - DEVHIVE_WORKER (default worker identity for CLI commands)
    - DEVHIVE_BUSY_TIMEOUT_MS (default: 5000)
    - DEVHIVE_WATCH_INTERVAL (seconds, default: 1.0)
    - DEVHIVE_LOG_LEVEL / DEVHIVE_LOG_JSON
    """

    # Storage
    db_path: Optional[Path] = Field(default=None)
    project: Optional[str] = Field(default=None)
    home: Path = Field(default_factory=lambda: Path("~/.devhive").expanduser())
    busy_timeout_ms: int = Field(default=5000, ge=0)

    # Identity
    worker: Optional[str] = Field(default=None)

    # Watch / retention
    watch_interval_seconds: float = Field(default=1.0, gt=0)
    retention_days: int = Field(default=30, ge=0)

    # Logging
    log_level: str = Field(default="WARNING")
    log_json: bool = Field(default=False)

    model_config = ConfigDict(arbitrary_types_allowed=True)

    @property
    def projects_dir(self) -> Path:
        return self.home / "projects"

    @property
    def busy_timeout_seconds(self) -> float:
        return self.busy_timeout_ms / 1000.0


def _parse_bool(value: Optional[str], default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _parse_number(name: str, kind, default):
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return kind(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from exc


def load_config() -> Config:
    """Load configuration from DEVHIVE_* environment variables."""
    db_path = os.environ.get("DEVHIVE_DB_PATH")
    home = os.environ.get("DEVHIVE_HOME")
    try:
        return Config(
            db_path=Path(db_path).expanduser() if db_path else None,
            project=os.environ.get("DEVHIVE_PROJECT") or None,
            home=Path(home).expanduser() if home else Path("~/.devhive").expanduser(),
            busy_timeout_ms=_parse_number("DEVHIVE_BUSY_TIMEOUT_MS", int, 5000),
            worker=os.environ.get("DEVHIVE_WORKER") or None,
            watch_interval_seconds=_parse_number("DEVHIVE_WATCH_INTERVAL", float, 1.0),
            retention_days=_parse_number("DEVHIVE_RETENTION_DAYS", int, 30),
            log_level=os.environ.get("DEVHIVE_LOG_LEVEL", "WARNING"),
            log_json=_parse_bool(os.environ.get("DEVHIVE_LOG_JSON")),
        )
    except ValueError as exc:
        raise ConfigError(f"Invalid DevHive configuration: {exc}") from exc


def find_compose_file(start: Optional[Path] = None) -> Optional[Path]:
    """Walk up from ``start`` looking for a DevHive compose file."""
    current = (start or Path.cwd()).resolve()
    for directory in (current, *current.parents):
        for name in COMPOSE_FILE_NAMES:
            candidate = directory / name
            if candidate.is_file():
                return candidate
    return None


def _project_from_compose(path: Path) -> Optional[str]:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigError(f"Cannot read compose file {path}: {exc}") from exc
    if not isinstance(data, dict):
        return None
    name = data.get("project")
    if not name:
        return None
    return str(name).strip() or None


def detect_project(explicit: Optional[str] = None, cwd: Optional[Path] = None, config: Optional[Config] = None) -> Tuple[str, str]:
    """
    Determine the project name and where it came from.

    Order: explicit argument, DEVHIVE_PROJECT, the ``project:`` field of the
    nearest compose file, the directory holding that file, the cwd name.
    """
    if explicit:
        return explicit, "flag"
    cfg = config or get_config()
    if cfg.project:
        return cfg.project, "env"
    base = (cwd or Path.cwd()).resolve()
    compose = find_compose_file(base)
    if compose is not None:
        name = _project_from_compose(compose)
        if name:
            return name, "compose"
        return compose.parent.name, "root"
    return base.name or "default", "cwd"


def resolve_db_path(project: Optional[str] = None, db_path: Optional[Path] = None, config: Optional[Config] = None) -> Path:
    """Resolve the state database for a process; an explicit path always wins."""
    if db_path is not None:
        return Path(db_path).expanduser()
    cfg = config or get_config()
    if cfg.db_path is not None:
        return cfg.db_path
    name, _ = detect_project(project, config=cfg)
    if "/" in name or name in (".", ".."):
        raise ConfigError(f"Invalid project name {name!r}: must be a plain directory name")
    return cfg.projects_dir / name / STATE_DB_NAME


# Singleton config instance (lazy loaded)
_config: Optional[Config] = None
_config_lock = threading.Lock()


def get_config() -> Config:
    """Get or create the singleton config instance."""
    global _config
    if _config is None:
        with _config_lock:
            if _config is None:
                _config = load_config()
    return _config


def _reset_config_for_tests() -> None:
    """Reset the global config cache (tests only)."""
    global _config
    with _config_lock:
        _config = None
