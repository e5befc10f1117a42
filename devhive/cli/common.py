"""Shared helpers for CLI commands: store/context lookup, error handling, output."""

import functools
import json
import sys
from typing import Any, Callable, Optional

import click

from devhive.errors import ConfigError, DevHiveError, StorageBusyError
from devhive.logging import EXIT_BUSY, EXIT_CONFIG_ERROR, EXIT_RUNTIME_ERROR, get_logger, log_context, log_extra

logger = get_logger(__name__)

STATUS_ICONS = {
    "pending": "○",
    "working": "▶",
    "completed": "✓",
    "blocked": "⏸",
    "error": "✗",
}

SESSION_ICONS = {
    "running": "▶",
    "waiting_permission": "⚠",
    "idle": "⏸",
    "stopped": "■",
}


def get_config_for(ctx: click.Context):
    """Configuration loaded for this invocation by the top-level group."""
    obj = ctx.ensure_object(dict)
    if obj.get("CONFIG") is None:
        from devhive.config import load_config

        obj["CONFIG"] = load_config()
    return obj["CONFIG"]


def get_service_context(ctx: click.Context):
    """Build (once per invocation) the ServiceContext holding the store handle."""
    obj = ctx.ensure_object(dict)
    if obj.get("CONTEXT") is None:
        from devhive.config import detect_project, resolve_db_path
        from devhive.db.database import open_database
        from devhive.services.base import ServiceContext

        config = get_config_for(ctx)
        path = resolve_db_path(project=obj.get("PROJECT"), db_path=obj.get("DB_PATH"), config=config)
        project = None
        if obj.get("DB_PATH") is None and config.db_path is None:
            project, _ = detect_project(obj.get("PROJECT"), config=config)
        db = open_database(path, busy_timeout_ms=config.busy_timeout_ms)
        ctx.with_resource(log_context(project=project, worker=config.worker))
        obj["CONTEXT"] = ServiceContext(config=config, db=db, project=project)
    return obj["CONTEXT"]


def get_db(ctx: click.Context):
    return get_service_context(ctx).db


def json_output(ctx: click.Context) -> bool:
    return bool((ctx.obj or {}).get("JSON"))


def echo_json(data: Any) -> None:
    click.echo(json.dumps(data, indent=2, default=str))


def resolve_worker(ctx: click.Context, name: Optional[str]) -> str:
    """Worker name from the option, else DEVHIVE_WORKER."""
    if name:
        return name
    configured = get_config_for(ctx).worker
    if not configured:
        raise click.UsageError("Worker name required: pass --worker/-w or set DEVHIVE_WORKER")
    return configured


def handle_errors(func: Callable) -> Callable:
    """Turn DevHive errors into a one-line message on stderr and a non-zero exit."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except ConfigError as e:
            click.echo(f"✗ Error: {e}", err=True)
            sys.exit(EXIT_CONFIG_ERROR)
        except StorageBusyError as e:
            click.echo(f"✗ Error: {e}", err=True)
            sys.exit(EXIT_BUSY)
        except DevHiveError as e:
            logger.debug("Command failed", extra=log_extra(category=e.category, error_metadata=e.metadata))
            click.echo(f"✗ Error: {e}", err=True)
            sys.exit(EXIT_RUNTIME_ERROR)

    return wrapper
