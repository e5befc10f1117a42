"""
DevHive CLI

Click-based command-line interface over the coordination store: sprints,
roles, workers, messages and the event log.
"""

import sys
from dataclasses import asdict
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from devhive import __version__
from devhive.cli.common import (
    SESSION_ICONS,
    STATUS_ICONS,
    echo_json,
    get_config_for,
    get_db,
    get_service_context,
    handle_errors,
    json_output,
)
from devhive.config import load_config
from devhive.errors import ConfigError
from devhive.logging import EXIT_CONFIG_ERROR, get_logger, init_cli_logging

logger = get_logger(__name__)
console = Console()


# =============================================================================
# Main CLI Group
# =============================================================================

@click.group()
@click.option("-P", "--project", help="Project name (overrides auto-detection)")
@click.option("--db", "db_path", type=click.Path(dir_okay=False, path_type=Path), help="Explicit state database path")
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose output")
@click.option("--json", "json_flag", is_flag=True, help="Output as JSON")
@click.pass_context
def cli(ctx, project, db_path, verbose, json_flag):
    """DevHive - coordinate parallel coding agents."""
    ctx.ensure_object(dict)
    ctx.obj["PROJECT"] = project
    ctx.obj["DB_PATH"] = db_path
    ctx.obj["VERBOSE"] = verbose
    ctx.obj["JSON"] = json_flag

    try:
        config = load_config()
    except ConfigError as e:
        click.echo(f"✗ Error: {e}", err=True)
        sys.exit(EXIT_CONFIG_ERROR)
    ctx.obj["CONFIG"] = config

    # Root handlers are only replaced when logging was asked for.
    if verbose or config.log_json or config.log_level.upper() != "WARNING":
        init_cli_logging(level="DEBUG" if verbose else config.log_level, json_output=config.log_json)


from devhive.cli.events import cleanup, events, watch
from devhive.cli.messages import inbox, msg, msgs, reply, report, request
from devhive.cli.roles import role
from devhive.cli.workers import worker

cli.add_command(role)
cli.add_command(worker)
cli.add_command(msg)
cli.add_command(request)
cli.add_command(report)
cli.add_command(inbox)
cli.add_command(reply)
cli.add_command(msgs)
cli.add_command(events)
cli.add_command(watch)
cli.add_command(cleanup)


@cli.command()
def version():
    """Show version information."""
    click.echo(f"DevHive v{__version__}")


# =============================================================================
# Sprint Commands
# =============================================================================

@cli.command("init")
@click.argument("sprint_id")
@click.option("--config", "config_file", help="Compose file the sprint was started from")
@click.option("--project-path", help="Project root path")
@click.pass_context
@handle_errors
def init_sprint(ctx, sprint_id, config_file, project_path):
    """Start a new sprint (fails while another sprint is active)."""
    sprint = get_db(ctx).create_sprint(sprint_id, config_file=config_file, project_path=project_path)
    if json_output(ctx):
        echo_json({"success": True, "sprint_id": sprint.id, "started_at": sprint.started_at})
        return
    click.echo(f"✓ Sprint '{sprint.id}' started")


@cli.group()
def sprint():
    """Sprint commands."""
    pass


@sprint.command("complete")
@click.pass_context
@handle_errors
def sprint_complete(ctx):
    """Complete the active sprint and all of its workers."""
    completed = get_db(ctx).complete_sprint()
    if json_output(ctx):
        echo_json({"success": True, "sprint_id": completed.id, "completed_at": completed.completed_at})
        return
    click.echo(f"✓ Sprint '{completed.id}' completed")


@sprint.command("list")
@click.pass_context
@handle_errors
def sprint_list(ctx):
    """List all sprints, newest first."""
    sprints = get_db(ctx).list_sprints()
    if json_output(ctx):
        echo_json([asdict(s) for s in sprints])
        return
    if not sprints:
        console.print("[yellow]No sprints yet[/yellow]")
        return
    table = Table(title="Sprints")
    table.add_column("ID", style="cyan")
    table.add_column("Status", style="green")
    table.add_column("Started")
    table.add_column("Completed")
    for s in sprints:
        table.add_row(s.id, s.status, s.started_at, s.completed_at or "-")
    console.print(table)


@sprint.command("report")
@click.argument("sprint_id", required=False)
@click.pass_context
@handle_errors
def sprint_report(ctx, sprint_id):
    """Summarize a sprint (default: the active one)."""
    from devhive.services.reporting import SprintReportService

    report = SprintReportService(get_service_context(ctx)).build_report(sprint_id)
    if json_output(ctx):
        echo_json(report)
        return

    info = report["sprint"]
    summary = report["summary"]
    console.print(f"[bold]Sprint {info['id']}[/bold] ({info['status']})")
    console.print(f"Started: {info['started_at']}")
    if info["completed_at"]:
        console.print(f"Completed: {info['completed_at']}")
    console.print(
        f"Workers: {summary['total']} total, {summary['working']} working, "
        f"{summary['completed']} completed, {summary['blocked']} blocked, "
        f"{summary['error']} error, {summary['pending']} pending"
    )
    console.print(f"Errors reported: {report['total_errors']}")
    if report["event_counts"]:
        table = Table(title="Recent activity")
        table.add_column("Event", style="cyan")
        table.add_column("Count", justify="right")
        for event_type, count in report["event_counts"].items():
            table.add_row(event_type, str(count))
        console.print(table)


# =============================================================================
# Status / Projects
# =============================================================================

@cli.command()
@click.pass_context
@handle_errors
def status(ctx):
    """Show the active sprint and its workers."""
    from devhive.services.reporting import attention_needed, summarize_workers

    db = get_db(ctx)
    active = db.get_active_sprint()
    workers = db.list_workers()
    if json_output(ctx):
        echo_json({
            "sprint": active.id if active else None,
            "summary": summarize_workers(workers),
            "workers": [w.to_dict() for w in workers],
        })
        return
    if active is None:
        console.print("[yellow]No active sprint[/yellow]")
        return

    console.print(f"[bold]Sprint:[/bold] {active.id}")
    if not workers:
        console.print("[yellow]No workers registered[/yellow]")
        return

    table = Table()
    table.add_column("WORKER", style="cyan")
    table.add_column("ROLE")
    table.add_column("BRANCH")
    table.add_column("STATUS")
    table.add_column("SESSION")
    table.add_column("PROGRESS", justify="right")
    table.add_column("TASK")
    table.add_column("MSGS", justify="right")
    for w in workers:
        table.add_row(
            w.name,
            w.role_name or "-",
            w.branch,
            f"{STATUS_ICONS.get(w.status, '?')} {w.status}",
            f"{SESSION_ICONS.get(w.session_state, '?')} {w.session_state}",
            f"{w.progress}%",
            w.current_task or "-",
            str(w.unread_messages) if w.unread_messages else "-",
        )
    console.print(table)

    waiting = attention_needed(workers)
    if waiting:
        names = ", ".join(w.name for w in waiting)
        console.print(f"[bold yellow]⚠ Waiting for permission:[/bold yellow] {names}")


@cli.command()
@click.pass_context
@handle_errors
def projects(ctx):
    """List projects with a state database under the DevHive home."""
    from devhive.config import STATE_DB_NAME
    from devhive.db.database import open_database

    config = get_config_for(ctx)
    rows = []
    if config.projects_dir.is_dir():
        for db_file in sorted(config.projects_dir.glob(f"*/{STATE_DB_NAME}")):
            active = open_database(db_file, busy_timeout_ms=config.busy_timeout_ms).get_active_sprint()
            rows.append({"project": db_file.parent.name, "path": str(db_file), "active_sprint": active.id if active else None})

    if json_output(ctx):
        echo_json(rows)
        return
    if not rows:
        console.print(f"[yellow]No projects under {config.projects_dir}[/yellow]")
        return
    table = Table(title="Projects")
    table.add_column("Project", style="cyan")
    table.add_column("Active sprint", style="green")
    table.add_column("Database")
    for row in rows:
        table.add_row(row["project"], row["active_sprint"] or "-", row["path"])
    console.print(table)


def main() -> None:
    cli(obj={})


if __name__ == "__main__":
    sys.exit(main())
