"""Event log commands: history, live watch and retention cleanup."""

import json
import signal
import threading

import click
from rich.console import Console
from rich.table import Table

from devhive.cli.common import echo_json, get_config_for, get_db, get_service_context, handle_errors, json_output
from devhive.events_catalog import (
    MessageBroadcast,
    MessageSent,
    SprintCompleted,
    SprintCreated,
    WorkerErrorReported,
    WorkerProgressUpdated,
    WorkerRegistered,
    WorkerRemoved,
    WorkerSessionChanged,
    WorkerStatusChanged,
    WorkerTaskUpdated,
)
from devhive.logging import log_context
from devhive.models.domain import Event

console = Console()


def describe_event(event: Event) -> str:
    """One-line human description of an event."""
    p = event.payload
    who = event.worker or "-"
    if isinstance(p, SprintCreated):
        return f"sprint {p.sprint_id} started"
    if isinstance(p, SprintCompleted):
        return f"sprint {p.sprint_id} completed"
    if isinstance(p, WorkerRegistered):
        role = f" as {p.role}" if p.role else ""
        return f"{who} registered on {p.branch}{role}"
    if isinstance(p, WorkerStatusChanged):
        return f"{who} → {p.status}"
    if isinstance(p, WorkerTaskUpdated):
        return f"{who} task: {p.task}"
    if isinstance(p, WorkerSessionChanged):
        return f"{who} session {p.session_state}"
    if isinstance(p, WorkerProgressUpdated):
        activity = f" ({p.activity})" if p.activity else ""
        return f"{who} {p.progress}%{activity}"
    if isinstance(p, WorkerErrorReported):
        return f"{who} error: {p.message}"
    if isinstance(p, WorkerRemoved):
        return f"{who} removed"
    if isinstance(p, MessageSent):
        return f"{who} → {p.to_worker} [{p.message_type}]"
    if isinstance(p, MessageBroadcast):
        return f"{who} broadcast [{p.message_type}] to {p.count}"
    return f"{event.event_type} {event.data}"


@click.command("events")
@click.option("--limit", "-n", default=50, show_default=True, help="Number of events")
@click.option("--type", "event_type", help="Only this event type")
@click.option("--worker", "-w", help="Only events of this worker")
@click.pass_context
@handle_errors
def events(ctx, limit, event_type, worker):
    """Show recent events, newest first."""
    recent = get_db(ctx).get_recent_events(limit=limit, event_type=event_type, worker=worker)
    if json_output(ctx):
        echo_json([e.to_dict() for e in recent])
        return
    if not recent:
        console.print("[yellow]No events[/yellow]")
        return
    table = Table(title="Recent events")
    table.add_column("ID", justify="right")
    table.add_column("Time", style="dim")
    table.add_column("Type", style="cyan")
    table.add_column("Event")
    for e in recent:
        table.add_row(str(e.id), e.created_at, e.event_type, describe_event(e))
    console.print(table)


@click.command("watch")
@click.option("--interval", type=click.FloatRange(min=0, min_open=True), help="Poll interval in seconds (default: $DEVHIVE_WATCH_INTERVAL or 1)")
@click.option("--filter", "type_prefix", help="Only event types starting with this prefix")
@click.option("--since", "after_id", type=int, help="Start after this event id instead of the latest")
@click.option("--timeout", type=float, help="Stop after this many seconds")
@click.option("--worker", "-w", help="Only show direct messages addressed to this worker (default: $DEVHIVE_WORKER)")
@click.pass_context
@handle_errors
def watch(ctx, interval, type_prefix, after_id, timeout, worker):
    """Follow new events as they are appended (Ctrl-C to stop)."""
    from devhive.services.watcher import EventWatcher

    watcher = EventWatcher(get_service_context(ctx))
    previous_handler = None
    if threading.current_thread() is threading.main_thread():
        previous_handler = signal.signal(signal.SIGTERM, lambda *_: watcher.close())
    worker = worker or get_config_for(ctx).worker
    try:
        with log_context(worker=worker):
            for event in watcher.follow(
                interval=interval,
                type_prefix=type_prefix,
                after_id=after_id,
                timeout=timeout,
                worker=worker,
            ):
                if json_output(ctx):
                    click.echo(json.dumps(event.to_dict(), default=str))
                else:
                    click.echo(f"[{event.id}] {event.created_at} {describe_event(event)}")
    except KeyboardInterrupt:
        watcher.close()
    finally:
        if previous_handler is not None:
            signal.signal(signal.SIGTERM, previous_handler)
    if not json_output(ctx):
        click.echo(f"Stopped at event {watcher.cursor}", err=True)


@click.group(name="cleanup")
def cleanup():
    """Purge old events and read messages."""
    pass


def _retention_option(func):
    func = click.option("--dry-run", is_flag=True, help="Only count what would be deleted")(func)
    func = click.option("--days", type=int, help="Age threshold in days (default: $DEVHIVE_RETENTION_DAYS or 30)")(func)
    return func


def _report(ctx, what, count, dry_run):
    if json_output(ctx):
        echo_json({what: count, "dry_run": dry_run})
        return
    verb = "Would delete" if dry_run else "Deleted"
    click.echo(f"✓ {verb} {count} {what}")


@cleanup.command("events")
@_retention_option
@click.pass_context
@handle_errors
def cleanup_events(ctx, days, dry_run):
    """Delete events older than --days."""
    days = get_config_for(ctx).retention_days if days is None else days
    _report(ctx, "events", get_db(ctx).cleanup_old_events(days, dry_run=dry_run), dry_run)


@cleanup.command("messages")
@_retention_option
@click.pass_context
@handle_errors
def cleanup_messages(ctx, days, dry_run):
    """Delete read messages older than --days (unread ones are kept)."""
    days = get_config_for(ctx).retention_days if days is None else days
    _report(ctx, "messages", get_db(ctx).cleanup_old_messages(days, dry_run=dry_run), dry_run)


@cleanup.command("all")
@_retention_option
@click.pass_context
@handle_errors
def cleanup_all(ctx, days, dry_run):
    """Delete old events and read messages."""
    days = get_config_for(ctx).retention_days if days is None else days
    db = get_db(ctx)
    _report(ctx, "events", db.cleanup_old_events(days, dry_run=dry_run), dry_run)
    _report(ctx, "messages", db.cleanup_old_messages(days, dry_run=dry_run), dry_run)
