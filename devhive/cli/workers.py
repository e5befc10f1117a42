"""Worker lifecycle commands. The worker name defaults to $DEVHIVE_WORKER."""

import click
from rich.console import Console

from devhive.cli.common import (
    SESSION_ICONS,
    STATUS_ICONS,
    echo_json,
    get_db,
    get_service_context,
    handle_errors,
    json_output,
    resolve_worker,
)
from devhive.models.domain import WorkerStatus

console = Console()

worker_option = click.option("--worker", "-w", "name", help="Worker name (default: $DEVHIVE_WORKER)")


def _set_status(ctx, name, status, task=None, commit=None):
    from devhive.services.workers import WorkerService

    expected = WorkerService(get_service_context(ctx)).set_status(name, status, task=task, commit=commit)
    if not expected:
        click.echo(f"⚠ Unusual transition for '{name}' (now {status})", err=True)


@click.group(name="worker")
def worker():
    """Register workers and report their progress."""
    pass


@worker.command("register")
@click.argument("name")
@click.option("--branch", "-b", required=True, help="Git branch the worker operates on")
@click.option("--role", "-r", "role_name", help="Role name (catalog or built-in)")
@click.option("--worktree", "worktree_path", help="Worktree path")
@click.option("--sprint", "sprint_id", help="Sprint id (default: the active sprint)")
@click.pass_context
@handle_errors
def worker_register(ctx, name, branch, role_name, worktree_path, sprint_id):
    """Register a worker (re-registering resets it to pending)."""
    from devhive.services.workers import WorkerService

    registered = WorkerService(get_service_context(ctx)).register(
        name, branch, role_name=role_name, worktree_path=worktree_path, sprint_id=sprint_id
    )
    if json_output(ctx):
        echo_json(registered.to_dict())
        return
    click.echo(f"✓ Worker '{registered.name}' registered on {registered.branch}")


@worker.command("start")
@worker_option
@click.option("--task", "-t", help="What the worker is starting on")
@click.pass_context
@handle_errors
def worker_start(ctx, name, task):
    """Mark a worker as working."""
    name = resolve_worker(ctx, name)
    _set_status(ctx, name, WorkerStatus.WORKING, task=task)
    click.echo(f"✓ {name} is working")


@worker.command("complete")
@worker_option
@click.option("--commit", "-c", help="Last commit hash")
@click.pass_context
@handle_errors
def worker_complete(ctx, name, commit):
    """Mark a worker as completed."""
    name = resolve_worker(ctx, name)
    _set_status(ctx, name, WorkerStatus.COMPLETED, commit=commit)
    click.echo(f"✓ {name} completed")


@worker.command("status")
@click.argument("status", type=click.Choice(sorted(WorkerStatus.ALL)))
@worker_option
@click.option("--task", "-t", help="Current task")
@click.option("--commit", "-c", help="Last commit hash")
@click.pass_context
@handle_errors
def worker_status(ctx, status, name, task, commit):
    """Set a worker's status."""
    name = resolve_worker(ctx, name)
    _set_status(ctx, name, status, task=task, commit=commit)
    click.echo(f"✓ {name} → {status}")


@worker.command("task")
@click.argument("task")
@worker_option
@click.pass_context
@handle_errors
def worker_task(ctx, task, name):
    """Set a worker's current task."""
    name = resolve_worker(ctx, name)
    get_db(ctx).update_worker_task(name, task)
    click.echo(f"✓ {name} task updated")


@worker.command("error")
@click.argument("message")
@worker_option
@click.pass_context
@handle_errors
def worker_error(ctx, message, name):
    """Report an error for a worker."""
    name = resolve_worker(ctx, name)
    get_db(ctx).report_worker_error(name, message)
    click.echo(f"✓ Error recorded for {name}")


@worker.command("session")
@click.argument("state")
@worker_option
@click.pass_context
@handle_errors
def worker_session(ctx, state, name):
    """Set a worker's session state (running, waiting_permission, idle, stopped)."""
    name = resolve_worker(ctx, name)
    get_db(ctx).update_worker_session_state(name, state)
    click.echo(f"✓ {name} session {SESSION_ICONS.get(state, '')} {state}")


@worker.command("progress")
@click.argument("percent", type=int)
@worker_option
@click.option("--activity", "-a", help="What the worker is doing right now")
@click.pass_context
@handle_errors
def worker_progress(ctx, percent, name, activity):
    """Report progress (0-100)."""
    name = resolve_worker(ctx, name)
    get_db(ctx).update_worker_progress(name, percent, activity)
    click.echo(f"✓ {name} at {percent}%")


@worker.command("show")
@worker_option
@click.pass_context
@handle_errors
def worker_show(ctx, name):
    """Show one worker."""
    name = resolve_worker(ctx, name)
    found = get_db(ctx).get_worker(name)
    if found is None:
        click.echo(f"✗ Error: Worker '{name}' not found", err=True)
        ctx.exit(1)
    if json_output(ctx):
        echo_json(found.to_dict())
        return
    console.print(f"[bold cyan]{found.name}[/bold cyan] ({found.sprint_id})")
    click.echo(f"Status:   {STATUS_ICONS.get(found.status, '?')} {found.status}")
    click.echo(f"Session:  {SESSION_ICONS.get(found.session_state, '?')} {found.session_state}")
    click.echo(f"Branch:   {found.branch}")
    click.echo(f"Role:     {found.role_name or '-'}")
    click.echo(f"Worktree: {found.worktree_path or '-'}")
    click.echo(f"Task:     {found.current_task or '-'}")
    click.echo(f"Progress: {found.progress}%" + (f" ({found.activity})" if found.activity else ""))
    click.echo(f"Commit:   {found.last_commit or '-'}")
    click.echo(f"Errors:   {found.error_count}" + (f" (last: {found.last_error})" if found.last_error else ""))
    click.echo(f"Unread:   {found.unread_messages}")


@worker.command("remove")
@click.argument("name")
@click.pass_context
@handle_errors
def worker_remove(ctx, name):
    """Remove a worker so its name can be reused."""
    get_db(ctx).delete_worker(name)
    click.echo(f"✓ Worker '{name}' removed")
