"""Message bus commands."""

from dataclasses import asdict

import click
from rich.console import Console
from rich.table import Table

from devhive.cli.common import (
    echo_json,
    get_config_for,
    get_db,
    get_service_context,
    handle_errors,
    json_output,
    resolve_worker,
)
from devhive.services.messaging import REQUEST_SUBJECTS, MessagingService, message_icon, sender_or_pm

console = Console()


def _sender(ctx, name):
    return sender_or_pm(name or get_config_for(ctx).worker)


def _messaging(ctx) -> MessagingService:
    return MessagingService(get_service_context(ctx))


@click.group(name="msg")
def msg():
    """Send and read messages between workers."""
    pass


@msg.command("send")
@click.argument("to_worker")
@click.argument("content")
@click.option("--from", "from_worker", help="Sender (default: $DEVHIVE_WORKER or pm)")
@click.option("--type", "message_type", default="info", show_default=True, help="Message type")
@click.option("--subject", "-s", help="Subject line")
@click.pass_context
@handle_errors
def msg_send(ctx, to_worker, content, from_worker, message_type, subject):
    """Send a message to one worker."""
    message_id = get_db(ctx).send_message(_sender(ctx, from_worker), to_worker, message_type, subject, content)
    if json_output(ctx):
        echo_json({"success": True, "message_id": message_id})
        return
    click.echo(f"✓ Message #{message_id} sent to {to_worker}")


@msg.command("broadcast")
@click.argument("content")
@click.option("--from", "from_worker", help="Sender (default: $DEVHIVE_WORKER or pm)")
@click.option("--type", "message_type", default="info", show_default=True, help="Message type")
@click.option("--subject", "-s", help="Subject line")
@click.pass_context
@handle_errors
def msg_broadcast(ctx, content, from_worker, message_type, subject):
    """Send a message to every worker in the active sprint."""
    count = get_db(ctx).broadcast_message(_sender(ctx, from_worker), message_type, subject, content)
    if json_output(ctx):
        echo_json({"success": True, "delivered": count})
        return
    click.echo(f"✓ Broadcast delivered to {count} worker(s)")


@msg.command("unread")
@click.option("--worker", "-w", "name", help="Worker name (default: $DEVHIVE_WORKER)")
@click.pass_context
@handle_errors
def msg_unread(ctx, name):
    """List unread messages, oldest first."""
    name = resolve_worker(ctx, name)
    messages = get_db(ctx).get_unread_messages(name)
    if json_output(ctx):
        echo_json([asdict(m) for m in messages])
        return
    if not messages:
        console.print(f"[green]No unread messages for {name}[/green]")
        return
    table = Table(title=f"Unread messages for {name}")
    table.add_column("ID", justify="right")
    table.add_column("From", style="cyan")
    table.add_column("Type", style="magenta")
    table.add_column("Subject")
    table.add_column("Content")
    for m in messages:
        table.add_row(str(m.id), m.from_worker, m.message_type, m.subject or "-", m.content)
    console.print(table)


@msg.command("read")
@click.argument("target")
@click.option("--worker", "-w", "name", help="Worker name for 'all' (default: $DEVHIVE_WORKER)")
@click.pass_context
@handle_errors
def msg_read(ctx, target, name):
    """Mark a message read by id, or 'all' for every unread message."""
    db = get_db(ctx)
    if target == "all":
        name = resolve_worker(ctx, name)
        count = db.mark_all_read(name)
        click.echo(f"✓ Marked {count} message(s) read")
        return
    try:
        message_id = int(target)
    except ValueError:
        raise click.BadParameter("expected a message id or 'all'", param_hint="TARGET")
    db.mark_message_read(message_id)
    click.echo(f"✓ Message #{message_id} marked read")


# =============================================================================
# Worker / PM conversation
# =============================================================================

@click.command("request")
@click.argument("kind", type=click.Choice(sorted(REQUEST_SUBJECTS)))
@click.argument("content", required=False, default="")
@click.option("--worker", "-w", "name", help="Worker name (default: $DEVHIVE_WORKER)")
@click.pass_context
@handle_errors
def request(ctx, kind, content, name):
    """Ask the PM for help, review, unblocking or clarification.

    An unblock request also marks the worker blocked.
    """
    name = resolve_worker(ctx, name)
    message_id = _messaging(ctx).request(name, kind, content)
    if json_output(ctx):
        echo_json({"success": True, "message_id": message_id, "type": kind})
        return
    click.echo(f"✓ {REQUEST_SUBJECTS[kind]} sent to PM")
    if content:
        click.echo(f"  Message: {content}")


@click.command("report")
@click.argument("content")
@click.option("--worker", "-w", "name", help="Worker name (default: $DEVHIVE_WORKER)")
@click.pass_context
@handle_errors
def report(ctx, content, name):
    """Send a progress report to the PM."""
    name = resolve_worker(ctx, name)
    message_id = _messaging(ctx).report(name, content)
    if json_output(ctx):
        echo_json({"success": True, "message_id": message_id})
        return
    click.echo("✓ Progress report sent to PM")


@click.command("reply")
@click.argument("to_worker")
@click.argument("content")
@click.pass_context
@handle_errors
def reply(ctx, to_worker, content):
    """Reply to a worker as the PM."""
    message_id = _messaging(ctx).reply(to_worker, content)
    if json_output(ctx):
        echo_json({"success": True, "message_id": message_id})
        return
    click.echo(f"✓ Reply sent to {to_worker}")


def _print_mailbox(ctx, title, messages, marked):
    if json_output(ctx):
        echo_json([asdict(m) for m in messages])
        return
    if not messages:
        click.echo("No messages.")
        return
    click.echo(f"=== {title} ({len(messages)}) ===")
    for m in messages:
        new = "" if m.is_read else " [NEW]"
        click.echo(f"{message_icon(m.message_type)} {m.subject or m.message_type} from {m.from_worker}{new}")
        if m.content:
            click.echo(f"   {m.content}")
        click.echo(f"   ({m.created_at})")
    if marked:
        click.echo("Marked all as read.")


def _mailbox_options(func):
    func = click.option("--mark-read", "-r", is_flag=True, help="Mark unread messages read")(func)
    func = click.option("--all", "-a", "include_read", is_flag=True, help="Include messages already read")(func)
    return func


@click.command("inbox")
@_mailbox_options
@click.pass_context
@handle_errors
def inbox(ctx, include_read, mark_read):
    """Show messages from workers to the PM."""
    messages = _messaging(ctx).inbox(include_read=include_read, mark_read=mark_read)
    _print_mailbox(ctx, "Inbox", messages, mark_read and bool(messages))


@click.command("msgs")
@_mailbox_options
@click.option("--worker", "-w", "name", help="Worker name (default: $DEVHIVE_WORKER)")
@click.pass_context
@handle_errors
def msgs(ctx, include_read, mark_read, name):
    """Show messages addressed to the current worker."""
    name = resolve_worker(ctx, name)
    messages = _messaging(ctx).mailbox(name, include_read=include_read, mark_read=mark_read)
    _print_mailbox(ctx, f"Messages for {name}", messages, mark_read and bool(messages))
