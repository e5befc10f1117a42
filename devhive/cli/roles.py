"""Role catalog commands."""

from dataclasses import asdict

import click
from rich.console import Console
from rich.table import Table

from devhive.cli.common import echo_json, get_db, handle_errors, json_output
from devhive.services.roles import list_builtin_roles

console = Console()


@click.group(name="role")
def role():
    """Manage reusable worker roles."""
    pass


@role.command("create")
@click.argument("name")
@click.option("--description", "-d", help="What this role does")
@click.option("--file", "role_file", help="Instruction file for the role")
@click.option("--args", "args", help="Extra tool arguments for workers with this role")
@click.pass_context
@handle_errors
def role_create(ctx, name, description, role_file, args):
    """Create a role."""
    created = get_db(ctx).create_role(name, description=description, role_file=role_file, args=args)
    if json_output(ctx):
        echo_json(asdict(created))
        return
    click.echo(f"✓ Role '{created.name}' created")


@role.command("list")
@click.option("--builtin", is_flag=True, help="Also show built-in role templates")
@click.pass_context
@handle_errors
def role_list(ctx, builtin):
    """List roles."""
    roles = get_db(ctx).list_roles()
    templates = list_builtin_roles() if builtin else []
    if json_output(ctx):
        echo_json({
            "roles": [asdict(r) for r in roles],
            "builtin": [{"name": n, "description": d} for n, d in templates],
        })
        return
    if not roles and not templates:
        console.print("[yellow]No roles defined[/yellow]")
        return

    table = Table(title="Roles")
    table.add_column("Name", style="cyan")
    table.add_column("Source", style="magenta")
    table.add_column("Description")
    table.add_column("File", style="green")
    for r in roles:
        table.add_row(r.name, "catalog", r.description or "-", r.role_file or "-")
    for name, description in templates:
        table.add_row(name, "builtin", description, "-")
    console.print(table)


@role.command("show")
@click.argument("name")
@click.pass_context
@handle_errors
def role_show(ctx, name):
    """Show one role."""
    found = get_db(ctx).get_role(name)
    if found is None:
        click.echo(f"✗ Error: Role '{name}' not found", err=True)
        ctx.exit(1)
    if json_output(ctx):
        echo_json(asdict(found))
        return
    click.echo(f"Name:        {found.name}")
    click.echo(f"Description: {found.description or '-'}")
    click.echo(f"File:        {found.role_file or '-'}")
    click.echo(f"Args:        {found.args or '-'}")
    click.echo(f"Created:     {found.created_at}")


@role.command("update")
@click.argument("name")
@click.option("--description", "-d", help="New description")
@click.option("--file", "role_file", help="New instruction file")
@click.option("--args", "args", help="New tool arguments")
@click.pass_context
@handle_errors
def role_update(ctx, name, description, role_file, args):
    """Update fields of a role; omitted options keep their value."""
    changes = {
        key: value
        for key, value in (("description", description), ("role_file", role_file), ("args", args))
        if value is not None
    }
    updated = get_db(ctx).update_role(name, **changes)
    if json_output(ctx):
        echo_json(asdict(updated))
        return
    click.echo(f"✓ Role '{updated.name}' updated")


@role.command("delete")
@click.argument("name")
@click.pass_context
@handle_errors
def role_delete(ctx, name):
    """Delete a role."""
    get_db(ctx).delete_role(name)
    click.echo(f"✓ Role '{name}' deleted")
