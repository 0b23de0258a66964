"""Command line for managing identities and ledgers outside of HTTP.

Each command takes the database FILE it operates on, so the same tool
administers the identity table and any individual ledger.
"""

from __future__ import annotations

import functools
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from .auth import SessionAuth
from .config import configure_logging, load_settings
from .errors import OkraError
from .ledger import ActivityLedger
from .timeutil import format_age, from_millis, now_millis, parse_time_reference

console = Console()

FILE = click.argument("file", type=click.Path(dir_okay=False, path_type=Path))


def reports_errors(command):
    """Print okra failures as one red line and exit with status 1."""

    @functools.wraps(command)
    def wrapper(*args, **kwargs):
        try:
            return command(*args, **kwargs)
        except OkraError as e:
            console.print(f"[red]Error:[/red] {e}")
            sys.exit(1)

    return wrapper


def _parse_time_option(value: str | None, default: int) -> int:
    if value is None:
        return default
    try:
        return parse_time_reference(value)
    except ValueError as e:
        raise click.BadParameter(str(e)) from e


@click.group()
@click.pass_context
def cli(ctx):
    """okra - personal activity tracking."""
    settings = load_settings()
    configure_logging(settings)
    ctx.ensure_object(dict)
    ctx.obj["settings"] = settings


# --- Identities ---


@cli.command("add-user")
@FILE
@click.option("-u", "--username", required=True, help="Name of the new user")
@click.option(
    "-p", "--password",
    prompt=True, hide_input=True, confirmation_prompt=True,
    help="Password (prompted when omitted)",
)
@reports_errors
def add_user(file, username, password):
    """Insert a new user into the identity database FILE."""
    with SessionAuth(file) as auth:
        auth.enroll(username, password)
    console.print(f"[green]✓[/green] Added user {username}")


@cli.command("remove-user")
@FILE
@click.option("-u", "--username", required=True)
@reports_errors
def remove_user(file, username):
    """Delete a user from the identity database FILE."""
    with SessionAuth(file) as auth:
        auth.remove_user(username)
    console.print(f"[green]✓[/green] Removed user {username}")


@cli.command()
@FILE
@click.option("-u", "--username", required=True)
@click.option("-p", "--password", prompt=True, hide_input=True)
@click.pass_context
@reports_errors
def login(ctx, file, username, password):
    """Check credentials against FILE and print a session token."""
    settings = ctx.obj["settings"]
    with SessionAuth(
        file,
        session_lifetime_seconds=settings.session_lifetime_seconds,
        secret_key=settings.secret_key,
    ) as auth:
        click.echo(auth.login(username, password))


# --- Actions ---


@cli.command("create-action")
@FILE
@click.option("-a", "--action-name", required=True, help="Name of the action")
@reports_errors
def create_action(file, action_name):
    """Insert a new action into the ledger FILE and print its id."""
    with ActivityLedger(file) as ledger:
        click.echo(ledger.create_action(action_name))


@cli.command("link-action")
@FILE
@click.option("-p", "--parent-action", required=True, type=int)
@click.option("-c", "--child-action", required=True, type=int)
@reports_errors
def link_action(file, parent_action, child_action):
    """Order actions in a hierarchy in the ledger FILE."""
    with ActivityLedger(file) as ledger:
        ledger.make_action_parent_of(parent_action, child_action)
        parent = ledger.get_action_name(parent_action)
        child = ledger.get_action_name(child_action)
    console.print(f"[green]✓[/green] {parent} -> {child}")


@cli.command()
@FILE
@click.option("-s", "--search", "substring", default="", help="Only names containing this text")
@click.option("--after", default=0, help="Continue after this action id")
@click.option("-n", "--limit", default=None, type=int, help="Page size")
@click.pass_context
@reports_errors
def actions(ctx, file, substring, after, limit):
    """List actions in the ledger FILE."""
    settings = ctx.obj["settings"]
    with ActivityLedger(file) as ledger:
        page = ledger.search_action_names(substring, after, settings.clamp_page(limit))

    if not page:
        console.print("No actions found.")
        return

    table = Table()
    table.add_column("ID", justify="right", style="cyan")
    table.add_column("Action")
    for action in page:
        table.add_row(str(action.id), action.name)
    console.print(table)


# --- Activities ---


@cli.command("log-activity")
@FILE
@click.argument("action_ids", nargs=-1, required=True, type=int)
@reports_errors
def log_activity(file, action_ids):
    """Log one or more actions as happening now.

    Several ACTION_IDS share a single timestamp.
    """
    with ActivityLedger(file) as ledger:
        if len(action_ids) == 1:
            activities = [ledger.log_activity(action_ids[0])]
        else:
            activities = ledger.log_activities(action_ids)
    for activity in activities:
        click.echo(activity)


@cli.command()
@FILE
@click.option("--since", help="Start of the window (ISO, relative, or named); default: all time")
@click.option("--until", help="End of the window, exclusive; default: now")
@click.option("-n", "--limit", default=None, type=int, help="Maximum activities to show")
@click.pass_context
@reports_errors
def activities(ctx, file, since, until, limit):
    """Show activities logged in the ledger FILE.

    Examples:
        okra activities ledger.sqlite --since "2 days ago"
        okra activities ledger.sqlite --since 2025-01-01 --until 2025-02-01
    """
    settings = ctx.obj["settings"]
    from_ms = _parse_time_option(since, 0)
    to_ms = _parse_time_option(until, now_millis() + 1)

    with ActivityLedger(file) as ledger:
        page = ledger.search_activity_by_time(from_ms, to_ms, settings.clamp_page(limit))
        names = {a.action_id: ledger.get_action_name(a.action_id) for a in page}

    if not page:
        console.print("No activities found.")
        return

    table = Table()
    table.add_column("ID", justify="right", style="cyan")
    table.add_column("Logged")
    table.add_column("When", style="dim")
    table.add_column("Action")
    for activity in page:
        logged = from_millis(activity.time)
        table.add_row(
            str(activity.id),
            logged.strftime("%Y-%m-%d %H:%M:%S"),
            format_age(activity.time),
            names[activity.action_id],
        )
    console.print(table)


# --- Notations ---


@cli.command()
@FILE
@click.argument("activity_id", type=int)
@click.argument("text")
@reports_errors
def notate(file, activity_id, text):
    """Annotate an activity and print the note id."""
    with ActivityLedger(file) as ledger:
        click.echo(ledger.annotate_activity(activity_id, text))


@cli.command()
@FILE
@click.argument("activity_id", type=int)
@click.option("--after", default=0, help="Continue after this note id")
@click.option("-n", "--limit", default=None, type=int, help="Page size")
@click.pass_context
@reports_errors
def notations(ctx, file, activity_id, after, limit):
    """Show the notes attached to an activity."""
    settings = ctx.obj["settings"]
    with ActivityLedger(file) as ledger:
        ledger.get_activity(activity_id)
        notes = ledger.get_note_bulk(
            ledger.get_notations(activity_id, after, settings.clamp_page(limit))
        )

    if not notes:
        console.print("No notations found.")
        return

    table = Table()
    table.add_column("ID", justify="right", style="cyan")
    table.add_column("Note")
    for note in notes:
        table.add_row(str(note.id), note.text)
    console.print(table)


# --- Server ---


@cli.command()
def serve():
    """Run the HTTP server (configured through OKRA_* variables)."""
    from .server import main

    main()


def main() -> None:
    cli(obj={})


if __name__ == "__main__":
    main()
