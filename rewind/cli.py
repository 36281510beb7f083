from datetime import datetime

import click
from rich.console import Console
from rich.table import Table

from rewind import log, poll
from rewind.config import find_config, init_config, load_config
from rewind.errors import PollTimeout
from rewind.staging import create_staging_store


@click.group()
@click.version_option(version="0.1.0")
def main():
    """rewind: reversible filesystem changes and bounded polling for integration tests."""
    log.configure(load_config())


@main.command()
@click.option("--staging-dir", default=None, help="Where staged copies are kept.")
def init(staging_dir):
    """Create a .rewindconfig in the current directory."""
    if find_config():
        click.echo(".rewindconfig already exists.")
        return
    config_path = init_config(staging_dir=staging_dir)
    click.echo(f"Created {config_path}")


@main.command()
@click.option("--clean", "clean", is_flag=True, help="Discard every listed staged copy.")
@click.option("-y", "--yes", is_flag=True, help="Skip confirmation prompt.")
def staged(clean, yes):
    """List staged copies left behind by handles that were never released."""
    console = Console()
    store = create_staging_store(load_config())
    entries = store.list()

    if not entries:
        console.print("[dim]No staged copies.[/dim]")
        return

    table = Table(title=f"Staged copies in {store.root}")
    table.add_column("ID", style="bold cyan")
    table.add_column("Kind")
    table.add_column("Source", style="dim")
    table.add_column("Created", style="dim")
    for s in entries:
        table.add_row(s["id"], s["kind"], s["source"], s["created"])
    console.print(table)

    if not clean:
        return

    if not yes:
        confirm = input(f"\nDiscard these {len(entries)} staged copies? (y/n) > ").strip().lower()
        if confirm not in ("y", "yes"):
            console.print("[dim]Cancelled.[/dim]")
            return

    for s in entries:
        store.discard(store.snapshot(s["id"]))
        console.print(f"  [red]Discarded[/red] {s['id']}")

    console.print(f"[bold green]Done. {len(entries)} staged copies removed.[/bold green]")


@main.command()
@click.option("-n", "--limit", default=20, help="Number of log entries to show.")
@click.option("--run", "run_id", default=None, help="Only show events of this run id.")
def logs(limit, run_id):
    """Show the event log."""
    console = Console()

    entries = log.read_logs()
    if run_id:
        entries = [e for e in entries if e.get("run_id") == run_id]

    if not entries:
        console.print("[dim]No logs found.[/dim]")
        return

    table = Table(title="Event Log")
    table.add_column("Time", style="dim")
    table.add_column("Run", style="cyan")
    table.add_column("Event", style="bold")
    table.add_column("Op")
    table.add_column("Details", max_width=70)

    for entry in entries[-limit:]:
        ts = entry.get("timestamp", "")
        if ts:
            try:
                ts = datetime.fromisoformat(ts).strftime("%m-%d %H:%M:%S")
            except ValueError:
                pass
        event = entry.get("event", "")
        event_style = {"undo": "[yellow]undo[/yellow]", "poll": "[magenta]poll[/magenta]"}.get(event, event)
        details = {k: v for k, v in entry.items()
                   if k not in ("timestamp", "run_id", "event", "op") and v is not None}
        table.add_row(
            ts,
            entry.get("run_id", ""),
            event_style,
            entry.get("op", entry.get("status", "")),
            " ".join(f"{k}={v}" for k, v in details.items()),
        )

    console.print(table)


def _wait(console, action):
    try:
        action()
    except PollTimeout as e:
        console.print(f"[red]{e}[/red]")
        raise SystemExit(1)


@main.command("wait-file")
@click.argument("path")
@click.option("--every", default=1.0, show_default=True, help="Seconds between checks.")
@click.option("--timeout", default=30.0, show_default=True, help="Seconds before giving up.")
def wait_file(path, every, timeout):
    """Wait until PATH exists as a file."""
    console = Console()
    _wait(console, lambda: poll.until_file_exists(path, every, timeout))
    console.print(f"[green]{path} is present.[/green]")


@main.command("wait-http")
@click.argument("url")
@click.option("--every", default=1.0, show_default=True, help="Seconds between requests.")
@click.option("--timeout", default=30.0, show_default=True, help="Seconds before giving up.")
def wait_http(url, every, timeout):
    """Wait until URL answers a GET request with 200 OK."""
    console = Console()
    _wait(console, lambda: poll.until_http_ok(url, every, timeout))
    console.print(f"[green]{url} is up.[/green]")
