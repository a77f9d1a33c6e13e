"""Watchlist management commands for pricewatch CLI.

Handles adding and removing watched instruments and toggling their
notifications.
"""

from typing import Optional

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

console = Console()

user_option = click.option(
    "--user", "-u", "user_id", type=int, default=1, show_default=True, help="Owning user ID."
)


def _get_data_store():
    """Get the data store for the database named in the loaded config."""
    from pricewatch.config import get_db_path
    from pricewatch.db.store import DataStore

    config = click.get_current_context().obj["config"]
    return DataStore(get_db_path(config))


@click.group()
def watch() -> None:
    """Manage watched instruments.

    \b
    Examples:
      pricewatch watch add 069500 "KODEX 200"
      pricewatch watch list
      pricewatch watch notify 069500 --off
      pricewatch watch remove 069500
    """


@watch.command("add")
@click.argument("code")
@click.argument("name")
@click.option("--memo", default=None, help="Optional memo.")
@user_option
def add(code: str, name: str, memo: Optional[str], user_id: int) -> None:
    """Add instrument CODE with display NAME to the watchlist."""
    store = _get_data_store()
    instrument = store.add_instrument(user_id, code.upper(), name, memo)
    console.print(f"[green]✓ Watching {instrument.instrument_code} ({instrument.instrument_name})[/green]")


@watch.command("remove")
@click.argument("code")
@user_option
def remove(code: str, user_id: int) -> None:
    """Stop watching CODE and deactivate its conditions."""
    store = _get_data_store()
    try:
        store.remove_instrument(user_id, code.upper())
    except ValueError as e:
        console.print(f"[yellow]{e}[/yellow]")
        raise SystemExit(1)
    console.print(f"[green]✓ Removed {code.upper()} from watchlist[/green]")


@watch.command("notify")
@click.argument("code")
@click.option("--on/--off", "enabled", default=True, help="Enable or disable notifications.")
@user_option
def notify(code: str, enabled: bool, user_id: int) -> None:
    """Enable or disable notifications for CODE.

    Muted instruments are skipped by monitoring passes. Re-enabling resets
    the base price of its active conditions.
    """
    store = _get_data_store()
    try:
        affected = store.set_notifications(user_id, code.upper(), enabled)
    except ValueError as e:
        console.print(f"[yellow]{e}[/yellow]")
        raise SystemExit(1)
    state = "enabled" if enabled else "disabled"
    console.print(f"[green]✓ Notifications {state} for {code.upper()} ({affected} conditions)[/green]")


@watch.command("list")
@click.option("--all", "show_all", is_flag=True, help="Include removed instruments.")
@user_option
def list_watchlist(show_all: bool, user_id: int) -> None:
    """Show watched instruments."""
    store = _get_data_store()
    instruments = store.get_instruments(user_id, active_only=not show_all)

    if not instruments:
        console.print(Panel(
            "[dim]Watchlist is empty. Use 'pricewatch watch add CODE NAME' to add one.[/dim]",
            title="[bold]Watchlist[/bold]",
            border_style="dim",
        ))
        return

    table = Table(title="Watchlist", show_header=True, header_style="bold cyan")
    table.add_column("Code", style="bold")
    table.add_column("Name")
    table.add_column("Notifications", justify="center")
    table.add_column("Status", justify="center")
    table.add_column("Memo", style="dim")

    for item in instruments:
        table.add_row(
            item.instrument_code,
            item.instrument_name,
            "[green]on[/green]" if item.notification_enabled else "[dim]off[/dim]",
            "[green]●[/green]" if item.active else "[dim]removed[/dim]",
            item.memo or "",
        )

    console.print(table)
