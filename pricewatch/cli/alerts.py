"""Alert inbox commands for pricewatch CLI.

Lists alerts produced by monitoring passes and manages their read and
dismissed state.
"""

from typing import Optional

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from pricewatch.models import Priority

console = Console()

PRIORITY_STYLES = {
    Priority.URGENT: "bold red",
    Priority.HIGH: "red",
    Priority.NORMAL: "yellow",
    Priority.LOW: "dim",
}


def _get_data_store():
    """Get the data store for the database named in the loaded config."""
    from pricewatch.config import get_db_path
    from pricewatch.db.store import DataStore

    config = click.get_current_context().obj["config"]
    return DataStore(get_db_path(config))


@click.command("alerts")
@click.option("--user", "-u", "user_id", type=int, default=1, show_default=True, help="Owning user ID.")
@click.option("--unread", "unread_only", is_flag=True, help="Only show unread alerts.")
@click.option("--instrument", "-i", default=None, help="Only show alerts for one instrument.")
@click.option("--limit", "-n", type=int, default=50, show_default=True, help="Maximum alerts to show.")
@click.option("--read", "read_id", type=int, default=None, help="Mark alert with specified ID as read.")
@click.option("--dismiss", "dismiss_id", type=int, default=None, help="Dismiss alert with specified ID.")
@click.option("--read-all", is_flag=True, help="Mark all alerts as read.")
def alerts(
    user_id: int,
    unread_only: bool,
    instrument: Optional[str],
    limit: int,
    read_id: Optional[int],
    dismiss_id: Optional[int],
    read_all: bool,
) -> None:
    """Display or manage alerts.

    \b
    Examples:
      pricewatch alerts
      pricewatch alerts --unread
      pricewatch alerts --read 12
      pricewatch alerts --dismiss 12
      pricewatch alerts --read-all
    """
    store = _get_data_store()

    try:
        if read_id is not None:
            store.mark_read(read_id, user_id)
            console.print(f"[green]✓ Alert {read_id} marked as read[/green]")
            return
        if dismiss_id is not None:
            store.dismiss_alert(dismiss_id, user_id)
            console.print(f"[green]✓ Alert {dismiss_id} dismissed[/green]")
            return
    except ValueError as e:
        console.print(f"[yellow]{e}[/yellow]")
        raise SystemExit(1)

    if read_all:
        count = store.mark_all_read(user_id)
        console.print(f"[green]✓ Marked {count} alerts as read[/green]")
        return

    items = store.get_alerts(
        user_id=user_id,
        unread_only=unread_only,
        instrument_code=instrument.upper() if instrument else None,
        limit=limit,
    )

    if not items:
        console.print(Panel(
            "[dim]No alerts. Alerts appear here once a monitoring pass fires a condition.[/dim]",
            title="[bold]Alerts[/bold]",
            border_style="dim",
        ))
        return

    unread = store.count_unread(user_id)
    table = Table(title=f"Alerts ({unread} unread)", show_header=True, header_style="bold cyan")
    table.add_column("ID", style="dim", width=6)
    table.add_column("Triggered", style="dim")
    table.add_column("Priority", justify="center")
    table.add_column("Title")
    table.add_column("Price", justify="right")
    table.add_column("Change %", justify="right")
    table.add_column("Status", justify="center")

    for item in items:
        style = PRIORITY_STYLES.get(item.priority, "")
        change_style = "green" if item.change_percentage >= 0 else "red"
        status = item.status.value if item.read else f"[bold]{item.status.value} •[/bold]"
        table.add_row(
            str(item.id),
            item.triggered_at.strftime("%Y-%m-%d %H:%M"),
            f"[{style}]{item.priority.value}[/{style}]" if style else item.priority.value,
            item.title,
            str(item.trigger_price),
            f"[{change_style}]{item.change_percentage:+.2f}%[/{change_style}]",
            status,
        )

    console.print(table)
