"""Condition management commands for pricewatch CLI.

Handles creating, listing, editing and disabling price-threshold conditions.
"""

from decimal import Decimal, InvalidOperation
from typing import Optional

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from pricewatch.models import ConditionType

console = Console()

user_option = click.option(
    "--user", "-u", "user_id", type=int, default=1, show_default=True, help="Owning user ID."
)

CREATABLE_TYPES = [t.value for t in ConditionType if t != ConditionType.VOLUME_SPIKE]


def _get_data_store():
    """Get the data store for the database named in the loaded config."""
    from pricewatch.config import get_db_path
    from pricewatch.db.store import DataStore

    config = click.get_current_context().obj["config"]
    return DataStore(get_db_path(config))


def parse_decimal(value: str) -> Decimal:
    """Parse a CLI number into a Decimal.

    Raises:
        click.BadParameter: If the value is not a finite number.
    """
    try:
        result = Decimal(value)
    except InvalidOperation:
        raise click.BadParameter(f"'{value}' is not a number")
    if not result.is_finite():
        raise click.BadParameter(f"'{value}' is not a finite number")
    return result


def _error(message: str) -> None:
    console.print(Panel(
        f"[red]{message}[/red]",
        title="[bold red]Error[/bold red]",
        border_style="red",
    ))
    raise SystemExit(1)


@click.group()
def condition() -> None:
    """Manage price-threshold conditions.

    \b
    Condition types:
      PERCENTAGE_DROP  THRESHOLD  - fire when down THRESHOLD % (negative, e.g. -3)
      PERCENTAGE_RISE  THRESHOLD  - fire when up THRESHOLD % (e.g. 5)
      PRICE_DROP       THRESHOLD  - fire when down by an amount (negative)
      PRICE_RISE       THRESHOLD  - fire when up by an amount
      PRICE_TARGET     THRESHOLD  - fire when price reaches THRESHOLD

    \b
    Examples:
      pricewatch condition add 069500 PERCENTAGE_DROP -3
      pricewatch condition add 069500 PRICE_TARGET 40000 --base 35000
      pricewatch condition list
      pricewatch condition toggle 4
    """


@condition.command("add", context_settings={"ignore_unknown_options": True})
@click.argument("code")
@click.argument("condition_type", type=click.Choice(CREATABLE_TYPES, case_sensitive=False))
@click.argument("threshold")
@click.option("--base", "base_price", default=None, help="Base price (default: set on first pass).")
@click.option("--description", "-d", default=None, help="Free-text note.")
@user_option
def add(
    code: str,
    condition_type: str,
    threshold: str,
    base_price: Optional[str],
    description: Optional[str],
    user_id: int,
) -> None:
    """Create a condition on watched instrument CODE."""
    store = _get_data_store()
    try:
        created = store.create_condition(
            user_id,
            code.upper(),
            ConditionType(condition_type.upper()),
            parse_decimal(threshold),
            description=description,
            base_price=parse_decimal(base_price) if base_price is not None else None,
        )
    except ValueError as e:
        _error(str(e))

    console.print(Panel(
        f"[bold green]Condition Created[/bold green]\n\n"
        f"ID:         {created.id}\n"
        f"Instrument: {created.instrument_code} ({created.instrument_name})\n"
        f"Type:       {created.type.label}\n"
        f"Threshold:  {created.threshold}\n"
        f"Base price: {created.base_price if created.base_price is not None else 'set on first pass'}",
        title="[bold]New Condition[/bold]",
        border_style="green",
    ))


@condition.command("list")
@click.option("--all", "show_all", is_flag=True, help="Include inactive conditions.")
@user_option
def list_conditions(show_all: bool, user_id: int) -> None:
    """Show conditions."""
    store = _get_data_store()
    conditions = store.get_conditions(user_id, active_only=not show_all)

    if not conditions:
        console.print(Panel(
            "[dim]No conditions set. Use 'pricewatch condition add' to create one.[/dim]",
            title="[bold]Conditions[/bold]",
            border_style="dim",
        ))
        return

    table = Table(title="Conditions", show_header=True, header_style="bold cyan")
    table.add_column("ID", style="dim", width=6)
    table.add_column("Instrument", style="bold")
    table.add_column("Type")
    table.add_column("Threshold", justify="right")
    table.add_column("Base", justify="right")
    table.add_column("Last fired", style="dim")
    table.add_column("Status", justify="center")

    for item in conditions:
        table.add_row(
            str(item.id),
            f"{item.instrument_code} {item.instrument_name}",
            item.type.label,
            str(item.threshold),
            str(item.base_price) if item.base_price is not None else "-",
            item.last_fired_at.strftime("%Y-%m-%d %H:%M") if item.last_fired_at else "-",
            "[green]●[/green]" if item.active else "[dim]off[/dim]",
        )

    console.print(table)


@condition.command("update", context_settings={"ignore_unknown_options": True})
@click.argument("condition_id", type=int)
@click.option("--threshold", default=None, help="New threshold (resets the base price).")
@click.option("--description", "-d", default=None, help="New note.")
@user_option
def update(
    condition_id: int,
    threshold: Optional[str],
    description: Optional[str],
    user_id: int,
) -> None:
    """Edit an active condition."""
    store = _get_data_store()
    try:
        updated = store.update_condition(
            condition_id,
            user_id,
            threshold=parse_decimal(threshold) if threshold is not None else None,
            description=description,
        )
    except ValueError as e:
        _error(str(e))
    console.print(f"[green]✓ Updated condition {updated.id} (threshold {updated.threshold})[/green]")


@condition.command("toggle")
@click.argument("condition_id", type=int)
@user_option
def toggle(condition_id: int, user_id: int) -> None:
    """Activate or deactivate a condition."""
    store = _get_data_store()
    try:
        active = store.toggle_condition(condition_id, user_id)
    except ValueError as e:
        _error(str(e))
    state = "activated" if active else "deactivated"
    console.print(f"[green]✓ Condition {condition_id} {state}[/green]")


@condition.command("remove")
@click.argument("condition_id", type=int)
@user_option
def remove(condition_id: int, user_id: int) -> None:
    """Deactivate a condition."""
    store = _get_data_store()
    try:
        store.deactivate_condition(condition_id, user_id)
    except ValueError as e:
        _error(str(e))
    console.print(f"[green]✓ Condition {condition_id} removed[/green]")
