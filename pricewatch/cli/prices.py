"""Price ingestion commands for pricewatch CLI."""

from decimal import Decimal
from typing import Optional

import click
from rich.console import Console

from pricewatch.cli.conditions import parse_decimal
from pricewatch.engine.evaluator import percent_change
from pricewatch.models import InstrumentSummary

console = Console()


def _get_data_store():
    """Get the data store for the database named in the loaded config."""
    from pricewatch.config import get_db_path
    from pricewatch.db.store import DataStore

    config = click.get_current_context().obj["config"]
    return DataStore(get_db_path(config))


@click.group()
def price() -> None:
    """Record instrument prices read by monitoring passes."""


@price.command("set")
@click.argument("code")
@click.argument("current")
@click.option("--prior-close", default=None, help="Prior close price.")
@click.option("--name", default=None, help="Instrument display name.")
def set_price(code: str, current: str, prior_close: Optional[str], name: Optional[str]) -> None:
    """Store CURRENT as the latest price of CODE.

    \b
    Examples:
      pricewatch price set 069500 35000 --prior-close 36000
    """
    code = code.upper()
    current_price = parse_decimal(current)
    if current_price <= 0:
        raise click.BadParameter("price must be positive", param_hint="CURRENT")
    prior: Optional[Decimal] = parse_decimal(prior_close) if prior_close is not None else None

    store = _get_data_store()
    if name is None:
        existing = store.get_price(code)
        name = existing.instrument_name if existing else code

    change = percent_change(prior, current_price) if prior else None
    store.save_price(InstrumentSummary(
        instrument_code=code,
        instrument_name=name,
        current_price=current_price,
        prior_close_price=prior,
        change_percent=change,
    ))

    line = f"[green]✓ {code} {name}: {current_price}[/green]"
    if change is not None:
        line += f" [dim]({change:+.2f}% vs {prior})[/dim]"
    console.print(line)


@price.command("show")
@click.argument("code")
def show_price(code: str) -> None:
    """Show the stored price of CODE."""
    summary = _get_data_store().get_price(code.upper())
    if summary is None:
        console.print(f"[yellow]No price recorded for {code.upper()}[/yellow]")
        raise SystemExit(1)
    console.print(
        f"{summary.instrument_code} {summary.instrument_name}: {summary.current_price} "
        f"[dim](prior close {summary.prior_close_price or '-'}, as of "
        f"{summary.as_of.strftime('%Y-%m-%d %H:%M')})[/dim]"
    )
