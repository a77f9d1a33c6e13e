"""Monitoring commands for pricewatch CLI.

``monitor run`` performs a single pass and exits, so it can be scheduled
from cron or any other external scheduler.
"""

from typing import Optional

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

console = Console()


def _get_data_store():
    """Get the data store for the database named in the loaded config."""
    from pricewatch.config import get_db_path
    from pricewatch.db.store import DataStore

    config = click.get_current_context().obj["config"]
    return DataStore(get_db_path(config))


@click.group()
def monitor() -> None:
    """Run monitoring passes and inspect the system.

    \b
    Examples:
      pricewatch monitor run
      pricewatch monitor run --instrument 069500
      pricewatch monitor status
      pricewatch monitor cleanup
    """


@monitor.command("run")
@click.option("--instrument", "-i", default=None, help="Only check conditions on this instrument.")
@click.option("--workers", "-w", type=int, default=None, help="Worker threads (default from config).")
@click.pass_context
def run(ctx: click.Context, instrument: Optional[str], workers: Optional[int]) -> None:
    """Run one monitoring pass over the stored prices."""
    from pricewatch.config import get_max_workers
    from pricewatch.engine.monitor import MonitoringCycle, MonitoringError
    from pricewatch.sources import StorePriceSource

    config = ctx.obj["config"]
    store = _get_data_store()
    cycle = MonitoringCycle(
        store,
        StorePriceSource(store),
        max_workers=workers if workers is not None else get_max_workers(config),
    )

    try:
        report = cycle.run_pass(instrument_code=instrument.upper() if instrument else None)
    except MonitoringError as e:
        console.print(Panel(
            f"[red]Monitoring pass failed:[/red]\n\n{e}",
            title="[bold red]Error[/bold red]",
            border_style="red",
        ))
        raise SystemExit(1)

    table = Table(title="Monitoring Pass", show_header=True, header_style="bold cyan")
    table.add_column("Outcome")
    table.add_column("Count", justify="right")
    table.add_row("Evaluated", str(report.evaluated))
    table.add_row("[green]Fired[/green]", f"[green]{report.fired}[/green]")
    table.add_row("Not met", str(report.not_met))
    table.add_row("Cooling down", str(report.skipped_cooldown))
    table.add_row("No price", str(report.skipped_no_price))
    table.add_row("Base price set", str(report.base_prices_set))
    if report.raced:
        table.add_row("Fired elsewhere", str(report.raced))
    if report.errors:
        table.add_row("[red]Errors[/red]", f"[red]{report.errors}[/red]")
    console.print(table)


@monitor.command("status")
def status() -> None:
    """Show monitoring and alert statistics."""
    from pricewatch.engine.stats import monitoring_statistics, system_statistics

    store = _get_data_store()
    monitoring = monitoring_statistics(store)
    system = system_statistics(store)

    lines = [
        f"Active conditions:   {monitoring.active_conditions}",
        f"Alerts (last 24h):   {monitoring.alerts_last_24h}",
        f"Alerts (total):      {system.alerts.total}",
        f"Unread alerts:       {system.alerts.unread}",
        f"High priority:       {system.alerts.high_priority}",
    ]
    if system.alerts.by_type:
        lines.append("")
        lines.append("[bold]Alerts by type:[/bold]")
        for alert_type, count in sorted(system.alerts.by_type.items()):
            lines.append(f"  {alert_type:<18} {count}")
    lines.append("")
    lines.append("[bold]Tables:[/bold]")
    for table_name, count in system.tables.items():
        lines.append(f"  {table_name:<18} {count}")

    console.print(Panel("\n".join(lines), title="[bold]pricewatch status[/bold]", border_style="cyan"))


@monitor.command("cleanup")
@click.option("--days", type=int, default=None, help="Retention in days (default from config).")
@click.pass_context
def cleanup(ctx: click.Context, days: Optional[int]) -> None:
    """Expire and delete old alerts and inactive conditions."""
    from datetime import datetime, timedelta

    from pricewatch.config import get_retention_days

    config = ctx.obj["config"]
    store = _get_data_store()
    retention = days if days is not None else get_retention_days(config)

    now = datetime.now()
    expired = store.expire_alerts(now - timedelta(days=retention))
    result = store.cleanup(now=now, retention_days=retention)
    console.print(
        f"[green]✓ Expired {expired} alerts; removed {result.total_alerts} alerts "
        f"({result.read_alerts} read, {result.expired_alerts} expired) "
        f"and {result.conditions} inactive conditions[/green]"
    )
