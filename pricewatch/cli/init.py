"""Setup command for pricewatch CLI."""

import click
from rich.console import Console
from rich.panel import Panel

from pricewatch.config import create_template_config, get_config_path, get_db_path, load_config

console = Console()


@click.command("init")
@click.option("--force", is_flag=True, help="Overwrite an existing config file.")
def init(force: bool) -> None:
    """Write the default config file and create the database.

    \b
    Examples:
      pricewatch init
      pricewatch init --force
    """
    from pricewatch.db.store import DataStore

    config_path = get_config_path()
    if config_path.exists() and not force:
        console.print(f"[yellow]Config already exists at {config_path}[/yellow]")
    else:
        config_path = create_template_config(config_path)
        console.print(f"[green]✓ Wrote config to {config_path}[/green]")

    db_path = get_db_path(load_config(config_path))
    store = DataStore(db_path)
    console.print(Panel(
        f"Config:   {config_path}\n"
        f"Database: {db_path}\n"
        f"Tables:   {', '.join(store.get_tables())}",
        title="[bold]pricewatch[/bold]",
        border_style="green",
    ))
