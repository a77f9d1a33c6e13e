"""Main CLI entry point for pricewatch.

This module provides the main click group and lazy loading
of command modules.
"""

import click
from rich.console import Console

# Console for rich output
console = Console()


class LazyGroup(click.Group):
    """A click Group that lazily loads commands.

    Command modules are only imported when they are invoked.
    """

    def __init__(self, *args, lazy_subcommands: dict[str, str] | None = None, **kwargs):
        """Initialize the lazy group.

        Args:
            lazy_subcommands: Mapping of command names to module paths.
        """
        super().__init__(*args, **kwargs)
        self._lazy_subcommands = lazy_subcommands or {}

    def list_commands(self, ctx: click.Context) -> list[str]:
        """List all available commands."""
        base = super().list_commands(ctx)
        lazy = list(self._lazy_subcommands.keys())
        return sorted(set(base + lazy))

    def get_command(self, ctx: click.Context, cmd_name: str) -> click.Command | None:
        """Get a command by name, lazily loading if needed."""
        if cmd_name in self.commands:
            return self.commands[cmd_name]

        if cmd_name in self._lazy_subcommands:
            return self._lazy_load(cmd_name)

        return None

    def _lazy_load(self, cmd_name: str) -> click.Command:
        """Lazily load a command from its module path."""
        import importlib

        module_path = self._lazy_subcommands[cmd_name]
        module = importlib.import_module(module_path)

        cmd = None
        attr = getattr(module, cmd_name, None)
        if isinstance(attr, click.Command):
            cmd = attr
        else:
            # Fall back to a command registered under the same name
            for attr_name in dir(module):
                attr = getattr(module, attr_name)
                if isinstance(attr, click.Command) and attr.name == cmd_name:
                    cmd = attr
                    break

        if cmd is None:
            raise click.ClickException(f"Could not find command '{cmd_name}' in {module_path}")

        self.add_command(cmd)
        return cmd


LAZY_SUBCOMMANDS = {
    "init": "pricewatch.cli.init",
    "watch": "pricewatch.cli.watchlist",
    "condition": "pricewatch.cli.conditions",
    "alerts": "pricewatch.cli.alerts",
    "price": "pricewatch.cli.prices",
    "monitor": "pricewatch.cli.monitor",
}


CONTEXT_SETTINGS = {"help_option_names": ["-h", "--help"]}


@click.group(cls=LazyGroup, lazy_subcommands=LAZY_SUBCOMMANDS, context_settings=CONTEXT_SETTINGS)
@click.version_option(package_name="pricewatch")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """pricewatch - price-threshold alerts for watched instruments.

    Configure conditions on watched instruments, then run monitoring
    passes (from cron or by hand) to turn met conditions into alerts.

    \b
    Quick Start:
      pricewatch init                              # Write default config
      pricewatch watch add 069500 "KODEX 200"      # Watch an instrument
      pricewatch condition add 069500 PERCENTAGE_DROP -3
      pricewatch monitor run                       # Run one pass
      pricewatch alerts                            # Show alerts
    """
    from pricewatch.config import load_config
    from pricewatch.logging_setup import configure_logging

    ctx.ensure_object(dict)
    config = load_config()
    ctx.obj["config"] = config
    configure_logging("DEBUG" if verbose else config["logging"].get("level", "INFO"))


def main() -> None:
    """Main entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
