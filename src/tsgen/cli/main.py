"""CLI entry point for tsgen.

Defines the main CLI group using the LazyGroup pattern: subcommands (and
the pyarrow-heavy modules behind them) are only imported when invoked.
"""

from __future__ import annotations

import importlib
from typing import Any

import click
import rich_click as rclick

from tsgen import __version__
from tsgen.cli.output import set_no_color
from tsgen.observability import configure_logging

# Configure rich-click for better help formatting
rclick.rich_click.TEXT_MARKUP = "markdown"
rclick.rich_click.SHOW_ARGUMENTS = True
rclick.rich_click.GROUP_ARGUMENTS_OPTIONS = True


class LazyGroup(rclick.RichGroup):
    """Click group that loads commands lazily.

    Attributes:
        lazy_subcommands: Mapping of command names to module paths.
    """

    def __init__(
        self,
        *args: Any,
        lazy_subcommands: dict[str, str] | None = None,
        **kwargs: Any,
    ) -> None:
        """Initialize LazyGroup.

        Args:
            *args: Positional arguments for parent class.
            lazy_subcommands: Mapping of command name to module path.
                Format: {"oss": "tsgen.cli.commands.oss.oss"}
            **kwargs: Keyword arguments for parent class.
        """
        super().__init__(*args, **kwargs)
        self.lazy_subcommands: dict[str, str] = lazy_subcommands or {}

    def list_commands(self, ctx: click.Context) -> list[str]:
        commands = set(super().list_commands(ctx))
        commands.update(self.lazy_subcommands.keys())
        return sorted(commands)

    def get_command(self, ctx: click.Context, cmd_name: str) -> click.Command | None:
        """Get a command by name, loading lazily if needed.

        Args:
            ctx: Click context.
            cmd_name: Name of the command to get.

        Returns:
            Click Command instance, or None if not found.
        """
        cmd = super().get_command(ctx, cmd_name)  # type: ignore[arg-type]
        if cmd is not None:
            return cmd

        if cmd_name not in self.lazy_subcommands:
            return None

        module_path = self.lazy_subcommands[cmd_name]
        module_name, attr_name = module_path.rsplit(".", 1)
        mod = importlib.import_module(module_name)
        return getattr(mod, attr_name)  # type: ignore[no-any-return]


LAZY_COMMANDS = {
    "gen-shards": "tsgen.cli.commands.gen_shards.gen_shards",
    "oss": "tsgen.cli.commands.oss.oss",
    "cloud": "tsgen.cli.commands.cloud.cloud",
}


@click.command(cls=LazyGroup, lazy_subcommands=LAZY_COMMANDS)
@click.version_option(version=__version__, prog_name="tsgen")
@click.option(
    "--no-color",
    is_flag=True,
    default=False,
    help="Disable colored output.",
    is_eager=True,
    expose_value=False,
    callback=lambda ctx, param, value: set_no_color(value) if value else None,
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="WARNING",
    help="Minimum log level [default: WARNING]",
)
@click.option(
    "--log-json",
    is_flag=True,
    default=False,
    help="Emit logs as JSON.",
)
def cli(log_level: str, log_json: bool) -> None:
    """tsgen - Bulk time-series shard generator.

    Writes synthetic series directly into shard directories, one series
    per tag combination, then compacts the series catalog.

    **Commands:**

    - `tsgen gen-shards` - Float random values, several fields per point
    - `tsgen oss` - Integer constant values, optional multi-tenant names
    - `tsgen cloud` - One static shard for a single org and bucket

    Add `--print` to any command to see what would be generated.
    """
    configure_logging(log_level=log_level, json_format=log_json)


if __name__ == "__main__":
    cli()
