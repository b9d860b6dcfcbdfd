"""Helpers shared by the CLI command modules."""

import click
from rich.console import Console

from agentstack.config.loader import ConfigError, load_paths
from agentstack.config.paths import StackPaths
from agentstack.errors import MutuallyExclusiveOptionsError
from agentstack.ui.output import Output

console = Console()


def get_output() -> Output:
    return Output(console)


def get_paths(ctx: click.Context) -> StackPaths:
    """Resolve paths for the current invocation, exiting on bad config."""
    options = ctx.find_root().obj or {}
    try:
        return load_paths(options.get("config_path"), options.get("project_dir"))
    except ConfigError as e:
        console.print(str(e), style="red", markup=False, highlight=False)
        raise SystemExit(1)


def reject_exclusive(error: MutuallyExclusiveOptionsError) -> None:
    console.print(str(error), style="red", markup=False, highlight=False)
    raise SystemExit(error.exit_code)
