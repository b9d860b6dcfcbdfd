"""agentstack CLI - Main entry point."""

import logging
from pathlib import Path

import click

_log_handler: logging.Handler | None = None


def _setup_logging(verbose: bool) -> None:
    """Configure a console log handler on the root logger."""
    global _log_handler
    log_format = "%(asctime)s [%(name)s] %(levelname)s: %(message)s"
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG if verbose else logging.WARNING)

    # Replace the handler from a previous invocation in the same process.
    if _log_handler is not None:
        root_logger.removeHandler(_log_handler)
    _log_handler = logging.StreamHandler()
    _log_handler.setFormatter(logging.Formatter(log_format))
    root_logger.addHandler(_log_handler)


@click.group()
@click.version_option(version="0.1.0", prog_name="agentstack")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="YAML file overriding the default locations.",
)
@click.option(
    "--project-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Project directory (default: current directory).",
)
@click.option("--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx, config_path, project_dir, verbose):
    """agentstack - install, track and sync AI assistant configuration stacks."""
    _setup_logging(verbose)
    ctx.obj = {"config_path": config_path, "project_dir": project_dir}


from .stack_commands import (  # noqa: E402
    clean,
    cleanup,
    install_file,
    list_stacks,
    restore,
    uninstall,
)
from .sync_commands import sync_mcp  # noqa: E402

cli.add_command(restore)
cli.add_command(install_file)
cli.add_command(list_stacks)
cli.add_command(uninstall)
cli.add_command(cleanup)
cli.add_command(clean)
cli.add_command(sync_mcp)


if __name__ == "__main__":
    cli()
