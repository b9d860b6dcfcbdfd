"""CLI commands for installing, listing and removing stacks."""

from pathlib import Path

import click
from rich.table import Table

from agentstack.errors import MutuallyExclusiveOptionsError, StackError

from .common import console, get_output, get_paths, reject_exclusive


def _install_options(overwrite, global_only, local_only):
    from agentstack.stacks.installer import InstallOptions

    options = InstallOptions(
        overwrite=overwrite, global_only=global_only, local_only=local_only
    )
    try:
        options.validate()
    except MutuallyExclusiveOptionsError as e:
        reject_exclusive(e)
    return options


def install_flags(func):
    func = click.option(
        "--local-only", is_flag=True, help="Only install project-local components."
    )(func)
    func = click.option(
        "--global-only", is_flag=True, help="Only install global components."
    )(func)
    func = click.option(
        "--overwrite", is_flag=True, help="Replace existing files and settings."
    )(func)
    return func


@click.command()
@click.argument("reference")
@install_flags
@click.pass_context
def restore(ctx, reference, overwrite, global_only, local_only):
    """Restore a stack from a name in the stacks directory or a file path."""
    from agentstack.stacks.operations import StackOperations

    options = _install_options(overwrite, global_only, local_only)
    operations = StackOperations(get_paths(ctx), get_output())
    result = operations.restore(reference, options)
    if not result.success:
        raise SystemExit(1)


@click.command("install-file")
@click.argument("path", type=click.Path(dir_okay=False, path_type=Path))
@click.option("--stack-id", required=True, help="Identifier to register the stack under.")
@install_flags
@click.pass_context
def install_file(ctx, path, stack_id, overwrite, global_only, local_only):
    """Install a manifest file that was already fetched."""
    from agentstack.stacks.operations import StackOperations

    options = _install_options(overwrite, global_only, local_only)
    operations = StackOperations(get_paths(ctx), get_output())
    result = operations.install_file(path, stack_id, options)
    if not result.success:
        raise SystemExit(1)


@click.command("list")
@click.pass_context
def list_stacks(ctx):
    """List stacks installed in this project."""
    from agentstack.registry.registry import StackRegistry

    entries = StackRegistry(get_paths(ctx)).list_entries()
    if not entries:
        console.print("No stacks are installed in this project.")
        console.print("Install one with: agentstack restore <stack>")
        return

    table = Table(title="Installed Stacks")
    table.add_column("Stack ID", style="cyan")
    table.add_column("Name")
    table.add_column("Source")
    table.add_column("Version")
    table.add_column("Components", justify="right")
    table.add_column("Installed")

    for entry in entries:
        table.add_row(
            entry.stack_id,
            entry.name,
            entry.source,
            entry.version or "-",
            str(entry.components.count),
            entry.installed_at[:10] if entry.installed_at else "-",
        )

    console.print(table)


@click.command()
@click.argument("stack_id")
@click.option("--global", "global_only", is_flag=True, help="Only remove global components.")
@click.option("--local", "local_only", is_flag=True, help="Only remove local components.")
@click.option("--dry-run", is_flag=True, help="Show what would be removed.")
@click.option("--force", is_flag=True, help="Do not ask for confirmation.")
@click.option("--commands-only", is_flag=True, help="Only remove commands.")
@click.option("--agents-only", is_flag=True, help="Only remove agents.")
@click.option("--mcp-only", is_flag=True, help="Only remove MCP servers.")
@click.option("--settings-only", is_flag=True, help="Only remove settings.")
@click.pass_context
def uninstall(
    ctx,
    stack_id,
    global_only,
    local_only,
    dry_run,
    force,
    commands_only,
    agents_only,
    mcp_only,
    settings_only,
):
    """Remove an installed stack's components from this project."""
    from agentstack.stacks.uninstaller import StackUninstaller, UninstallOptions

    options = UninstallOptions(
        global_only=global_only,
        local_only=local_only,
        dry_run=dry_run,
        force=force,
        commands_only=commands_only,
        agents_only=agents_only,
        mcp_only=mcp_only,
        settings_only=settings_only,
    )
    try:
        options.validate()
    except MutuallyExclusiveOptionsError as e:
        reject_exclusive(e)

    result = StackUninstaller(get_paths(ctx), get_output()).uninstall(stack_id, options)
    if not result.success:
        raise SystemExit(1)


@click.command()
@click.pass_context
def cleanup(ctx):
    """Drop registry entries whose files are all gone."""
    from agentstack.registry.registry import StackRegistry

    result = StackRegistry(get_paths(ctx)).cleanup()
    for stack_id in result.removed:
        console.print(
            f"Removed stale entry: {stack_id}",
            style="green",
            markup=False,
            highlight=False,
        )
    for error in result.errors:
        console.print(error, style="yellow", markup=False, highlight=False)
    if not result.removed:
        console.print("Registry is clean.")


@click.command()
@click.option("--dry-run", is_flag=True, help="Show what would be removed.")
@click.pass_context
def clean(ctx, dry_run):
    """Remove host configuration entries for deleted projects."""
    from agentstack.stacks.clean import ProjectCleaner

    try:
        ProjectCleaner(get_paths(ctx), get_output()).clean(dry_run=dry_run)
    except StackError as e:
        console.print(f"Clean failed: {e}", style="red", markup=False, highlight=False)
        raise SystemExit(1)
