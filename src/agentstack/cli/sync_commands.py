"""CLI command for syncing MCP servers to other AI tools."""

import click

from agentstack.errors import MutuallyExclusiveOptionsError

from .common import get_output, get_paths, reject_exclusive


@click.command("sync-mcp")
@click.option("--dry-run", is_flag=True, help="Show what would change without writing.")
@click.option("--force", is_flag=True, help="Merge into existing configs without asking.")
@click.option("--append", is_flag=True, help="Merge with existing servers instead of replacing.")
@click.option("--codex-only", is_flag=True, help="Only sync to Codex.")
@click.option("--gemini-only", is_flag=True, help="Only sync to Gemini.")
@click.pass_context
def sync_mcp(ctx, dry_run, force, append, codex_only, gemini_only):
    """Copy this project's MCP servers into Codex and Gemini configs."""
    from agentstack.sync.mcp_sync import McpSynchronizer, SyncOptions

    options = SyncOptions(
        dry_run=dry_run,
        force=force,
        append=append,
        codex_only=codex_only,
        gemini_only=gemini_only,
    )
    try:
        options.validate()
    except MutuallyExclusiveOptionsError as e:
        reject_exclusive(e)

    report = McpSynchronizer(get_paths(ctx), get_output()).run(options)
    if not report.ok:
        raise SystemExit(1)
