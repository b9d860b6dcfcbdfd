"""Synchronize the current project's MCP servers into other AI tools.

The host configuration is the source of truth. Each sync target is handled
independently: a failure or a declined prompt for one target never stops
the other, and every target produces a ``TargetResult``.
"""

import logging
from dataclasses import dataclass, field

from agentstack.config.models import McpServer
from agentstack.config.paths import StackPaths
from agentstack.errors import (
    FileSystemError,
    MutuallyExclusiveOptionsError,
    SyncTargetError,
)
from agentstack.storage.atomic import read_json_or_empty
from agentstack.ui.output import Output
from agentstack.ui.prompt import Prompt, confirmed, read_single_char

from .converters import project_servers
from .targets import CodexTarget, GeminiTarget, SyncTarget

logger = logging.getLogger(__name__)

WRITTEN = "written"
SKIPPED = "skipped"
DRY_RUN = "dry-run"


@dataclass
class SyncOptions:
    dry_run: bool = False
    force: bool = False
    append: bool = False
    codex_only: bool = False
    gemini_only: bool = False

    def validate(self) -> None:
        if self.codex_only and self.gemini_only:
            raise MutuallyExclusiveOptionsError("--codex-only", "--gemini-only")

    @property
    def merge(self) -> bool:
        return self.force or self.append


@dataclass
class TargetSummary:
    status: str
    existing: int = 0
    after: int = 0
    synced: int = 0
    skipped_servers: list[str] = field(default_factory=list)


@dataclass
class TargetResult:
    """Either a summary or the error that stopped this target."""

    target: str
    summary: TargetSummary | None = None
    error: SyncTargetError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class SyncReport:
    servers: list[McpServer] = field(default_factory=list)
    results: list[TargetResult] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return all(result.ok for result in self.results)

    @property
    def failed(self) -> list[TargetResult]:
        return [result for result in self.results if not result.ok]


class McpSynchronizer:
    """Projects the canonical per-project server set into sync targets."""

    def __init__(
        self,
        paths: StackPaths,
        output: Output | None = None,
        prompt: Prompt = read_single_char,
        targets: list[SyncTarget] | None = None,
    ) -> None:
        self.paths = paths
        self.output = output or Output()
        self.prompt = prompt
        self.targets = targets or [
            CodexTarget(paths.codex_config_path),
            GeminiTarget(paths.gemini_settings_path),
        ]

    def run(self, options: SyncOptions | None = None) -> SyncReport:
        """Sync all selected targets.

        Raises:
            MutuallyExclusiveOptionsError: Before any file is touched, when
                both --codex-only and --gemini-only are given.
        """
        options = options or SyncOptions()
        options.validate()

        self.output.info("Syncing MCP servers from current project...")
        self.output.meta(f"Current project: {self.paths.project_key}")

        servers = self.load_servers()
        if not servers:
            self.output.warning("No MCP servers found in current project")
            self.output.info(
                "Make sure you have MCP servers configured for this project"
            )
            return SyncReport()

        self._display_servers(servers)
        report = SyncReport(servers=servers)
        for target in self._selected_targets(options):
            report.results.append(self._sync_target(target, servers, options))
            self.output.log()

        self._display_outcome(report, options)
        return report

    def load_servers(self) -> list[McpServer]:
        host_path = self.paths.host_config_path
        if not host_path.exists():
            self.output.warning(f"Host configuration not found at {host_path}")
            return []
        host = read_json_or_empty(host_path, "host configuration")
        invalid: list[str] = []
        servers = project_servers(host, self.paths.project_key, invalid)
        for name in invalid:
            self.output.warning(f"Skipped invalid MCP server: {name}")
        return servers

    def _selected_targets(self, options: SyncOptions) -> list[SyncTarget]:
        selected = []
        for target in self.targets:
            if options.codex_only and target.name != "codex":
                continue
            if options.gemini_only and target.name != "gemini":
                continue
            selected.append(target)
        return selected

    def _sync_target(
        self, target: SyncTarget, servers: list[McpServer], options: SyncOptions
    ) -> TargetResult:
        self.output.info(f"{target.label} ({target.path}):")
        try:
            summary = self._apply_target(target, servers, options)
        except SyncTargetError as e:
            self.output.error(f"  {e}")
            logger.error(str(e))
            return TargetResult(target=target.name, error=e)
        except FileSystemError as e:
            error = SyncTargetError(target.label, str(e))
            self.output.error(f"  {error}")
            logger.error(str(error))
            return TargetResult(target=target.name, error=error)
        return TargetResult(target=target.name, summary=summary)

    def _apply_target(
        self, target: SyncTarget, servers: list[McpServer], options: SyncOptions
    ) -> TargetSummary:
        document = target.load()
        existing = target.existing_servers(document)
        entries, skipped = target.build(servers)

        after = len(set(existing) | set(entries)) if options.merge else len(entries)
        mode = "append" if options.merge else "overwrite"
        self.output.meta(f"  Current MCP servers: {len(existing)}")
        self.output.meta(f"  After sync: {after} ({mode} mode)")
        if skipped:
            self.output.warning(
                f"  Skipped {len(skipped)} non-stdio servers "
                f"({target.label} only supports stdio)"
            )

        summary = TargetSummary(
            status=WRITTEN,
            existing=len(existing),
            after=after,
            synced=len(entries),
            skipped_servers=skipped,
        )

        if existing and not options.merge:
            if options.dry_run:
                self.output.meta(
                    f"  Would ask before overwriting {len(existing)} existing servers"
                )
            elif not self._confirm_overwrite(target, len(existing), after):
                self.output.info(f"  Skipped {target.label} sync")
                summary.status = SKIPPED
                return summary

        if options.dry_run:
            self.output.info("  (dry run - no changes made)")
            summary.status = DRY_RUN
            return summary

        target.write(target.compose(document, entries, merge=options.merge))
        logger.info(f"Wrote {len(entries)} MCP servers to {target.path}")
        self.output.success(f"  ✓ {target.label} config updated")
        return summary

    def _confirm_overwrite(self, target: SyncTarget, existing: int, after: int) -> bool:
        self.output.warning(
            f"  This will overwrite {existing} existing MCP servers in {target.label} config"
        )
        self.output.info(f"   Current servers: {existing}")
        self.output.info(f"   After sync: {after}")
        answer = self.prompt(
            "Continue with overwrite? This will replace existing MCP server "
            "configurations. (y/N): "
        )
        if not confirmed(answer):
            self.output.info(f"  {target.label} sync cancelled by user")
            return False
        return True

    def _display_servers(self, servers: list[McpServer]) -> None:
        self.output.success(f"MCP Servers to sync ({len(servers)}):")
        for server in servers:
            detail = server.command if server.type == "stdio" else server.url
            self.output.info(f"  • {server.name} ({server.type}: {detail})")
        self.output.log()

    def _display_outcome(self, report: SyncReport, options: SyncOptions) -> None:
        if report.failed:
            names = ", ".join(r.target for r in report.failed)
            self.output.error(f"Sync failed for: {names}")
        elif options.dry_run:
            self.output.info("Dry run complete - no changes were made")
        else:
            self.output.success(f"✓ Synced {len(report.servers)} MCP servers")
