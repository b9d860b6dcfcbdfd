"""Restore and install flows built on the installer and the registry."""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

from agentstack.config.loader import ConfigError, load_manifest
from agentstack.config.models import StackManifest
from agentstack.config.paths import StackPaths
from agentstack.errors import FileSystemError, StackError
from agentstack.hooks.risk import RiskLabeler
from agentstack.registry.models import InstallSource, RegistryEntry
from agentstack.registry.registry import StackRegistry
from agentstack.ui.output import Output

from .dependencies import find_missing_commands, report_missing
from .installer import ComponentInstaller, InstallOptions, InstallReport
from .resolver import load_stack

logger = logging.getLogger(__name__)


@dataclass
class RestoreResult:
    """Outcome of a restore or install run."""

    success: bool
    stack_name: str = ""
    stack_id: str = ""
    report: InstallReport | None = None
    error: Exception | None = None


class StackOperations:
    """High-level stack operations for one project."""

    def __init__(
        self,
        paths: StackPaths,
        output: Output | None = None,
        registry: StackRegistry | None = None,
        risk_labeler: RiskLabeler | None = None,
    ) -> None:
        self.paths = paths
        self.output = output or Output()
        self.registry = registry or StackRegistry(paths)
        self.installer = ComponentInstaller(paths, self.output, risk_labeler)

    def restore(
        self, reference: str, options: InstallOptions | None = None
    ) -> RestoreResult:
        """Restore a stack from a manifest reference (name or path)."""
        options = options or InstallOptions()
        try:
            options.validate()
            _, manifest = load_stack(reference, self.paths)
        except (StackError, ConfigError) as e:
            self.output.error(f"Restore failed: {e}")
            return RestoreResult(success=False, error=e)

        return self._apply(
            manifest,
            stack_id=manifest.name,
            source="restore",
            options=options,
            verb="restored",
        )

    def install_manifest(
        self,
        manifest: StackManifest,
        stack_id: str,
        options: InstallOptions | None = None,
        source: InstallSource = "remote",
    ) -> RestoreResult:
        """Install a manifest obtained elsewhere (e.g. the marketplace client)."""
        metadata = manifest.metadata.model_copy(
            update={
                "installed_from": stack_id,
                "installed_at": datetime.now(timezone.utc).isoformat(),
            }
        )
        manifest = manifest.model_copy(update={"metadata": metadata})
        return self._apply(
            manifest,
            stack_id=stack_id,
            source=source,
            options=options or InstallOptions(),
            verb="installed",
        )

    def install_file(
        self, path: Path, stack_id: str, options: InstallOptions | None = None
    ) -> RestoreResult:
        """Install a manifest file under an explicit stack id."""
        options = options or InstallOptions()
        try:
            options.validate()
            manifest = load_manifest(path)
        except (StackError, ConfigError) as e:
            self.output.error(f"Install failed: {e}")
            return RestoreResult(success=False, stack_id=stack_id, error=e)
        except OSError as e:
            error = FileSystemError("read", path, e)
            self.output.error(f"Install failed: {error}")
            return RestoreResult(success=False, stack_id=stack_id, error=error)
        return self.install_manifest(manifest, stack_id, options, source="local-file")

    def _apply(
        self,
        manifest: StackManifest,
        stack_id: str,
        source: InstallSource,
        options: InstallOptions,
        verb: str,
    ) -> RestoreResult:
        self.output.info(f"Stack: {manifest.name}")
        if manifest.description:
            self.output.log(f"Description: {manifest.description}")
        self.output.meta(f"Mode: {'Overwrite' if options.overwrite else 'Add/Merge'}")
        self.output.log()

        try:
            options.validate()
            self._check_dependencies(manifest)
            self._warn_conflicts(manifest, stack_id)
            report = self.installer.install(manifest, options)
            self._record(manifest, stack_id, source, report)
        except StackError as e:
            self.output.error(f'Stack "{manifest.name}" was not {verb}: {e}')
            logger.error(f"Failed to apply stack '{stack_id}': {e}")
            return RestoreResult(
                success=False, stack_name=manifest.name, stack_id=stack_id, error=e
            )

        self.output.success(f'\nStack "{manifest.name}" {verb} successfully!')
        summary = report.summary_lines()
        if summary:
            self.output.info("Summary:")
            for line in summary:
                self.output.meta(f"   {line}")

        return RestoreResult(
            success=True, stack_name=manifest.name, stack_id=stack_id, report=report
        )

    def _record(
        self,
        manifest: StackManifest,
        stack_id: str,
        source: InstallSource,
        report: InstallReport,
    ) -> None:
        previous = self.registry.get_entry(stack_id)
        if previous is None and report.components.count == 0:
            return

        components = report.components
        if previous is not None:
            components = previous.components.union(components)

        self.registry.register(
            RegistryEntry(
                stack_id=stack_id,
                name=manifest.name,
                source=source,
                version=manifest.version,
                components=components,
            )
        )

    def _check_dependencies(self, manifest: StackManifest) -> None:
        if manifest.mcp_servers:
            self.output.info("Checking MCP server dependencies...")
            report_missing(find_missing_commands(manifest.mcp_servers), self.output)

    def _warn_conflicts(self, manifest: StackManifest, stack_id: str) -> None:
        """Warn about components another installed stack already provides."""
        warnings = []
        for category, items in (
            ("commands", manifest.commands),
            ("agents", manifest.agents),
            ("hooks", manifest.hooks),
        ):
            for item in items:
                owners = [
                    e.name
                    for e in self.registry.find_by_component(item.clean_name, category)
                    if e.stack_id != stack_id
                ]
                if owners:
                    warnings.append(
                        f"{category[:-1].capitalize()} '{item.clean_name}' "
                        f"is also provided by: {', '.join(owners)}"
                    )
        for server in manifest.mcp_servers:
            owners = [
                e.name
                for e in self.registry.find_by_mcp_server(server.name)
                if e.stack_id != stack_id
            ]
            if owners:
                warnings.append(
                    f"MCP server '{server.name}' is also used by: {', '.join(owners)}"
                )

        if warnings:
            self.output.warning("Conflicts with installed stacks:")
            for warning in warnings:
                self.output.meta(f"   • {warning}")
