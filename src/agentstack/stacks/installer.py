"""Component installer: writes a manifest's components into the live tree.

Every category follows the same policy: an existing target is skipped
unless ``overwrite`` is set, a missing target is created together with its
parent directories. Any filesystem error aborts the install by raising
``FileSystemError``, and a component name that would escape its target
directory aborts it with ``UnsafePathError``.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path

from agentstack.config.models import (
    Agent,
    Command,
    InstructionFile,
    StackComponent,
    StackManifest,
)
from agentstack.config.paths import StackPaths
from agentstack.errors import (
    FileSystemError,
    MutuallyExclusiveOptionsError,
    UnsafePathError,
)
from agentstack.hooks.risk import DANGEROUS, RiskLabeler, declared_risk_labeler
from agentstack.registry.models import (
    ComponentRecord,
    HookRecord,
    InstructionRecord,
    PermissionRecord,
    RegistryComponents,
    SettingsRecord,
)
from agentstack.settings.merge import (
    MergeAction,
    MergeOutcome,
    added_permissions,
    added_subkeys,
    describe_merge,
    merge_settings,
)
from agentstack.storage.atomic import read_json_or_empty, write_json_atomic
from agentstack.ui.output import Output

logger = logging.getLogger(__name__)

HOOK_MODE = 0o755


def contained_path(base: Path, filename: str) -> Path:
    """Join ``filename`` onto ``base``, refusing anything that leaves ``base``.

    Raises:
        UnsafePathError: For empty names, names with path separators or
            parent references, or targets resolving outside ``base``.
    """
    if not filename or ".." in filename or "/" in filename or "\\" in filename:
        raise UnsafePathError(filename, base)
    target = base / filename
    if not target.resolve().is_relative_to(base.resolve()):
        raise UnsafePathError(filename, base)
    return target


@dataclass
class InstallOptions:
    """Caller options shared by restore and install."""

    overwrite: bool = False
    global_only: bool = False
    local_only: bool = False

    def validate(self) -> None:
        if self.global_only and self.local_only:
            raise MutuallyExclusiveOptionsError("--global-only", "--local-only")

    def allows(self, is_global: bool) -> bool:
        if is_global:
            return not self.local_only
        return not self.global_only


@dataclass
class InstallReport:
    """What an install run did, category by category."""

    counts: dict[str, int] = field(default_factory=dict)
    skipped: list[str] = field(default_factory=list)
    components: RegistryComponents = field(default_factory=RegistryComponents)
    settings_outcome: MergeOutcome | None = None

    def count(self, category: str) -> None:
        self.counts[category] = self.counts.get(category, 0) + 1

    @property
    def installed(self) -> int:
        return sum(self.counts.values())

    def summary_lines(self) -> list[str]:
        lines = [f"{category}: {n}" for category, n in self.counts.items() if n]
        if self.skipped:
            lines.append(f"Skipped existing: {len(self.skipped)}")
        return lines


class ComponentInstaller:
    """Installs the components of one manifest."""

    def __init__(
        self,
        paths: StackPaths,
        output: Output | None = None,
        risk_labeler: RiskLabeler | None = None,
    ) -> None:
        self.paths = paths
        self.output = output or Output()
        self.risk_labeler = risk_labeler

    def install(
        self, manifest: StackManifest, options: InstallOptions | None = None
    ) -> InstallReport:
        """Install every component category of ``manifest``.

        Raises:
            MutuallyExclusiveOptionsError: For --global-only with --local-only.
            FileSystemError: On the first I/O failure; later components
                are not attempted.
        """
        options = options or InstallOptions()
        options.validate()
        report = InstallReport()

        self._install_files(manifest.commands, "command", options, report)
        self._install_files(manifest.agents, "agent", options, report)
        self._install_hooks(manifest, options, report)
        self._install_mcp_servers(manifest, options, report)
        self._install_settings(manifest, options, report)
        self._install_instructions(manifest, options, report)

        logger.info(
            f"Installed {report.installed} components from '{manifest.name}' "
            f"({len(report.skipped)} skipped)"
        )
        return report

    # --- File components ---

    def _target_dir(self, component: StackComponent, is_global: bool) -> Path:
        if isinstance(component, Command):
            return self.paths.commands_dir(is_global)
        if isinstance(component, Agent):
            return self.paths.agents_dir(is_global)
        raise TypeError(f"Unsupported component type: {type(component).__name__}")

    def _install_files(
        self,
        components: list[StackComponent],
        kind: str,
        options: InstallOptions,
        report: InstallReport,
    ) -> None:
        for component in components:
            is_global = not component.is_local
            if not options.allows(is_global):
                continue

            name = component.clean_name
            base = self._target_dir(component, is_global)
            target = contained_path(base, f"{name}.md")
            scope = "global" if is_global else "local"
            label = f"{scope} {kind}"

            if self._write_file(target, component.content, label, name, options):
                report.count(f"{scope.capitalize()} {kind}s")
                if kind == "command":
                    records = report.components.commands
                else:
                    records = report.components.agents
                records.append(
                    ComponentRecord(name=name, path=str(target), is_global=is_global)
                )
            else:
                report.skipped.append(f"{label}: {name}")

    def _install_hooks(
        self, manifest: StackManifest, options: InstallOptions, report: InstallReport
    ) -> None:
        if not manifest.hooks or not options.allows(is_global=False):
            return

        labeler = self.risk_labeler or declared_risk_labeler(manifest.hooks)
        for hook in manifest.hooks:
            name = hook.clean_name
            filename = Path(hook.file_path).name if hook.file_path else name
            target = contained_path(self.paths.hooks_dir, filename)

            risk = labeler(hook.name, hook.content)
            if risk == DANGEROUS:
                self.output.warning(
                    f"Hook {name} was flagged as {DANGEROUS} by the risk scanner"
                )

            if self._write_file(
                target, hook.content, "hook", name, options, mode=HOOK_MODE
            ):
                report.count("Hooks")
                report.components.hooks.append(
                    HookRecord(name=name, path=str(target), type=hook.event)
                )
                trigger = hook.event or "unknown event"
                if hook.matcher:
                    trigger += f" [{hook.matcher}]"
                self.output.meta(f"   {name}: {trigger}, risk {risk}")
            else:
                report.skipped.append(f"hook: {name}")

    def _install_instructions(
        self, manifest: StackManifest, options: InstallOptions, report: InstallReport
    ) -> None:
        if manifest.claude_md is None:
            return

        pairs: list[tuple[bool, InstructionFile | None]] = [
            (True, manifest.claude_md.global_file),
            (False, manifest.claude_md.local_file),
        ]
        for is_global, instruction in pairs:
            if instruction is None or not options.allows(is_global):
                continue
            scope = "global" if is_global else "local"
            target = self.paths.instructions_path(is_global)
            if self._write_file(
                target, instruction.content, f"{scope} instructions", target.name, options
            ):
                report.count("Instruction files")
                report.components.claude_md.append(
                    InstructionRecord(type=scope, path=str(target))
                )
            else:
                report.skipped.append(f"{scope} instructions: {target.name}")

    def _write_file(
        self,
        target: Path,
        content: str,
        label: str,
        name: str,
        options: InstallOptions,
        mode: int | None = None,
    ) -> bool:
        """Apply the overwrite/skip policy to one file.

        Returns:
            True if the file was written.
        """
        try:
            existed = target.exists()
        except OSError as e:
            raise FileSystemError("inspect", target, e) from e
        if existed and not options.overwrite:
            self.output.warning(f"Skipped existing {label}: {name}")
            return False

        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content, encoding="utf-8")
            if mode is not None:
                target.chmod(mode)
        except OSError as e:
            raise FileSystemError("write", target, e) from e

        verb = "Overwrote" if existed else "Added"
        self.output.success(f"✓ {verb} {label}: {name}")
        logger.debug(f"{verb} {target}")
        return True

    # --- Host configuration and settings ---

    def _install_mcp_servers(
        self, manifest: StackManifest, options: InstallOptions, report: InstallReport
    ) -> None:
        # MCP servers are registered per project, so they follow local scope.
        if not manifest.mcp_servers or not options.allows(is_global=False):
            return

        config_path = self.paths.host_config_path
        host = read_json_or_empty(config_path, "host configuration")
        projects = host.get("projects")
        if not isinstance(projects, dict):
            projects = {}
        project = projects.get(self.paths.project_key)
        if not isinstance(project, dict):
            project = {}
        servers = project.get("mcpServers")
        if not isinstance(servers, dict):
            servers = {}

        changed = False
        for server in manifest.mcp_servers:
            existed = server.name in servers
            if existed and not options.overwrite:
                self.output.warning(f"Skipped existing MCP server: {server.name}")
                report.skipped.append(f"MCP server: {server.name}")
                continue

            servers[server.name] = server.to_host_entry()
            changed = True
            verb = "Overwrote" if existed else "Added"
            self.output.success(f"✓ {verb} MCP server: {server.name}")
            report.count("MCP servers")
            report.components.mcp_servers.append(server.name)

        if changed:
            project["mcpServers"] = servers
            projects[self.paths.project_key] = project
            host["projects"] = projects
            write_json_atomic(config_path, host)
            logger.info(f"Updated MCP servers for {self.paths.project_key}")

    def _install_settings(
        self, manifest: StackManifest, options: InstallOptions, report: InstallReport
    ) -> None:
        if not manifest.settings:
            return

        # Settings land in the project's settings.local.json unless the
        # caller restricted the run to global components.
        is_global = options.global_only
        scope = "global" if is_global else "local"
        settings_path = self.paths.settings_path(is_global)

        existing = read_json_or_empty(settings_path, f"{scope} settings")
        outcome = merge_settings(existing, manifest.settings, options.overwrite)
        report.settings_outcome = outcome

        for line in describe_merge(outcome):
            self.output.info(f"Settings ({scope}): {line}")

        if not outcome.touched_fields:
            return

        write_json_atomic(settings_path, outcome.result)
        report.count("Settings")

        permissions = PermissionRecord(**added_permissions(existing, outcome.result))
        report.components.settings.append(
            SettingsRecord(
                type=scope,
                fields=[
                    f
                    for f in outcome.fields_with(MergeAction.ADDED)
                    if f != "permissions"
                ],
                nested=added_subkeys(outcome, existing),
                permissions=None if permissions.is_empty else permissions,
            )
        )
