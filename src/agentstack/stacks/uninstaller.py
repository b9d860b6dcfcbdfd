"""Uninstall a registered stack from the current project.

Removal is best effort: a component that cannot be removed is reported as a
warning and the remaining components are still processed. The registry
entry is dropped once every component has been attempted.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path

from agentstack.config.paths import StackPaths
from agentstack.errors import MutuallyExclusiveOptionsError, StackError
from agentstack.registry.models import (
    ComponentRecord,
    PermissionRecord,
    RegistryEntry,
    SettingsRecord,
)
from agentstack.registry.registry import StackRegistry
from agentstack.settings.merge import PERMISSION_LISTS, PERMISSIONS_KEY
from agentstack.storage.atomic import read_json_or_empty, write_json_atomic
from agentstack.ui.output import Output
from agentstack.ui.prompt import Prompt, confirmed, read_single_char

logger = logging.getLogger(__name__)

# Directory names that are never pruned, even when empty.
PROTECTED_DIRS = {".claude", "commands", "agents"}


@dataclass
class UninstallOptions:
    global_only: bool = False
    local_only: bool = False
    dry_run: bool = False
    force: bool = False
    commands_only: bool = False
    agents_only: bool = False
    mcp_only: bool = False
    settings_only: bool = False

    def validate(self) -> None:
        if self.global_only and self.local_only:
            raise MutuallyExclusiveOptionsError("--global", "--local")

    def allows(self, is_global: bool) -> bool:
        if is_global:
            return not self.local_only
        return not self.global_only

    @property
    def categories(self) -> set[str]:
        """Categories picked with the --*-only flags; empty means all."""
        flags = {
            "commands": self.commands_only,
            "agents": self.agents_only,
            "mcp_servers": self.mcp_only,
            "settings": self.settings_only,
        }
        return {category for category, selected in flags.items() if selected}

    def includes(self, category: str) -> bool:
        return not self.categories or category in self.categories


@dataclass
class UninstallResult:
    success: bool
    stack_id: str
    removed: int = 0
    warnings: list[str] = field(default_factory=list)
    cancelled: bool = False


class StackUninstaller:
    """Removes the components recorded for one stack."""

    def __init__(
        self,
        paths: StackPaths,
        output: Output | None = None,
        registry: StackRegistry | None = None,
        prompt: Prompt = read_single_char,
    ) -> None:
        self.paths = paths
        self.output = output or Output()
        self.registry = registry or StackRegistry(paths)
        self.prompt = prompt

    def uninstall(
        self, stack_id: str, options: UninstallOptions | None = None
    ) -> UninstallResult:
        options = options or UninstallOptions()
        options.validate()

        entry = self.registry.get_entry(stack_id)
        if entry is None:
            self.output.error(f'Stack "{stack_id}" is not installed in this project.')
            self.output.info('Use "agentstack list" to see installed stacks.')
            return UninstallResult(success=False, stack_id=stack_id)

        self.output.info(f"Preparing to uninstall stack: {entry.name}")
        self.output.meta(f"   Source: {entry.source}")
        self.output.meta(f"   Installed: {entry.installed_at or 'unknown'}")
        self._preview(entry, options)
        self._warn_dependencies(entry)

        if options.dry_run:
            self.output.info("\n[DRY RUN] No changes were made.")
            return UninstallResult(success=True, stack_id=stack_id)

        if not options.force:
            answer = self.prompt("\nProceed with uninstallation? (y/N): ")
            if not confirmed(answer):
                self.output.info("Uninstallation cancelled.")
                return UninstallResult(success=True, stack_id=stack_id, cancelled=True)

        result = UninstallResult(success=True, stack_id=stack_id)
        components = entry.components
        if options.includes("commands"):
            self._remove_files(components.commands, "command", options, result)
        if options.includes("agents"):
            self._remove_files(components.agents, "agent", options, result)
        if options.includes("hooks"):
            self._remove_hooks(entry, options, result)
        if options.includes("mcp_servers"):
            self._remove_mcp_servers(components.mcp_servers, options, result)
        if options.includes("settings"):
            for record in components.settings:
                if options.allows(record.type == "global"):
                    self._remove_settings(record, result)
        if options.includes("claude_md"):
            self._remove_instructions(entry, options, result)

        self.output.info(f"\nRemoved {result.removed} component(s)")
        self._update_registry(entry, options)
        self.output.success(f'\nStack "{entry.name}" uninstalled successfully!')
        logger.info(
            f"Uninstalled '{stack_id}': {result.removed} removed, "
            f"{len(result.warnings)} warnings"
        )
        return result

    def _preview(self, entry: RegistryEntry, options: UninstallOptions) -> None:
        components = entry.components
        self.output.info("\nComponents to be removed:")
        for category, title, records in (
            ("commands", "Commands", components.commands),
            ("agents", "Agents", components.agents),
        ):
            if not options.includes(category):
                continue
            selected = [r for r in records if options.allows(r.is_global)]
            if selected:
                self.output.info(f"  {title}:")
                for record in selected:
                    scope = "global" if record.is_global else "local"
                    self.output.meta(f"     • {record.name} ({scope}){_status(record.path)}")
        if (
            components.hooks
            and options.includes("hooks")
            and options.allows(is_global=False)
        ):
            self.output.info("  Hooks:")
            for hook in components.hooks:
                self.output.meta(f"     • {hook.name} ({hook.type}){_status(hook.path)}")
        if (
            components.mcp_servers
            and options.includes("mcp_servers")
            and options.allows(is_global=False)
        ):
            self.output.info("  MCP servers:")
            for name in components.mcp_servers:
                self.output.meta(f"     • {name}")
        settings = [
            s
            for s in components.settings
            if options.includes("settings") and options.allows(s.type == "global")
        ]
        if settings:
            self.output.info("  Settings:")
            for record in settings:
                self.output.meta(
                    f"     • {record.type} settings: {', '.join(_setting_names(record))}"
                )
        instructions = [
            m
            for m in components.claude_md
            if options.includes("claude_md") and options.allows(m.type == "global")
        ]
        if instructions:
            self.output.info("  Instruction files:")
            for record in instructions:
                self.output.meta(f"     • {record.type} CLAUDE.md{_status(record.path)}")

    def _warn_dependencies(self, entry: RegistryEntry) -> None:
        warnings = []
        for server in entry.components.mcp_servers:
            others = _others(self.registry.find_by_mcp_server(server), entry)
            if others:
                warnings.append(f'MCP server "{server}" is used by: {others}')
        for category, label in (("commands", "Command"), ("agents", "Agent")):
            for record in getattr(entry.components, category):
                others = _others(
                    self.registry.find_by_component(record.name, category), entry
                )
                if others:
                    warnings.append(f'{label} "{record.name}" is also provided by: {others}')
        if warnings:
            self.output.warning("\nDependency warnings:")
            for warning in warnings:
                self.output.meta(f"   • {warning}")

    def _update_registry(self, entry: RegistryEntry, options: UninstallOptions) -> None:
        """Drop the entry, or only the categories a --*-only run handled."""
        if not options.categories:
            self.registry.unregister(entry.stack_id)
            return
        remaining = entry.components.model_copy(
            update={category: [] for category in options.categories}
        )
        if remaining.count == 0:
            self.registry.unregister(entry.stack_id)
        else:
            self.registry.update(entry.stack_id, {"components": remaining})

    def _warn(self, result: UninstallResult, message: str) -> None:
        self.output.warning(message)
        result.warnings.append(message)

    def _remove_files(
        self,
        records: list[ComponentRecord],
        kind: str,
        options: UninstallOptions,
        result: UninstallResult,
    ) -> None:
        for record in records:
            if not options.allows(record.is_global):
                continue
            path = Path(record.path)
            try:
                if not path.exists():
                    self._warn(result, f"{kind.capitalize()} file not found: {record.name}")
                    continue
                path.unlink()
            except OSError as e:
                self._warn(result, f'Failed to remove {kind} "{record.name}": {e}')
                continue
            self.output.success(f"✓ Removed {kind}: {record.name}")
            result.removed += 1
            self._prune_empty_dirs(path.parent)

    def _remove_hooks(
        self, entry: RegistryEntry, options: UninstallOptions, result: UninstallResult
    ) -> None:
        # Hooks are always installed into the project.
        if not entry.components.hooks or not options.allows(is_global=False):
            return
        for hook in entry.components.hooks:
            path = Path(hook.path)
            try:
                if not path.exists():
                    self._warn(result, f"Hook not found: {hook.name}")
                    continue
                path.unlink()
            except OSError as e:
                self._warn(result, f"Failed to remove hook {hook.name}: {e}")
                continue
            self.output.success(f"✓ Removed hook: {hook.name} ({hook.type})")
            result.removed += 1

    def _remove_mcp_servers(
        self, names: list[str], options: UninstallOptions, result: UninstallResult
    ) -> None:
        if not names or not options.allows(is_global=False):
            return

        config_path = self.paths.host_config_path
        if not config_path.exists():
            self._warn(result, f"No host configuration found at {config_path}")
            return

        host = read_json_or_empty(config_path, "host configuration")
        projects = host.get("projects")
        if not isinstance(projects, dict):
            projects = {}
        project = projects.get(self.paths.project_key)
        servers = project.get("mcpServers") if isinstance(project, dict) else None
        if not isinstance(servers, dict):
            servers = {}

        removed = 0
        for name in names:
            if name in servers:
                del servers[name]
                self.output.success(f"✓ Removed MCP server: {name}")
                removed += 1
            else:
                self._warn(result, f"MCP server not found in config: {name}")

        if not removed:
            return
        try:
            write_json_atomic(config_path, host)
        except StackError as e:
            self._warn(result, f"Failed to remove MCP servers: {e}")
            return
        result.removed += removed

    def _remove_settings(self, record: SettingsRecord, result: UninstallResult) -> None:
        settings_path = self.paths.settings_path(record.type == "global")
        if not settings_path.exists():
            return

        settings = read_json_or_empty(settings_path, f"{record.type} settings")
        removed = 0
        for name in record.fields:
            if name in settings:
                del settings[name]
                removed += 1
        for name, sub_keys in record.nested.items():
            removed += _remove_subkeys(settings.get(name), sub_keys)
        if record.permissions is not None:
            removed += _remove_permissions(settings, record.permissions)

        if not removed:
            return
        try:
            write_json_atomic(settings_path, settings)
        except StackError as e:
            self._warn(result, f"Failed to remove {record.type} settings: {e}")
            return
        self.output.success(f"✓ Removed {removed} {record.type} setting(s)")
        result.removed += 1

    def _remove_instructions(
        self, entry: RegistryEntry, options: UninstallOptions, result: UninstallResult
    ) -> None:
        for record in entry.components.claude_md:
            if not options.allows(record.type == "global"):
                continue
            path = Path(record.path)
            try:
                if not path.exists():
                    self._warn(result, f"CLAUDE.md file not found: {path}")
                    continue
                path.unlink()
            except OSError as e:
                self._warn(result, f"Failed to remove {record.type} CLAUDE.md: {e}")
                continue
            self.output.success(f"✓ Removed {record.type} CLAUDE.md")
            result.removed += 1

    def _prune_empty_dirs(self, directory: Path) -> None:
        roots = {self.paths.home, self.paths.project_dir}
        while directory.name not in PROTECTED_DIRS and directory not in roots:
            try:
                if any(directory.iterdir()):
                    return
                directory.rmdir()
            except OSError as e:
                logger.debug(f"Not pruning {directory}: {e}")
                return
            self.output.meta(f"   Removed empty directory: {directory.name}")
            directory = directory.parent


def _status(path: str) -> str:
    try:
        return "" if Path(path).exists() else " (missing)"
    except OSError:
        return " (error checking)"


def _others(entries: list[RegistryEntry], entry: RegistryEntry) -> str:
    return ", ".join(e.name for e in entries if e.stack_id != entry.stack_id)


def _setting_names(record: SettingsRecord) -> list[str]:
    names = list(record.fields)
    for name, sub_keys in record.nested.items():
        names.extend(f"{name}.{sub_key}" for sub_key in sub_keys)
    if record.permissions is not None and not record.permissions.is_empty:
        names.append(PERMISSIONS_KEY)
    return names


def _remove_subkeys(value, sub_keys: list[str]) -> int:
    # The object itself predates the stack, so it stays even when emptied.
    if not isinstance(value, dict):
        return 0
    present = [key for key in sub_keys if key in value]
    for key in present:
        del value[key]
    return len(present)


def _remove_permissions(settings: dict, recorded: PermissionRecord) -> int:
    """Drop recorded permission entries; returns how many were removed."""
    permissions = settings.get(PERMISSIONS_KEY)
    if not isinstance(permissions, dict):
        return 0
    removed = 0
    for name in PERMISSION_LISTS:
        drop = getattr(recorded, name)
        current = permissions.get(name)
        if not drop or not isinstance(current, list):
            continue
        kept = [item for item in current if item not in drop]
        removed += len(current) - len(kept)
        permissions[name] = kept
    return removed
