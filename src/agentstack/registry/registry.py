"""Per-project ledger of installed stacks.

The registry lives at ``<project>/.claude/stacks-registry.json`` and records
which stack installed which files, so stacks can later be listed,
uninstalled and cleaned up.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from pydantic import ValidationError

from agentstack.config.paths import StackPaths
from agentstack.storage.atomic import read_json_or_empty, write_json_atomic

from .models import (
    REGISTRY_VERSION,
    ComponentCategory,
    Registry,
    RegistryEntry,
)

logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class CleanupResult:
    removed: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


class StackRegistry:
    """CRUD operations on the installed-stack registry."""

    def __init__(self, paths: StackPaths) -> None:
        self.paths = paths
        self.registry_path = paths.registry_path

    def get(self) -> Registry:
        """Load the registry, creating an empty one if absent or damaged."""
        data = read_json_or_empty(self.registry_path, "stack registry")
        if not data:
            return Registry(last_updated=_now())

        data = self._migrate(data)
        entries = data.pop("stacks")
        try:
            registry = Registry.model_validate(data)
        except ValidationError as e:
            logger.warning(f"Stack registry corrupted, starting a new one: {e}")
            registry = Registry(last_updated=_now())

        # A bad entry is dropped on its own so its siblings survive.
        for stack_id, entry in entries.items():
            try:
                registry.stacks[stack_id] = RegistryEntry.model_validate(entry)
            except ValidationError as e:
                logger.warning(f"Ignoring invalid registry entry '{stack_id}': {e}")
        return registry

    def save(self, registry: Registry) -> None:
        """Persist the registry atomically with a refreshed timestamp."""
        registry.last_updated = _now()
        write_json_atomic(self.registry_path, registry.to_document())
        logger.info(f"Saved stack registry ({len(registry.stacks)} stacks)")

    def register(self, entry: RegistryEntry) -> RegistryEntry:
        """Add or replace an entry. An existing ``installed_at`` is kept."""
        registry = self.get()
        previous = registry.stacks.get(entry.stack_id)
        if previous is not None and previous.installed_at:
            installed_at = previous.installed_at
        else:
            installed_at = entry.installed_at or _now()

        stored = entry.model_copy(update={"installed_at": installed_at})
        registry.stacks[entry.stack_id] = stored
        self.save(registry)
        logger.info(f"Registered stack '{entry.stack_id}'")
        return stored

    def unregister(self, stack_id: str) -> bool:
        """Remove an entry.

        Returns:
            True if the stack was registered.
        """
        registry = self.get()
        if stack_id not in registry.stacks:
            return False
        del registry.stacks[stack_id]
        self.save(registry)
        logger.info(f"Unregistered stack '{stack_id}'")
        return True

    def update(self, stack_id: str, patch: dict[str, Any]) -> RegistryEntry | None:
        """Apply a partial update to an existing entry.

        ``installed_at`` and ``stack_id`` are immutable and ignored in
        ``patch``. Returns the updated entry, or None if not installed.
        """
        registry = self.get()
        current = registry.stacks.get(stack_id)
        if current is None:
            return None

        document = current.model_dump()
        for key, value in patch.items():
            if key in ("installed_at", "installedAt", "stack_id", "stackId"):
                logger.debug(f"Ignoring immutable registry field '{key}'")
                continue
            document[key] = value.model_dump() if hasattr(value, "model_dump") else value

        updated = RegistryEntry.model_validate(document)
        registry.stacks[stack_id] = updated
        self.save(registry)
        return updated

    def get_entry(self, stack_id: str) -> RegistryEntry | None:
        return self.get().stacks.get(stack_id)

    def list_entries(self) -> list[RegistryEntry]:
        return list(self.get().stacks.values())

    def is_installed(self, stack_id: str) -> bool:
        return stack_id in self.get().stacks

    def find_by_mcp_server(self, server_name: str) -> list[RegistryEntry]:
        """Entries that installed the named MCP server, in registry order."""
        return [
            entry
            for entry in self.get().stacks.values()
            if server_name in entry.components.mcp_servers
        ]

    def find_by_component(
        self, name: str, category: ComponentCategory
    ) -> list[RegistryEntry]:
        """Entries providing a command, agent or hook with this name."""
        return [
            entry
            for entry in self.get().stacks.values()
            if any(c.name == name for c in getattr(entry.components, category))
        ]

    def cleanup(self) -> CleanupResult:
        """Drop entries whose referenced files are all gone from disk.

        An entry is kept while any referenced file exists, and always when it
        owns MCP servers or settings, which only uninstall can remove. The
        registry is only rewritten when something was removed.
        """
        registry = self.get()
        result = CleanupResult()

        for stack_id, entry in list(registry.stacks.items()):
            if entry.components.mcp_servers or entry.components.settings:
                continue
            files = entry.components.file_paths()
            try:
                any_present = any(path.exists() for path in files)
            except OSError as e:
                result.errors.append(f"Failed to check {stack_id}: {e}")
                continue
            if not any_present:
                del registry.stacks[stack_id]
                result.removed.append(stack_id)

        if result.removed:
            self.save(registry)
            logger.info(f"Registry cleanup removed {len(result.removed)} stacks")
        return result

    @staticmethod
    def _migrate(data: dict[str, Any]) -> dict[str, Any]:
        """Bring older registry documents up to the current shape."""
        data.setdefault("version", REGISTRY_VERSION)
        stacks = data.get("stacks")
        if not isinstance(stacks, dict):
            stacks = {}
        data["stacks"] = stacks
        for stack_id, entry in stacks.items():
            if not isinstance(entry, dict):
                continue
            entry.setdefault("stackId", stack_id)
            entry.setdefault("name", stack_id.rsplit("/", 1)[-1])
            components = entry.get("components")
            if not isinstance(components, dict):
                components = {}
            for key in ("commands", "agents", "hooks", "mcpServers", "settings", "claudeMd"):
                if components.get(key) is None:
                    components[key] = []
            entry["components"] = components
        return data
