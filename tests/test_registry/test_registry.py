"""Tests for the installed-stack registry."""

import json

from agentstack.registry.models import (
    ComponentRecord,
    HookRecord,
    RegistryComponents,
    RegistryEntry,
    SettingsRecord,
)
from agentstack.registry.registry import StackRegistry


def _entry(stack_id, name=None, **components):
    return RegistryEntry(
        stack_id=stack_id,
        name=name or stack_id,
        components=RegistryComponents(**components),
    )


class TestRegistryPersistence:
    def test_empty_when_missing(self, paths):
        registry = StackRegistry(paths).get()
        assert registry.stacks == {}
        assert registry.version == "1.0.0"

    def test_register_writes_camel_case_document(self, paths):
        registry = StackRegistry(paths)
        registry.register(
            _entry(
                "org/tools",
                "tools",
                commands=[ComponentRecord(name="lint", path="/x/lint.md", is_global=True)],
                mcp_servers=["github"],
            )
        )

        document = json.loads(paths.registry_path.read_text())
        entry = document["stacks"]["org/tools"]
        assert entry["stackId"] == "org/tools"
        assert entry["installedAt"]
        assert entry["components"]["commands"][0]["isGlobal"] is True
        assert entry["components"]["mcpServers"] == ["github"]
        assert document["lastUpdated"]

    def test_register_keeps_original_installed_at(self, paths):
        registry = StackRegistry(paths)
        first = registry.register(_entry("tools"))
        second = registry.register(_entry("tools", "renamed"))
        assert second.installed_at == first.installed_at
        assert registry.get_entry("tools").name == "renamed"

    def test_unregister(self, paths):
        registry = StackRegistry(paths)
        registry.register(_entry("tools"))
        assert registry.unregister("tools") is True
        assert registry.unregister("tools") is False
        assert not registry.is_installed("tools")

    def test_update_ignores_immutable_fields(self, paths):
        registry = StackRegistry(paths)
        original = registry.register(_entry("tools"))
        updated = registry.update(
            "tools",
            {"version": "2.0.0", "installedAt": "1999-01-01", "stack_id": "other"},
        )
        assert updated.version == "2.0.0"
        assert updated.installed_at == original.installed_at
        assert updated.stack_id == "tools"

    def test_update_unknown_stack(self, paths):
        assert StackRegistry(paths).update("nope", {"version": "1"}) is None

    def test_migrates_old_documents(self, paths):
        paths.registry_path.parent.mkdir(parents=True)
        paths.registry_path.write_text(
            json.dumps(
                {
                    "stacks": {
                        "org/legacy": {
                            "installedAt": "2024-01-01T00:00:00Z",
                            "source": "remote",
                            "components": {"commands": [], "mcpServers": ["db"]},
                        }
                    }
                }
            )
        )
        entry = StackRegistry(paths).get_entry("org/legacy")
        assert entry.name == "legacy"
        assert entry.components.agents == []
        assert entry.components.mcp_servers == ["db"]

    def test_corrupt_registry_starts_empty(self, paths):
        paths.registry_path.parent.mkdir(parents=True)
        paths.registry_path.write_text("{broken")
        assert StackRegistry(paths).list_entries() == []

    def test_invalid_entry_does_not_drop_siblings(self, paths):
        paths.registry_path.parent.mkdir(parents=True)
        paths.registry_path.write_text(
            json.dumps(
                {
                    "stacks": {
                        "good": {"name": "good", "source": "restore"},
                        "odd": {"name": "odd", "source": "marketplace"},
                    }
                }
            )
        )
        registry = StackRegistry(paths)
        assert [e.stack_id for e in registry.list_entries()] == ["good"]

        registry.register(_entry("new"))

        document = json.loads(paths.registry_path.read_text())
        assert list(document["stacks"]) == ["good", "new"]


class TestRegistryQueries:
    def test_find_by_mcp_server_in_insertion_order(self, paths):
        registry = StackRegistry(paths)
        registry.register(_entry("b", mcp_servers=["github"]))
        registry.register(_entry("a", mcp_servers=["github", "db"]))
        registry.register(_entry("c", mcp_servers=["db"]))

        found = registry.find_by_mcp_server("github")
        assert [e.stack_id for e in found] == ["b", "a"]

    def test_find_by_component(self, paths):
        registry = StackRegistry(paths)
        registry.register(
            _entry("a", agents=[ComponentRecord(name="reviewer", path="/a/reviewer.md")])
        )
        registry.register(
            _entry("b", commands=[ComponentRecord(name="reviewer", path="/b/reviewer.md")])
        )
        assert [e.stack_id for e in registry.find_by_component("reviewer", "agents")] == ["a"]
        assert registry.find_by_component("reviewer", "hooks") == []


class TestRegistryCleanup:
    def test_removes_entry_when_all_files_missing(self, paths, tmp_path):
        registry = StackRegistry(paths)
        registry.register(
            _entry(
                "gone",
                commands=[ComponentRecord(name="x", path=str(tmp_path / "x.md"))],
                hooks=[HookRecord(name="h", path=str(tmp_path / "h.sh"), type="Stop")],
            )
        )
        result = registry.cleanup()
        assert result.removed == ["gone"]
        assert not registry.is_installed("gone")

    def test_keeps_entry_when_one_file_exists(self, paths, tmp_path):
        present = tmp_path / "present.md"
        present.write_text("x")
        registry = StackRegistry(paths)
        registry.register(
            _entry(
                "partial",
                commands=[
                    ComponentRecord(name="gone", path=str(tmp_path / "gone.md")),
                    ComponentRecord(name="present", path=str(present)),
                ],
            )
        )
        assert registry.cleanup().removed == []
        assert registry.is_installed("partial")

    def test_keeps_entry_with_servers_or_settings(self, paths, tmp_path):
        missing = ComponentRecord(name="x", path=str(tmp_path / "missing.md"))
        registry = StackRegistry(paths)
        registry.register(_entry("servers", mcp_servers=["db"]))
        registry.register(
            _entry("settings", settings=[SettingsRecord(type="local", fields=["theme"])])
        )
        registry.register(_entry("mixed", commands=[missing], mcp_servers=["srv"]))
        registry.register(
            _entry(
                "mixed-settings",
                agents=[missing],
                settings=[SettingsRecord(type="local", fields=["editor"])],
            )
        )
        assert registry.cleanup().removed == []
        assert registry.is_installed("mixed")
        assert registry.is_installed("mixed-settings")

    def test_no_write_when_nothing_removed(self, paths):
        registry = StackRegistry(paths)
        registry.register(_entry("servers", mcp_servers=["db"]))
        before = paths.registry_path.read_text()
        registry.cleanup()
        assert paths.registry_path.read_text() == before
