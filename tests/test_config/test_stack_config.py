"""Tests for paths, user configuration and manifest models."""

import json
from pathlib import Path

import pytest
from pydantic import ValidationError

from agentstack.config.loader import ConfigError, load_manifest, load_paths, load_yaml
from agentstack.config.models import McpServer, StackManifest
from agentstack.config.paths import StackPaths


class TestStackPaths:
    def test_derived_locations(self, tmp_path):
        paths = StackPaths(home=tmp_path / "home", project_dir=tmp_path / "proj")
        assert paths.claude_dir == tmp_path / "home" / ".claude"
        assert paths.stacks_dir == tmp_path / "home" / ".claude" / "stacks"
        assert paths.host_config_path == tmp_path / "home" / ".claude.json"
        assert paths.codex_config_path == tmp_path / "home" / ".codex" / "config.toml"
        assert paths.registry_path == tmp_path / "proj" / ".claude" / "stacks-registry.json"
        assert paths.project_key == str(tmp_path / "proj")

    def test_scoped_locations(self, paths):
        assert paths.commands_dir(True) == paths.claude_dir / "commands"
        assert paths.agents_dir(False) == paths.project_dir / ".claude" / "agents"
        assert paths.settings_path(True).name == "settings.json"
        assert paths.settings_path(False).name == "settings.local.json"
        assert paths.instructions_path(False) == paths.project_dir / "CLAUDE.md"

    def test_explicit_override_kept(self, tmp_path):
        paths = StackPaths(
            home=tmp_path, project_dir=tmp_path, stacks_dir=tmp_path / "mine"
        )
        assert paths.stacks_dir == tmp_path / "mine"


class TestLoadPaths:
    def test_yaml_overrides(self, tmp_path):
        config = tmp_path / "config.yaml"
        config.write_text(f"home: {tmp_path / 'h'}\nstacks_dir: {tmp_path / 's'}\n")
        paths = load_paths(config, project_dir=tmp_path / "p")
        assert paths.home == tmp_path / "h"
        assert paths.stacks_dir == tmp_path / "s"
        assert paths.claude_dir == tmp_path / "h" / ".claude"
        assert paths.project_dir == tmp_path / "p"

    def test_explicit_missing_config(self, tmp_path):
        with pytest.raises(ConfigError, match="not found"):
            load_paths(tmp_path / "missing.yaml")

    def test_invalid_yaml(self, tmp_path):
        config = tmp_path / "config.yaml"
        config.write_text("home: [broken")
        with pytest.raises(ConfigError, match="Invalid YAML"):
            load_yaml(config)

    def test_non_mapping(self, tmp_path):
        config = tmp_path / "config.yaml"
        config.write_text("- a\n- b\n")
        with pytest.raises(ConfigError, match="mapping"):
            load_paths(config)


class TestManifestModels:
    def test_scope_and_clean_name(self):
        manifest = StackManifest.model_validate(
            {
                "name": "s",
                "commands": [
                    {"name": "lint (local)", "filePath": "./.claude/commands/lint.md"},
                    {"name": "fmt (global)", "filePath": "~/.claude/commands/fmt.md"},
                ],
            }
        )
        local, global_ = manifest.commands
        assert local.is_local and local.clean_name == "lint"
        assert not global_.is_local and global_.clean_name == "fmt"

    def test_null_collections_become_empty(self):
        manifest = StackManifest.model_validate(
            {"name": "s", "commands": None, "settings": None, "unknown": 1}
        )
        assert manifest.commands == []
        assert manifest.settings == {}

    def test_server_defaults_to_stdio(self):
        server = McpServer.from_host_entry("fs", {"command": "npx", "args": ["-y"]})
        assert server.type == "stdio"
        assert server.to_host_entry() == {"type": "stdio", "command": "npx", "args": ["-y"]}

    def test_server_transport_groups_exclusive(self):
        with pytest.raises(ValidationError):
            McpServer(name="x", type="http", url="http://x", command="npx")
        with pytest.raises(ValidationError):
            McpServer(name="x", type="stdio")
        with pytest.raises(ValidationError):
            McpServer(name="x", type="sse")


class TestLoadManifest:
    def test_valid(self, tmp_path):
        path = tmp_path / "stack.json"
        path.write_text(json.dumps({"name": "s", "mcpServers": [{"name": "a", "command": "c"}]}))
        manifest = load_manifest(path)
        assert manifest.mcp_servers[0].name == "a"

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "stack.json"
        path.write_text("{")
        with pytest.raises(ConfigError, match="Invalid JSON"):
            load_manifest(path)

    def test_invalid_manifest(self, tmp_path):
        path = tmp_path / "stack.json"
        path.write_text(json.dumps({"description": "no name"}))
        with pytest.raises(ConfigError, match="Invalid stack manifest"):
            load_manifest(path)

    def test_missing_file_raises_os_error(self):
        with pytest.raises(OSError):
            load_manifest(Path("/nonexistent/stack.json"))
