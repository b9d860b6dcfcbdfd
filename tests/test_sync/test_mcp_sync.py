"""Tests for the cross-tool MCP synchronizer."""

import json
import tomllib
from unittest.mock import patch

import pytest

from agentstack.errors import FileSystemError, MutuallyExclusiveOptionsError
from agentstack.storage.atomic import write_atomic
from agentstack.sync.mcp_sync import DRY_RUN, SKIPPED, WRITTEN, McpSynchronizer, SyncOptions


def _host(paths, servers):
    paths.host_config_path.write_text(
        json.dumps({"projects": {paths.project_key: {"mcpServers": servers}}})
    )


MIXED = {
    "fs": {"type": "stdio", "command": "npx", "args": ["fs"]},
    "web": {"type": "http", "url": "https://example.com/mcp"},
    "events": {"type": "sse", "url": "https://example.com/sse"},
}


def _never_prompt(message):
    raise AssertionError(f"unexpected prompt: {message}")


class TestSyncDefaults:
    def test_mixed_servers_without_existing_targets(self, paths, output):
        _host(paths, MIXED)
        report = McpSynchronizer(paths, output, prompt=_never_prompt).run()

        assert report.ok
        codex = tomllib.loads(paths.codex_config_path.read_text())
        assert list(codex["mcp_servers"]) == ["fs"]
        assert codex["mcp_servers"]["fs"] == {"command": "npx", "args": ["fs"]}
        gemini = json.loads(paths.gemini_settings_path.read_text())
        assert set(gemini["mcpServers"]) == {"fs", "web", "events"}
        assert "  Skipped 2 non-stdio servers (Codex only supports stdio)" in output.messages(
            "warning"
        )

    def test_no_servers_is_not_an_error(self, paths, output):
        _host(paths, {})
        report = McpSynchronizer(paths, output, prompt=_never_prompt).run()
        assert report.ok
        assert report.results == []
        assert "No MCP servers found in current project" in output.messages("warning")
        assert not paths.codex_config_path.exists()

    def test_missing_host_config(self, paths, output):
        report = McpSynchronizer(paths, output, prompt=_never_prompt).run()
        assert report.ok
        assert "No MCP servers found in current project" in output.messages("warning")

    def test_codex_env_written_as_table(self, paths, output):
        _host(paths, {"fs": {"command": "npx", "env": {"TOKEN": "t"}}})
        McpSynchronizer(paths, output, prompt=_never_prompt).run()
        text = paths.codex_config_path.read_text()
        assert "[mcp_servers.fs]" in text
        assert tomllib.loads(text)["mcp_servers"]["fs"]["env"] == {"TOKEN": "t"}


class TestSyncOptions:
    def test_exclusive_targets_touch_nothing(self, paths, output):
        _host(paths, MIXED)
        with patch("agentstack.sync.mcp_sync.read_json_or_empty") as mock_read:
            with pytest.raises(MutuallyExclusiveOptionsError) as exc_info:
                McpSynchronizer(paths, output).run(
                    SyncOptions(codex_only=True, gemini_only=True)
                )
        mock_read.assert_not_called()
        assert exc_info.value.exit_code == 1
        assert output.lines == []
        assert not paths.codex_config_path.exists()
        assert not paths.gemini_settings_path.exists()

    def test_codex_only(self, paths, output):
        _host(paths, MIXED)
        report = McpSynchronizer(paths, output).run(SyncOptions(codex_only=True))
        assert [r.target for r in report.results] == ["codex"]
        assert not paths.gemini_settings_path.exists()

    def test_dry_run_writes_nothing(self, paths, output):
        _host(paths, MIXED)
        paths.gemini_settings_path.parent.mkdir(parents=True)
        paths.gemini_settings_path.write_text(json.dumps({"mcpServers": {"old": {}}}))

        report = McpSynchronizer(paths, output, prompt=_never_prompt).run(
            SyncOptions(dry_run=True)
        )

        assert [r.summary.status for r in report.results] == [DRY_RUN, DRY_RUN]
        assert not paths.codex_config_path.exists()
        assert json.loads(paths.gemini_settings_path.read_text()) == {"mcpServers": {"old": {}}}
        assert "  (dry run - no changes made)" in output.messages("info")


class TestExistingTargets:
    def _existing_gemini(self, paths):
        paths.gemini_settings_path.parent.mkdir(parents=True)
        paths.gemini_settings_path.write_text(
            json.dumps({"theme": "Dracula", "mcpServers": {"old": {"command": "o"}}})
        )

    def test_declined_prompt_skips_only_that_target(self, paths, output):
        _host(paths, MIXED)
        self._existing_gemini(paths)
        prompts = []

        def decline(message):
            prompts.append(message)
            return "n"

        report = McpSynchronizer(paths, output, prompt=decline).run()

        statuses = {r.target: r.summary.status for r in report.results}
        assert statuses == {"codex": WRITTEN, "gemini": SKIPPED}
        assert len(prompts) == 1
        assert report.ok
        gemini = json.loads(paths.gemini_settings_path.read_text())
        assert gemini["mcpServers"] == {"old": {"command": "o"}}
        assert paths.codex_config_path.exists()

    def test_confirmed_prompt_replaces_servers_keeps_other_keys(self, paths, output):
        _host(paths, MIXED)
        self._existing_gemini(paths)
        McpSynchronizer(paths, output, prompt=lambda message: "y").run()

        gemini = json.loads(paths.gemini_settings_path.read_text())
        assert set(gemini["mcpServers"]) == {"fs", "web", "events"}
        assert gemini["theme"] == "Dracula"

    def test_append_merges_without_prompt(self, paths, output):
        _host(paths, {"old": {"command": "new-old"}, "fs": {"command": "npx"}})
        self._existing_gemini(paths)

        McpSynchronizer(paths, output, prompt=_never_prompt).run(
            SyncOptions(append=True, gemini_only=True)
        )

        servers = json.loads(paths.gemini_settings_path.read_text())["mcpServers"]
        assert set(servers) == {"old", "fs"}
        assert servers["old"]["command"] == "new-old"

    def test_corrupt_target_fails_in_isolation(self, paths, output):
        _host(paths, MIXED)
        paths.codex_config_path.parent.mkdir(parents=True)
        paths.codex_config_path.write_text("this is [not toml")

        report = McpSynchronizer(paths, output, prompt=_never_prompt).run()

        assert not report.ok
        assert [r.target for r in report.failed] == ["codex"]
        assert paths.codex_config_path.read_text() == "this is [not toml"
        assert paths.gemini_settings_path.exists()
        assert "Sync failed for: codex" in output.messages("error")

    def test_force_merges_without_prompt(self, paths, output):
        _host(paths, MIXED)
        self._existing_gemini(paths)

        report = McpSynchronizer(paths, output, prompt=_never_prompt).run(
            SyncOptions(force=True, gemini_only=True)
        )

        assert [r.summary.status for r in report.results] == [WRITTEN]
        gemini = json.loads(paths.gemini_settings_path.read_text())
        assert set(gemini["mcpServers"]) == {"old", "fs", "web", "events"}
        assert gemini["theme"] == "Dracula"
        assert "  After sync: 4 (append mode)" in output.messages("meta")

    def test_dry_run_append_on_existing_target(self, paths, output):
        _host(paths, MIXED)
        self._existing_gemini(paths)
        before = paths.gemini_settings_path.read_text()

        report = McpSynchronizer(paths, output, prompt=_never_prompt).run(
            SyncOptions(dry_run=True, append=True, gemini_only=True)
        )

        assert report.results[0].summary.status == DRY_RUN
        assert report.results[0].summary.after == 4
        assert paths.gemini_settings_path.read_text() == before
        assert not any("Would ask" in m for m in output.messages("meta"))

    def test_write_failure_fails_in_isolation(self, paths, output):
        _host(paths, MIXED)

        def failing_codex(path, value, dumps):
            if path == paths.codex_config_path:
                raise FileSystemError("write", path, OSError("disk full"))
            write_atomic(path, value, dumps)

        with patch("agentstack.sync.targets.write_atomic", side_effect=failing_codex):
            report = McpSynchronizer(paths, output, prompt=_never_prompt).run()

        assert not report.ok
        assert [r.target for r in report.failed] == ["codex"]
        assert "disk full" in str(report.failed[0].error)
        assert not paths.codex_config_path.exists()
        assert set(json.loads(paths.gemini_settings_path.read_text())["mcpServers"]) == {
            "fs",
            "web",
            "events",
        }


class TestHostEntries:
    def test_numeric_env_values_are_synced(self, paths, output):
        _host(
            paths,
            {
                "api": {"command": "node", "args": ["server.js", 8080], "env": {"PORT": 3000}},
                "web": {"type": "http", "url": "https://example.com/mcp"},
            },
        )
        McpSynchronizer(paths, output, prompt=_never_prompt).run()

        gemini = json.loads(paths.gemini_settings_path.read_text())["mcpServers"]
        assert gemini["api"]["env"] == {"PORT": "3000"}
        assert gemini["api"]["args"] == ["server.js", "8080"]
        codex = tomllib.loads(paths.codex_config_path.read_text())["mcp_servers"]
        assert codex["api"]["env"] == {"PORT": "3000"}

    def test_invalid_entries_reported(self, paths, output):
        _host(paths, {"fs": {"command": "npx"}, "broken": {"type": "http"}, "junk": "x"})
        report = McpSynchronizer(paths, output, prompt=_never_prompt).run()

        assert [s.name for s in report.servers] == ["fs"]
        warnings = output.messages("warning")
        assert "Skipped invalid MCP server: broken" in warnings
        assert "Skipped invalid MCP server: junk" in warnings
