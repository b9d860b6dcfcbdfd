"""Foreign configuration files that receive a copy of the MCP servers."""

import json
import tomllib
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

import tomli_w

from agentstack.config.models import McpServer
from agentstack.errors import SyncTargetError
from agentstack.storage.atomic import dumps_json, write_atomic

from .converters import to_codex_servers, to_gemini_servers


class SyncTarget(ABC):
    """One foreign config file and its server-map format.

    ``load`` returns the whole document so that keys owned by the foreign
    tool survive the write; only the server map is replaced or merged.
    """

    name: str = ""
    label: str = ""
    servers_key: str = ""

    def __init__(self, path: Path) -> None:
        self.path = path

    @abstractmethod
    def _parse(self, text: str) -> dict[str, Any]:
        """Parse file content; raise ValueError on malformed content."""

    @abstractmethod
    def _dumps(self, document: dict[str, Any]) -> str:
        """Serialize a full document."""

    @abstractmethod
    def build(self, servers: list[McpServer]) -> tuple[dict[str, Any], list[str]]:
        """Convert servers to this format; returns (entries, skipped names)."""

    def load(self) -> dict[str, Any]:
        """Read the current document; absent or blank files are empty.

        Raises:
            SyncTargetError: If the file cannot be read or parsed.
        """
        if not self.path.exists():
            return {}
        try:
            text = self.path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise SyncTargetError(self.label, f"cannot read {self.path}: {e}") from e
        if not text.strip():
            return {}
        try:
            document = self._parse(text)
        except ValueError as e:
            raise SyncTargetError(self.label, f"cannot parse {self.path}: {e}") from e
        if not isinstance(document, dict):
            raise SyncTargetError(self.label, f"{self.path} is not an object")
        return document

    def existing_servers(self, document: dict[str, Any]) -> dict[str, Any]:
        servers = document.get(self.servers_key)
        return servers if isinstance(servers, dict) else {}

    def compose(
        self, document: dict[str, Any], entries: dict[str, Any], merge: bool
    ) -> dict[str, Any]:
        """New document with the server map replaced, or merged when
        ``merge`` is set (incoming entries win on name collisions)."""
        updated = dict(document)
        if merge:
            servers = dict(self.existing_servers(document))
            servers.update(entries)
        else:
            servers = dict(entries)
        updated[self.servers_key] = servers
        return updated

    def write(self, document: dict[str, Any]) -> None:
        write_atomic(self.path, document, self._dumps)


class CodexTarget(SyncTarget):
    """``~/.codex/config.toml``: one ``[mcp_servers.<name>]`` table per server."""

    name = "codex"
    label = "Codex"
    servers_key = "mcp_servers"

    def _parse(self, text: str) -> dict[str, Any]:
        return tomllib.loads(text)

    def _dumps(self, document: dict[str, Any]) -> str:
        return tomli_w.dumps(document)

    def build(self, servers: list[McpServer]) -> tuple[dict[str, Any], list[str]]:
        return to_codex_servers(servers)


class GeminiTarget(SyncTarget):
    """``~/.gemini/settings.json``: flat ``mcpServers`` map."""

    name = "gemini"
    label = "Gemini"
    servers_key = "mcpServers"

    def _parse(self, text: str) -> dict[str, Any]:
        return json.loads(text)

    def _dumps(self, document: dict[str, Any]) -> str:
        return dumps_json(document)

    def build(self, servers: list[McpServer]) -> tuple[dict[str, Any], list[str]]:
        return to_gemini_servers(servers), []
