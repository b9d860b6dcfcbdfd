"""Conversions from the canonical MCP server model to foreign formats."""

import logging
from typing import Any

from agentstack.config.models import McpServer

logger = logging.getLogger(__name__)


def project_servers(
    host: dict[str, Any], project_key: str, skipped: list[str] | None = None
) -> list[McpServer]:
    """MCP servers configured for one project in the host configuration.

    Entries that do not form a valid descriptor are logged and left out;
    their names are appended to ``skipped`` when it is given.
    """
    projects = host.get("projects")
    if not isinstance(projects, dict):
        return []
    project = projects.get(project_key)
    if not isinstance(project, dict):
        return []
    entries = project.get("mcpServers")
    if not isinstance(entries, dict):
        return []

    servers = []
    for name, entry in entries.items():
        try:
            if not isinstance(entry, dict):
                raise ValueError("not an object")
            servers.append(McpServer.from_host_entry(name, entry))
        except ValueError as e:
            logger.warning(f"Ignoring invalid MCP server '{name}': {e}")
            if skipped is not None:
                skipped.append(name)
    return servers


def to_codex_servers(
    servers: list[McpServer],
) -> tuple[dict[str, dict[str, Any]], list[str]]:
    """Codex ``mcp_servers`` tables. Codex only runs stdio servers.

    Returns:
        The converted servers keyed by name, and the names left out.
    """
    converted: dict[str, dict[str, Any]] = {}
    skipped: list[str] = []
    for server in servers:
        if server.type != "stdio" or not server.command:
            skipped.append(server.name)
            continue
        entry: dict[str, Any] = {"command": server.command}
        if server.args:
            entry["args"] = list(server.args)
        if server.env:
            entry["env"] = dict(server.env)
        converted[server.name] = entry
    return converted, skipped


def to_gemini_servers(servers: list[McpServer]) -> dict[str, dict[str, Any]]:
    """Gemini ``mcpServers`` map; every transport type is kept."""
    converted: dict[str, dict[str, Any]] = {}
    for server in servers:
        entry: dict[str, Any] = {}
        if server.command is not None:
            entry["command"] = server.command
        if server.args is not None:
            entry["args"] = list(server.args)
        if server.env is not None:
            entry["env"] = dict(server.env)
        if server.url is not None:
            entry["url"] = server.url
        entry["type"] = server.type
        converted[server.name] = entry
    return converted
