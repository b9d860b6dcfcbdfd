"""Checks that the commands a stack's MCP servers launch are installed."""

import logging
import shutil
from dataclasses import dataclass, field

from agentstack.config.models import McpServer
from agentstack.ui.output import Output

logger = logging.getLogger(__name__)


@dataclass
class MissingDependency:
    command: str
    required_by: list[str] = field(default_factory=list)


def find_missing_commands(servers: list[McpServer]) -> list[MissingDependency]:
    """Commands of stdio servers that cannot be found on PATH.

    Each command is looked up once; servers sharing it are grouped under
    ``required_by`` in manifest order.
    """
    required: dict[str, list[str]] = {}
    for server in servers:
        if server.type == "stdio" and server.command:
            required.setdefault(server.command, []).append(server.name)

    missing = []
    for command, names in required.items():
        if shutil.which(command) is None:
            logger.debug(f"Command '{command}' not found on PATH")
            missing.append(MissingDependency(command=command, required_by=names))
    return missing


def report_missing(missing: list[MissingDependency], output: Output) -> None:
    if not missing:
        return
    output.warning("Missing dependencies detected")
    output.info("The following MCP servers may not work due to missing dependencies:")
    for dependency in missing:
        output.meta(
            f"   • {dependency.command} (required by: {', '.join(dependency.required_by)})"
        )
    output.meta(
        "Missing MCP server dependencies will prevent those servers from starting."
    )
