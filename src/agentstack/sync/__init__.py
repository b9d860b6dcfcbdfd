"""Cross-tool MCP server synchronization."""

from .mcp_sync import McpSynchronizer, SyncOptions, SyncReport, TargetResult
from .targets import CodexTarget, GeminiTarget, SyncTarget

__all__ = [
    "CodexTarget",
    "GeminiTarget",
    "McpSynchronizer",
    "SyncOptions",
    "SyncReport",
    "SyncTarget",
    "TargetResult",
]
