"""Pydantic models for stack manifests."""

import json
import re
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

LOCAL_PATH_PREFIX = "./.claude"
_SCOPE_SUFFIX = re.compile(r"\s*\((local|global)\)\s*$")

TransportType = Literal["stdio", "http", "sse"]


class _ManifestModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class StackComponent(_ManifestModel):
    """A named, file-backed unit of a stack."""

    name: str
    file_path: str = Field(default="", alias="filePath")
    content: str = ""
    description: str | None = None

    @property
    def is_local(self) -> bool:
        """Local components were exported from the project's .claude dir."""
        return self.file_path.startswith(LOCAL_PATH_PREFIX)

    @property
    def clean_name(self) -> str:
        """Name without a trailing "(local)" / "(global)" disambiguator."""
        return _SCOPE_SUFFIX.sub("", self.name).strip()


class Command(StackComponent):
    """Slash command markdown file."""


class Agent(StackComponent):
    """Specialized agent definition file."""


class Hook(StackComponent):
    """Lifecycle hook script."""

    event: str = Field(default="", alias="type")
    matcher: str | None = None
    risk_level: str | None = Field(default=None, alias="riskLevel")


def _as_string(value: Any) -> Any:
    if isinstance(value, (bool, int, float)):
        return json.dumps(value)
    return value


class McpServer(_ManifestModel):
    """MCP tool-server descriptor.

    ``stdio`` servers carry ``command``/``args``/``env``; ``http`` and
    ``sse`` servers carry ``url``. Exactly one group is populated.
    """

    name: str
    type: TransportType = "stdio"
    command: str | None = None
    args: list[str] | None = None
    env: dict[str, str] | None = None
    url: str | None = None

    @field_validator("type", mode="before")
    @classmethod
    def _default_type(cls, value: Any) -> Any:
        return "stdio" if value is None else value

    @field_validator("args", mode="before")
    @classmethod
    def _args_as_strings(cls, value: Any) -> Any:
        if isinstance(value, list):
            return [_as_string(item) for item in value]
        return value

    @field_validator("env", mode="before")
    @classmethod
    def _env_as_strings(cls, value: Any) -> Any:
        if isinstance(value, dict):
            return {str(key): _as_string(item) for key, item in value.items()}
        return value

    @model_validator(mode="after")
    def _check_transport_fields(self) -> "McpServer":
        if self.type == "stdio":
            if not self.command:
                raise ValueError(f"stdio server '{self.name}' requires a command")
            if self.url is not None:
                raise ValueError(f"stdio server '{self.name}' must not set url")
        else:
            if not self.url:
                raise ValueError(f"{self.type} server '{self.name}' requires a url")
            if any(v is not None for v in (self.command, self.args, self.env)):
                raise ValueError(
                    f"{self.type} server '{self.name}' must not set command/args/env"
                )
        return self

    @classmethod
    def from_host_entry(cls, name: str, entry: dict[str, Any]) -> "McpServer":
        """Build a descriptor from a host configuration ``mcpServers`` value."""
        return cls.model_validate({**entry, "name": name})

    def to_host_entry(self) -> dict[str, Any]:
        """Descriptor as stored in the host configuration (keyed by name)."""
        return self.model_dump(exclude={"name"}, exclude_none=True)


class InstructionFile(_ManifestModel):
    path: str = ""
    content: str = ""


class InstructionFiles(_ManifestModel):
    """Global and project-local instruction (CLAUDE.md) files."""

    global_file: InstructionFile | None = Field(default=None, alias="global")
    local_file: InstructionFile | None = Field(default=None, alias="local")


class ManifestMetadata(_ManifestModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    created_at: str | None = None
    updated_at: str | None = None
    exported_from: str | None = None
    installed_from: str | None = None
    installed_at: str | None = None


class StackManifest(_ManifestModel):
    """Portable description of a developer stack."""

    name: str
    description: str = ""
    version: str | None = None
    commands: list[Command] = Field(default_factory=list)
    agents: list[Agent] = Field(default_factory=list)
    mcp_servers: list[McpServer] = Field(default_factory=list, alias="mcpServers")
    hooks: list[Hook] = Field(default_factory=list)
    settings: dict[str, Any] = Field(default_factory=dict)
    claude_md: InstructionFiles | None = Field(default=None, alias="claudeMd")
    metadata: ManifestMetadata = Field(default_factory=ManifestMetadata)

    @field_validator("commands", "agents", "mcp_servers", "hooks", mode="before")
    @classmethod
    def _none_as_empty(cls, value: Any) -> Any:
        return [] if value is None else value

    @field_validator("settings", mode="before")
    @classmethod
    def _none_as_empty_settings(cls, value: Any) -> Any:
        return {} if value is None else value

    def to_document(self) -> dict[str, Any]:
        """Manifest as a JSON-ready dict using the on-disk key names."""
        return self.model_dump(by_alias=True, exclude_none=True)
