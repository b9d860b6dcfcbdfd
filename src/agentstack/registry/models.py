"""Registry document models."""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

REGISTRY_VERSION = "1.0.0"

ComponentCategory = Literal["commands", "agents", "hooks"]
InstallSource = Literal["remote", "local-file", "restore"]
Scope = Literal["global", "local"]


class _RegistryModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class ComponentRecord(_RegistryModel):
    """An installed command or agent file."""

    name: str
    path: str
    is_global: bool = Field(default=False, alias="isGlobal")


class HookRecord(_RegistryModel):
    name: str
    path: str
    type: str = ""


class PermissionRecord(_RegistryModel):
    allow: list[str] = Field(default_factory=list)
    deny: list[str] = Field(default_factory=list)
    ask: list[str] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.allow or self.deny or self.ask)


class SettingsRecord(_RegistryModel):
    """Settings contributed by a stack.

    ``fields`` are top-level keys the stack added, ``nested`` maps an existing
    object to the sub-keys the stack merged into it, and ``permissions``
    holds the permission entries it added.
    """

    type: Scope
    fields: list[str] = Field(default_factory=list)
    nested: dict[str, list[str]] = Field(default_factory=dict)
    permissions: PermissionRecord | None = None


class InstructionRecord(_RegistryModel):
    type: Scope
    path: str


class RegistryComponents(_RegistryModel):
    commands: list[ComponentRecord] = Field(default_factory=list)
    agents: list[ComponentRecord] = Field(default_factory=list)
    hooks: list[HookRecord] = Field(default_factory=list)
    mcp_servers: list[str] = Field(default_factory=list, alias="mcpServers")
    settings: list[SettingsRecord] = Field(default_factory=list)
    claude_md: list[InstructionRecord] = Field(default_factory=list, alias="claudeMd")

    def file_paths(self) -> list[Path]:
        """Every on-disk file this entry references."""
        records = [*self.commands, *self.agents, *self.hooks, *self.claude_md]
        return [Path(r.path) for r in records]

    @property
    def count(self) -> int:
        return (
            len(self.commands)
            + len(self.agents)
            + len(self.hooks)
            + len(self.mcp_servers)
            + len(self.settings)
            + len(self.claude_md)
        )

    def union(self, other: "RegistryComponents") -> "RegistryComponents":
        """Combine two component maps, de-duplicating by location."""

        def merge(old: list, new: list, key) -> list:
            seen = {key(item) for item in old}
            return list(old) + [item for item in new if key(item) not in seen]

        return RegistryComponents(
            commands=merge(self.commands, other.commands, lambda c: c.path),
            agents=merge(self.agents, other.agents, lambda a: a.path),
            hooks=merge(self.hooks, other.hooks, lambda h: h.path),
            mcp_servers=merge(self.mcp_servers, other.mcp_servers, lambda s: s),
            settings=merge(
                self.settings,
                other.settings,
                lambda s: s.model_dump_json(),
            ),
            claude_md=merge(self.claude_md, other.claude_md, lambda m: m.path),
        )


class RegistryEntry(_RegistryModel):
    """One installed stack."""

    stack_id: str = Field(alias="stackId")
    name: str
    installed_at: str = Field(default="", alias="installedAt")
    source: InstallSource = "restore"
    version: str | None = None
    components: RegistryComponents = Field(default_factory=RegistryComponents)


class Registry(_RegistryModel):
    version: str = REGISTRY_VERSION
    last_updated: str = Field(default="", alias="lastUpdated")
    stacks: dict[str, RegistryEntry] = Field(default_factory=dict)

    def to_document(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)
