"""Filesystem locations used by the stack engine.

All locations derive from two roots, the user's home directory and the
current project directory. Services receive a ``StackPaths`` instance
instead of reading process-wide constants, so tests can point them at
temporary directories.
"""

from pathlib import Path

from pydantic import BaseModel, model_validator


class StackPaths(BaseModel):
    """Resolved configuration paths for one invocation."""

    home: Path
    project_dir: Path

    # Optional overrides; derived from the roots when unset.
    claude_dir: Path | None = None
    stacks_dir: Path | None = None
    host_config_path: Path | None = None
    codex_config_path: Path | None = None
    gemini_settings_path: Path | None = None

    @model_validator(mode="after")
    def _derive_defaults(self) -> "StackPaths":
        self.home = self.home.expanduser().absolute()
        self.project_dir = self.project_dir.expanduser().absolute()
        if self.claude_dir is None:
            self.claude_dir = self.home / ".claude"
        if self.stacks_dir is None:
            self.stacks_dir = self.claude_dir / "stacks"
        if self.host_config_path is None:
            self.host_config_path = self.home / ".claude.json"
        if self.codex_config_path is None:
            self.codex_config_path = self.home / ".codex" / "config.toml"
        if self.gemini_settings_path is None:
            self.gemini_settings_path = self.home / ".gemini" / "settings.json"
        return self

    @classmethod
    def default(cls, **overrides) -> "StackPaths":
        """Paths rooted at the real home and working directories."""
        values = {"home": Path.home(), "project_dir": Path.cwd()}
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)

    @property
    def project_key(self) -> str:
        """Key of the current project in the host configuration."""
        return str(self.project_dir)

    @property
    def local_claude_dir(self) -> Path:
        return self.project_dir / ".claude"

    @property
    def registry_path(self) -> Path:
        return self.local_claude_dir / "stacks-registry.json"

    def commands_dir(self, is_global: bool) -> Path:
        base = self.claude_dir if is_global else self.local_claude_dir
        return base / "commands"

    def agents_dir(self, is_global: bool) -> Path:
        base = self.claude_dir if is_global else self.local_claude_dir
        return base / "agents"

    @property
    def hooks_dir(self) -> Path:
        return self.local_claude_dir / "hooks"

    def settings_path(self, is_global: bool) -> Path:
        if is_global:
            return self.claude_dir / "settings.json"
        return self.local_claude_dir / "settings.local.json"

    def instructions_path(self, is_global: bool) -> Path:
        if is_global:
            return self.claude_dir / "CLAUDE.md"
        return self.project_dir / "CLAUDE.md"
