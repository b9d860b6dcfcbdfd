"""Configuration and manifest loading with Pydantic validation."""

import json
from pathlib import Path
from typing import TypeVar

import yaml
from pydantic import BaseModel, ValidationError

from .models import StackManifest
from .paths import StackPaths

T = TypeVar("T", bound=BaseModel)

DEFAULT_USER_CONFIG = Path.home() / ".agentstack" / "config.yaml"


class ConfigError(Exception):
    """Raised when configuration loading or validation fails."""


class UserConfig(BaseModel):
    """Optional overrides from the user's YAML configuration file."""

    home: Path | None = None
    claude_dir: Path | None = None
    stacks_dir: Path | None = None
    host_config_path: Path | None = None
    codex_config_path: Path | None = None
    gemini_settings_path: Path | None = None


def load_yaml(path: Path) -> dict:
    """Load a YAML file and return its contents as a dict.

    Raises:
        ConfigError: If the file cannot be read or parsed.
    """
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
            if data is None:
                return {}
            return data
    except FileNotFoundError:
        raise ConfigError(f"Configuration file not found: {path}") from None
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e


def load_config(path: Path, model_class: type[T]) -> T:
    """Load and validate a YAML config file against a Pydantic model.

    Raises:
        ConfigError: If validation fails.
    """
    data = load_yaml(path)
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a mapping at the top of {path}")
    try:
        return model_class(**data)
    except ValidationError as e:
        raise ConfigError(f"Configuration validation failed for {path}: {e}") from e


def load_paths(
    config_path: Path | None = None,
    project_dir: Path | None = None,
) -> StackPaths:
    """Build the StackPaths for this invocation.

    Args:
        config_path: Explicit YAML config; must exist when given. When
            omitted, ``~/.agentstack/config.yaml`` is used if present.
        project_dir: Project root, defaults to the working directory.
    """
    overrides: dict = {}
    if config_path is not None:
        overrides = load_config(config_path, UserConfig).model_dump()
    elif DEFAULT_USER_CONFIG.exists():
        overrides = load_config(DEFAULT_USER_CONFIG, UserConfig).model_dump()

    return StackPaths.default(project_dir=project_dir, **overrides)


def load_manifest(path: Path) -> StackManifest:
    """Read and validate a stack manifest JSON file.

    Raises:
        ConfigError: If the file is not valid JSON or not a valid manifest.
    """
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON in stack file {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"Stack file {path} must contain a JSON object")
    try:
        return StackManifest.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid stack manifest {path}: {e}") from e
