"""Stack reference resolution."""

import logging
import os
from pathlib import Path

from agentstack.config.loader import load_manifest
from agentstack.config.models import StackManifest
from agentstack.config.paths import StackPaths
from agentstack.errors import FileSystemError, StackNotFoundError

logger = logging.getLogger(__name__)

_SEPARATORS = {"/", os.sep} | ({os.altsep} if os.altsep else set())


def resolve_stack_path(
    reference: str, paths: StackPaths, cwd: Path | None = None
) -> Path:
    """Turn a stack reference into the path of an existing manifest file.

    Absolute paths are used as-is, references containing a path separator
    are relative to ``cwd`` (the working directory by default), and bare
    names are looked up in the stacks directory.

    Raises:
        StackNotFoundError: If the resolved path does not exist.
    """
    candidate = Path(reference).expanduser()
    if candidate.is_absolute():
        resolved = candidate
    elif any(sep in reference for sep in _SEPARATORS):
        resolved = (cwd or Path.cwd()) / candidate
    else:
        resolved = paths.stacks_dir / reference

    if not resolved.is_file():
        raise StackNotFoundError(resolved)

    logger.debug(f"Resolved stack reference '{reference}' to {resolved}")
    return resolved


def load_stack(
    reference: str, paths: StackPaths, cwd: Path | None = None
) -> tuple[Path, StackManifest]:
    """Resolve a reference and load the manifest it points at."""
    path = resolve_stack_path(reference, paths, cwd)
    try:
        return path, load_manifest(path)
    except OSError as e:
        raise FileSystemError("read", path, e) from e
