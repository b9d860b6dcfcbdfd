"""Atomic persistence for JSON configuration documents.

Readers of a file written here observe either the previous complete
content or the new complete content, never a truncated file.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Callable

from agentstack.errors import FileSystemError

logger = logging.getLogger(__name__)


def dumps_json(value: Any) -> str:
    """Serialize a JSON document the way all config files are written."""
    return json.dumps(value, indent=2) + "\n"


def write_atomic(
    path: Path,
    value: Any,
    dumps: Callable[[Any], str] = dumps_json,
) -> None:
    """Write ``value`` to ``path`` via a sibling temp file and a rename.

    Parent directories are created first. The temp file lives in the
    same directory so the final rename never crosses a filesystem.

    Raises:
        FileSystemError: If serialization, writing or the rename fails.
            The destination is left untouched in that case.
    """
    path = Path(path)
    try:
        text = dumps(value)
    except (TypeError, ValueError) as e:
        raise FileSystemError("serialize", path, e) from e

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(
            dir=path.parent, prefix=f".{path.name}.", suffix=".tmp"
        )
    except OSError as e:
        raise FileSystemError("write", path, e) from e

    try:
        with open(fd, "w", encoding="utf-8") as f:
            f.write(text)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, path)
    except OSError as e:
        Path(tmp_path).unlink(missing_ok=True)
        raise FileSystemError("write", path, e) from e

    logger.debug(f"Wrote {path}")


def write_json_atomic(path: Path, value: Any) -> None:
    """Atomically persist a JSON document."""
    write_atomic(path, value, dumps_json)


def read_json_or_empty(path: Path, label: str = "config") -> dict[str, Any]:
    """Read a JSON object, tolerating a missing or damaged file.

    Returns an empty dict (and logs a warning for damage) instead of
    failing, so the next write replaces the damaged file.
    """
    path = Path(path)
    if not path.exists():
        return {}

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        logger.warning(f"Could not read {label} at {path}, starting empty: {e}")
        return {}

    if not isinstance(data, dict):
        logger.warning(
            f"Expected a JSON object in {label} at {path}, "
            f"got {type(data).__name__}; starting empty"
        )
        return {}
    return data
