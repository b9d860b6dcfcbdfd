"""Remove host configuration entries for projects that no longer exist."""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path

from agentstack.config.paths import StackPaths
from agentstack.storage.atomic import read_json_or_empty, write_json_atomic
from agentstack.ui.output import Output

logger = logging.getLogger(__name__)


@dataclass
class CleanResult:
    checked: int = 0
    missing: list[str] = field(default_factory=list)
    old_size: int = 0
    new_size: int = 0
    written: bool = False

    @property
    def saved_bytes(self) -> int:
        return self.old_size - self.new_size


def _size_kb(size: int) -> float:
    return round(size / 1024, 2)


def _document_size(document: dict) -> int:
    return len(json.dumps(document, indent=2))


class ProjectCleaner:
    """Prunes stale ``projects`` entries from the host configuration."""

    def __init__(self, paths: StackPaths, output: Output | None = None) -> None:
        self.paths = paths
        self.output = output or Output()

    def clean(self, dry_run: bool = False) -> CleanResult:
        """Drop project entries whose directory is gone.

        Raises:
            FileSystemError: If the updated configuration cannot be written.
        """
        result = CleanResult()
        config_path = self.paths.host_config_path
        if not config_path.exists():
            self.output.warning(f"No host configuration found at {config_path}")
            return result

        host = read_json_or_empty(config_path, "host configuration")
        projects = host.get("projects")
        if not isinstance(projects, dict) or not projects:
            self.output.info("No projects configured in the host configuration")
            return result

        self.output.info("Cleaning up project configurations...")
        if dry_run:
            self.output.warning("DRY RUN - No changes will be made")
        self.output.meta(f"Checking {len(projects)} project paths...\n")

        for project_path in projects:
            result.checked += 1
            if Path(project_path).exists():
                self.output.success(f"✓ {project_path}")
            else:
                self.output.error(f"✗ {project_path}")
                result.missing.append(project_path)

        if not result.missing:
            self.output.success("\nAll project paths exist - no cleanup needed!")
            return result

        self.output.warning(f"\nFound {len(result.missing)} missing project(s):")
        for project_path in result.missing:
            self.output.meta(f"  • {project_path}")

        if dry_run:
            self.output.warning("\nDRY RUN - No changes made")
            self.output.meta("Run without --dry-run to actually remove these entries")
            return result

        result.old_size = _document_size(host)
        host["projects"] = {
            key: value for key, value in projects.items() if key not in result.missing
        }
        result.new_size = _document_size(host)

        write_json_atomic(config_path, host)
        result.written = True
        logger.info(f"Removed {len(result.missing)} stale projects from {config_path}")

        self.output.success("\nCleanup complete!")
        self.output.meta(f"Removed {len(result.missing)} project entries")
        self.output.meta(
            f"File size: {_size_kb(result.old_size)} KB → {_size_kb(result.new_size)} KB "
            f"(saved {_size_kb(result.saved_bytes)} KB)"
        )
        return result
