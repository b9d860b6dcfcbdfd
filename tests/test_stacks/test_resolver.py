"""Tests for stack reference resolution."""

import json

import pytest

from agentstack.errors import StackNotFoundError
from agentstack.stacks.resolver import load_stack, resolve_stack_path


class TestResolveStackPath:
    def test_bare_name_uses_stacks_dir(self, paths):
        paths.stacks_dir.mkdir(parents=True)
        manifest = paths.stacks_dir / "mine.json"
        manifest.write_text("{}")
        assert resolve_stack_path("mine.json", paths) == manifest

    def test_relative_path_uses_cwd(self, paths, tmp_path):
        (tmp_path / "sub").mkdir()
        manifest = tmp_path / "sub" / "stack.json"
        manifest.write_text("{}")
        assert resolve_stack_path("sub/stack.json", paths, cwd=tmp_path) == manifest

    def test_absolute_path(self, paths, tmp_path):
        manifest = tmp_path / "stack.json"
        manifest.write_text("{}")
        assert resolve_stack_path(str(manifest), paths) == manifest

    def test_missing(self, paths):
        with pytest.raises(StackNotFoundError) as exc_info:
            resolve_stack_path("nope.json", paths)
        assert exc_info.value.path == paths.stacks_dir / "nope.json"
        assert exc_info.value.code == "STACK_NOT_FOUND"

    def test_directory_is_not_a_stack(self, paths):
        paths.stacks_dir.mkdir(parents=True)
        (paths.stacks_dir / "dir.json").mkdir()
        with pytest.raises(StackNotFoundError):
            resolve_stack_path("dir.json", paths)

    def test_deterministic(self, paths):
        paths.stacks_dir.mkdir(parents=True)
        (paths.stacks_dir / "s.json").write_text("{}")
        assert resolve_stack_path("s.json", paths) == resolve_stack_path("s.json", paths)


class TestLoadStack:
    def test_loads_manifest(self, paths):
        paths.stacks_dir.mkdir(parents=True)
        (paths.stacks_dir / "s.json").write_text(json.dumps({"name": "demo"}))
        path, manifest = load_stack("s.json", paths)
        assert path.name == "s.json"
        assert manifest.name == "demo"
