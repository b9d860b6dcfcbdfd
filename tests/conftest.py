"""Shared fixtures: every service is rooted in a temporary directory."""

import pytest

from agentstack.config.paths import StackPaths
from agentstack.ui.output import Output


class RecordingOutput(Output):
    """Output sink that keeps (level, message) pairs instead of printing."""

    def __init__(self):
        super().__init__()
        self.lines = []

    def info(self, message):
        self.lines.append(("info", message))

    def success(self, message):
        self.lines.append(("success", message))

    def warning(self, message):
        self.lines.append(("warning", message))

    def error(self, message):
        self.lines.append(("error", message))

    def meta(self, message):
        self.lines.append(("meta", message))

    def log(self, message=""):
        self.lines.append(("log", message))

    def messages(self, level=None):
        return [m for lvl, m in self.lines if level is None or lvl == level]

    def text(self):
        return "\n".join(self.messages())


@pytest.fixture
def paths(tmp_path):
    home = tmp_path / "home"
    project = tmp_path / "project"
    home.mkdir()
    project.mkdir()
    return StackPaths(home=home, project_dir=project)


@pytest.fixture
def output():
    return RecordingOutput()
