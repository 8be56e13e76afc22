"""Shared fixtures for the bundler pipeline tests.

Stage tests run against a real temporary directory standing in for the
build workspace. External tools are never invoked: each test patches
run_command in the module under test.
"""

from pathlib import Path
from unittest.mock import MagicMock

import pytest

from bundler.locator import parse_repo_url
from bundler.perf import PerfMarkers
from bundler.reporting import ErrorReporter
from bundler.sandbox.workspace import Workspace
from bundler.settings import PipelineSettings
from bundler.stages.context import BuildContext
from bundler.types import BuildRequest, OutputFormat

DEFAULT_REPO_URL = "https://github.com/acme/weather-mcp"


@pytest.fixture
def reporter() -> MagicMock:
    return MagicMock(spec=ErrorReporter)


@pytest.fixture
def workspace_root(tmp_path: Path) -> Path:
    root = tmp_path / "workspace"
    root.mkdir()
    return root


@pytest.fixture
def build_context(workspace_root, reporter):
    """Factory for a BuildContext rooted at workspace_root."""

    def _make(
        url: str = DEFAULT_REPO_URL,
        commit=None,
        output_format: OutputFormat = OutputFormat.MODULE,
        publish_key=None,
        settings=None,
    ) -> BuildContext:
        request = BuildRequest(
            source_url=url,
            pinned_revision=commit,
            output_format=output_format,
            publish_key=publish_key,
        )
        return BuildContext(
            request=request,
            location=parse_repo_url(url),
            workspace=Workspace(workspace_root),
            settings=settings or PipelineSettings(prefetch_native_binaries=False),
            perf=PerfMarkers(),
            reporter=reporter,
        )

    return _make
