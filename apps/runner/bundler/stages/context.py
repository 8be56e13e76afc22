"""Per-build context passed through every stage."""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from bundler.perf import PerfMarkers
from bundler.reporting import ErrorReporter
from bundler.sandbox.workspace import Workspace
from bundler.settings import PipelineSettings
from bundler.types import BuildRequest, RepoLocation


@dataclass
class BuildContext:
    """Everything a stage may read. Nothing here is shared between builds."""

    request: BuildRequest
    location: RepoLocation
    workspace: Workspace
    settings: PipelineSettings
    perf: PerfMarkers
    reporter: ErrorReporter
    revision: Optional[str] = None

    @property
    def install_dir(self) -> Path:
        return self.workspace.install_dir(self.location.subdirectory)

    @property
    def timeouts(self):
        return self.settings.timeouts
