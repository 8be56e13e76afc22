"""Types shared across the build pipeline.

BuildRequest describes one build and never changes while it runs.
StepResult captures a single external command; BuildResult is what the
pipeline hands back to the caller. BuildError and its subclasses are the
only exceptions allowed to escape the pipeline.
"""

from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from bundler.packaging.types import PublishResult

# Pinned revision values that mean "whatever the clone checks out"
UNPINNED_REVISIONS = {"", "latest"}


class OutputFormat(StrEnum):
    """Module linkage of the emitted bundle."""

    MODULE = "module"
    COMMONJS = "commonjs"

    @property
    def extension(self) -> str:
        return "mjs" if self is OutputFormat.MODULE else "cjs"

    @property
    def bundler_format(self) -> str:
        return "esm" if self is OutputFormat.MODULE else "cjs"

    @classmethod
    def from_extension(cls, value: str) -> "OutputFormat":
        """Map the wire value (mjs | cjs) to a format. Raises ValueError."""
        normalized = (value or "").strip().lower()
        if normalized in ("mjs", "esm", cls.MODULE.value):
            return cls.MODULE
        if normalized in ("cjs", cls.COMMONJS.value):
            return cls.COMMONJS
        raise ValueError(f"Unsupported output format: {value!r}")


@dataclass(frozen=True)
class RepoLocation:
    """Where to clone from and where inside the clone the package lives."""

    clone_url: str
    branch: Optional[str] = None
    subdirectory: Optional[str] = None


@dataclass(frozen=True)
class BuildRequest:
    """A single build. Immutable for the duration of the pipeline."""

    source_url: str
    pinned_revision: Optional[str] = None
    output_format: OutputFormat = OutputFormat.MODULE
    publish_key: Optional[str] = None

    @property
    def requested_revision(self) -> Optional[str]:
        """The pin to check out, or None when no pin was requested."""
        if self.pinned_revision is None:
            return None
        revision = self.pinned_revision.strip()
        if revision.lower() in UNPINNED_REVISIONS:
            return None
        return revision


@dataclass
class StepResult:
    """Result of a single external command.

    A step is successful if exit_code == 0. Timeouts carry exit_code -1
    and timed_out=True so callers can tell them apart from tool failures.
    """

    name: str
    command: str
    exit_code: int
    duration_seconds: float
    stdout: str = ""
    stderr: str = ""
    timed_out: bool = False

    @property
    def is_success(self) -> bool:
        return self.exit_code == 0

    @property
    def output(self) -> str:
        return f"{self.stdout}\n{self.stderr}".strip()

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "command": self.command,
            "exit_code": self.exit_code,
            "duration_seconds": round(self.duration_seconds, 3),
            "timed_out": self.timed_out,
            "is_success": self.is_success,
        }


@dataclass
class BuildArtifact:
    """The single bundled file produced by the bundle stage."""

    path: Path
    size_bytes: int
    strategy: str

    @property
    def filename(self) -> str:
        return self.path.name

    def read_text(self) -> str:
        return self.path.read_text(encoding="utf-8", errors="replace")


@dataclass
class BuildResult:
    """Everything a caller needs from one successful build."""

    revision: str
    entrypoint: str
    output_format: OutputFormat
    bundle: str
    bundle_size_bytes: int
    archive_filename: str
    publish: Optional["PublishResult"] = None
    timings_ms: dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "revision": self.revision,
            "entrypoint": self.entrypoint,
            "output_format": self.output_format.value,
            "bundle_size_bytes": self.bundle_size_bytes,
            "archive_filename": self.archive_filename,
            "publish": self.publish.to_dict() if self.publish else None,
            "timings_ms": {k: round(v, 1) for k, v in self.timings_ms.items()},
        }


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class BuildError(Exception):
    """Raised when the pipeline cannot produce a bundle.

    Carries the stage name so the caller and the error tracker can tell
    where the build stopped.
    """

    def __init__(self, message: str, stage: str = "pipeline"):
        self.stage = stage
        super().__init__(message)


class ConfigurationError(BuildError):
    """The host is missing a required tool. Never retried."""


class FetchError(BuildError):
    """The repository could not be cloned."""


class EntrypointNotFoundError(BuildError):
    """No runnable entrypoint could be located in the install directory."""


class BundleError(BuildError):
    """Every bundling strategy failed."""

    def __init__(self, message: str, attempts: Optional[list[StepResult]] = None):
        self.attempts = attempts or []
        super().__init__(message, stage="bundle:build")


class BuildTimeoutError(BuildError):
    """The overall build budget ran out before the pipeline settled."""

    def __init__(self, timeout_seconds: float):
        self.timeout_seconds = timeout_seconds
        super().__init__(
            f"Bundler operation timed out after {timeout_seconds:g} seconds",
            stage="pipeline:timeout",
        )

