"""Pipeline settings resolved once per process and passed into every build."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

DEFAULT_BUCKET = "bundler-microservice-servers"
DEFAULT_OUTPUT_DIR = "bundled"

# Bundles above this size are flagged in the logs but never rejected
DEFAULT_LARGE_BUNDLE_BYTES = 50 * 1024 * 1024

# Platforms pre-fetched for optional native dependencies
DEFAULT_PLATFORM_MATRIX: tuple[tuple[str, str], ...] = (
    ("darwin", "arm64"),
    ("darwin", "x64"),
    ("linux", "x64"),
    ("win32", "x64"),
    ("win32", "ia32"),
)


@dataclass(frozen=True)
class StageTimeouts:
    """Wall-clock budget per external command, in seconds."""

    clone: int = 60
    checkout: int = 30
    revision: int = 10
    install: int = 120
    compile: int = 60
    build_script: int = 300
    bundle: int = 60
    tool_probe: int = 30


@dataclass(frozen=True)
class StorageCredentials:
    """Credentials for the remote object store.

    Passed explicitly into the remote publisher; nothing here is written
    back into the process environment.
    """

    url: str
    service_key: str

    @property
    def is_configured(self) -> bool:
        return bool(self.url and self.service_key)


@dataclass(frozen=True)
class PipelineSettings:
    """Per-process settings shared by every build."""

    remote_publish_enabled: bool = False
    bucket: str = DEFAULT_BUCKET
    credentials: Optional[StorageCredentials] = None
    output_dir: Path = Path(DEFAULT_OUTPUT_DIR)
    prefetch_native_binaries: bool = True
    platform_matrix: tuple[tuple[str, str], ...] = DEFAULT_PLATFORM_MATRIX
    large_bundle_bytes: int = DEFAULT_LARGE_BUNDLE_BYTES
    timeouts: StageTimeouts = field(default_factory=StageTimeouts)

    def uses_remote_publish(self, publish_key: Optional[str]) -> bool:
        """Remote mode needs both the configuration switch and a key."""
        return self.remote_publish_enabled and bool(publish_key)
