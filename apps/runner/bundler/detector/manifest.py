"""package.json reader.

Only three fields matter to the pipeline: scripts.build, bin and main.
Any of them may be absent; a missing manifest is not an error.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

MANIFEST_FILENAME = "package.json"

# Output directory that implies the entrypoint only exists after a build
BUILD_OUTPUT_DIR = "dist/"


class ManifestError(Exception):
    """Raised when package.json exists but cannot be parsed."""


@dataclass
class Manifest:
    """The subset of package.json the pipeline reads."""

    build_script: Optional[str] = None
    bin_paths: list[str] = field(default_factory=list)
    main: Optional[str] = None

    @property
    def first_bin(self) -> Optional[str]:
        return self.bin_paths[0] if self.bin_paths else None

    @property
    def needs_prebuild(self) -> bool:
        """True when a build script exists and bin/main point into dist/."""
        if not self.build_script:
            return False
        if any(BUILD_OUTPUT_DIR in path for path in self.bin_paths):
            return True
        return bool(self.main and BUILD_OUTPUT_DIR in self.main)


def read_manifest(package_dir: Path) -> Optional[Manifest]:
    """Parse package.json in package_dir.

    Returns None when the file does not exist. Raises ManifestError when it
    exists but is not a JSON object.
    """
    path = package_dir / MANIFEST_FILENAME
    if not path.exists():
        logger.warning("No package.json found at %s", path)
        return None

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise ManifestError(f"Failed to parse {path}: {exc}") from exc

    if not isinstance(data, dict):
        raise ManifestError(f"{path} is not a JSON object")

    scripts = data.get("scripts")
    build_script = scripts.get("build") if isinstance(scripts, dict) else None

    main = data.get("main")
    return Manifest(
        build_script=build_script if isinstance(build_script, str) else None,
        bin_paths=_bin_paths(data.get("bin")),
        main=main if isinstance(main, str) and main else None,
    )


def _bin_paths(value: object) -> list[str]:
    """bin is either a single path or a name -> path mapping."""
    if isinstance(value, str):
        return [value] if value else []
    if isinstance(value, dict):
        return [str(path) for path in value.values() if path]
    return []


def normalize_manifest_path(path: str) -> str:
    """Strip a leading './' so the path is relative to the package dir."""
    return path[2:] if path.startswith("./") else path
