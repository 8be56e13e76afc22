"""Types for the packaging module."""

import logging
import shutil
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


@dataclass
class Archive:
    """A compressed bundle + runtime dependencies, staged for publishing.

    filename follows the convention:
        bundle-{revision}.tar.gz
    """

    path: Path
    filename: str
    size_bytes: int
    staging_dir: Path

    def discard(self) -> None:
        """Delete the staged archive and its staging directory."""
        shutil.rmtree(self.staging_dir, ignore_errors=True)
        logger.debug("Discarded staged archive %s", self.path)


class PublishMode(StrEnum):
    REMOTE = "remote"
    LOCAL = "local"


@dataclass
class PublishResult:
    """Where an archive went. Exactly one of remote key / local path is set.

    Remote keys follow the convention:
        {publish_key}/{revision}/{archive_filename}
    """

    mode: PublishMode
    archive_filename: str
    bucket: Optional[str] = None
    key: Optional[str] = None
    local_path: Optional[Path] = None
    published: bool = True
    error: Optional[str] = None

    @property
    def location(self) -> str:
        if self.mode == PublishMode.REMOTE:
            return f"{self.bucket}/{self.key}"
        return str(self.local_path)

    def to_dict(self) -> dict:
        data: dict = {
            "mode": self.mode.value,
            "archive_filename": self.archive_filename,
            "published": self.published,
        }
        if self.mode == PublishMode.REMOTE:
            data["bucket"] = self.bucket
            data["key"] = self.key
        else:
            data["local_path"] = str(self.local_path)
        if self.error:
            data["error"] = self.error
        return data
