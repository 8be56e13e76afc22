"""Archive publisher: remote object store or local output directory.

The mode is chosen once per build by build_publisher():
- remote: upload to Supabase Storage under
  {publish_key}/{revision}/{archive_filename}
- local:  copy into the output directory (default ./bundled)

Publishing never fails a build. Errors are logged and reported, and the
staged archive is deleted afterwards in every case. Uploads to an
existing key overwrite it (last write wins).
"""

import asyncio
import logging
import shutil
from pathlib import Path
from typing import Optional, Protocol

from bundler.packaging.types import Archive, PublishMode, PublishResult
from bundler.reporting import ErrorReporter
from bundler.settings import PipelineSettings, StorageCredentials

logger = logging.getLogger(__name__)

ARCHIVE_CONTENT_TYPE = "application/gzip"


class PublishError(Exception):
    """Raised inside a publisher when the archive could not be stored."""


class Publisher(Protocol):
    mode: PublishMode

    async def publish(
        self,
        archive: Archive,
        revision: str,
        reporter: Optional[ErrorReporter] = None,
    ) -> PublishResult:
        """Store archive and return where it went."""


def object_key(publish_key: str, revision: str, filename: str) -> str:
    return f"{publish_key}/{revision}/{filename}"


class RemotePublisher:
    """Uploads archives to a Supabase Storage bucket."""

    mode = PublishMode.REMOTE

    def __init__(
        self,
        bucket: str,
        publish_key: str,
        credentials: Optional[StorageCredentials] = None,
    ) -> None:
        self.bucket = bucket
        self.publish_key = publish_key
        self.credentials = credentials

    async def publish(
        self,
        archive: Archive,
        revision: str,
        reporter: Optional[ErrorReporter] = None,
    ) -> PublishResult:
        key = object_key(self.publish_key, revision, archive.filename)
        result = PublishResult(
            mode=self.mode,
            archive_filename=archive.filename,
            bucket=self.bucket,
            key=key,
        )
        try:
            await asyncio.to_thread(self._upload, archive.path, key)
            logger.info("Uploaded archive %s to %s/%s", archive.filename, self.bucket, key)
        except Exception as exc:
            logger.error("Failed to upload archive to %s/%s: %s", self.bucket, key, exc)
            result.published = False
            result.error = "upload failed"
            if reporter is not None:
                reporter.report(exc, stage="storage:upload", bucket=self.bucket, key=key)
        finally:
            archive.discard()
        return result

    def _upload(self, path: Path, key: str) -> None:
        if self.credentials is None or not self.credentials.is_configured:
            raise PublishError("Storage credentials are not configured")

        from supabase import create_client  # noqa: PLC0415

        client = create_client(self.credentials.url, self.credentials.service_key)
        with path.open("rb") as fh:
            client.storage.from_(self.bucket).upload(
                path=key,
                file=fh.read(),
                file_options={"content-type": ARCHIVE_CONTENT_TYPE, "upsert": "true"},
            )


class LocalPublisher:
    """Copies archives into a directory relative to the working directory."""

    mode = PublishMode.LOCAL

    def __init__(self, output_dir: Path) -> None:
        self.output_dir = Path(output_dir)

    async def publish(
        self,
        archive: Archive,
        revision: str,
        reporter: Optional[ErrorReporter] = None,
    ) -> PublishResult:
        destination = self.output_dir / archive.filename
        result = PublishResult(
            mode=self.mode,
            archive_filename=archive.filename,
            local_path=destination,
        )
        try:
            self.output_dir.mkdir(parents=True, exist_ok=True)
            await asyncio.to_thread(shutil.copyfile, archive.path, destination)
            logger.info("Saved archive to: %s", destination)
        except OSError as exc:
            logger.error("Failed to save archive to %s: %s", self.output_dir, exc)
            result.published = False
            result.error = "local copy failed"
            if reporter is not None:
                reporter.report(exc, stage="local:copy", output_dir=self.output_dir)
        finally:
            archive.discard()
        return result


def build_publisher(settings: PipelineSettings, publish_key: Optional[str]) -> Publisher:
    """Pick the publish mode for one build from configuration."""
    if settings.uses_remote_publish(publish_key):
        return RemotePublisher(
            bucket=settings.bucket,
            publish_key=publish_key or "",
            credentials=settings.credentials,
        )
    return LocalPublisher(settings.output_dir)
