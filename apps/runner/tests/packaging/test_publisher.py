"""Tests for the remote and local archive publishers.

Supabase is never contacted: create_client is patched.
"""

from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from bundler.packaging.publisher import (
    LocalPublisher,
    RemotePublisher,
    build_publisher,
    object_key,
)
from bundler.packaging.types import Archive, PublishMode
from bundler.settings import PipelineSettings, StorageCredentials

REVISION = "9f1c2d3e4b5a69788796a5b4c3d2e1f0a9b8c7d6"
CREDENTIALS = StorageCredentials(url="https://project.supabase.co", service_key="service-key")


@pytest.fixture
def archive(tmp_path: Path) -> Archive:
    staging = tmp_path / "archive-staging"
    staging.mkdir()
    path = staging / f"bundle-{REVISION}.tar.gz"
    path.write_bytes(b"\x1f\x8b fake gzip")
    return Archive(path=path, filename=path.name, size_bytes=path.stat().st_size, staging_dir=staging)


class TestObjectKey:
    def test_layout(self) -> None:
        assert object_key("mcp-1", REVISION, f"bundle-{REVISION}.tar.gz") == (
            f"mcp-1/{REVISION}/bundle-{REVISION}.tar.gz"
        )


class TestRemotePublisher:
    async def test_uploads_under_key_with_upsert(self, archive: Archive) -> None:
        publisher = RemotePublisher("bundler-microservice-servers", "mcp-1", CREDENTIALS)

        with patch("supabase.create_client") as create_client:
            result = await publisher.publish(archive, REVISION)

        create_client.assert_called_once_with("https://project.supabase.co", "service-key")
        storage = create_client.return_value.storage
        storage.from_.assert_called_once_with("bundler-microservice-servers")
        upload_kwargs = storage.from_.return_value.upload.call_args.kwargs
        assert upload_kwargs["path"] == f"mcp-1/{REVISION}/bundle-{REVISION}.tar.gz"
        assert upload_kwargs["file"] == b"\x1f\x8b fake gzip"
        assert upload_kwargs["file_options"]["upsert"] == "true"

        assert result.mode == PublishMode.REMOTE
        assert result.published is True
        assert result.key == f"mcp-1/{REVISION}/bundle-{REVISION}.tar.gz"
        assert not archive.staging_dir.exists()

    async def test_upload_failure_is_reported_not_raised(self, archive: Archive) -> None:
        reporter = MagicMock()
        publisher = RemotePublisher("bucket", "mcp-1", CREDENTIALS)

        with patch.object(RemotePublisher, "_upload", side_effect=RuntimeError("403 Forbidden")):
            result = await publisher.publish(archive, REVISION, reporter)

        assert result.published is False
        assert result.error == "upload failed"
        assert reporter.report.call_args.kwargs["stage"] == "storage:upload"
        assert not archive.staging_dir.exists()

    async def test_missing_credentials_fail_softly(self, archive: Archive) -> None:
        publisher = RemotePublisher("bucket", "mcp-1", credentials=None)
        result = await publisher.publish(archive, REVISION)

        assert result.published is False
        assert not archive.staging_dir.exists()


class TestLocalPublisher:
    async def test_copies_archive_into_output_dir(self, archive: Archive, tmp_path: Path) -> None:
        output_dir = tmp_path / "bundled"
        result = await LocalPublisher(output_dir).publish(archive, REVISION)

        assert (output_dir / archive.filename).read_bytes() == b"\x1f\x8b fake gzip"
        assert result.mode == PublishMode.LOCAL
        assert result.local_path == output_dir / archive.filename
        assert not archive.staging_dir.exists()

    async def test_existing_output_dir_is_fine(self, archive: Archive, tmp_path: Path) -> None:
        output_dir = tmp_path / "bundled"
        output_dir.mkdir()
        result = await LocalPublisher(output_dir).publish(archive, REVISION)
        assert result.published is True

    async def test_copy_failure_is_reported_not_raised(self, archive: Archive, tmp_path: Path) -> None:
        blocker = tmp_path / "bundled"
        blocker.write_text("a file where the directory should be")
        reporter = MagicMock()

        result = await LocalPublisher(blocker).publish(archive, REVISION, reporter)

        assert result.published is False
        assert reporter.report.call_args.kwargs["stage"] == "local:copy"
        assert not archive.staging_dir.exists()


class TestBuildPublisher:
    def test_remote_needs_flag_and_key(self) -> None:
        settings = PipelineSettings(remote_publish_enabled=True, credentials=CREDENTIALS)
        publisher = build_publisher(settings, "mcp-1")
        assert isinstance(publisher, RemotePublisher)
        assert publisher.credentials is CREDENTIALS

    def test_no_key_means_local(self) -> None:
        settings = PipelineSettings(remote_publish_enabled=True)
        assert isinstance(build_publisher(settings, None), LocalPublisher)

    def test_disabled_means_local(self) -> None:
        settings = PipelineSettings(remote_publish_enabled=False, output_dir=Path("out"))
        publisher = build_publisher(settings, "mcp-1")
        assert isinstance(publisher, LocalPublisher)
        assert publisher.output_dir == Path("out")
