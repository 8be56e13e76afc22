"""Archive packager: bundle file plus runtime dependencies as a tar.gz.

Layout of the archive:
- bundle.<ext>: the single-file bundle
- node_modules/: installed runtime dependencies, when present

The archive is written to its own directory under the system temp dir,
named after the resolved revision so repeated builds of the same
revision produce the same filename.
"""

import logging
import shutil
import tarfile
import tempfile
from pathlib import Path

from bundler.packaging.types import Archive

logger = logging.getLogger(__name__)

DEPENDENCIES_DIRNAME = "node_modules"
ARCHIVE_PREFIX = "archive-"


def archive_filename(revision: str) -> str:
    return f"bundle-{revision}.tar.gz"


def stage_dependencies(source_dir: Path, install_dir: Path) -> None:
    """Copy the workspace-root dependency dir into install_dir.

    No-op when both are the same directory or the source does not exist.
    """
    source = source_dir / DEPENDENCIES_DIRNAME
    destination = install_dir / DEPENDENCIES_DIRNAME

    if source.resolve() == destination.resolve():
        logger.info("Skipping node_modules copy: source and destination are the same")
        return
    if not source.is_dir():
        logger.info("No node_modules at %s; nothing to copy", source_dir)
        return

    shutil.copytree(source, destination, symlinks=True, dirs_exist_ok=True)
    logger.info("Copied node_modules from %s to %s", source_dir, install_dir)


def create_archive(install_dir: Path, bundle_name: str, revision: str) -> Archive:
    """Write bundle_name and node_modules from install_dir into a tar.gz.

    Raises OSError / tarfile.TarError on failure; the staging directory is
    removed before the error propagates.
    """
    staging_dir = Path(tempfile.mkdtemp(prefix=ARCHIVE_PREFIX))
    filename = archive_filename(revision)
    archive_path = staging_dir / filename

    try:
        with tarfile.open(archive_path, "w:gz") as tar:
            tar.add(install_dir / bundle_name, arcname=bundle_name)
            dependencies = install_dir / DEPENDENCIES_DIRNAME
            if dependencies.is_dir():
                tar.add(dependencies, arcname=DEPENDENCIES_DIRNAME)
            else:
                logger.warning("node_modules directory not found, skipping")
    except (OSError, tarfile.TarError):
        shutil.rmtree(staging_dir, ignore_errors=True)
        raise

    size = archive_path.stat().st_size
    logger.info(
        "Archive size: %d bytes (%.2f MB) at %s",
        size, size / (1024 * 1024), archive_path,
    )
    return Archive(
        path=archive_path,
        filename=filename,
        size_bytes=size,
        staging_dir=staging_dir,
    )
