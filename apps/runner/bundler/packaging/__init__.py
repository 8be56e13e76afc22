"""Packaging module for archive creation and publishing.

Public API:
    create_archive(install_dir, bundle_name, revision) -> Archive
    build_publisher(settings, publish_key) -> Publisher
"""

from bundler.packaging.archive import archive_filename, create_archive, stage_dependencies
from bundler.packaging.publisher import LocalPublisher, RemotePublisher, build_publisher

__all__ = [
    "archive_filename",
    "create_archive",
    "stage_dependencies",
    "LocalPublisher",
    "RemotePublisher",
    "build_publisher",
]
