"""Package manifest detection."""

from bundler.detector.manifest import Manifest, ManifestError, read_manifest

__all__ = ["Manifest", "ManifestError", "read_manifest"]
