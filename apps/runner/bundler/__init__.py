"""Repository-to-bundle build pipeline.

Public API:
    run_pipeline(request, settings) -> BuildResult
    run_pipeline_with_timeout(request, settings, timeout_seconds) -> BuildResult
"""

from bundler.pipeline import run_pipeline, run_pipeline_with_timeout

__all__ = ["run_pipeline", "run_pipeline_with_timeout"]
