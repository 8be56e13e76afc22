"""Build pipeline orchestrator.

Runs, strictly in sequence and inside one workspace:
  1. fetch       (fatal on failure)
  2. install     (best effort)
  3. typecheck   (best effort)
  4. entrypoint  (fatal when nothing is found)
  5. bundle      (fatal once every strategy failed)
  6. package     (best effort)
  7. publish     (best effort, remote or local)

Only BuildError subclasses leave run_pipeline(). Failures in best-effort
stages are logged and reported; any other unexpected error is wrapped
in a generic BuildError.
The workspace is removed on every exit path, including cancellation by
run_pipeline_with_timeout().
"""

import asyncio
import logging
import tarfile
from typing import Awaitable, Optional

from bundler.locator import parse_repo_url
from bundler.packaging.archive import archive_filename, create_archive, stage_dependencies
from bundler.packaging.publisher import Publisher, build_publisher
from bundler.packaging.types import Archive, PublishResult
from bundler.perf import PerfMarkers
from bundler.reporting import ErrorReporter
from bundler.sandbox.checkout import redact_repo_url
from bundler.sandbox.workspace import open_workspace
from bundler.settings import PipelineSettings
from bundler.stages.bundle import bundle_entrypoint
from bundler.stages.context import BuildContext
from bundler.stages.dependencies import install_dependencies
from bundler.stages.entrypoint import resolve_entrypoint
from bundler.stages.fetch import fetch_source
from bundler.stages.typecheck import run_typecheck
from bundler.types import BuildArtifact, BuildError, BuildRequest, BuildResult, BuildTimeoutError

logger = logging.getLogger(__name__)

GENERIC_FAILURE_MESSAGE = "Failed to build the server code."


async def run_pipeline(
    request: BuildRequest,
    settings: Optional[PipelineSettings] = None,
    publisher: Optional[Publisher] = None,
) -> BuildResult:
    """Build, package and publish one repository.

    Raises BuildError (or a subclass) when no bundle could be produced.
    """
    settings = settings or PipelineSettings()
    perf = PerfMarkers()
    reporter = ErrorReporter(
        source_url=request.source_url,
        requested_revision=request.requested_revision,
        publish_key=request.publish_key,
        perf=perf,
    )
    location = parse_repo_url(request.source_url)
    logger.info(
        "Building MCP server for %s with commit %s",
        redact_repo_url(request.source_url),
        request.requested_revision or "(default branch)",
    )

    perf.start("build:total")
    try:
        async with open_workspace() as workspace:
            ctx = BuildContext(
                request=request,
                location=location,
                workspace=workspace,
                settings=settings,
                perf=perf,
                reporter=reporter,
            )
            result = await _run_stages(ctx, publisher)
    except BuildError as exc:
        logger.error("Build failed at %s: %s", exc.stage, exc)
        reporter.report(exc, stage=exc.stage)
        raise
    except Exception as exc:
        logger.exception("Error during build")
        reporter.report(exc, stage="pipeline")
        raise BuildError(GENERIC_FAILURE_MESSAGE) from exc
    finally:
        total_ms = perf.stop("build:total")
        logger.info("Total build time: %dms", total_ms)

    result.timings_ms = dict(perf.durations_ms)
    return result


async def run_pipeline_with_timeout(
    request: BuildRequest,
    settings: Optional[PipelineSettings] = None,
    timeout_seconds: float = 300,
    publisher: Optional[Publisher] = None,
) -> BuildResult:
    """Race run_pipeline against an overall budget.

    When the budget runs out the in-flight build is cancelled (its
    workspace is still removed) and BuildTimeoutError is raised.
    """
    try:
        return await asyncio.wait_for(
            run_pipeline(request, settings, publisher),
            timeout=timeout_seconds,
        )
    except asyncio.TimeoutError as exc:
        logger.error(
            "Bundler operation timed out after %ss for %s",
            timeout_seconds, redact_repo_url(request.source_url),
        )
        raise BuildTimeoutError(timeout_seconds) from exc


async def _run_stages(ctx: BuildContext, publisher: Optional[Publisher]) -> BuildResult:
    revision = await fetch_source(ctx)
    ctx.revision = revision
    ctx.reporter.revision = revision

    await _best_effort(ctx, "npm:install", install_dependencies(ctx))
    await _best_effort(ctx, "typescript:compile", run_typecheck(ctx))

    entrypoint = await resolve_entrypoint(ctx)
    artifact = await bundle_entrypoint(ctx, entrypoint)

    with ctx.perf.measure("read:bundle"):
        bundle_text = artifact.read_text()

    publish_result = await _package_and_publish(ctx, artifact, revision, publisher)

    return BuildResult(
        revision=revision,
        entrypoint=entrypoint,
        output_format=ctx.request.output_format,
        bundle=bundle_text,
        bundle_size_bytes=artifact.size_bytes,
        archive_filename=archive_filename(revision),
        publish=publish_result,
    )


async def _package_and_publish(
    ctx: BuildContext,
    artifact: BuildArtifact,
    revision: str,
    publisher: Optional[Publisher],
) -> Optional[PublishResult]:
    with ctx.perf.measure("archive:create"):
        archive = await _best_effort(ctx, "archive:create", package_artifact(ctx, artifact, revision))
    if archive is None:
        return None

    publisher = publisher or build_publisher(ctx.settings, ctx.request.publish_key)
    with ctx.perf.measure(f"publish:{publisher.mode.value}"):
        return await publisher.publish(archive, revision, ctx.reporter)


async def package_artifact(ctx: BuildContext, artifact: BuildArtifact, revision: str) -> Archive:
    """Copy runtime dependencies next to the bundle and archive both."""
    install_dir = ctx.install_dir
    await asyncio.to_thread(stage_dependencies, ctx.workspace.root, install_dir)
    return await asyncio.to_thread(create_archive, install_dir, artifact.filename, revision)


async def _best_effort(ctx: BuildContext, stage: str, step: Awaitable):
    """Await a non-critical stage; log and report anything it raises."""
    try:
        return await step
    except BuildError:
        raise
    except (OSError, ValueError, tarfile.TarError, RuntimeError) as exc:
        logger.warning("%s failed, continuing with build: %s", stage, exc)
        ctx.reporter.report(exc, stage=stage)
        return None
