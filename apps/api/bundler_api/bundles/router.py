"""Bundling endpoints.

GET /bundler      builds and returns the bundle inline (local publish mode).
GET /v2/bundler   builds and either publishes the archive remotely and
                  returns its location, or returns the bundle inline when
                  DISABLE_REMOTE_PUBLISH is set.

Both race the pipeline against BUNDLE_TIMEOUT_SECONDS. Failures map to
400 (bad input), 504 (timeout) and 500 (everything else); response
bodies never carry stack traces.

Rate limiting: both endpoints are throttled via SlowAPI (default
10/minute per client address).
"""

import logging
import uuid
from typing import Optional

import sentry_sdk
from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import JSONResponse

from bundler import run_pipeline_with_timeout
from bundler.types import BuildError, BuildRequest, BuildResult, BuildTimeoutError, OutputFormat
from bundler_api.bundles.schemas import (
    BundleResponse,
    BundleV2Response,
    ErrorResponse,
    UploadDescriptor,
)
from bundler_api.core.config import Settings, get_settings
from bundler_api.core.limiter import limiter
from bundler_api.core.logging import bind_build_id, reset_build_id

logger = logging.getLogger(__name__)
settings = get_settings()

router = APIRouter(tags=["bundler"])

MISSING_URL_MESSAGE = "Github url is required"
INVALID_FORMAT_MESSAGE = "Invalid format. Must be 'mjs' or 'cjs'"
TIMEOUT_MESSAGE = (
    "Bundler operation timed out. The repository may contain large WASM files "
    "or complex dependencies that exceed the processing limits."
)
FAILURE_MESSAGE = "Failed to build MCP server"

_ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Invalid input"},
    500: {"model": ErrorResponse, "description": "Server error"},
    504: {"model": ErrorResponse, "description": "Gateway timeout"},
}


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def _validate(url: Optional[str], fmt: str) -> tuple[Optional[OutputFormat], Optional[JSONResponse]]:
    if not url or not url.strip():
        return None, _error(status.HTTP_400_BAD_REQUEST, MISSING_URL_MESSAGE)
    try:
        return OutputFormat.from_extension(fmt), None
    except ValueError:
        return None, _error(status.HTTP_400_BAD_REQUEST, INVALID_FORMAT_MESSAGE)


async def _build(
    build_request: BuildRequest,
    app_settings: Settings,
    remote_publish: bool,
) -> BuildResult | JSONResponse:
    """Run one build and map its failure modes to error responses."""
    build_id = build_request.publish_key or uuid.uuid4().hex
    token = bind_build_id(build_id)
    try:
        return await run_pipeline_with_timeout(
            build_request,
            app_settings.pipeline_settings(remote_publish=remote_publish),
            timeout_seconds=app_settings.bundle_timeout_seconds,
        )
    except BuildTimeoutError as exc:
        logger.error("Build %s timed out after %ss", build_id, exc.timeout_seconds)
        sentry_sdk.capture_exception(exc)
        return _error(status.HTTP_504_GATEWAY_TIMEOUT, TIMEOUT_MESSAGE)
    except BuildError as exc:
        # Already reported with stage context inside the pipeline.
        logger.error("Build %s failed at %s: %s", build_id, exc.stage, exc)
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, FAILURE_MESSAGE)
    except Exception as exc:
        logger.exception("Unexpected error while building %s", build_id)
        sentry_sdk.capture_exception(exc)
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, FAILURE_MESSAGE)
    finally:
        reset_build_id(token)


@router.get(
    "/bundler",
    response_model=BundleResponse,
    responses=_ERROR_RESPONSES,
    summary="Bundle a repository and return the code inline",
)
@limiter.limit(settings.bundle_rate_limit)
async def bundle_inline(
    request: Request,
    url: Optional[str] = Query(default=None, description="GitHub repository URL"),
    commit: Optional[str] = Query(default=None, description="Commit hash (defaults to latest)"),
    format: str = Query(default="mjs", description="Output format (mjs or cjs)"),
    app_settings: Settings = Depends(get_settings),
):
    output_format, invalid = _validate(url, format)
    if invalid is not None:
        return invalid

    build_request = BuildRequest(
        source_url=url.strip(),
        pinned_revision=commit,
        output_format=output_format,
    )
    result = await _build(build_request, app_settings, remote_publish=False)
    if isinstance(result, JSONResponse):
        return result

    logger.info(
        "Total response size: %d bytes (%.2f MB)",
        result.bundle_size_bytes, result.bundle_size_bytes / (1024 * 1024),
    )
    return BundleResponse(data=result.bundle)


@router.get(
    "/v2/bundler",
    response_model=BundleV2Response,
    response_model_exclude_none=True,
    responses=_ERROR_RESPONSES,
    summary="Bundle a repository and publish the archive",
)
@limiter.limit(settings.bundle_rate_limit)
async def bundle_and_publish(
    request: Request,
    url: Optional[str] = Query(default=None, description="GitHub repository URL"),
    commit: str = Query(default="latest", description="Commit hash (defaults to latest)"),
    mcp_id: Optional[str] = Query(
        default=None,
        alias="mcpId",
        description="Publish key for the archive (generated if not provided)",
    ),
    format: str = Query(default="mjs", description="Output format (mjs or cjs)"),
    app_settings: Settings = Depends(get_settings),
):
    output_format, invalid = _validate(url, format)
    if invalid is not None:
        return invalid

    publish_key = mcp_id or uuid.uuid4().hex
    remote_publish = not app_settings.disable_remote_publish
    if remote_publish:
        logger.info("Will upload bundled server to %s for MCP ID: %s", app_settings.storage_bucket, publish_key)
    else:
        logger.info("Remote publishing is disabled by configuration")

    build_request = BuildRequest(
        source_url=url.strip(),
        pinned_revision=commit,
        output_format=output_format,
        publish_key=publish_key,
    )
    result = await _build(build_request, app_settings, remote_publish=remote_publish)
    if isinstance(result, JSONResponse):
        return result

    if not remote_publish:
        return BundleV2Response(revision=result.revision, data=result.bundle)

    if result.publish is not None and not result.publish.published:
        logger.warning("Archive for %s was built but not published", publish_key)

    return BundleV2Response(
        revision=result.revision,
        upload=UploadDescriptor(
            bucket=app_settings.storage_bucket,
            path=f"{publish_key}/{result.revision}/",
            files=[result.archive_filename],
        ),
    )
