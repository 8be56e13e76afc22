"""Structured logging via structlog.

Configured once from create_app(). The pipeline package logs through the
stdlib `logging` module; the bridge below routes those records to stdout
alongside structlog's own output.

Renderer selection:
  debug=True   ConsoleRenderer with colours for local development.
  debug=False  JSONRenderer for machine-parseable logs in production.

ContextVar injection:
  `request_id` comes from bundler_api.core.middleware and `build_id` is
  bound by the bundles router for the duration of one build, so every
  log line emitted while serving a build can be correlated.
"""

from __future__ import annotations

import logging
import sys
from contextvars import ContextVar

import structlog

from bundler_api.core.middleware import get_request_id

_build_id_var: ContextVar[str] = ContextVar("build_id", default="")


def get_build_id() -> str:
    """Return the current build ID, or empty string if not set."""
    return _build_id_var.get()


def bind_build_id(build_id: str):
    """Bind build_id for the current context. Returns a reset token."""
    return _build_id_var.set(build_id)


def reset_build_id(token) -> None:
    _build_id_var.reset(token)


def _inject_context_vars(
    logger: logging.Logger,
    method: str,
    event_dict: dict,
) -> dict:
    """Structlog processor: inject request_id and build_id from ContextVars."""
    request_id = get_request_id()
    build_id = get_build_id()
    if request_id:
        event_dict["request_id"] = request_id
    if build_id:
        event_dict["build_id"] = build_id
    return event_dict


def configure_structlog(debug: bool = True) -> None:
    """Configure structlog for the application lifetime.

    Safe to call more than once.
    """
    shared_processors: list = [
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        _inject_context_vars,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if debug:
        renderer = structlog.dev.ConsoleRenderer()
    else:
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=shared_processors + [renderer],
        wrapper_class=structlog.make_filtering_bound_logger(logging.DEBUG),
        context_class=dict,
        logger_factory=structlog.WriteLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )

    # Bridge stdlib logging (the pipeline, httpx, uvicorn) to stdout.
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=logging.DEBUG if debug else logging.INFO,
    )
