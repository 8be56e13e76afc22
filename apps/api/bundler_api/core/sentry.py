"""Sentry SDK integration for the bundler API.

The build pipeline reports stage failures through sentry_sdk directly
(see bundler.reporting); this module only initialises the SDK.

  - `send_default_pii=False`: no user data sent by default.
  - `before_send` scrubs any event field whose key contains a sensitive
    keyword (api_key, service_key, secret, password, token, dsn,
    credentials).
  - No-op when SENTRY_DSN is empty.
"""

from __future__ import annotations

import logging
from typing import Any

import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration

logger = logging.getLogger(__name__)

_SENSITIVE_KEYS = frozenset(
    {"api_key", "service_key", "secret", "password", "token", "dsn", "credentials"}
)


def _scrub_secrets(event: dict[str, Any], hint: Any) -> dict[str, Any]:
    """Sentry before_send hook: redact values for sensitive keys.

    Walks the event's `extra` and `request.data` dicts and replaces
    the values of any key matching a sensitive keyword with "[REDACTED]".
    """
    _scrub_dict(event.get("extra", {}))
    request_data = event.get("request", {}).get("data", {})
    if isinstance(request_data, dict):
        _scrub_dict(request_data)
    return event


def _scrub_dict(d: dict[str, Any]) -> None:
    """Recursively redact sensitive values in-place."""
    for key in list(d.keys()):
        if any(sensitive in key.lower() for sensitive in _SENSITIVE_KEYS):
            d[key] = "[REDACTED]"
        elif isinstance(d[key], dict):
            _scrub_dict(d[key])


def init_sentry(dsn: str, environment: str = "development") -> None:
    """Initialise the Sentry SDK. Empty `dsn` disables Sentry entirely.

    Args:
        dsn: Sentry DSN string.
        environment: Sentry environment tag ("development" | "production").
    """
    if not dsn or not dsn.strip():
        logger.debug("Sentry DSN not configured; skipping initialisation")
        return

    sentry_sdk.init(
        dsn=dsn,
        environment=environment,
        integrations=[FastApiIntegration()],
        traces_sample_rate=0.1,
        send_default_pii=False,
        before_send=_scrub_secrets,
    )
    logger.info("Sentry initialised (environment=%s)", environment)
