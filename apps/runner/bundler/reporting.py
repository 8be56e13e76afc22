"""Error-tracking sink for the build pipeline.

Every caught non-fatal error, and the one fatal error that ends a build,
is sent to Sentry with the build's context attached. Reporting is purely
observational: a failure inside the reporter is logged and dropped.

sentry_sdk is a no-op until the service initialises it with a DSN, so the
pipeline can report unconditionally.
"""

import logging
from typing import Any, Optional

import sentry_sdk

from bundler.perf import PerfMarkers

logger = logging.getLogger(__name__)


class ErrorReporter:
    """Sentry reporter bound to one build."""

    def __init__(
        self,
        source_url: str,
        requested_revision: Optional[str] = None,
        publish_key: Optional[str] = None,
        perf: Optional[PerfMarkers] = None,
    ) -> None:
        self.source_url = source_url
        self.requested_revision = requested_revision
        self.publish_key = publish_key
        self.revision: Optional[str] = None
        self.perf = perf

    def report(self, exc: BaseException, stage: str, **extra: Any) -> None:
        """Capture exc with stage, revision and timing context attached."""
        try:
            with sentry_sdk.new_scope() as scope:
                scope.set_tag("stage", stage)
                if self.revision:
                    scope.set_tag("revision", self.revision)
                scope.set_extra("source_url", self.source_url)
                scope.set_extra("requested_revision", self.requested_revision)
                scope.set_extra("publish_key", self.publish_key)
                if self.perf is not None:
                    scope.set_extra("timers", self.perf.snapshot())
                for key, value in extra.items():
                    if not isinstance(value, (int, float, bool)):
                        value = str(value)
                    scope.set_extra(key, value)
                sentry_sdk.capture_exception(exc)
        except Exception as report_exc:
            logger.debug("Error reporting failed for stage %s: %s", stage, report_exc)

    def report_failure(self, message: str, stage: str, **extra: Any) -> None:
        """Capture a non-exception failure (e.g. a tool exiting non-zero)."""
        try:
            with sentry_sdk.new_scope() as scope:
                scope.set_tag("stage", stage)
                if self.revision:
                    scope.set_tag("revision", self.revision)
                scope.set_extra("source_url", self.source_url)
                for key, value in extra.items():
                    scope.set_extra(key, value)
                sentry_sdk.capture_message(message, level="warning")
        except Exception as report_exc:
            logger.debug("Error reporting failed for stage %s: %s", stage, report_exc)
