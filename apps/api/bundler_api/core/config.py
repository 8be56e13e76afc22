import json
import logging
from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from bundler.settings import (
    DEFAULT_BUCKET,
    DEFAULT_LARGE_BUNDLE_BYTES,
    DEFAULT_OUTPUT_DIR,
    PipelineSettings,
    StorageCredentials,
)

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Remote publishing uploads archives to Supabase Storage. Credentials
    come from STORAGE_CREDENTIALS_JSON when set, e.g.

        {"url": "https://<project>.supabase.co", "service_key": "..."}

    and otherwise from SUPABASE_URL / SUPABASE_SERVICE_KEY.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Publishing. When disabled, builds return the bundle inline and
    # archives are copied into bundled_output_dir instead.
    disable_remote_publish: bool = False
    storage_bucket: str = DEFAULT_BUCKET
    storage_credentials_json: str = ""
    bundled_output_dir: str = DEFAULT_OUTPUT_DIR

    # Supabase (ambient default credentials)
    supabase_url: str = "http://localhost:54321"
    supabase_service_key: str = ""

    # Build
    bundle_timeout_seconds: float = 300
    prefetch_native_binaries: bool = True
    large_bundle_warning_bytes: int = DEFAULT_LARGE_BUNDLE_BYTES

    # CORS: comma-separated list of allowed origins.
    cors_origins: list[str] = ["*"]

    # Rate limiting in SlowAPI format, e.g. "10/minute", "100/hour".
    bundle_rate_limit: str = "10/minute"

    # Sentry: leave blank to disable error capture.
    sentry_dsn: str = ""

    # App
    debug: bool = True

    def storage_credentials(self) -> Optional[StorageCredentials]:
        """Resolve remote store credentials, preferring the JSON blob."""
        if self.storage_credentials_json.strip():
            try:
                blob = json.loads(self.storage_credentials_json)
            except json.JSONDecodeError as exc:
                logger.error("STORAGE_CREDENTIALS_JSON is not valid JSON: %s", exc)
                return None
            if not isinstance(blob, dict):
                logger.error("STORAGE_CREDENTIALS_JSON must be a JSON object")
                return None
            return StorageCredentials(
                url=str(blob.get("url", "")),
                service_key=str(blob.get("service_key", "")),
            )
        if self.supabase_service_key:
            return StorageCredentials(url=self.supabase_url, service_key=self.supabase_service_key)
        return None

    def pipeline_settings(self, remote_publish: Optional[bool] = None) -> PipelineSettings:
        """Build the pipeline's settings; remote_publish overrides the flag."""
        if remote_publish is None:
            remote_publish = not self.disable_remote_publish
        return PipelineSettings(
            remote_publish_enabled=remote_publish,
            bucket=self.storage_bucket,
            credentials=self.storage_credentials() if remote_publish else None,
            output_dir=Path(self.bundled_output_dir),
            prefetch_native_binaries=self.prefetch_native_binaries,
            large_bundle_bytes=self.large_bundle_warning_bytes,
        )


def get_settings() -> Settings:
    return Settings()
