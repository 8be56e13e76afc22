"""Shared test fixtures for the bundler API test suite.

The build pipeline is never run for real here: router tests patch
run_pipeline_with_timeout and assert on what the router hands it and
how it maps the outcome to HTTP.
"""

from collections.abc import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient

from bundler.types import BuildResult, OutputFormat
from bundler_api.core.config import Settings, get_settings
from bundler_api.main import create_app

REVISION = "9f1c2d3e4b5a69788796a5b4c3d2e1f0a9b8c7d6"
BUNDLE_TEXT = "console.log('weather');\n"


def _override_settings(**overrides) -> Settings:
    values = {
        "sentry_dsn": "",
        "debug": False,
        "storage_credentials_json": "",
        "supabase_service_key": "",
        "disable_remote_publish": False,
        "bundle_timeout_seconds": 5,
    }
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def build_result() -> BuildResult:
    return BuildResult(
        revision=REVISION,
        entrypoint="src/index.ts",
        output_format=OutputFormat.MODULE,
        bundle=BUNDLE_TEXT,
        bundle_size_bytes=len(BUNDLE_TEXT),
        archive_filename=f"bundle-{REVISION}.tar.gz",
    )


@pytest.fixture
def settings_overrides() -> dict:
    """Per-test Settings overrides; tests mutate this dict before requesting."""
    return {}


@pytest.fixture
def app(settings_overrides):
    """Create a FastAPI app with settings overridden.

    The SlowAPI limiter keeps in-memory counters across requests in the
    same process, so they are reset before each test.
    """
    from bundler_api.core.limiter import limiter

    limiter.reset()

    test_app = create_app()
    test_app.dependency_overrides[get_settings] = lambda: _override_settings(**settings_overrides)
    return test_app


@pytest.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Provide an async HTTP client wired to the test app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
