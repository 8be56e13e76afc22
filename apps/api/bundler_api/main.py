from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from bundler_api.bundles.router import router as bundles_router
from bundler_api.core.config import get_settings
from bundler_api.core.limiter import limiter
from bundler_api.core.middleware import RequestIdMiddleware


def create_app() -> FastAPI:
    settings = get_settings()

    _app = FastAPI(
        title="MCP Bundler API",
        description="Bundles MCP servers from GitHub repositories",
        version="1.0.0",
    )

    # ---------------------------------------------------------------------------
    # Rate limiter state (SlowAPI reads the limiter from app.state)
    # ---------------------------------------------------------------------------
    _app.state.limiter = limiter
    _app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    # ---------------------------------------------------------------------------
    # Middleware (registered outermost → innermost; executed innermost → outermost)
    # ---------------------------------------------------------------------------

    # CORS must see preflight OPTIONS requests before anything else.
    _app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    _app.add_middleware(SlowAPIMiddleware)

    # Request ID: inject / forward X-Request-ID and bind to ContextVar
    _app.add_middleware(RequestIdMiddleware)

    # ---------------------------------------------------------------------------
    # Sentry, initialised here so it captures startup errors too
    # ---------------------------------------------------------------------------
    from bundler_api.core.sentry import init_sentry

    init_sentry(
        dsn=settings.sentry_dsn,
        environment="development" if settings.debug else "production",
    )

    # ---------------------------------------------------------------------------
    # Logging, configured before any router logs anything
    # ---------------------------------------------------------------------------
    from bundler_api.core.logging import configure_structlog

    configure_structlog(debug=settings.debug)

    # ---------------------------------------------------------------------------
    # Routes
    # ---------------------------------------------------------------------------

    @_app.get("/health")
    async def health_check() -> dict[str, str]:
        return {"status": "ok"}

    _app.include_router(bundles_router)

    return _app


app = create_app()
