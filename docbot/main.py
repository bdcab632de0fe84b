"""FastAPI application entry point."""

import asyncio
import contextlib
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from docbot.api.middleware import ExceptionHandlerMiddleware, RequestLoggingMiddleware
from docbot.api.routes import router as api_router
from docbot.core.config import AppConfig, get_config
from docbot.core.di_container import container as di_container
from docbot.core.exceptions import ConfigurationError
from docbot.core.logging import get_logger, setup_logging
from docbot.ratelimit import RateLimiter

logger = get_logger(__name__)

WIRED_MODULES = [
    "docbot.api.routes",
    "docbot.api.dependencies",
    "docbot.auth.dependencies",
]


async def _cleanup_rate_limits(limiter: RateLimiter, interval_seconds: int, retention_minutes: int) -> None:
    """Periodically delete expired rate limit windows."""
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            await limiter.cleanup(retention_minutes)
        except Exception as e:
            logger.error("rate_limit_cleanup_failed", error=str(e))


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    config: AppConfig = di_container.config()

    setup_logging(
        log_level=config.log_level,
        json_format=config.log_json,
        log_to_file=config.log_to_file,
        log_dir=config.log_dir,
    )

    di_container.wire(modules=WIRED_MODULES)

    logger.info(
        "application_starting",
        app_name=config.app_name,
        llm_provider=config.llm.provider,
        llm_model=config.llm.model,
        embedding_model=config.embedding.model,
        vector_backend=config.vector.backend,
        rate_limit_backend=config.rate_limit.backend if config.rate_limit.enabled else None,
    )

    missing = config.validate_provider_keys()
    if missing:
        logger.warning("missing_credentials", variables=missing)

    cleanup_task: asyncio.Task | None = None
    limiter: RateLimiter | None = None
    if config.rate_limit.enabled:
        try:
            limiter = di_container.rate_limiter()
        except ConfigurationError as e:
            logger.warning("rate_limit_store_unavailable", error=e.message)

    if limiter and config.rate_limit.cleanup_interval_seconds > 0:
        cleanup_task = asyncio.create_task(
            _cleanup_rate_limits(
                limiter,
                config.rate_limit.cleanup_interval_seconds,
                config.rate_limit.effective_retention_minutes,
            )
        )

    yield

    logger.info("application_shutting_down")

    if cleanup_task:
        cleanup_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await cleanup_task

    if limiter and hasattr(limiter.store, "close"):
        await limiter.store.close()
    await di_container.auth_client().close()

    di_container.unwire()


def create_app(config: AppConfig | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    config = config or get_config()

    app = FastAPI(
        title=config.app_name,
        description="Document-grounded chatbot: ingestion, semantic search and chat",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # Added last runs first: logging wraps the exception handler
    app.add_middleware(ExceptionHandlerMiddleware, debug=config.debug)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "X-RateLimit-Remaining", "X-RateLimit-Reset", "Retry-After"],
    )

    app.include_router(api_router, prefix="/api/v1")

    @app.get("/")
    async def root():
        return {
            "name": config.app_name,
            "version": "0.1.0",
            "docs": "/docs",
            "health": "/api/v1/health",
        }

    return app


# Create app instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    config = get_config()
    uvicorn.run(
        "docbot.main:app",
        host=config.host,
        port=config.port,
        reload=config.debug,
    )
