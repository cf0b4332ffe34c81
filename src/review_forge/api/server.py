"""Review API Server.

FastAPI server exposing the large-diff review pipeline over HTTP.

Usage:
    python -m review_forge.api.server

    # Or with uvicorn directly:
    uvicorn review_forge.api.server:app --host 0.0.0.0 --port 3000
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from review_forge.api.routes import router
from review_forge.config import AppConfig
from review_forge.providers import BackendError, GenerationBackend, ProviderRegistry
from review_forge.review.pipeline import LargeReviewPipeline

structlog.configure(
    processors=[
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.add_log_level,
        structlog.dev.ConsoleRenderer(),
    ]
)

logger = structlog.get_logger(__name__)


async def build_backends(
    config: AppConfig, registry: ProviderRegistry
) -> list[GenerationBackend]:
    """Create configured backends, primary first. Empty when none can be created."""
    settings = [config.backends[name] for name in config.backend_order if name in config.backends]
    if not settings:
        logger.error("No backend configured", primary=config.primary_backend)
        return []

    try:
        return await registry.create_with_fallback(settings)
    except BackendError as e:
        logger.error("Failed to create backends", error=e.message)
        return []


def create_app(
    config: AppConfig | None = None,
    backends: list[GenerationBackend] | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        config: Service configuration (read from the environment at startup
            when omitted)
        backends: Pre-built backends; skips backend creation at startup
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan handler."""
        logger.info("Starting review server...")

        if getattr(app.state, "pipeline", None) is None:
            app_config = config or AppConfig.from_env()

            errors = app_config.review.validate()
            if errors:
                logger.warning("Invalid review configuration", errors=errors)

            registry = ProviderRegistry()
            app.state.registry = registry
            created = await build_backends(app_config, registry)
            app.state.pipeline = LargeReviewPipeline(app_config.review, created)

            logger.info(
                "Backends ready",
                primary=app_config.primary_backend,
                backends=[b.name for b in created],
            )

        yield

        logger.info("Shutting down review server...")
        registry = getattr(app.state, "registry", None)
        if registry is not None:
            registry.clear()

    app = FastAPI(
        title="Review Forge API",
        description="Chunked multi-agent code review for large diffs",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.pipeline = None
    if backends is not None:
        review_config = config.review if config else None
        app.state.pipeline = LargeReviewPipeline(review_config, backends)

    app.include_router(router)

    return app


# Create the app instance
app = create_app()


def run(
    host: str = "0.0.0.0",
    port: int = 3000,
    reload: bool = False,
) -> None:
    """Run the review API server.

    Args:
        host: Host to bind to
        port: Port to listen on
        reload: Enable auto-reload for development
    """
    logger.info("Starting server", url=f"http://{host}:{port}")
    uvicorn.run(
        "review_forge.api.server:app",
        host=host,
        port=port,
        reload=reload,
        log_level="info",
    )


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Review Forge API Server")
    parser.add_argument("--host", default="0.0.0.0", help="Host to bind to")
    parser.add_argument("--port", type=int, default=3000, help="Port to listen on")
    parser.add_argument("--reload", action="store_true", help="Enable auto-reload")

    args = parser.parse_args()
    run(host=args.host, port=args.port, reload=args.reload)
