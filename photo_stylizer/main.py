"""Main FastAPI application entry point."""

import os
from contextlib import asynccontextmanager
from typing import Optional
import httpx
from fastapi import FastAPI

from . import __version__
from .api import generate, health, styles
from .core import SecureProxy, load_styles
from .models.enums import FailureKind
from .providers import GeminiClient
from .utils.config import load_config
from .utils.logger import get_logger

logger = get_logger(__name__)


def create_app(transport: Optional[httpx.AsyncBaseTransport] = None) -> FastAPI:
    """
    Build the application.

    Args:
        transport: Optional httpx transport for the upstream client
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Lifespan context manager for startup and shutdown.

        Loads configuration and the style catalog, builds the credentialed
        Gemini client when a key is present, and closes it on shutdown.
        """
        logger.info("Application starting up...")

        try:
            config = load_config()
            catalog = load_styles(config.styles_path)

            gemini = None
            if config.has_api_key:
                gemini = GeminiClient(
                    api_key=config.gemini_api_key,
                    model=config.gemini_model,
                    base_url=config.gemini_base_url,
                    timeout=config.request_timeout_seconds,
                    retry_policy=config.upstream_retry_policy,
                    transport=transport,
                )
                await gemini.initialize()
            else:
                # Keep serving: the proxy answers 500 "Server configuration error"
                logger.error(
                    "GEMINI_API_KEY environment variable not set",
                    extra={"error_kind": FailureKind.CONFIGURATION.value}
                )

            app.state.config = config
            app.state.catalog = catalog
            app.state.gemini = gemini
            app.state.proxy = SecureProxy(gemini)

        except Exception as e:
            logger.error(f"Startup failed: {e}")
            raise

        logger.info("Application startup complete")

        yield

        logger.info("Application shutting down...")
        if gemini is not None:
            await gemini.close()
        logger.info("Application shutdown complete")

    app = FastAPI(
        title="Photo Stylizer",
        description="Secure proxy for AI photo stylization",
        version=__version__,
        lifespan=lifespan,
    )

    app.include_router(health.router, prefix="/health", tags=["health"])
    app.include_router(generate.router, prefix="/api", tags=["generation"])
    app.include_router(styles.router, prefix="/api", tags=["styles"])

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "service": "photo-stylizer",
            "version": __version__,
            "status": "running",
            "docs": "/docs",
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    port = int(os.getenv("PORT", 8000))

    uvicorn.run(
        "photo_stylizer.main:app",
        host="0.0.0.0",
        port=port,
        log_level="info",
    )
