"""
Checkout Engine API

Shipping options and checkout gate evaluation for the cart summary.
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from checkout_engine.api.routes import checkout
from checkout_engine.core.config import settings
from checkout_engine.core.logging_config import configure_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    configure_logging()
    logger.info(f"{settings.APP_NAME} started ({settings.ENVIRONMENT})")
    yield
    logger.info(f"{settings.APP_NAME} shutting down")


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.APP_NAME,
        description="Shipping rate resolution and checkout gating for the cart summary",
        lifespan=lifespan,
        debug=settings.DEBUG,
    )

    app.include_router(checkout.router, prefix="/api", tags=["Checkout"])

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "app": settings.APP_NAME,
            "environment": settings.ENVIRONMENT,
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "checkout_engine.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
    )
