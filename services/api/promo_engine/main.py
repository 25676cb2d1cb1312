"""FastAPI application entry point.

Promo Engine API - offer qualification, selection and discount calculation.
"""

from contextlib import asynccontextmanager
from collections.abc import AsyncGenerator
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from promo_engine.routes import api_router
from promo_engine.schemas import ErrorResponse
from promo_engine.settings import get_settings
from promo_engine.stores.postgres import close_db, init_db, ping_db
from promo_engine.stores.redis import close_redis, init_redis

logger = logging.getLogger("uvicorn.error")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    Handles startup and shutdown events.
    """
    # Initialize database (skip in tests if no DB available)
    try:
        await init_db()
        await ping_db()
        logger.info("Postgres connected")
    except Exception:
        logger.exception("Postgres init failed")

    # Redis is optional: without it the offer catalog is read from Postgres.
    try:
        await init_redis()
    except Exception:
        logger.exception("Redis init failed, offer catalog caching disabled")

    yield

    # Shutdown
    await close_redis()
    await close_db()


def create_app() -> FastAPI:
    """Create and configure FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Offer qualification, selection and discount calculation API",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Global exception handler returning structured error format."""
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        body = ErrorResponse.of(
            "INTERNAL_ERROR",
            str(exc) if settings.debug else "Internal server error",
        )
        return JSONResponse(status_code=500, content=body.model_dump())

    @app.get("/health", tags=["health"])
    async def health_check() -> dict[str, bool]:
        """Health check endpoint."""
        return {"ok": True}

    app.include_router(api_router)

    return app


# Application instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "promo_engine.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
