"""
FastAPI application entry point for the Survey ML Features API.

Configures logging, CORS and the error envelope, builds the shared
MLFeaturesService in the lifespan, and mounts the routers under /ml-features.

Error Envelope:
    MLFeatureError subclasses carry their own HTTP status and render as
    {"success": false, "message": "..."}. Anything unexpected is logged with
    its traceback and returned as a 500 with the same envelope. Request body
    validation failures keep FastAPI's default 422 response.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from survey_ml import __version__
from survey_ml.api import api_router
from survey_ml.core.config import get_settings
from survey_ml.core.database import close_db, ensure_schema, init_db
from survey_ml.core.errors import MLFeatureError
from survey_ml.providers.factory import ProviderCache
from survey_ml.services.ml_features import MLFeaturesService

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Lifespan context manager for startup and shutdown.

    On startup:
        - Initialize the database connection pool (and the schema if enabled)
        - Build the MLFeaturesService with its provider and detector caches

    On shutdown:
        - Drop cached detectors and providers
        - Close the database connection pool
    """
    # Startup
    logger.info("Survey ML Features API starting")
    try:
        await init_db()
        logger.info("Database pool ready")
        if settings.auto_create_schema:
            await ensure_schema()
    except Exception as e:
        logger.error(f"Database unavailable at startup, scores will not be persisted until it recovers: {e}")
        # Continue startup; rule-based scoring works and persistence failures are logged

    app.state.ml_features = MLFeaturesService(
        provider_cache=ProviderCache(settings.provider_cache_size, settings),
        settings=settings,
    )

    yield

    # Shutdown
    logger.info("Survey ML Features API shutting down")
    app.state.ml_features.clear_cache()
    try:
        await close_db()
        logger.info("Database pool closed")
    except Exception as e:
        logger.error(f"Failed to close database pool: {e}")


app = FastAPI(
    title="Survey ML Features API",
    version=__version__,
    description=(
        "Real-time scoring for survey responses: response quality, "
        "free-text sentiment and drop-out risk, with per-survey feature configuration."
    ),
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(MLFeatureError)
async def ml_feature_error_handler(request: Request, exc: MLFeatureError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    else:
        logger.warning(f"{request.method} {request.url.path} rejected: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": exc.message},
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"success": False, "message": "Internal server error"},
    )


# Register API routers
app.include_router(api_router, prefix="/ml-features")


@app.get("/health")
async def health_check():
    """Liveness check. Does not touch the database or any provider."""
    return {"status": "healthy"}


@app.get("/")
async def root():
    """Service name, version and where to find the OpenAPI docs."""
    return {
        "name": "Survey ML Features API",
        "version": __version__,
        "docs": "/docs",
        "openapi": "/openapi.json",
    }


# Local development entry point
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "survey_ml.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
