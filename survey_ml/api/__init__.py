"""
API package initialization.

Router modules for the ML feature scoring service:
- feature_configs: Feature config CRUD, defaults, survey overrides, cache clear
- quality: Response quality analysis and stats
- sentiment: Sentiment analysis (single and batch) and stats
- dropout: Drop-out prediction, intervention tracking and stats

``api_router`` combines them; main.py mounts it under /ml-features.
"""

from fastapi import APIRouter

# Import router modules
from survey_ml.api.feature_configs import router as feature_configs_router
from survey_ml.api.quality import router as quality_router
from survey_ml.api.sentiment import router as sentiment_router
from survey_ml.api.dropout import router as dropout_router

# Create main API router
api_router = APIRouter()

# Include all sub-routers; each declares its own path segment
api_router.include_router(feature_configs_router, tags=["feature-configs"])
api_router.include_router(quality_router, tags=["quality"])
api_router.include_router(sentiment_router, tags=["sentiment"])
api_router.include_router(dropout_router, tags=["dropout"])

__all__ = [
    "api_router",
    "feature_configs_router",
    "quality_router",
    "sentiment_router",
    "dropout_router",
]
