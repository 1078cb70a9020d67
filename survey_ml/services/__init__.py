"""
Services Module

Business logic for the ML feature scoring engine.

Services:
- quality_detector: Response-quality scoring (speeding, straight-lining, gibberish, ...)
- sentiment_analyzer: Lexicon-based sentiment with emotion and keyword extraction
- dropout_predictor: Multiplicative risk-factor drop-out prediction with interventions
- feature_config: FeatureConfig / SurveyOverride / ProviderConfig repositories and resolver
- score_repository: Score record persistence and per-survey statistics
- ml_features: Orchestration service and detector cache

The three detectors can delegate to a remote model through survey_ml.providers
and fall back to their rule paths on any provider failure.
"""

# =============================================================================
# Detectors
# =============================================================================

from survey_ml.services.quality_detector import ResponseQualityDetector
from survey_ml.services.sentiment_analyzer import SentimentAnalyzer, aggregate_sentiment
from survey_ml.services.dropout_predictor import DropoutPredictor

# =============================================================================
# Configuration and Persistence
# =============================================================================

from survey_ml.services.feature_config import (
    FeatureConfigRepository,
    ProviderConfigRepository,
    ResolvedConfig,
    get_default_settings,
)
from survey_ml.services.score_repository import ScoreRepository

# =============================================================================
# Orchestration
# =============================================================================

from survey_ml.services.ml_features import DetectorCache, MLFeaturesService

__all__ = [
    'ResponseQualityDetector',
    'SentimentAnalyzer',
    'aggregate_sentiment',
    'DropoutPredictor',
    'FeatureConfigRepository',
    'ProviderConfigRepository',
    'ResolvedConfig',
    'get_default_settings',
    'ScoreRepository',
    'DetectorCache',
    'MLFeaturesService',
]
