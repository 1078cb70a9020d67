"""
Orchestration service for ML feature scoring.

MLFeaturesService ties the pieces together for every scoring request:

    1. Resolve the FeatureConfig (explicit id, survey override, or global).
    2. Fetch or build the detector for that config from the DetectorCache,
       binding a remote model through the ProviderCache when the config names
       both a provider and a model.
    3. Score the input.
    4. Append a score record with the config id and processing time.
    5. Return the result tagged with the config id.

A failed write in step 4 is logged and the scoring result is still returned.

One service instance is built in the FastAPI lifespan and shared through
``app.state``; its caches are plain in-process objects on a single event loop.

Config mutations (update, delete, toggle, override upsert/delete) evict every
detector built from that config so the next call sees the new settings.
"""

import logging
import time
from typing import Callable, Dict, List, Optional, Union

from pydantic import ValidationError

from survey_ml.core.config import Settings, get_settings
from survey_ml.core.errors import FeatureNotEnabledError
from survey_ml.models.enums import FeatureType
from survey_ml.models.feature_settings import parse_settings
from survey_ml.models.schemas import (
    BatchSentimentItem,
    DropoutPredictionInput,
    DropoutPredictionResult,
    DropoutStats,
    FeatureConfig,
    FeatureConfigCreate,
    FeatureConfigUpdate,
    QualityStats,
    ResponseQualityInput,
    ResponseQualityResult,
    SentimentInput,
    SentimentResult,
    SentimentStats,
    SurveyOverride,
    SurveyOverrideInput,
)
from survey_ml.providers.factory import ProviderCache
from survey_ml.services.detector_base import ProviderBackedDetector
from survey_ml.services.dropout_predictor import DropoutPredictor
from survey_ml.services.feature_config import (
    FeatureConfigRepository,
    ProviderConfigRepository,
    ResolvedConfig,
    get_default_settings,
)
from survey_ml.services.quality_detector import ResponseQualityDetector
from survey_ml.services.score_repository import ScoreRepository
from survey_ml.services.sentiment_analyzer import SentimentAnalyzer

logger = logging.getLogger(__name__)

DETECTOR_CLASSES: Dict[FeatureType, Callable[..., ProviderBackedDetector]] = {
    FeatureType.RESPONSE_QUALITY: ResponseQualityDetector,
    FeatureType.SENTIMENT_ANALYSIS: SentimentAnalyzer,
    FeatureType.DROPOUT_PREDICTION: DropoutPredictor,
}

FEATURE_LABELS: Dict[FeatureType, str] = {
    FeatureType.RESPONSE_QUALITY: 'Response quality',
    FeatureType.SENTIMENT_ANALYSIS: 'Sentiment analysis',
    FeatureType.DROPOUT_PREDICTION: 'Dropout prediction',
}


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)


# =============================================================================
# Detector Cache
# =============================================================================

class DetectorCache:
    """
    Detector instances keyed by config id, or ``"<config id>:<survey id>"``
    for instances built from override-patched settings.
    """

    def __init__(self):
        self._detectors: Dict[str, ProviderBackedDetector] = {}

    def __len__(self) -> int:
        return len(self._detectors)

    def __contains__(self, key: str) -> bool:
        return key in self._detectors

    def get(self, key: str) -> Optional[ProviderBackedDetector]:
        return self._detectors.get(key)

    def put(self, key: str, detector: ProviderBackedDetector) -> None:
        self._detectors[key] = detector

    def invalidate_config(self, config_id: str) -> int:
        """Drop every instance built from ``config_id``. Returns how many were dropped."""
        prefix = f"{config_id}:"
        stale = [key for key in self._detectors if key == config_id or key.startswith(prefix)]
        for key in stale:
            del self._detectors[key]
        if stale:
            logger.debug(f"Evicted {len(stale)} detector(s) for config {config_id}")
        return len(stale)

    def clear(self) -> None:
        self._detectors.clear()


# =============================================================================
# Service
# =============================================================================

class MLFeaturesService:
    """Entry point for scoring calls and feature-config administration."""

    def __init__(
        self,
        provider_cache: Optional[ProviderCache] = None,
        detector_cache: Optional[DetectorCache] = None,
        configs: Optional[FeatureConfigRepository] = None,
        providers: Optional[ProviderConfigRepository] = None,
        scores: Optional[ScoreRepository] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self.provider_cache = provider_cache or ProviderCache(
            self.settings.provider_cache_size, self.settings
        )
        self.detector_cache = detector_cache or DetectorCache()
        self.configs = configs or FeatureConfigRepository()
        self.providers = providers or ProviderConfigRepository()
        self.scores = scores or ScoreRepository(self.settings.sentiment_source_text_max_chars)

    # =========================================================================
    # Resolution and detector lifecycle
    # =========================================================================

    async def _resolve(
        self,
        feature_type: FeatureType,
        config_id: Optional[str] = None,
        survey_id: Optional[str] = None,
    ) -> ResolvedConfig:
        """
        Pick the config for a scoring call.

        Raises:
            ConfigNotFoundError: If an explicit config id does not exist.
            FeatureNotEnabledError: If nothing enabled applies.
        """
        if config_id:
            resolved: Optional[ResolvedConfig] = ResolvedConfig(
                config=await self.configs.get_config(config_id, include_overrides=False)
            )
        elif survey_id:
            resolved = await self.configs.resolve_for_survey(feature_type, survey_id)
        else:
            resolved = await self.configs.resolve_any_enabled(feature_type)

        label = FEATURE_LABELS[feature_type]
        if resolved is None or not resolved.config.isEnabled:
            raise FeatureNotEnabledError(f"{label} feature is not enabled")
        if resolved.config.featureType != feature_type:
            raise FeatureNotEnabledError(
                f"Config {resolved.config.id} is a {resolved.config.featureType.value} config, "
                f"not {feature_type.value}"
            )
        return resolved

    async def _get_detector(self, resolved: ResolvedConfig) -> ProviderBackedDetector:
        key = resolved.cache_key
        cached = self.detector_cache.get(key)
        if cached is not None:
            return cached

        config = resolved.config
        feature_type = FeatureType(config.featureType)
        try:
            settings = parse_settings(feature_type, config.settings)
        except ValidationError as e:
            logger.warning(f"Invalid settings on config {config.id}, using defaults: {e}")
            settings = parse_settings(feature_type)

        detector = DETECTOR_CLASSES[feature_type](settings)
        if config.providerId and config.modelName:
            await self._bind_provider(detector, config)

        # Concurrent first builds for one key: the last put wins
        self.detector_cache.put(key, detector)
        logger.info(
            f"Built {type(detector).__name__} for {key} "
            f"({'model ' + config.modelName if detector.uses_model else 'rules'})"
        )
        return detector

    async def _bind_provider(self, detector: ProviderBackedDetector, config: FeatureConfig) -> None:
        provider_config = await self.providers.find(config.providerId)
        if provider_config is None or not provider_config.isEnabled:
            logger.warning(
                f"Provider {config.providerId} for config {config.id} missing or disabled, using rules"
            )
            return

        try:
            provider = await self.provider_cache.get_or_create(provider_config)
        except Exception as e:
            logger.error(f"Could not initialize provider {config.providerId}, using rules: {e}")
            return

        await detector.bind_provider(provider, config.modelName, timeout_ms=config.timeoutMs)

    # =========================================================================
    # Scoring
    # =========================================================================

    async def analyze_quality(
        self,
        data: ResponseQualityInput,
        config_id: Optional[str] = None,
    ) -> ResponseQualityResult:
        started = time.perf_counter()
        resolved = await self._resolve(FeatureType.RESPONSE_QUALITY, config_id, data.surveyId)
        detector = await self._get_detector(resolved)

        result = await detector.analyze(data)
        result.configId = resolved.config.id

        try:
            await self.scores.save_quality_score(data, result, resolved.config.id, _elapsed_ms(started))
        except Exception as e:
            logger.error(f"Failed to persist quality score for response {data.responseId}: {e}", exc_info=True)

        return result

    async def analyze_sentiment(
        self,
        data: SentimentInput,
        config_id: Optional[str] = None,
        survey_id: Optional[str] = None,
        answer_id: Optional[str] = None,
    ) -> SentimentResult:
        started = time.perf_counter()
        resolved = await self._resolve(FeatureType.SENTIMENT_ANALYSIS, config_id, survey_id)
        analyzer = await self._get_detector(resolved)

        result = await analyzer.analyze(data)
        result.configId = resolved.config.id
        result.answerId = answer_id

        await self._save_sentiment(data, result, resolved.config.id, _elapsed_ms(started), survey_id, answer_id)
        return result

    async def analyze_sentiment_batch(
        self,
        items: List[BatchSentimentItem],
        config_id: Optional[str] = None,
        survey_id: Optional[str] = None,
    ) -> List[SentimentResult]:
        """Score many texts under one resolved config; results keep input order."""
        started = time.perf_counter()
        resolved = await self._resolve(FeatureType.SENTIMENT_ANALYSIS, config_id, survey_id)
        analyzer = await self._get_detector(resolved)

        results = await analyzer.analyze_batch(items, self.settings.sentiment_batch_concurrency)
        per_item_ms = _elapsed_ms(started) // max(1, len(items))

        for item, result in zip(items, results):
            result.configId = resolved.config.id
            result.answerId = item.answerId
            await self._save_sentiment(item, result, resolved.config.id, per_item_ms, survey_id, item.answerId)

        logger.info(f"Batch sentiment: {len(results)} texts scored with config {resolved.config.id}")
        return results

    async def _save_sentiment(
        self,
        data: SentimentInput,
        result: SentimentResult,
        config_id: str,
        processing_time_ms: int,
        survey_id: Optional[str],
        answer_id: Optional[str],
    ) -> None:
        language = data.context.language if data.context else None
        try:
            await self.scores.save_sentiment_score(
                data.text,
                result,
                config_id,
                processing_time_ms,
                survey_id=survey_id,
                answer_id=answer_id,
                language=language,
            )
        except Exception as e:
            logger.error(f"Failed to persist sentiment score (answer {answer_id}): {e}", exc_info=True)

    async def predict_dropout(
        self,
        data: DropoutPredictionInput,
        config_id: Optional[str] = None,
    ) -> DropoutPredictionResult:
        started = time.perf_counter()
        resolved = await self._resolve(FeatureType.DROPOUT_PREDICTION, config_id, data.surveyId)
        predictor = await self._get_detector(resolved)

        result = await predictor.predict(data)
        result.configId = resolved.config.id

        try:
            result.predictionId = await self.scores.save_dropout_prediction(
                data, result, resolved.config.id, _elapsed_ms(started)
            )
        except Exception as e:
            logger.error(f"Failed to persist dropout prediction for response {data.responseId}: {e}", exc_info=True)

        return result

    async def mark_intervention_shown(self, prediction_id: str) -> None:
        await self.scores.mark_intervention_shown(prediction_id)

    # =========================================================================
    # Statistics
    # =========================================================================

    async def get_quality_stats(self, survey_id: str) -> QualityStats:
        return await self.scores.quality_stats(survey_id)

    async def get_sentiment_stats(self, survey_id: str) -> SentimentStats:
        return await self.scores.sentiment_stats(survey_id)

    async def get_dropout_stats(self, survey_id: str) -> DropoutStats:
        return await self.scores.dropout_stats(survey_id)

    # =========================================================================
    # Config administration
    # =========================================================================

    async def list_configs(self) -> List[FeatureConfig]:
        return await self.configs.list_configs()

    async def list_configs_by_type(self, feature_type: Union[FeatureType, str]) -> List[FeatureConfig]:
        return await self.configs.list_configs_by_type(feature_type)

    async def get_config(self, config_id: str) -> FeatureConfig:
        return await self.configs.get_config(config_id)

    async def create_config(self, data: FeatureConfigCreate, created_by: Optional[str] = None) -> FeatureConfig:
        return await self.configs.create_config(data, created_by)

    async def update_config(self, config_id: str, data: FeatureConfigUpdate) -> FeatureConfig:
        config = await self.configs.update_config(config_id, data)
        self.detector_cache.invalidate_config(config_id)
        return config

    async def delete_config(self, config_id: str) -> None:
        await self.configs.delete_config(config_id)
        self.detector_cache.invalidate_config(config_id)

    async def toggle_config(self, config_id: str, is_enabled: bool) -> FeatureConfig:
        config = await self.configs.toggle_config(config_id, is_enabled)
        self.detector_cache.invalidate_config(config_id)
        return config

    def get_default_settings(self, feature_type: Union[FeatureType, str]) -> Dict:
        return get_default_settings(feature_type)

    async def list_overrides(self, config_id: str) -> List[SurveyOverride]:
        config = await self.configs.get_config(config_id)
        return config.overrides or []

    async def upsert_override(self, config_id: str, data: SurveyOverrideInput) -> SurveyOverride:
        override = await self.configs.upsert_override(config_id, data)
        self.detector_cache.invalidate_config(config_id)
        return override

    async def delete_override(self, config_id: str, survey_id: str) -> None:
        await self.configs.delete_override(config_id, survey_id)
        self.detector_cache.invalidate_config(config_id)

    def clear_cache(self) -> None:
        """Drop every cached detector and provider instance."""
        detectors, providers = len(self.detector_cache), len(self.provider_cache)
        self.detector_cache.clear()
        self.provider_cache.clear()
        logger.info(f"Cleared caches ({detectors} detectors, {providers} providers)")


__all__ = [
    'MLFeaturesService',
    'DetectorCache',
]
