"""
Typed settings for each scoring feature.

A FeatureConfig stores its settings as an opaque JSON bag, and a SurveyOverride
stores a partial patch of the same shape. This module turns those bags into
typed pydantic models keyed on the feature type (a tagged union), so detectors
never read untyped dictionaries:

    RESPONSE_QUALITY    -> QualitySettings
    SENTIMENT_ANALYSIS  -> SentimentSettings
    DROPOUT_PREDICTION  -> DropoutSettings

Field names are camelCase because they mirror the JSON stored in the database and
exchanged with the admin UI. Every field has a default, so an empty bag yields
the documented defaults and a partial bag overrides only what it names. Unknown
keys are ignored so that older rows keep loading after a setting is retired.

Merge semantics (override patch over parent settings) are a recursive dict merge:
nested objects such as ``weights`` are merged key by key, everything else is
replaced.

Stored-only Fields:
    reviewThreshold, detectSarcasm, supportedLanguages, interventionDelay and
    maxInterventionsPerSession are validated and persisted for the survey
    client and admin UI, which enforce them. The scoring engine does not read
    them.
"""

from typing import Any, Dict, List, Optional, Type, Union

from pydantic import BaseModel, ConfigDict, Field

from survey_ml.models.enums import FeatureType


# =============================================================================
# Response Quality Settings
# =============================================================================

class QualityWeights(BaseModel):
    """Relative weight of each check's penalty in the final quality score."""

    model_config = ConfigDict(extra='ignore')

    speeding: float = Field(default=0.25, ge=0)
    straightLining: float = Field(default=0.25, ge=0)
    lowVariance: float = Field(default=0.20, ge=0)
    gibberish: float = Field(default=0.15, ge=0)
    patterns: float = Field(default=0.15, ge=0)


class QualitySettings(BaseModel):
    """Thresholds for the rule-based Response Quality Detector."""

    model_config = ConfigDict(extra='ignore')

    # Timing
    speedingThresholdSeconds: float = Field(
        default=2,
        description="Minimum average seconds per question before speeding is flagged",
    )
    minimumTotalTimeSeconds: float = Field(
        default=30,
        description="Minimum total seconds for the whole response",
    )

    # Straight-lining / variance
    straightLiningThreshold: float = Field(
        default=0.8, ge=0, le=1,
        description="Share of identical choice answers at which straight-lining is flagged",
    )
    minVarianceThreshold: float = Field(
        default=0.5, ge=0,
        description="Population standard deviation floor for numeric answers",
    )

    # Recommendation bands
    autoAcceptThreshold: float = Field(default=80, ge=0, le=100)
    autoRejectThreshold: float = Field(default=30, ge=0, le=100)
    # Stored for the admin UI; the REVIEW band is everything between the two above
    reviewThreshold: float = Field(default=50, ge=0, le=100)

    # Text quality
    minTextLength: int = Field(default=10, ge=0)
    gibberishThreshold: float = Field(default=0.3, ge=0, le=1)

    # Patterns
    detectPatterns: bool = True
    maxConsecutiveSame: int = Field(default=5, ge=1)

    weights: QualityWeights = Field(default_factory=QualityWeights)


# =============================================================================
# Sentiment Settings
# =============================================================================

class LexiconWeights(BaseModel):
    """Per-token contributions used by the lexicon scorer."""

    model_config = ConfigDict(extra='ignore')

    positive: float = 1.0
    negative: float = -1.0
    intensifier: float = 1.5
    negation: float = -1.0


class SentimentSettings(BaseModel):
    """Configuration for the Sentiment Analyzer."""

    model_config = ConfigDict(extra='ignore')

    confidenceThreshold: float = Field(default=0.6, ge=0, le=1)
    mixedSentimentThreshold: float = Field(
        default=0.2, ge=0, le=1,
        description="Score magnitude separating positive/negative from mixed/neutral",
    )
    includeEmotions: bool = True
    extractKeywords: bool = True
    # Stored only
    detectSarcasm: bool = False
    defaultLanguage: str = 'en'
    supportedLanguages: List[str] = Field(default_factory=lambda: ['en', 'es', 'fr', 'de'])
    maxTextLength: int = Field(default=5000, ge=1)
    minTextLength: int = Field(default=3, ge=0)
    lexiconWeights: LexiconWeights = Field(default_factory=LexiconWeights)


# =============================================================================
# Drop-out Settings
# =============================================================================

class DropoutSettings(BaseModel):
    """Multipliers and thresholds for the Drop-out Predictor."""

    model_config = ConfigDict(extra='ignore')

    # Risk bands
    lowRiskThreshold: float = Field(default=0.25, ge=0, le=1)
    mediumRiskThreshold: float = Field(default=0.5, ge=0, le=1)
    highRiskThreshold: float = Field(default=0.75, ge=0, le=1)

    # Interventions
    enableInterventions: bool = True
    # Pacing of interventions is enforced by the survey client
    interventionDelay: int = Field(default=30, ge=0, description="Seconds between interventions")
    maxInterventionsPerSession: int = Field(default=3, ge=0)

    # Pacing
    expectedTimePerQuestion: float = Field(default=15, gt=0)
    slowThresholdMultiplier: float = 3.0
    fastThresholdMultiplier: float = 0.3

    # Device
    mobileDropoutMultiplier: float = 1.3
    tabletDropoutMultiplier: float = 1.1

    # Time of day / week
    peakHours: List[int] = Field(default_factory=lambda: [9, 10, 11, 14, 15, 16, 19, 20])
    offPeakMultiplier: float = 1.15
    weekendMultiplier: float = 1.1

    # Survey length
    longSurveyThreshold: int = 20
    longSurveyMultiplier: float = 1.2

    baseProbability: float = Field(default=0.3, ge=0, le=1)


# =============================================================================
# Tagged Union Helpers
# =============================================================================

FeatureSettings = Union[QualitySettings, SentimentSettings, DropoutSettings]

SETTINGS_MODELS: Dict[FeatureType, Type[BaseModel]] = {
    FeatureType.RESPONSE_QUALITY: QualitySettings,
    FeatureType.SENTIMENT_ANALYSIS: SentimentSettings,
    FeatureType.DROPOUT_PREDICTION: DropoutSettings,
}


def settings_model_for(feature_type: Union[FeatureType, str]) -> Type[BaseModel]:
    """Return the settings model class bound to a feature type."""
    return SETTINGS_MODELS[FeatureType(feature_type)]


def parse_settings(
    feature_type: Union[FeatureType, str],
    bag: Optional[Dict[str, Any]] = None,
) -> FeatureSettings:
    """
    Validate a settings bag into the typed model for its feature type.

    Missing keys take their defaults; unknown keys are dropped.

    Raises:
        pydantic.ValidationError: If a known key has an invalid value.
    """
    model = settings_model_for(feature_type)
    return model.model_validate(bag or {})


def default_settings(feature_type: Union[FeatureType, str]) -> Dict[str, Any]:
    """Return the full default settings bag for a feature type."""
    return settings_model_for(feature_type)().model_dump()


def merge_settings(base: Dict[str, Any], patch: Dict[str, Any]) -> Dict[str, Any]:
    """
    Recursively merge ``patch`` over ``base`` without mutating either.

    Nested dicts are merged key by key; any other value in the patch replaces the
    base value outright (lists included).

    Example:
        >>> merge_settings({'a': 1, 'weights': {'x': 1, 'y': 2}}, {'weights': {'y': 5}})
        {'a': 1, 'weights': {'x': 1, 'y': 5}}
    """
    merged = dict(base or {})
    for key, value in (patch or {}).items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = merge_settings(current, value)
        else:
            merged[key] = value
    return merged


__all__ = [
    'QualityWeights',
    'QualitySettings',
    'LexiconWeights',
    'SentimentSettings',
    'DropoutSettings',
    'FeatureSettings',
    'SETTINGS_MODELS',
    'settings_model_for',
    'parse_settings',
    'default_settings',
    'merge_settings',
]
