"""
Enumeration types for the ML feature scoring service.

All enums inherit from (str, Enum) so that they serialize to their plain string
values in JSON responses and compare equal to the strings stored in PostgreSQL.

Enum Categories:
- Feature / provider identity: FeatureType, ProviderKind, ModelStatus
- Response quality: QuestionType, QualityFlagType, Severity, Recommendation
- Sentiment: SentimentLabel, Emotion
- Drop-out: RiskLevel, InterventionType
"""

from enum import Enum


# =============================================================================
# Feature and Provider Identity
# =============================================================================

class FeatureType(str, Enum):
    """
    The three scoring features managed by the service.

    Each FeatureConfig row is bound to exactly one feature type, and the settings
    bag it carries is interpreted according to that type.
    """
    RESPONSE_QUALITY = "RESPONSE_QUALITY"
    SENTIMENT_ANALYSIS = "SENTIMENT_ANALYSIS"
    DROPOUT_PREDICTION = "DROPOUT_PREDICTION"


class ProviderKind(str, Enum):
    """
    Built-in model-serving provider tags.

    Only MINDSDB ships with an implementation. The remaining tags are recognized
    so that configs referencing them fail with a clear message instead of an
    unknown-kind error. Third-party kinds can be registered at runtime through
    survey_ml.providers.factory.register_provider using any other string tag.
    """
    MINDSDB = "MINDSDB"
    TENSORFLOW_SERVING = "TENSORFLOW_SERVING"
    CUSTOM_REST = "CUSTOM_REST"
    LOCAL = "LOCAL"


class ModelStatus(str, Enum):
    """Provider-neutral lifecycle status of a remote model."""
    TRAINING = "training"
    READY = "ready"
    FAILED = "failed"
    UNKNOWN = "unknown"


# =============================================================================
# Response Quality
# =============================================================================

class QuestionType(str, Enum):
    """
    Survey question types the quality detector understands.

    Answers with other types are accepted as input but ignored by every check.
    """
    MULTIPLE_CHOICE = "MULTIPLE_CHOICE"
    CHECKBOXES = "CHECKBOXES"
    DROPDOWN = "DROPDOWN"
    RATING_SCALE = "RATING_SCALE"
    LIKERT_SCALE = "LIKERT_SCALE"
    NPS = "NPS"
    SLIDER = "SLIDER"
    NUMBER = "NUMBER"
    SHORT_TEXT = "SHORT_TEXT"
    LONG_TEXT = "LONG_TEXT"
    DATE = "DATE"
    EMAIL = "EMAIL"


class QualityFlagType(str, Enum):
    """Kinds of low-quality behaviour the detector can flag."""
    SPEEDING = "SPEEDING"
    STRAIGHT_LINING = "STRAIGHT_LINING"
    LOW_VARIANCE = "LOW_VARIANCE"
    GIBBERISH = "GIBBERISH"
    PATTERN_DETECTED = "PATTERN_DETECTED"


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Recommendation(str, Enum):
    """
    Disposition of a scored response.

    - ACCEPT: score >= auto-accept threshold
    - REJECT: score <= auto-reject threshold
    - REVIEW: anything in between
    """
    ACCEPT = "ACCEPT"
    REVIEW = "REVIEW"
    REJECT = "REJECT"


# =============================================================================
# Sentiment
# =============================================================================

class SentimentLabel(str, Enum):
    POSITIVE = "positive"
    NEGATIVE = "negative"
    NEUTRAL = "neutral"
    MIXED = "mixed"


class Emotion(str, Enum):
    JOY = "joy"
    ANGER = "anger"
    SADNESS = "sadness"
    FEAR = "fear"
    SURPRISE = "surprise"
    DISGUST = "disgust"


# =============================================================================
# Drop-out Prediction
# =============================================================================

class RiskLevel(str, Enum):
    """
    Drop-out risk bucket derived from the predicted probability.

    Buckets are half-open on the upper bound: p < low -> LOW, p < medium ->
    MEDIUM, p < high -> HIGH, otherwise CRITICAL.
    """
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class InterventionType(str, Enum):
    """UI interventions the survey client can show to retain a respondent."""
    NONE = "NONE"
    PROGRESS_BAR = "PROGRESS_BAR"
    ENCOURAGEMENT = "ENCOURAGEMENT"
    SIMPLIFY = "SIMPLIFY"
    SAVE_PROGRESS = "SAVE_PROGRESS"
    TIME_ESTIMATE = "TIME_ESTIMATE"
    BREAK_SUGGESTION = "BREAK_SUGGESTION"


__all__ = [
    'FeatureType',
    'ProviderKind',
    'ModelStatus',
    'QuestionType',
    'QualityFlagType',
    'Severity',
    'Recommendation',
    'SentimentLabel',
    'Emotion',
    'RiskLevel',
    'InterventionType',
]
