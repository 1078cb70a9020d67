"""
Package initialization file for survey_ml models.

Re-exports enumerations, typed feature settings and pydantic schemas so other
modules can import them from survey_ml.models directly:

    from survey_ml.models import (
        FeatureType,
        QualitySettings,
        ResponseQualityInput,
        ResponseQualityResult,
    )
"""

# =============================================================================
# Enums
# =============================================================================

from survey_ml.models.enums import (
    FeatureType,
    ProviderKind,
    ModelStatus,
    QuestionType,
    QualityFlagType,
    Severity,
    Recommendation,
    SentimentLabel,
    Emotion,
    RiskLevel,
    InterventionType,
)

# =============================================================================
# Feature Settings
# =============================================================================

from survey_ml.models.feature_settings import (
    QualityWeights,
    QualitySettings,
    LexiconWeights,
    SentimentSettings,
    DropoutSettings,
    FeatureSettings,
    settings_model_for,
    parse_settings,
    default_settings,
    merge_settings,
)

# =============================================================================
# Schemas
# =============================================================================

from survey_ml.models.schemas import (
    AnswerInput,
    ResponseMetadata,
    ResponseQualityInput,
    QualityFlag,
    ResponseQualityResult,
    SentimentContext,
    SentimentInput,
    BatchSentimentItem,
    SentimentBatchRequest,
    SentimentResult,
    DropoutPredictionInput,
    DropoutFactor,
    SuggestedIntervention,
    DropoutPredictionResult,
    ProviderConfig,
    SurveyOverride,
    SurveyOverrideInput,
    FeatureConfig,
    FeatureConfigCreate,
    FeatureConfigUpdate,
    ToggleRequest,
    FlagCount,
    QualityStats,
    EmotionCount,
    KeywordCount,
    SentimentStats,
    PageDropoutStats,
    DropoutStats,
)


__all__ = [
    # Enums
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
    # Feature settings
    'QualityWeights',
    'QualitySettings',
    'LexiconWeights',
    'SentimentSettings',
    'DropoutSettings',
    'FeatureSettings',
    'settings_model_for',
    'parse_settings',
    'default_settings',
    'merge_settings',
    # Schemas
    'AnswerInput',
    'ResponseMetadata',
    'ResponseQualityInput',
    'QualityFlag',
    'ResponseQualityResult',
    'SentimentContext',
    'SentimentInput',
    'BatchSentimentItem',
    'SentimentBatchRequest',
    'SentimentResult',
    'DropoutPredictionInput',
    'DropoutFactor',
    'SuggestedIntervention',
    'DropoutPredictionResult',
    'ProviderConfig',
    'SurveyOverride',
    'SurveyOverrideInput',
    'FeatureConfig',
    'FeatureConfigCreate',
    'FeatureConfigUpdate',
    'ToggleRequest',
    'FlagCount',
    'QualityStats',
    'EmotionCount',
    'KeywordCount',
    'SentimentStats',
    'PageDropoutStats',
    'DropoutStats',
]
