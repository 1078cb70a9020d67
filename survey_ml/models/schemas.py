"""
Pydantic models for the ML feature scoring API and its persisted records.

Field names are camelCase to match the JSON contract consumed by the survey
frontend and admin UI; they are converted to snake_case columns only inside the
repositories.

Model Groups:
- Response quality: AnswerInput, ResponseMetadata, ResponseQualityInput,
  QualityFlag, ResponseQualityResult
- Sentiment: SentimentContext, SentimentInput, BatchSentimentItem,
  SentimentBatchRequest, SentimentResult
- Drop-out: DropoutPredictionInput, DropoutFactor, SuggestedIntervention,
  DropoutPredictionResult
- Configuration: ProviderConfig, FeatureConfig, FeatureConfigCreate,
  FeatureConfigUpdate, ToggleRequest, SurveyOverride, SurveyOverrideInput
- Statistics: QualityStats, SentimentStats, DropoutStats and their row models
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from survey_ml.models.enums import (
    FeatureType,
    InterventionType,
    ProviderKind,
    Recommendation,
    RiskLevel,
    SentimentLabel,
    Severity,
)


# =============================================================================
# Response Quality
# =============================================================================

class AnswerInput(BaseModel):
    """A single answer within a survey response."""

    questionId: str = Field(..., description="Question identifier")
    questionType: str = Field(
        ...,
        description="Question type, e.g. MULTIPLE_CHOICE, RATING_SCALE, SHORT_TEXT",
    )
    value: Any = Field(default=None, description="Raw answer value")
    timeSpent: Optional[float] = Field(
        default=None, ge=0, description="Seconds spent on this question"
    )


class ResponseMetadata(BaseModel):
    """Behavioural metadata captured by the survey client."""

    totalTimeSpent: float = Field(..., ge=0, description="Total seconds spent on the response")
    deviceType: str = Field(..., description="desktop, mobile, tablet, ...")
    pageTimings: Optional[Dict[str, float]] = Field(
        default=None, description="Seconds spent per page, keyed by page id"
    )


class ResponseQualityInput(BaseModel):
    """Request body for POST /ml-features/quality/analyze."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "responseId": "resp_123",
                "surveyId": "survey_456",
                "answers": [
                    {"questionId": "q1", "questionType": "RATING_SCALE", "value": 4},
                    {"questionId": "q2", "questionType": "SHORT_TEXT", "value": "Great service"},
                ],
                "metadata": {"totalTimeSpent": 95, "deviceType": "desktop"},
            }
        }
    )

    responseId: str
    surveyId: str
    answers: List[AnswerInput]
    metadata: ResponseMetadata


class QualityFlag(BaseModel):
    """A single quality problem found in a response."""

    type: str = Field(..., description="QualityFlagType value, or a provider-specific tag")
    severity: Severity
    message: str
    affectedQuestions: Optional[List[str]] = None


class ResponseQualityResult(BaseModel):
    qualityScore: float = Field(..., ge=0, le=100)
    flags: List[QualityFlag] = Field(default_factory=list)
    recommendation: Recommendation
    confidence: float = Field(..., ge=0, le=1)
    modelVersion: str = 'rule-based'
    configId: Optional[str] = None


# =============================================================================
# Sentiment
# =============================================================================

class SentimentContext(BaseModel):
    questionText: Optional[str] = None
    surveyTitle: Optional[str] = None
    language: Optional[str] = None


class SentimentInput(BaseModel):
    """Request body for POST /ml-features/sentiment/analyze."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "text": "The checkout flow was really easy and quick.",
                "context": {"questionText": "How was your experience?", "language": "en"},
            }
        }
    )

    text: str = Field(..., description="Free text to analyze")
    context: Optional[SentimentContext] = None


class BatchSentimentItem(SentimentInput):
    answerId: Optional[str] = None


class SentimentBatchRequest(BaseModel):
    """Request body for POST /ml-features/sentiment/analyze/batch."""

    inputs: List[BatchSentimentItem] = Field(..., min_length=1)


class SentimentResult(BaseModel):
    sentiment: SentimentLabel
    score: float = Field(..., ge=-1, le=1)
    confidence: float = Field(..., ge=0, le=1)
    emotions: Optional[Dict[str, float]] = None
    keywords: Optional[List[str]] = None
    modelVersion: str = 'lexicon-based'
    configId: Optional[str] = None
    answerId: Optional[str] = None


# =============================================================================
# Drop-out Prediction
# =============================================================================

class DropoutPredictionInput(BaseModel):
    """Request body for POST /ml-features/dropout/predict."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "responseId": "resp_123",
                "surveyId": "survey_456",
                "currentPage": 2,
                "totalPages": 10,
                "questionsAnswered": 4,
                "totalQuestions": 25,
                "timeSpentSoFar": 80,
                "averageTimePerQuestion": 20,
                "deviceType": "mobile",
                "hourOfDay": 22,
                "dayOfWeek": 6,
            }
        }
    )

    responseId: str
    surveyId: str
    currentPage: int = Field(..., ge=0)
    totalPages: int = Field(..., ge=1)
    questionsAnswered: int = Field(..., ge=0)
    totalQuestions: int = Field(..., ge=1)
    timeSpentSoFar: float = Field(..., ge=0, description="Seconds spent so far")
    averageTimePerQuestion: float = Field(default=0, ge=0)
    deviceType: str = Field(..., description="desktop, mobile, tablet, ...")
    hourOfDay: int = Field(..., ge=0, le=23)
    dayOfWeek: int = Field(..., ge=0, le=6, description="0 = Sunday")
    previousDropouts: Optional[int] = Field(default=None, ge=0)


class DropoutFactor(BaseModel):
    factor: str
    impact: float = Field(..., ge=-1, le=1)
    description: str


class SuggestedIntervention(BaseModel):
    type: InterventionType
    message: Optional[str] = None


class DropoutPredictionResult(BaseModel):
    dropoutProbability: float = Field(..., ge=0, le=1)
    riskLevel: RiskLevel
    suggestedIntervention: SuggestedIntervention
    confidence: float = Field(..., ge=0, le=1)
    factors: Optional[List[DropoutFactor]] = None
    modelVersion: str = 'rule-based'
    configId: Optional[str] = None
    predictionId: Optional[str] = Field(
        default=None, description="Persisted prediction id, used to mark the intervention shown"
    )


# =============================================================================
# Provider and Feature Configuration
# =============================================================================

class ProviderConfig(BaseModel):
    """
    Connection settings for a model-serving provider.

    Owned by the AI-tool subsystem; this service only reads it. Credentials are
    delivered already decrypted.
    """

    id: str
    type: str = ProviderKind.MINDSDB.value
    name: Optional[str] = None
    endpoint: str
    apiKey: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None
    database: Optional[str] = None
    isEnabled: bool = True
    timeout: Optional[int] = Field(default=None, description="Per-call timeout in ms")
    retryAttempts: Optional[int] = None
    retryDelay: Optional[int] = Field(default=None, description="Base backoff delay in ms")


class SurveyOverride(BaseModel):
    id: str
    featureConfigId: str
    surveyId: str
    isEnabled: bool = True
    settings: Optional[Dict[str, Any]] = None
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None


class SurveyOverrideInput(BaseModel):
    """Request body for POST /ml-features/configs/{id}/overrides."""

    surveyId: str = Field(..., min_length=1)
    isEnabled: bool = True
    settings: Optional[Dict[str, Any]] = None


class FeatureConfig(BaseModel):
    id: str
    featureType: FeatureType
    name: str
    description: Optional[str] = None
    isEnabled: bool = False
    isGlobal: bool = True
    providerId: Optional[str] = None
    providerType: str = ProviderKind.MINDSDB.value
    modelName: Optional[str] = None
    settings: Dict[str, Any] = Field(default_factory=dict)
    # Stored for provider-side tuning; not applied by the engine
    confidenceThreshold: float = 0.7
    batchSize: int = 100
    # Bounds each remote prediction made for this config
    timeoutMs: int = 30000
    createdBy: Optional[str] = None
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None
    overrides: Optional[List[SurveyOverride]] = None


class FeatureConfigCreate(BaseModel):
    """Request body for POST /ml-features/configs."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "featureType": "RESPONSE_QUALITY",
                "name": "Default quality screen",
                "isEnabled": True,
                "settings": {"autoRejectThreshold": 25},
            }
        }
    )

    featureType: FeatureType
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    isEnabled: bool = False
    isGlobal: bool = True
    providerId: Optional[str] = None
    providerType: str = ProviderKind.MINDSDB.value
    modelName: Optional[str] = None
    settings: Optional[Dict[str, Any]] = None
    confidenceThreshold: float = Field(default=0.7, ge=0, le=1)
    batchSize: int = Field(default=100, ge=1)
    timeoutMs: int = Field(default=30000, ge=1)


class FeatureConfigUpdate(BaseModel):
    """Request body for PUT /ml-features/configs/{id}; only provided fields change."""

    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = None
    isEnabled: Optional[bool] = None
    isGlobal: Optional[bool] = None
    providerId: Optional[str] = None
    providerType: Optional[str] = None
    modelName: Optional[str] = None
    settings: Optional[Dict[str, Any]] = None
    confidenceThreshold: Optional[float] = Field(default=None, ge=0, le=1)
    batchSize: Optional[int] = Field(default=None, ge=1)
    timeoutMs: Optional[int] = Field(default=None, ge=1)


class ToggleRequest(BaseModel):
    isEnabled: bool


# =============================================================================
# Statistics
# =============================================================================

class FlagCount(BaseModel):
    flag: str
    count: int


class QualityStats(BaseModel):
    totalAnalyzed: int = 0
    averageScore: float = 0.0
    recommendationDistribution: Dict[str, int] = Field(
        default_factory=lambda: {r.value: 0 for r in Recommendation}
    )
    topFlags: List[FlagCount] = Field(default_factory=list)


class EmotionCount(BaseModel):
    emotion: str
    count: float


class KeywordCount(BaseModel):
    keyword: str
    count: int


class SentimentStats(BaseModel):
    totalAnalyzed: int = 0
    averageScore: float = 0.0
    sentimentDistribution: Dict[str, int] = Field(
        default_factory=lambda: {s.value: 0 for s in SentimentLabel}
    )
    topEmotions: List[EmotionCount] = Field(default_factory=list)
    topKeywords: List[KeywordCount] = Field(default_factory=list)


class PageDropoutStats(BaseModel):
    page: int
    count: int
    avgProbability: float


class DropoutStats(BaseModel):
    totalPredictions: int = 0
    averageDropoutProbability: float = 0.0
    riskDistribution: Dict[str, int] = Field(
        default_factory=lambda: {r.value: 0 for r in RiskLevel}
    )
    interventionsShown: int = 0
    dropoutsByPage: List[PageDropoutStats] = Field(default_factory=list)


__all__ = [
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
