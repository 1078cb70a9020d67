"""
Score record persistence and per-survey statistics.

Each scoring call appends one immutable row:
    - response_quality_scores
    - sentiment_scores (source text truncated before storage)
    - dropout_predictions (the intervention_shown flag is the only mutable column)

Statistics Computation:
    Rows for one survey are loaded and aggregated in Python. Averages use
    numpy; the per-page drop-out breakdown is a pandas groupby over
    current_page. Empty surveys produce zeroed stats with every distribution
    key present.
"""

import logging
from collections import Counter
from typing import Any, List, Mapping, Optional
from uuid import uuid4

import numpy as np
import pandas as pd

from survey_ml.core.database import affected_rows, execute_command, execute_query, execute_query_one
from survey_ml.core.errors import PredictionNotFoundError
from survey_ml.models.enums import Recommendation, RiskLevel
from survey_ml.models.schemas import (
    DropoutPredictionInput,
    DropoutPredictionResult,
    DropoutStats,
    FlagCount,
    PageDropoutStats,
    QualityStats,
    ResponseQualityInput,
    ResponseQualityResult,
    SentimentResult,
    SentimentStats,
)
from survey_ml.services.sentiment_analyzer import aggregate_sentiment
from survey_ml.sql import (
    get_dropout_predictions_for_survey_query,
    get_insert_dropout_prediction_query,
    get_insert_quality_score_query,
    get_insert_sentiment_score_query,
    get_mark_intervention_shown_query,
    get_quality_scores_for_survey_query,
    get_sentiment_scores_for_survey_query,
)

logger = logging.getLogger(__name__)

DEFAULT_SOURCE_TEXT_MAX_CHARS = 1000
TOP_FLAGS = 5


def _enum_value(value: Any) -> Any:
    return getattr(value, 'value', value)


class ScoreRepository:
    """Writes score records and reads them back for survey statistics."""

    def __init__(self, source_text_max_chars: int = DEFAULT_SOURCE_TEXT_MAX_CHARS):
        self.source_text_max_chars = source_text_max_chars

    # =========================================================================
    # Persistence
    # =========================================================================

    async def save_quality_score(
        self,
        data: ResponseQualityInput,
        result: ResponseQualityResult,
        config_id: str,
        processing_time_ms: int,
    ) -> str:
        score_id = str(uuid4())
        row = await execute_query_one(
            get_insert_quality_score_query(),
            score_id,
            data.responseId,
            data.surveyId,
            config_id,
            result.qualityScore,
            _enum_value(result.recommendation),
            result.confidence,
            [flag.model_dump(mode='json') for flag in result.flags],
            processing_time_ms,
            result.modelVersion,
        )
        return row['id'] if row else score_id

    async def save_sentiment_score(
        self,
        text: str,
        result: SentimentResult,
        config_id: str,
        processing_time_ms: int,
        survey_id: Optional[str] = None,
        answer_id: Optional[str] = None,
        language: Optional[str] = None,
    ) -> str:
        score_id = str(uuid4())
        row = await execute_query_one(
            get_insert_sentiment_score_query(),
            score_id,
            config_id,
            answer_id,
            survey_id,
            text[:self.source_text_max_chars],
            _enum_value(result.sentiment),
            result.score,
            result.confidence,
            result.emotions,
            list(result.keywords or []),
            processing_time_ms,
            result.modelVersion,
            language,
        )
        return row['id'] if row else score_id

    async def save_dropout_prediction(
        self,
        data: DropoutPredictionInput,
        result: DropoutPredictionResult,
        config_id: str,
        processing_time_ms: int,
    ) -> str:
        prediction_id = str(uuid4())
        factors = [f.model_dump(mode='json') for f in result.factors] if result.factors else None
        row = await execute_query_one(
            get_insert_dropout_prediction_query(),
            prediction_id,
            data.responseId,
            data.surveyId,
            config_id,
            data.currentPage,
            data.questionsAnswered,
            result.dropoutProbability,
            _enum_value(result.riskLevel),
            result.confidence,
            factors,
            _enum_value(result.suggestedIntervention.type),
            processing_time_ms,
            result.modelVersion,
        )
        return row['id'] if row else prediction_id

    async def mark_intervention_shown(self, prediction_id: str) -> None:
        """
        Raises:
            PredictionNotFoundError: If no prediction has this id.
        """
        status = await execute_command(get_mark_intervention_shown_query(), prediction_id)
        if affected_rows(status) == 0:
            raise PredictionNotFoundError(f"Dropout prediction {prediction_id} not found")

    # =========================================================================
    # Statistics
    # =========================================================================

    async def quality_stats(self, survey_id: str) -> QualityStats:
        rows = await execute_query(get_quality_scores_for_survey_query(), survey_id)
        return summarize_quality(rows)

    async def sentiment_stats(self, survey_id: str) -> SentimentStats:
        rows = await execute_query(get_sentiment_scores_for_survey_query(), survey_id)
        return summarize_sentiment(rows)

    async def dropout_stats(self, survey_id: str) -> DropoutStats:
        rows = await execute_query(get_dropout_predictions_for_survey_query(), survey_id)
        return summarize_dropout(rows)


# =============================================================================
# Aggregation
# =============================================================================

def summarize_quality(rows: List[Mapping[str, Any]]) -> QualityStats:
    """Average score, recommendation counts and the five most frequent flag types."""
    if not rows:
        return QualityStats()

    distribution = {r.value: 0 for r in Recommendation}
    flag_counts: Counter = Counter()

    for row in rows:
        distribution[row['recommendation']] = distribution.get(row['recommendation'], 0) + 1
        for flag in row['flags'] or []:
            flag_counts[flag.get('type')] += 1

    return QualityStats(
        totalAnalyzed=len(rows),
        averageScore=float(np.mean([row['quality_score'] for row in rows])),
        recommendationDistribution=distribution,
        topFlags=[FlagCount(flag=flag, count=count) for flag, count in flag_counts.most_common(TOP_FLAGS)],
    )


def summarize_sentiment(rows: List[Mapping[str, Any]]) -> SentimentStats:
    results = [
        SentimentResult(
            sentiment=row['sentiment'],
            score=row['score'],
            confidence=0.0,
            emotions=row['emotions'],
            keywords=list(row['keywords'] or []),
        )
        for row in rows
    ]
    return SentimentStats(totalAnalyzed=len(results), **aggregate_sentiment(results))


def summarize_dropout(rows: List[Mapping[str, Any]]) -> DropoutStats:
    """Risk counts, shown interventions and per-page averages sorted by page."""
    if not rows:
        return DropoutStats()

    df = pd.DataFrame([dict(row) for row in rows])

    distribution = {r.value: 0 for r in RiskLevel}
    for risk, count in df['risk_level'].value_counts().items():
        distribution[risk] = int(count)

    by_page = (
        df.groupby('current_page')['dropout_probability']
        .agg(['count', 'mean'])
        .sort_index()
    )

    return DropoutStats(
        totalPredictions=len(df),
        averageDropoutProbability=float(np.mean(df['dropout_probability'])),
        riskDistribution=distribution,
        interventionsShown=int(df['intervention_shown'].astype(bool).sum()),
        dropoutsByPage=[
            PageDropoutStats(page=int(page), count=int(stats['count']), avgProbability=float(stats['mean']))
            for page, stats in by_page.iterrows()
        ],
    )
