"""
Parameterized SQL for the append-only score tables.

Every scoring call writes exactly one row:
    - response_quality_scores for quality analyses
    - sentiment_scores for each sentiment result (batch items included)
    - dropout_predictions for drop-out predictions

Statistics are computed in Python from the per-survey selects below, so the
queries stay simple and the aggregation rules live next to the services.
"""


# =============================================================================
# Inserts
# =============================================================================

def get_insert_quality_score_query() -> str:
    """
    Parameters:
        $1 id, $2 response_id, $3 survey_id, $4 feature_config_id,
        $5 quality_score, $6 recommendation, $7 confidence, $8 flags,
        $9 processing_time_ms, $10 model_version
    """
    return """
    INSERT INTO response_quality_scores (
        id, response_id, survey_id, feature_config_id, quality_score,
        recommendation, confidence, flags, processing_time_ms, model_version,
        created_at
    ) VALUES (
        $1, $2, $3, $4, $5, $6, $7, $8, $9, $10, NOW()
    )
    RETURNING id
    """


def get_insert_sentiment_score_query() -> str:
    """
    Parameters:
        $1 id, $2 feature_config_id, $3 answer_id, $4 survey_id,
        $5 source_text, $6 sentiment, $7 score, $8 confidence, $9 emotions,
        $10 keywords, $11 processing_time_ms, $12 model_version, $13 language
    """
    return """
    INSERT INTO sentiment_scores (
        id, feature_config_id, answer_id, survey_id, source_text, sentiment,
        score, confidence, emotions, keywords, processing_time_ms,
        model_version, language, created_at
    ) VALUES (
        $1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, $13, NOW()
    )
    RETURNING id
    """


def get_insert_dropout_prediction_query() -> str:
    """
    Parameters:
        $1 id, $2 response_id, $3 survey_id, $4 feature_config_id,
        $5 current_page, $6 questions_answered, $7 dropout_probability,
        $8 risk_level, $9 confidence, $10 factors, $11 intervention_type,
        $12 processing_time_ms, $13 model_version
    """
    return """
    INSERT INTO dropout_predictions (
        id, response_id, survey_id, feature_config_id, current_page,
        questions_answered, dropout_probability, risk_level, confidence,
        factors, intervention_type, intervention_shown, processing_time_ms,
        model_version, created_at
    ) VALUES (
        $1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, FALSE, $12, $13, NOW()
    )
    RETURNING id
    """


def get_mark_intervention_shown_query() -> str:
    """
    Set intervention_shown on a prediction. The only update score tables see.

    Parameters:
        $1: prediction id
    """
    return """
    UPDATE dropout_predictions
    SET intervention_shown = TRUE
    WHERE id = $1
    """


# =============================================================================
# Per-survey selects for statistics
# =============================================================================

def get_quality_scores_for_survey_query() -> str:
    """Parameters: $1 survey_id."""
    return """
    SELECT quality_score, recommendation, flags
    FROM response_quality_scores
    WHERE survey_id = $1
    """


def get_sentiment_scores_for_survey_query() -> str:
    """Parameters: $1 survey_id."""
    return """
    SELECT sentiment, score, emotions, keywords
    FROM sentiment_scores
    WHERE survey_id = $1
    """


def get_dropout_predictions_for_survey_query() -> str:
    """Parameters: $1 survey_id."""
    return """
    SELECT current_page, dropout_probability, risk_level, intervention_shown
    FROM dropout_predictions
    WHERE survey_id = $1
    """
