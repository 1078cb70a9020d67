"""
SQL query layer for the ML feature scoring service.

Provides parameterized asyncpg queries for:
- Table definitions (schema)
- Feature configs, survey overrides and provider records (feature_config_queries)
- Score persistence and per-survey statistics reads (score_queries)

Business logic lives in survey_ml.services; this package only builds SQL.

Example usage:
    from survey_ml.sql import get_config_by_id_query, build_update_config_query

    row = await execute_query_one(get_config_by_id_query(), config_id)
    sql, args = build_update_config_query(config_id, {'isEnabled': True})
"""

# =============================================================================
# SCHEMA
# =============================================================================

from survey_ml.sql.schema import get_schema_statements

# =============================================================================
# FEATURE CONFIG QUERIES
# =============================================================================

from survey_ml.sql.feature_config_queries import (
    UPDATABLE_COLUMNS,
    get_all_configs_query,
    get_configs_by_type_query,
    get_config_by_id_query,
    get_config_by_type_and_name_query,
    get_insert_config_query,
    build_update_config_query,
    get_toggle_config_query,
    get_delete_config_query,
    get_survey_override_for_type_query,
    get_first_enabled_global_config_query,
    get_first_enabled_config_query,
    get_overrides_for_config_query,
    get_upsert_override_query,
    get_delete_override_query,
    get_provider_config_query,
)

# =============================================================================
# SCORE QUERIES
# =============================================================================

from survey_ml.sql.score_queries import (
    get_insert_quality_score_query,
    get_insert_sentiment_score_query,
    get_insert_dropout_prediction_query,
    get_mark_intervention_shown_query,
    get_quality_scores_for_survey_query,
    get_sentiment_scores_for_survey_query,
    get_dropout_predictions_for_survey_query,
)

__all__ = [
    'get_schema_statements',
    'UPDATABLE_COLUMNS',
    'get_all_configs_query',
    'get_configs_by_type_query',
    'get_config_by_id_query',
    'get_config_by_type_and_name_query',
    'get_insert_config_query',
    'build_update_config_query',
    'get_toggle_config_query',
    'get_delete_config_query',
    'get_survey_override_for_type_query',
    'get_first_enabled_global_config_query',
    'get_first_enabled_config_query',
    'get_overrides_for_config_query',
    'get_upsert_override_query',
    'get_delete_override_query',
    'get_provider_config_query',
    'get_insert_quality_score_query',
    'get_insert_sentiment_score_query',
    'get_insert_dropout_prediction_query',
    'get_mark_intervention_shown_query',
    'get_quality_scores_for_survey_query',
    'get_sentiment_scores_for_survey_query',
    'get_dropout_predictions_for_survey_query',
]
