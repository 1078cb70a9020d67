"""
DDL for the tables owned by the ML feature scoring service.

``ml_provider_configs`` belongs to the AI-tool subsystem; its definition is
included so a development database can be bootstrapped in one step, but in a
shared deployment the owning subsystem creates and populates it.

Score tables are append-only. The only update ever issued against them is
setting ``dropout_predictions.intervention_shown`` to TRUE.
"""

from typing import List


def get_schema_statements() -> List[str]:
    """
    Return CREATE TABLE / CREATE INDEX statements in dependency order.

    All statements use IF NOT EXISTS so they are safe to run at every startup.

    Returns:
        List[str]: DDL statements to execute sequentially.
    """
    return [
        """
        CREATE TABLE IF NOT EXISTS ml_provider_configs (
            id              TEXT PRIMARY KEY,
            type            TEXT NOT NULL DEFAULT 'MINDSDB',
            name            TEXT,
            endpoint        TEXT NOT NULL,
            api_key         TEXT,
            username        TEXT,
            password        TEXT,
            database        TEXT,
            is_enabled      BOOLEAN NOT NULL DEFAULT TRUE,
            timeout_ms      INTEGER,
            retry_attempts  INTEGER,
            retry_delay_ms  INTEGER
        )
        """,
        """
        CREATE TABLE IF NOT EXISTS ml_feature_configs (
            id                    TEXT PRIMARY KEY,
            feature_type          TEXT NOT NULL,
            name                  TEXT NOT NULL,
            description           TEXT,
            is_enabled            BOOLEAN NOT NULL DEFAULT FALSE,
            is_global             BOOLEAN NOT NULL DEFAULT TRUE,
            provider_id           TEXT,
            provider_type         TEXT NOT NULL DEFAULT 'MINDSDB',
            model_name            TEXT,
            settings              JSONB NOT NULL DEFAULT '{}'::jsonb,
            confidence_threshold  DOUBLE PRECISION NOT NULL DEFAULT 0.7,
            batch_size            INTEGER NOT NULL DEFAULT 100,
            timeout_ms            INTEGER NOT NULL DEFAULT 30000,
            created_by            TEXT,
            created_at            TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at            TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            UNIQUE (feature_type, name)
        )
        """,
        """
        CREATE TABLE IF NOT EXISTS ml_feature_survey_overrides (
            id                 TEXT PRIMARY KEY,
            feature_config_id  TEXT NOT NULL REFERENCES ml_feature_configs(id) ON DELETE CASCADE,
            survey_id          TEXT NOT NULL,
            is_enabled         BOOLEAN NOT NULL DEFAULT TRUE,
            settings           JSONB,
            created_at         TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at         TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            UNIQUE (feature_config_id, survey_id)
        )
        """,
        """
        CREATE INDEX IF NOT EXISTS idx_ml_overrides_survey
            ON ml_feature_survey_overrides (survey_id)
        """,
        """
        CREATE TABLE IF NOT EXISTS response_quality_scores (
            id                  TEXT PRIMARY KEY,
            response_id         TEXT NOT NULL,
            survey_id           TEXT NOT NULL,
            feature_config_id   TEXT NOT NULL,
            quality_score       DOUBLE PRECISION NOT NULL,
            recommendation      TEXT NOT NULL,
            confidence          DOUBLE PRECISION NOT NULL,
            flags               JSONB NOT NULL DEFAULT '[]'::jsonb,
            processing_time_ms  INTEGER NOT NULL,
            model_version       TEXT NOT NULL,
            created_at          TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
        """,
        """
        CREATE INDEX IF NOT EXISTS idx_quality_scores_survey
            ON response_quality_scores (survey_id)
        """,
        """
        CREATE TABLE IF NOT EXISTS sentiment_scores (
            id                  TEXT PRIMARY KEY,
            feature_config_id   TEXT NOT NULL,
            answer_id           TEXT,
            survey_id           TEXT,
            source_text         TEXT NOT NULL,
            sentiment           TEXT NOT NULL,
            score               DOUBLE PRECISION NOT NULL,
            confidence          DOUBLE PRECISION NOT NULL,
            emotions            JSONB,
            keywords            TEXT[] NOT NULL DEFAULT '{}',
            processing_time_ms  INTEGER NOT NULL,
            model_version       TEXT NOT NULL,
            language            TEXT,
            created_at          TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
        """,
        """
        CREATE INDEX IF NOT EXISTS idx_sentiment_scores_survey
            ON sentiment_scores (survey_id)
        """,
        """
        CREATE TABLE IF NOT EXISTS dropout_predictions (
            id                   TEXT PRIMARY KEY,
            response_id          TEXT NOT NULL,
            survey_id            TEXT NOT NULL,
            feature_config_id    TEXT NOT NULL,
            current_page         INTEGER NOT NULL,
            questions_answered   INTEGER NOT NULL,
            dropout_probability  DOUBLE PRECISION NOT NULL,
            risk_level           TEXT NOT NULL,
            confidence           DOUBLE PRECISION NOT NULL,
            factors              JSONB,
            intervention_type    TEXT,
            intervention_shown   BOOLEAN NOT NULL DEFAULT FALSE,
            processing_time_ms   INTEGER NOT NULL,
            model_version        TEXT NOT NULL,
            created_at           TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
        """,
        """
        CREATE INDEX IF NOT EXISTS idx_dropout_predictions_survey
            ON dropout_predictions (survey_id)
        """,
    ]
