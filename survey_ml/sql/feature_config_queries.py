"""
Parameterized SQL for feature configurations, survey overrides and providers.

All queries use asyncpg positional placeholders ($1, $2, ...). Settings bags
are JSONB columns; the pool's JSON codec converts them to and from dicts, so
callers pass plain Python objects.

Resolution order used by the scoring services:
    1. A survey override row joined to its config of the right type.
    2. Otherwise the earliest-created enabled global config of that type.
    Sentiment calls that carry no survey id use the earliest-created enabled
    config of the type regardless of scope.
"""

from typing import Any, Dict, List, Tuple


# Columns a FeatureConfigUpdate may change, keyed by their camelCase field name
UPDATABLE_COLUMNS: Dict[str, str] = {
    "name": "name",
    "description": "description",
    "isEnabled": "is_enabled",
    "isGlobal": "is_global",
    "providerId": "provider_id",
    "providerType": "provider_type",
    "modelName": "model_name",
    "settings": "settings",
    "confidenceThreshold": "confidence_threshold",
    "batchSize": "batch_size",
    "timeoutMs": "timeout_ms",
}


# =============================================================================
# Feature Configs
# =============================================================================

def get_all_configs_query() -> str:
    """Select every feature config, newest first."""
    return """
    SELECT *
    FROM ml_feature_configs
    ORDER BY created_at DESC
    """


def get_configs_by_type_query() -> str:
    """
    Select feature configs of one type, newest first.

    Parameters:
        $1: feature_type
    """
    return """
    SELECT *
    FROM ml_feature_configs
    WHERE feature_type = $1
    ORDER BY created_at DESC
    """


def get_config_by_id_query() -> str:
    """Select a single feature config. Parameters: $1 id."""
    return """
    SELECT *
    FROM ml_feature_configs
    WHERE id = $1
    """


def get_config_by_type_and_name_query() -> str:
    """
    Look up a config by its unique (feature_type, name) pair.

    Used before inserts so that a collision becomes a 409 instead of a raw
    unique-violation from the database.

    Parameters:
        $1: feature_type
        $2: name
    """
    return """
    SELECT id
    FROM ml_feature_configs
    WHERE feature_type = $1 AND name = $2
    """


def get_insert_config_query() -> str:
    """
    Insert a feature config and return the stored row.

    Parameters:
        $1 id, $2 feature_type, $3 name, $4 description, $5 is_enabled,
        $6 is_global, $7 provider_id, $8 provider_type, $9 model_name,
        $10 settings, $11 confidence_threshold, $12 batch_size,
        $13 timeout_ms, $14 created_by

    Returns:
        str: INSERT ... RETURNING * query.
    """
    return """
    INSERT INTO ml_feature_configs (
        id, feature_type, name, description, is_enabled, is_global,
        provider_id, provider_type, model_name, settings,
        confidence_threshold, batch_size, timeout_ms, created_by,
        created_at, updated_at
    ) VALUES (
        $1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, $13, $14,
        NOW(), NOW()
    )
    RETURNING *
    """


def build_update_config_query(config_id: str, changes: Dict[str, Any]) -> Tuple[str, List[Any]]:
    """
    Build a partial UPDATE for a feature config.

    Only keys present in ``changes`` (camelCase, as produced by
    ``FeatureConfigUpdate.model_dump(exclude_unset=True)``) are written.
    ``updated_at`` is always refreshed.

    Args:
        config_id: Config to update.
        changes: camelCase field -> new value.

    Returns:
        Tuple[str, List[Any]]: The query and its positional arguments.

    Example:
        >>> sql, args = build_update_config_query('cfg_1', {'isEnabled': True})
        >>> args
        [True, 'cfg_1']
    """
    assignments: List[str] = []
    args: List[Any] = []

    for field, column in UPDATABLE_COLUMNS.items():
        if field not in changes:
            continue
        args.append(changes[field])
        assignments.append(f"{column} = ${len(args)}")

    assignments.append("updated_at = NOW()")
    args.append(config_id)

    query = f"""
    UPDATE ml_feature_configs
    SET {", ".join(assignments)}
    WHERE id = ${len(args)}
    RETURNING *
    """
    return query, args


def get_toggle_config_query() -> str:
    """Flip is_enabled. Parameters: $1 id, $2 is_enabled."""
    return """
    UPDATE ml_feature_configs
    SET is_enabled = $2, updated_at = NOW()
    WHERE id = $1
    RETURNING *
    """


def get_delete_config_query() -> str:
    """
    Delete a config. Overrides go with it via ON DELETE CASCADE.

    Parameters:
        $1: id
    """
    return """
    DELETE FROM ml_feature_configs
    WHERE id = $1
    """


# =============================================================================
# Resolution
# =============================================================================

def get_survey_override_for_type_query() -> str:
    """
    Find the override for a survey whose parent config has the requested type.
    Override columns come back prefixed with ``override_``; the parent config
    columns follow unprefixed. The parent may be disabled, in which case the
    caller treats the feature as not enabled.

    Parameters:
        $1: survey_id
        $2: feature_type
    """
    return """
    -- Survey-specific override joined to its parent feature config
    SELECT
        o.id AS override_id,
        o.survey_id,
        o.is_enabled AS override_enabled,
        o.settings AS override_settings,
        o.created_at AS override_created_at,
        o.updated_at AS override_updated_at,
        c.*
    FROM ml_feature_survey_overrides o
    JOIN ml_feature_configs c ON c.id = o.feature_config_id
    WHERE o.survey_id = $1
      AND c.feature_type = $2
    ORDER BY c.created_at ASC
    LIMIT 1
    """


def get_first_enabled_global_config_query() -> str:
    """Earliest enabled global config of a type. Parameters: $1 feature_type."""
    return """
    SELECT *
    FROM ml_feature_configs
    WHERE feature_type = $1
      AND is_enabled = TRUE
      AND is_global = TRUE
    ORDER BY created_at ASC
    LIMIT 1
    """


def get_first_enabled_config_query() -> str:
    """Earliest enabled config of a type regardless of scope. Parameters: $1 feature_type."""
    return """
    SELECT *
    FROM ml_feature_configs
    WHERE feature_type = $1
      AND is_enabled = TRUE
    ORDER BY created_at ASC
    LIMIT 1
    """


# =============================================================================
# Survey Overrides
# =============================================================================

def get_overrides_for_config_query() -> str:
    """Overrides attached to a config, by survey. Parameters: $1 feature_config_id."""
    return """
    SELECT *
    FROM ml_feature_survey_overrides
    WHERE feature_config_id = $1
    ORDER BY survey_id ASC
    """


def get_upsert_override_query() -> str:
    """
    Create or replace the override for (config, survey).

    Parameters:
        $1 id, $2 feature_config_id, $3 survey_id, $4 is_enabled, $5 settings
    """
    return """
    INSERT INTO ml_feature_survey_overrides (
        id, feature_config_id, survey_id, is_enabled, settings,
        created_at, updated_at
    ) VALUES (
        $1, $2, $3, $4, $5, NOW(), NOW()
    )
    ON CONFLICT (feature_config_id, survey_id) DO UPDATE SET
        is_enabled = EXCLUDED.is_enabled,
        settings = EXCLUDED.settings,
        updated_at = NOW()
    RETURNING *
    """


def get_delete_override_query() -> str:
    """Parameters: $1 feature_config_id, $2 survey_id."""
    return """
    DELETE FROM ml_feature_survey_overrides
    WHERE feature_config_id = $1 AND survey_id = $2
    """


# =============================================================================
# Provider Configs
# =============================================================================

def get_provider_config_query() -> str:
    """Load a provider connection record. Parameters: $1 id."""
    return """
    SELECT *
    FROM ml_provider_configs
    WHERE id = $1
    """
