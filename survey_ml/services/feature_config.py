"""
Feature configuration repositories and the per-survey resolver.

This module is the only place that reads or writes ``ml_feature_configs``,
``ml_feature_survey_overrides`` and ``ml_provider_configs``. Rows are converted
to the camelCase pydantic records from survey_ml.models.schemas at the edge, so
nothing above this layer sees column names.

Resolution Rules:
    For a (feature type, survey) pair:
    1. If the survey has an override on a config of that type:
       - override disabled: the feature is off for the survey (no config)
       - override enabled: the parent config, with the override settings patch
         merged over the parent settings
    2. Otherwise the earliest-created enabled global config of that type.

    A sentiment call without a survey id skips step 1 and takes the
    earliest-created enabled config of the type, global or not.

Dependencies:
    - survey_ml.core.database: execute_query, execute_query_one, execute_command
    - survey_ml.sql: parameterized query builders
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Union
from uuid import uuid4

from survey_ml.core.database import (
    affected_rows,
    execute_command,
    execute_query,
    execute_query_one,
)
from survey_ml.core.errors import (
    ConfigNotFoundError,
    DuplicateConfigError,
    InvalidFeatureTypeError,
    OverrideNotFoundError,
    ProviderNotFoundError,
)
from survey_ml.models.enums import FeatureType
from survey_ml.models.feature_settings import default_settings, merge_settings
from survey_ml.models.schemas import (
    FeatureConfig,
    FeatureConfigCreate,
    FeatureConfigUpdate,
    ProviderConfig,
    SurveyOverride,
    SurveyOverrideInput,
)
from survey_ml.sql import (
    build_update_config_query,
    get_all_configs_query,
    get_config_by_id_query,
    get_config_by_type_and_name_query,
    get_configs_by_type_query,
    get_delete_config_query,
    get_delete_override_query,
    get_first_enabled_config_query,
    get_first_enabled_global_config_query,
    get_insert_config_query,
    get_overrides_for_config_query,
    get_provider_config_query,
    get_survey_override_for_type_query,
    get_toggle_config_query,
    get_upsert_override_query,
)

logger = logging.getLogger(__name__)

# Columns that reject NULL; an explicit null in an update body leaves them alone
NON_NULLABLE_FIELDS = frozenset({
    'name', 'isEnabled', 'isGlobal', 'providerType', 'settings',
    'confidenceThreshold', 'batchSize', 'timeoutMs',
})


# =============================================================================
# Row Conversion
# =============================================================================

def parse_feature_type(value: Union[FeatureType, str]) -> FeatureType:
    """Coerce a path/query value to FeatureType, raising a 400 on unknown values."""
    try:
        return FeatureType(value)
    except ValueError:
        raise InvalidFeatureTypeError(f"Invalid feature type: {value}")


def row_to_feature_config(
    row: Mapping[str, Any],
    overrides: Optional[List[SurveyOverride]] = None,
) -> FeatureConfig:
    return FeatureConfig(
        id=row['id'],
        featureType=row['feature_type'],
        name=row['name'],
        description=row.get('description'),
        isEnabled=row['is_enabled'],
        isGlobal=row['is_global'],
        providerId=row.get('provider_id'),
        providerType=row.get('provider_type') or 'MINDSDB',
        modelName=row.get('model_name'),
        settings=row.get('settings') or {},
        confidenceThreshold=row.get('confidence_threshold', 0.7),
        batchSize=row.get('batch_size', 100),
        timeoutMs=row.get('timeout_ms', 30000),
        createdBy=row.get('created_by'),
        createdAt=row.get('created_at'),
        updatedAt=row.get('updated_at'),
        overrides=overrides,
    )


def row_to_survey_override(row: Mapping[str, Any]) -> SurveyOverride:
    return SurveyOverride(
        id=row['id'],
        featureConfigId=row['feature_config_id'],
        surveyId=row['survey_id'],
        isEnabled=row['is_enabled'],
        settings=row.get('settings'),
        createdAt=row.get('created_at'),
        updatedAt=row.get('updated_at'),
    )


def row_to_provider_config(row: Mapping[str, Any]) -> ProviderConfig:
    return ProviderConfig(
        id=row['id'],
        type=row.get('type') or 'MINDSDB',
        name=row.get('name'),
        endpoint=row['endpoint'],
        apiKey=row.get('api_key'),
        username=row.get('username'),
        password=row.get('password'),
        database=row.get('database'),
        isEnabled=row.get('is_enabled', True),
        timeout=row.get('timeout_ms'),
        retryAttempts=row.get('retry_attempts'),
        retryDelay=row.get('retry_delay_ms'),
    )


# =============================================================================
# Resolved Configuration
# =============================================================================

@dataclass
class ResolvedConfig:
    """
    A FeatureConfig ready for scoring.

    ``patched_for_survey`` is set when a survey override settings patch was
    merged into ``config.settings``; the detector cache uses it to keep such
    instances apart from the plain config's instance.
    """

    config: FeatureConfig
    patched_for_survey: Optional[str] = None

    @property
    def cache_key(self) -> str:
        if self.patched_for_survey:
            return f"{self.config.id}:{self.patched_for_survey}"
        return self.config.id


# =============================================================================
# Feature Config Repository
# =============================================================================

class FeatureConfigRepository:
    """CRUD for feature configs and their survey overrides."""

    async def list_configs(self) -> List[FeatureConfig]:
        rows = await execute_query(get_all_configs_query())
        return [row_to_feature_config(dict(row)) for row in rows]

    async def list_configs_by_type(self, feature_type: Union[FeatureType, str]) -> List[FeatureConfig]:
        feature_type = parse_feature_type(feature_type)
        rows = await execute_query(get_configs_by_type_query(), feature_type.value)
        return [row_to_feature_config(dict(row)) for row in rows]

    async def find_config(self, config_id: str) -> Optional[FeatureConfig]:
        row = await execute_query_one(get_config_by_id_query(), config_id)
        return row_to_feature_config(dict(row)) if row else None

    async def get_config(self, config_id: str, include_overrides: bool = True) -> FeatureConfig:
        """
        Load a config, optionally with its survey overrides.

        Raises:
            ConfigNotFoundError: If no config has this id.
        """
        row = await execute_query_one(get_config_by_id_query(), config_id)
        if row is None:
            raise ConfigNotFoundError(f"Feature config {config_id} not found")

        overrides = await self.list_overrides(config_id) if include_overrides else None
        return row_to_feature_config(dict(row), overrides)

    async def _ensure_name_available(
        self,
        feature_type: FeatureType,
        name: str,
        exclude_id: Optional[str] = None,
    ) -> None:
        existing = await execute_query_one(
            get_config_by_type_and_name_query(), feature_type.value, name
        )
        if existing is not None and existing['id'] != exclude_id:
            raise DuplicateConfigError(
                f"A {feature_type.value} config named '{name}' already exists"
            )

    async def create_config(
        self,
        data: FeatureConfigCreate,
        created_by: Optional[str] = None,
    ) -> FeatureConfig:
        """
        Insert a feature config. Omitted settings take the type's defaults.

        Raises:
            DuplicateConfigError: If (featureType, name) is already taken.
        """
        feature_type = FeatureType(data.featureType)
        await self._ensure_name_available(feature_type, data.name)

        settings = data.settings if data.settings is not None else default_settings(feature_type)

        row = await execute_query_one(
            get_insert_config_query(),
            str(uuid4()),
            feature_type.value,
            data.name,
            data.description,
            data.isEnabled,
            data.isGlobal,
            data.providerId,
            data.providerType,
            data.modelName,
            settings,
            data.confidenceThreshold,
            data.batchSize,
            data.timeoutMs,
            created_by,
        )
        config = row_to_feature_config(dict(row))
        logger.info(f"Created {feature_type.value} config {config.id} ({config.name})")
        return config

    async def update_config(self, config_id: str, data: FeatureConfigUpdate) -> FeatureConfig:
        """
        Apply a partial update.

        Raises:
            ConfigNotFoundError: If no config has this id.
            DuplicateConfigError: If the new name collides within the same type.
        """
        current = await self.get_config(config_id, include_overrides=False)

        changes = {
            field: value
            for field, value in data.model_dump(exclude_unset=True).items()
            if value is not None or field not in NON_NULLABLE_FIELDS
        }
        if 'name' in changes and changes['name'] != current.name:
            await self._ensure_name_available(current.featureType, changes['name'], exclude_id=config_id)

        query, args = build_update_config_query(config_id, changes)
        row = await execute_query_one(query, *args)
        if row is None:
            raise ConfigNotFoundError(f"Feature config {config_id} not found")

        logger.info(f"Updated config {config_id}: {sorted(changes)}")
        return row_to_feature_config(dict(row))

    async def delete_config(self, config_id: str) -> None:
        status = await execute_command(get_delete_config_query(), config_id)
        if affected_rows(status) == 0:
            raise ConfigNotFoundError(f"Feature config {config_id} not found")
        logger.info(f"Deleted config {config_id}")

    async def toggle_config(self, config_id: str, is_enabled: bool) -> FeatureConfig:
        row = await execute_query_one(get_toggle_config_query(), config_id, is_enabled)
        if row is None:
            raise ConfigNotFoundError(f"Feature config {config_id} not found")
        logger.info(f"Config {config_id} {'enabled' if is_enabled else 'disabled'}")
        return row_to_feature_config(dict(row))

    # -------------------------------------------------------------------------
    # Survey overrides
    # -------------------------------------------------------------------------

    async def list_overrides(self, config_id: str) -> List[SurveyOverride]:
        rows = await execute_query(get_overrides_for_config_query(), config_id)
        return [row_to_survey_override(dict(row)) for row in rows]

    async def upsert_override(self, config_id: str, data: SurveyOverrideInput) -> SurveyOverride:
        """
        Create or replace the override of ``config_id`` for ``data.surveyId``.

        Raises:
            ConfigNotFoundError: If the parent config does not exist.
        """
        await self.get_config(config_id, include_overrides=False)

        row = await execute_query_one(
            get_upsert_override_query(),
            str(uuid4()),
            config_id,
            data.surveyId,
            data.isEnabled,
            data.settings,
        )
        override = row_to_survey_override(dict(row))
        logger.info(
            f"Override for config {config_id} on survey {data.surveyId} "
            f"set (enabled={override.isEnabled})"
        )
        return override

    async def delete_override(self, config_id: str, survey_id: str) -> None:
        status = await execute_command(get_delete_override_query(), config_id, survey_id)
        if affected_rows(status) == 0:
            raise OverrideNotFoundError(
                f"No override for config {config_id} on survey {survey_id}"
            )
        logger.info(f"Deleted override for config {config_id} on survey {survey_id}")

    # -------------------------------------------------------------------------
    # Resolution
    # -------------------------------------------------------------------------

    async def resolve_for_survey(
        self,
        feature_type: FeatureType,
        survey_id: str,
    ) -> Optional[ResolvedConfig]:
        """
        Pick the config that applies to a survey.

        Returns:
            The resolved config, or None when the feature is off for the survey.
            The returned config may itself be disabled; callers check isEnabled.
        """
        row = await execute_query_one(
            get_survey_override_for_type_query(), survey_id, feature_type.value
        )

        if row is not None:
            row = dict(row)
            if not row['override_enabled']:
                logger.debug(f"{feature_type.value} disabled for survey {survey_id} by override")
                return None

            config = row_to_feature_config(row)
            patch = row.get('override_settings')
            if patch:
                config.settings = merge_settings(config.settings, patch)
                return ResolvedConfig(config=config, patched_for_survey=survey_id)
            return ResolvedConfig(config=config)

        row = await execute_query_one(get_first_enabled_global_config_query(), feature_type.value)
        return ResolvedConfig(config=row_to_feature_config(dict(row))) if row else None

    async def resolve_any_enabled(self, feature_type: FeatureType) -> Optional[ResolvedConfig]:
        """Earliest enabled config of the type, ignoring scope and overrides."""
        row = await execute_query_one(get_first_enabled_config_query(), feature_type.value)
        return ResolvedConfig(config=row_to_feature_config(dict(row))) if row else None


# =============================================================================
# Provider Config Repository
# =============================================================================

class ProviderConfigRepository:
    """Read-only access to provider connection records."""

    async def find(self, provider_id: str) -> Optional[ProviderConfig]:
        row = await execute_query_one(get_provider_config_query(), provider_id)
        return row_to_provider_config(dict(row)) if row else None

    async def get(self, provider_id: str) -> ProviderConfig:
        provider = await self.find(provider_id)
        if provider is None:
            raise ProviderNotFoundError(f"Provider {provider_id} not found")
        return provider


def get_default_settings(feature_type: Union[FeatureType, str]) -> Dict[str, Any]:
    """Full default settings bag for a feature type (400 on unknown types)."""
    return default_settings(parse_feature_type(feature_type))


__all__ = [
    'FeatureConfigRepository',
    'ProviderConfigRepository',
    'ResolvedConfig',
    'get_default_settings',
    'parse_feature_type',
    'row_to_feature_config',
    'row_to_survey_override',
    'row_to_provider_config',
]
