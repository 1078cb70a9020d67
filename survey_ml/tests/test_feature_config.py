"""
Test suite for feature configuration storage and per-survey resolution.

The tests verify:
1. Survey resolution: disabled override, patched override, global fallback
2. Config CRUD against a mocked asyncpg pool (defaults, duplicate names,
   partial updates, not-found handling)
3. Settings parsing and the recursive override merge
4. The partial UPDATE query builder
"""

import pytest
from pydantic import ValidationError

from survey_ml.core.errors import (
    ConfigNotFoundError,
    DuplicateConfigError,
    InvalidFeatureTypeError,
    OverrideNotFoundError,
    ProviderNotFoundError,
)
from survey_ml.models.enums import FeatureType
from survey_ml.models.feature_settings import (
    DropoutSettings,
    QualitySettings,
    default_settings,
    merge_settings,
    parse_settings,
)
from survey_ml.models.schemas import FeatureConfigCreate, FeatureConfigUpdate, SurveyOverrideInput
from survey_ml.services.feature_config import (
    FeatureConfigRepository,
    ProviderConfigRepository,
    get_default_settings,
    parse_feature_type,
    row_to_provider_config,
)
from survey_ml.sql import build_update_config_query
from survey_ml.tests.conftest import config_row, override_join_row


def _override_row(**overrides):
    row = {
        'id': 'ovr_1',
        'feature_config_id': 'cfg_1',
        'survey_id': 'survey_1',
        'is_enabled': True,
        'settings': None,
        'created_at': None,
        'updated_at': None,
    }
    row.update(overrides)
    return row


# =============================================================================
# RESOLUTION
# =============================================================================

@pytest.mark.asyncio
class TestResolveForSurvey:
    """Override first, then the earliest enabled global config."""

    async def test_disabled_override_turns_feature_off(self, mock_database) -> None:
        mock_database.conn.fetchrow.return_value = override_join_row(override_enabled=False)

        resolved = await FeatureConfigRepository().resolve_for_survey(
            FeatureType.RESPONSE_QUALITY, 'survey_1'
        )

        assert resolved is None
        # No global fallback once an override exists
        assert mock_database.conn.fetchrow.await_count == 1

    async def test_enabled_override_merges_settings_patch(self, mock_database) -> None:
        mock_database.conn.fetchrow.return_value = override_join_row(
            override_settings={'autoRejectThreshold': 20, 'weights': {'speeding': 0.5}},
            settings={'autoRejectThreshold': 30, 'weights': {'speeding': 0.25, 'gibberish': 0.1}},
        )

        resolved = await FeatureConfigRepository().resolve_for_survey(
            FeatureType.RESPONSE_QUALITY, 'survey_1'
        )

        assert resolved.config.id == 'cfg_1'
        assert resolved.config.settings == {
            'autoRejectThreshold': 20,
            'weights': {'speeding': 0.5, 'gibberish': 0.1},
        }
        assert resolved.patched_for_survey == 'survey_1'
        assert resolved.cache_key == 'cfg_1:survey_1'

    async def test_enabled_override_without_patch_shares_config_key(self, mock_database) -> None:
        mock_database.conn.fetchrow.return_value = override_join_row(settings={'minTextLength': 5})

        resolved = await FeatureConfigRepository().resolve_for_survey(
            FeatureType.RESPONSE_QUALITY, 'survey_1'
        )

        assert resolved.config.settings == {'minTextLength': 5}
        assert resolved.cache_key == 'cfg_1'

    async def test_override_on_disabled_parent_returns_disabled_config(self, mock_database) -> None:
        mock_database.conn.fetchrow.return_value = override_join_row(is_enabled=False)

        resolved = await FeatureConfigRepository().resolve_for_survey(
            FeatureType.RESPONSE_QUALITY, 'survey_1'
        )

        assert resolved.config.isEnabled is False

    async def test_falls_back_to_global_config(self, mock_database) -> None:
        mock_database.conn.fetchrow.side_effect = [None, config_row(id='cfg_global')]

        resolved = await FeatureConfigRepository().resolve_for_survey(
            FeatureType.RESPONSE_QUALITY, 'survey_2'
        )

        assert resolved.config.id == 'cfg_global'
        assert resolved.patched_for_survey is None
        override_call, global_call = mock_database.conn.fetchrow.await_args_list
        assert override_call.args[1:] == ('survey_2', 'RESPONSE_QUALITY')
        assert global_call.args[1:] == ('RESPONSE_QUALITY',)

    async def test_nothing_enabled(self, mock_database) -> None:
        mock_database.conn.fetchrow.side_effect = [None, None]

        resolved = await FeatureConfigRepository().resolve_for_survey(
            FeatureType.DROPOUT_PREDICTION, 'survey_2'
        )

        assert resolved is None

    async def test_resolve_any_enabled(self, mock_database) -> None:
        mock_database.conn.fetchrow.return_value = config_row(
            id='cfg_sent', feature_type='SENTIMENT_ANALYSIS', is_global=False
        )

        resolved = await FeatureConfigRepository().resolve_any_enabled(FeatureType.SENTIMENT_ANALYSIS)

        assert resolved.config.id == 'cfg_sent'
        assert resolved.config.isGlobal is False


# =============================================================================
# CRUD
# =============================================================================

@pytest.mark.asyncio
class TestConfigCrud:

    async def test_create_fills_default_settings(self, mock_database) -> None:
        conn = mock_database.conn
        conn.fetchrow.side_effect = [None, config_row(name='Screen')]

        config = await FeatureConfigRepository().create_config(
            FeatureConfigCreate(featureType='RESPONSE_QUALITY', name='Screen', isEnabled=True),
            created_by='user_9',
        )

        assert config.name == 'Screen'
        insert_args = conn.fetchrow.await_args_list[1].args
        assert insert_args[2] == 'RESPONSE_QUALITY'
        assert insert_args[5] is True
        assert insert_args[10] == default_settings(FeatureType.RESPONSE_QUALITY)
        assert insert_args[14] == 'user_9'

    async def test_create_keeps_explicit_settings(self, mock_database) -> None:
        conn = mock_database.conn
        conn.fetchrow.side_effect = [None, config_row()]

        await FeatureConfigRepository().create_config(
            FeatureConfigCreate(featureType='RESPONSE_QUALITY', name='Screen', settings={})
        )

        assert conn.fetchrow.await_args_list[1].args[10] == {}

    async def test_create_duplicate_name(self, mock_database) -> None:
        mock_database.conn.fetchrow.return_value = {'id': 'cfg_existing'}

        with pytest.raises(DuplicateConfigError) as exc_info:
            await FeatureConfigRepository().create_config(
                FeatureConfigCreate(featureType='SENTIMENT_ANALYSIS', name='Default')
            )

        assert exc_info.value.status_code == 409

    async def test_update_ignores_null_for_required_columns(self, mock_database) -> None:
        conn = mock_database.conn
        conn.fetchrow.side_effect = [config_row(), config_row(is_enabled=True)]

        config = await FeatureConfigRepository().update_config(
            'cfg_1', FeatureConfigUpdate(name=None, description=None, isEnabled=True)
        )

        assert config.isEnabled is True
        update_call = conn.fetchrow.await_args_list[1]
        assert 'SET description = $1, is_enabled = $2, updated_at = NOW()' in update_call.args[0]
        assert update_call.args[1:] == (None, True, 'cfg_1')

    async def test_update_rename_collision(self, mock_database) -> None:
        mock_database.conn.fetchrow.side_effect = [config_row(), {'id': 'cfg_other'}]

        with pytest.raises(DuplicateConfigError):
            await FeatureConfigRepository().update_config('cfg_1', FeatureConfigUpdate(name='Taken'))

    async def test_update_missing_config(self, mock_database) -> None:
        with pytest.raises(ConfigNotFoundError):
            await FeatureConfigRepository().update_config('nope', FeatureConfigUpdate(isEnabled=False))

    async def test_get_config_with_overrides(self, mock_database) -> None:
        conn = mock_database.conn
        conn.fetchrow.return_value = config_row()
        conn.fetch.return_value = [_override_row(), _override_row(id='ovr_2', survey_id='survey_2', is_enabled=False)]

        config = await FeatureConfigRepository().get_config('cfg_1')

        assert [o.surveyId for o in config.overrides] == ['survey_1', 'survey_2']
        assert config.overrides[1].isEnabled is False

    async def test_delete_missing_config(self, mock_database) -> None:
        mock_database.conn.execute.return_value = 'DELETE 0'

        with pytest.raises(ConfigNotFoundError):
            await FeatureConfigRepository().delete_config('nope')

    async def test_toggle(self, mock_database) -> None:
        mock_database.conn.fetchrow.return_value = config_row(is_enabled=False)

        config = await FeatureConfigRepository().toggle_config('cfg_1', False)

        assert config.isEnabled is False
        assert mock_database.conn.fetchrow.await_args.args[1:] == ('cfg_1', False)

    async def test_list_by_unknown_type(self, mock_database) -> None:
        with pytest.raises(InvalidFeatureTypeError):
            await FeatureConfigRepository().list_configs_by_type('NOT_A_FEATURE')


@pytest.mark.asyncio
class TestOverrides:

    async def test_upsert_requires_parent(self, mock_database) -> None:
        with pytest.raises(ConfigNotFoundError):
            await FeatureConfigRepository().upsert_override(
                'missing', SurveyOverrideInput(surveyId='survey_1')
            )

    async def test_upsert(self, mock_database) -> None:
        conn = mock_database.conn
        conn.fetchrow.side_effect = [config_row(), _override_row(is_enabled=False, settings={'minTextLength': 1})]

        override = await FeatureConfigRepository().upsert_override(
            'cfg_1', SurveyOverrideInput(surveyId='survey_1', isEnabled=False, settings={'minTextLength': 1})
        )

        assert override.isEnabled is False
        assert override.settings == {'minTextLength': 1}
        assert conn.fetchrow.await_args_list[1].args[2:] == ('cfg_1', 'survey_1', False, {'minTextLength': 1})

    async def test_delete_missing_override(self, mock_database) -> None:
        mock_database.conn.execute.return_value = 'DELETE 0'

        with pytest.raises(OverrideNotFoundError):
            await FeatureConfigRepository().delete_override('cfg_1', 'survey_x')


@pytest.mark.asyncio
class TestProviderConfigs:

    async def test_missing_provider(self, mock_database) -> None:
        with pytest.raises(ProviderNotFoundError):
            await ProviderConfigRepository().get('prov_x')

    async def test_row_mapping(self, mock_database) -> None:
        mock_database.conn.fetchrow.return_value = {
            'id': 'prov_1', 'type': 'MINDSDB', 'name': 'Cloud', 'endpoint': 'https://cloud.mindsdb.com',
            'api_key': 'k', 'username': None, 'password': None, 'database': None,
            'is_enabled': True, 'timeout_ms': 5000, 'retry_attempts': 1, 'retry_delay_ms': 250,
        }

        provider = await ProviderConfigRepository().get('prov_1')

        assert provider.apiKey == 'k'
        assert provider.timeout == 5000
        assert provider.retryDelay == 250


# =============================================================================
# SETTINGS AND QUERY BUILDERS
# =============================================================================

class TestSettings:

    def test_merge_is_recursive_and_non_mutating(self) -> None:
        base = {'a': 1, 'weights': {'x': 1, 'y': 2}, 'hours': [9, 10]}
        patch = {'weights': {'y': 5}, 'hours': [22]}

        merged = merge_settings(base, patch)

        assert merged == {'a': 1, 'weights': {'x': 1, 'y': 5}, 'hours': [22]}
        assert base['weights'] == {'x': 1, 'y': 2}

    def test_merge_with_empty_inputs(self) -> None:
        assert merge_settings({}, {'a': 1}) == {'a': 1}
        assert merge_settings({'a': 1}, None) == {'a': 1}

    def test_parse_fills_defaults_and_ignores_unknown_keys(self) -> None:
        settings = parse_settings('RESPONSE_QUALITY', {'autoRejectThreshold': 25, 'legacyKnob': True})

        assert isinstance(settings, QualitySettings)
        assert settings.autoRejectThreshold == 25
        assert settings.autoAcceptThreshold == 80
        assert settings.weights.speeding == 0.25

    def test_parse_rejects_invalid_values(self) -> None:
        with pytest.raises(ValidationError):
            parse_settings(FeatureType.DROPOUT_PREDICTION, {'lowRiskThreshold': 'high'})

    def test_default_settings_per_type(self) -> None:
        assert get_default_settings('SENTIMENT_ANALYSIS')['minTextLength'] == 3
        assert get_default_settings('DROPOUT_PREDICTION') == DropoutSettings().model_dump()

    def test_unknown_feature_type(self) -> None:
        with pytest.raises(InvalidFeatureTypeError) as exc_info:
            parse_feature_type('BOGUS')

        assert exc_info.value.status_code == 400


class TestUpdateQueryBuilder:

    def test_only_changed_columns_are_set(self) -> None:
        query, args = build_update_config_query('cfg_1', {'isEnabled': True, 'settings': {'a': 1}})

        assert 'is_enabled = $1' in query
        assert 'settings = $2' in query
        assert 'updated_at = NOW()' in query
        assert 'WHERE id = $3' in query
        assert args == [True, {'a': 1}, 'cfg_1']

    def test_empty_change_set_only_touches_updated_at(self) -> None:
        query, args = build_update_config_query('cfg_1', {})

        assert 'SET updated_at = NOW()' in query
        assert args == ['cfg_1']

    def test_provider_row_defaults(self) -> None:
        provider = row_to_provider_config({'id': 'p', 'endpoint': 'http://x'})

        assert provider.type == 'MINDSDB'
        assert provider.isEnabled is True
        assert provider.timeout is None
