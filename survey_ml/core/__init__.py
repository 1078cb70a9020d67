"""
Core infrastructure package for the ML feature scoring service.

Provides:
- Configuration management via pydantic-settings
- Async PostgreSQL connectivity via asyncpg
- The service error taxonomy

Re-exports the pieces most modules need so they can write:

    from survey_ml.core import get_settings, get_db_pool, MLFeatureError

FastAPI dependencies live in survey_ml.core.dependencies and are imported from
there directly, since they depend on the services package.
"""

from survey_ml.core.config import Settings, get_settings
from survey_ml.core.database import (
    init_db,
    get_db_pool,
    close_db,
    ensure_schema,
    execute_query,
    execute_query_one,
    execute_command,
    affected_rows,
)
from survey_ml.core.errors import (
    MLFeatureError,
    FeatureNotEnabledError,
    ConfigNotFoundError,
    OverrideNotFoundError,
    ProviderNotFoundError,
    PredictionNotFoundError,
    DuplicateConfigError,
    InvalidFeatureTypeError,
    ProviderError,
    UnsupportedProviderError,
)

__all__ = [
    'Settings',
    'get_settings',
    'init_db',
    'get_db_pool',
    'close_db',
    'ensure_schema',
    'execute_query',
    'execute_query_one',
    'execute_command',
    'affected_rows',
    'MLFeatureError',
    'FeatureNotEnabledError',
    'ConfigNotFoundError',
    'OverrideNotFoundError',
    'ProviderNotFoundError',
    'PredictionNotFoundError',
    'DuplicateConfigError',
    'InvalidFeatureTypeError',
    'ProviderError',
    'UnsupportedProviderError',
]
