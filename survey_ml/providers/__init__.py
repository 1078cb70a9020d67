"""
Model-serving provider abstraction.

    from survey_ml.providers import ProviderCache, create_provider

    cache = ProviderCache(max_size=10)
    provider = await cache.get_or_create(provider_config)
    outcome = await provider.safe_predict(PredictionRequest(model_name='m', input={...}))
"""

from survey_ml.providers.base import (
    BaseMLProvider,
    BatchPredictionResult,
    ConnectionTestResult,
    ModelInfo,
    ModelTrainingSpec,
    PredictionOutcome,
    PredictionRequest,
    PredictionResult,
    ProviderCapabilities,
)
from survey_ml.providers.mindsdb import MindsDBProvider
from survey_ml.providers.factory import (
    ProviderCache,
    create_provider,
    is_provider_supported,
    register_provider,
    supported_providers,
    unregister_provider,
)


__all__ = [
    'BaseMLProvider',
    'BatchPredictionResult',
    'ConnectionTestResult',
    'ModelInfo',
    'ModelTrainingSpec',
    'PredictionOutcome',
    'PredictionRequest',
    'PredictionResult',
    'ProviderCapabilities',
    'MindsDBProvider',
    'ProviderCache',
    'create_provider',
    'is_provider_supported',
    'register_provider',
    'supported_providers',
    'unregister_provider',
]
