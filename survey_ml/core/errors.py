"""
Error taxonomy for the ML feature scoring service.

Three families of failure surface from the services:

- Configuration errors: a feature is not enabled for the request, or a referenced
  config/override/provider/prediction does not exist, or a config name collides.
- Provider errors: the remote model-serving endpoint is unreachable, rejected a
  request, or returned an unusable payload. Detectors absorb these and fall back
  to their rule-based path; they only reach callers through admin operations.
- Validation errors: malformed request bodies. These are raised by pydantic and
  rendered by FastAPI as 422 before any scoring work begins.

Every service-level error carries an HTTP status code so that the FastAPI
exception handler registered in main.py can render the standard error envelope
without the routers having to translate each exception individually.
"""

from typing import Optional


class MLFeatureError(Exception):
    """Base class for errors raised by the scoring services."""

    status_code: int = 500

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


# =============================================================================
# Configuration Errors
# =============================================================================

class FeatureNotEnabledError(MLFeatureError):
    """No enabled FeatureConfig applies to the request."""

    status_code = 400


class ConfigNotFoundError(MLFeatureError):
    status_code = 404


class OverrideNotFoundError(MLFeatureError):
    status_code = 404


class ProviderNotFoundError(MLFeatureError):
    status_code = 404


class PredictionNotFoundError(MLFeatureError):
    status_code = 404


class DuplicateConfigError(MLFeatureError):
    """A FeatureConfig with the same (feature_type, name) already exists."""

    status_code = 409


class InvalidFeatureTypeError(MLFeatureError):
    status_code = 400


# =============================================================================
# Provider Errors
# =============================================================================

class ProviderError(MLFeatureError):
    """
    A model-serving provider call failed.

    Raised after retries are exhausted, on unsupported provider kinds, on invalid
    model names, and when a provider returns an empty prediction.
    """

    status_code = 502


class UnsupportedProviderError(ProviderError):
    status_code = 400


__all__ = [
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
