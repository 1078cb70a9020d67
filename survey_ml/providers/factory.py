"""Provider factory, registry and instance cache.

``create_provider`` picks an implementation for a ProviderConfig by looking up
its kind tag in a registry. MindsDB is registered at import time; the other
built-in kinds are recognized but have no implementation yet, and third-party
kinds can be added with ``register_provider``.

``ProviderCache`` keeps initialized provider clients keyed by provider-config
id so the detectors do not reconnect on every scoring call. It is bounded and
evicts in insertion order (FIFO): once full, adding a new provider drops the
one that was inserted first, regardless of how recently it was used.
"""

import logging
from collections import OrderedDict
from typing import Dict, List, Optional, Type

from survey_ml.core.config import Settings
from survey_ml.core.errors import ProviderError, UnsupportedProviderError
from survey_ml.models.enums import ProviderKind
from survey_ml.models.schemas import ProviderConfig
from survey_ml.providers.base import BaseMLProvider
from survey_ml.providers.mindsdb import MindsDBProvider

logger = logging.getLogger(__name__)

DEFAULT_CACHE_SIZE = 10

# Built-in kinds that are recognized but not implemented
PLANNED_PROVIDER_KINDS = {
    ProviderKind.TENSORFLOW_SERVING.value,
    ProviderKind.CUSTOM_REST.value,
    ProviderKind.LOCAL.value,
}

_registry: Dict[str, Type[BaseMLProvider]] = {
    ProviderKind.MINDSDB.value: MindsDBProvider,
}


# =============================================================================
# Registry
# =============================================================================

def register_provider(kind: str, provider_class: Type[BaseMLProvider]) -> None:
    """Register (or replace) the implementation for a provider kind tag."""
    if not isinstance(provider_class, type) or not issubclass(provider_class, BaseMLProvider):
        raise TypeError(f"{provider_class!r} is not a BaseMLProvider subclass")
    _registry[kind.upper()] = provider_class
    logger.info(f"Registered ML provider {provider_class.__name__} for kind {kind.upper()}")


def unregister_provider(kind: str) -> None:
    _registry.pop(kind.upper(), None)


def is_provider_supported(kind: str) -> bool:
    return bool(kind) and kind.upper() in _registry


def supported_providers() -> List[str]:
    return sorted(_registry)


def create_provider(
    config: ProviderConfig,
    settings: Optional[Settings] = None,
) -> BaseMLProvider:
    """Instantiate the provider implementation for ``config.type``.

    Args:
        config: Provider connection settings
        settings: Supplies timeout/retry fallbacks when the config leaves them empty

    Returns:
        An uninitialized provider instance

    Raises:
        UnsupportedProviderError: If the kind is planned but not implemented,
            or unknown
    """
    kind = (config.type or "").upper()
    provider_class = _registry.get(kind)

    if provider_class is None:
        if kind in PLANNED_PROVIDER_KINDS:
            raise UnsupportedProviderError(f"Provider type {kind} is not yet implemented")
        raise UnsupportedProviderError(f"Unknown provider type: {config.type}")

    defaults = {}
    if settings is not None:
        defaults = {
            "default_timeout_ms": settings.provider_default_timeout_ms,
            "default_retry_attempts": settings.provider_default_retry_attempts,
            "default_retry_delay_ms": settings.provider_default_retry_delay_ms,
        }
    return provider_class(config, **defaults)


# =============================================================================
# Cache
# =============================================================================

class ProviderCache:
    """Bounded FIFO cache of initialized providers keyed by provider-config id."""

    def __init__(self, max_size: int = DEFAULT_CACHE_SIZE, settings: Optional[Settings] = None):
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self.max_size = max_size
        self.settings = settings
        self._providers: "OrderedDict[str, BaseMLProvider]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._providers)

    def __contains__(self, config_id: str) -> bool:
        return config_id in self._providers

    def keys(self) -> List[str]:
        """Cached ids, oldest insertion first."""
        return list(self._providers)

    def get(self, config_id: str) -> Optional[BaseMLProvider]:
        return self._providers.get(config_id)

    def put(self, config_id: str, provider: BaseMLProvider) -> None:
        """Insert a provider, evicting the oldest insertion when full.

        Replacing an existing id keeps its original insertion position.
        """
        if config_id not in self._providers and len(self._providers) >= self.max_size:
            evicted_id, _ = self._providers.popitem(last=False)
            logger.debug(f"Provider cache full, evicted {evicted_id}")
        self._providers[config_id] = provider

    def remove(self, config_id: str) -> None:
        self._providers.pop(config_id, None)

    def clear(self) -> None:
        self._providers.clear()

    async def get_or_create(self, config: ProviderConfig) -> BaseMLProvider:
        """Return the cached provider for ``config.id``, building it if needed.

        Raises:
            ProviderError: If the provider is disabled, unsupported or unreachable
        """
        cached = self._providers.get(config.id)
        if cached is not None:
            return cached

        if not config.isEnabled:
            raise ProviderError(f"Provider {config.id} is disabled", status_code=400)

        provider = create_provider(config, self.settings)
        await provider.initialize()

        # Two concurrent first-time builds for one id both land here; the
        # later put wins and the other instance is dropped.
        self.put(config.id, provider)
        return provider
