"""
Shared provider binding for the three scoring detectors.

Every detector has two paths: a remote model on a model-serving provider, and
a deterministic rule-based fallback. This base class handles binding the
remote model and calling it safely. Subclasses only extract features, parse
the prediction, and implement their rules.

A detector uses the remote path only when a provider was bound AND the provider
reported the model as ready at bind time. Any later failure on that path is
logged and the caller silently receives the rule-based result instead.
"""

import asyncio
import logging
import math
from typing import Any, Dict, Generic, Optional, TypeVar

from survey_ml.providers.base import BaseMLProvider, PredictionRequest, PredictionResult

logger = logging.getLogger(__name__)

SettingsT = TypeVar('SettingsT')


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def coerce_number(value: Any) -> Optional[float]:
    """Best-effort numeric conversion; None for booleans, blanks and non-numbers."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        text = str(value).strip()
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
    return number if math.isfinite(number) else None


class ProviderBackedDetector(Generic[SettingsT]):
    """Base class holding settings and an optional bound remote model."""

    # Recorded as the model version when the rule path produced a result
    rule_model_version = 'rule-based'

    def __init__(self, settings: SettingsT):
        self.settings = settings
        self.provider: Optional[BaseMLProvider] = None
        self.model_name: Optional[str] = None
        self.timeout_ms: Optional[int] = None
        self.use_model = False

    @property
    def uses_model(self) -> bool:
        return self.use_model and self.provider is not None and bool(self.model_name)

    async def bind_provider(
        self,
        provider: BaseMLProvider,
        model_name: str,
        timeout_ms: Optional[int] = None,
    ) -> bool:
        """
        Attach a remote model. The remote path is enabled only if it is ready.

        ``timeout_ms`` bounds each remote prediction made through this detector;
        a prediction that overruns it is abandoned in favour of the rules.

        Returns:
            bool: True if the remote path will be used.
        """
        self.provider = provider
        self.model_name = model_name
        self.timeout_ms = timeout_ms

        try:
            self.use_model = await provider.is_model_ready(model_name)
        except Exception as e:
            logger.error(
                f"{type(self).__name__}: could not check model {model_name} "
                f"on {provider.provider_type}, using rules: {e}"
            )
            self.use_model = False

        if not self.use_model:
            logger.info(f"{type(self).__name__}: model {model_name} not ready, using rules")
        return self.use_model

    async def _predict_remote(self, features: Dict[str, Any]) -> Optional[PredictionResult]:
        """Call the bound model; None means fall back to rules."""
        if not self.uses_model:
            return None

        call = self.provider.safe_predict(PredictionRequest(model_name=self.model_name, input=features))
        try:
            if self.timeout_ms:
                outcome = await asyncio.wait_for(call, self.timeout_ms / 1000)
            else:
                outcome = await call
        except asyncio.TimeoutError:
            logger.warning(
                f"{type(self).__name__}: remote prediction exceeded {self.timeout_ms}ms, "
                f"falling back to rules"
            )
            return None

        if not outcome.ok:
            logger.warning(
                f"{type(self).__name__}: remote prediction failed, "
                f"falling back to rules: {outcome.error}"
            )
            return None
        return outcome.result
