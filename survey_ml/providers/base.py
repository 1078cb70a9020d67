"""Base model-serving provider interface.

Every remote ML backend (MindsDB today; TensorFlow Serving or a custom REST
endpoint later) implements BaseMLProvider so the detectors can swap providers
without changing scoring logic.

The base class also owns the behaviour shared by every provider:

- retry with exponential backoff (``delay * 2 ** attempt``) for transient
  failures, raising ProviderError once attempts are exhausted
- model-name validation
- polling until a model finishes training
- ``safe_predict``, a Result-style wrapper the detectors use so a provider
  failure becomes a value they can branch on instead of an exception
"""

import asyncio
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple, TypeVar

from survey_ml.core.errors import ProviderError
from survey_ml.models.enums import FeatureType, ModelStatus
from survey_ml.models.schemas import ProviderConfig

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_TIMEOUT_MS = 30000
DEFAULT_RETRY_ATTEMPTS = 3
DEFAULT_RETRY_DELAY_MS = 1000

MODEL_NAME_PATTERN = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")
MODEL_NAME_MAX_LENGTH = 64


# =============================================================================
# Provider Data Structures
# =============================================================================

@dataclass
class ProviderCapabilities:
    """What a provider implementation can do."""
    supported_features: List[FeatureType]
    supports_batch_prediction: bool = False
    supports_streaming: bool = False
    supports_model_training: bool = False
    max_batch_size: int = 100
    supported_model_types: List[str] = field(default_factory=list)


@dataclass
class ModelTrainingSpec:
    """Request to train a remote model.

    Either ``query`` (a SELECT producing training rows) or ``data_source``
    (a table/view name known to the provider) must be given.
    """
    name: str
    target_column: str
    query: Optional[str] = None
    data_source: Optional[str] = None
    features: Optional[List[str]] = None
    engine: Optional[str] = None
    training_options: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ModelInfo:
    name: str
    status: ModelStatus
    accuracy: Optional[float] = None
    training_time: Optional[float] = None
    created_at: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class PredictionRequest:
    """One prediction (``input`` is a feature dict) or a batch (a list of dicts)."""
    model_name: str
    input: Any
    options: Dict[str, Any] = field(default_factory=dict)


@dataclass
class PredictionResult:
    prediction: Any
    confidence: Optional[float] = None
    probabilities: Optional[Dict[str, float]] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class BatchPredictionResult:
    predictions: List[PredictionResult]
    total_count: int
    processed_count: int
    failed_count: int
    errors: List[Tuple[int, str]] = field(default_factory=list)


@dataclass
class ConnectionTestResult:
    success: bool
    message: str
    latency_ms: float
    version: Optional[str] = None


@dataclass
class PredictionOutcome:
    """Result of ``safe_predict``: either a prediction or an error message."""
    ok: bool
    result: Optional[PredictionResult] = None
    error: Optional[str] = None

    @classmethod
    def success(cls, result: PredictionResult) -> "PredictionOutcome":
        return cls(ok=True, result=result)

    @classmethod
    def failure(cls, error: str) -> "PredictionOutcome":
        return cls(ok=False, error=error)


# =============================================================================
# Base Provider
# =============================================================================

class BaseMLProvider(ABC):
    """Abstract base class for model-serving providers."""

    # Exception types treated as transient by _retry_with_backoff.
    # Subclasses extend this with their HTTP client's error types.
    retryable_exceptions: Tuple[type, ...] = (
        asyncio.TimeoutError,
        ConnectionError,
    )

    def __init__(
        self,
        config: ProviderConfig,
        default_timeout_ms: int = DEFAULT_TIMEOUT_MS,
        default_retry_attempts: int = DEFAULT_RETRY_ATTEMPTS,
        default_retry_delay_ms: int = DEFAULT_RETRY_DELAY_MS,
    ):
        """Initialize provider with configuration.

        Args:
            config: Connection settings for the provider
            default_timeout_ms: Used when the config has no timeout
            default_retry_attempts: Used when the config has no retry count
            default_retry_delay_ms: Used when the config has no base delay
        """
        self.config = config
        self.timeout_ms = config.timeout or default_timeout_ms
        self.retry_attempts = (
            config.retryAttempts if config.retryAttempts is not None else default_retry_attempts
        )
        self.retry_delay_ms = (
            config.retryDelay if config.retryDelay is not None else default_retry_delay_ms
        )
        self.is_initialized = False

    # -------------------------------------------------------------------------
    # Contract
    # -------------------------------------------------------------------------

    @property
    @abstractmethod
    def provider_type(self) -> str:
        pass

    @property
    @abstractmethod
    def capabilities(self) -> ProviderCapabilities:
        pass

    @abstractmethod
    async def initialize(self) -> None:
        """Connect to the provider.

        Raises:
            ProviderError: If the provider is unreachable
        """
        pass

    @abstractmethod
    async def test_connection(self) -> ConnectionTestResult:
        """Check connectivity. Never raises."""
        pass

    @abstractmethod
    async def create_model(self, spec: ModelTrainingSpec) -> ModelInfo:
        """Submit an asynchronous training job; returns status TRAINING."""
        pass

    @abstractmethod
    async def get_model_info(self, model_name: str) -> ModelInfo:
        pass

    @abstractmethod
    async def predict(self, request: PredictionRequest) -> PredictionResult:
        pass

    @abstractmethod
    async def batch_predict(self, request: PredictionRequest) -> BatchPredictionResult:
        """Predict for every input; per-item failures are reported, not raised."""
        pass

    @abstractmethod
    async def delete_model(self, model_name: str) -> None:
        pass

    @abstractmethod
    async def list_models(self) -> List[ModelInfo]:
        pass

    @abstractmethod
    async def execute_raw_query(self, query: str) -> Any:
        pass

    # -------------------------------------------------------------------------
    # Shared behaviour
    # -------------------------------------------------------------------------

    async def is_model_ready(self, model_name: str) -> bool:
        info = await self.get_model_info(model_name)
        return info.status == ModelStatus.READY

    def is_ready(self) -> bool:
        return self.is_initialized

    async def close(self) -> None:
        """Release client resources. Providers holding sessions override this."""
        return None

    def sanitized_config(self) -> Dict[str, Any]:
        """Provider configuration without secrets."""
        return self.config.model_dump(exclude={"apiKey", "password"})

    async def safe_predict(self, request: PredictionRequest) -> PredictionOutcome:
        """Predict, converting any failure into a failed PredictionOutcome.

        Args:
            request: Prediction request for a single input

        Returns:
            PredictionOutcome with either the result or the error message
        """
        try:
            result = await self.predict(request)
        except Exception as e:
            logger.warning(
                f"Prediction failed on {self.provider_type} model "
                f"{request.model_name}: {e}"
            )
            return PredictionOutcome.failure(str(e))
        return PredictionOutcome.success(result)

    async def wait_for_model_ready(
        self,
        model_name: str,
        timeout_seconds: float = 300,
        poll_interval_seconds: float = 5,
    ) -> ModelInfo:
        """Poll until the model is ready.

        Raises:
            ProviderError: If training failed or the timeout elapsed
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout_seconds

        while loop.time() < deadline:
            info = await self.get_model_info(model_name)

            if info.status == ModelStatus.READY:
                return info
            if info.status == ModelStatus.FAILED:
                raise ProviderError(f"Model training failed: {info.metadata}")

            await self._sleep(poll_interval_seconds)

        raise ProviderError(f"Timeout waiting for model {model_name} to be ready")

    @staticmethod
    def validate_model_name(name: str) -> None:
        """Validate a model name.

        Raises:
            ProviderError: If the name is empty, malformed or too long
        """
        if not name or not isinstance(name, str):
            raise ProviderError("Model name is required", status_code=400)
        if not MODEL_NAME_PATTERN.match(name):
            raise ProviderError(
                "Model name must start with a letter or underscore and contain "
                "only alphanumeric characters and underscores",
                status_code=400,
            )
        if len(name) > MODEL_NAME_MAX_LENGTH:
            raise ProviderError(
                f"Model name must be {MODEL_NAME_MAX_LENGTH} characters or less",
                status_code=400,
            )

    async def _retry_with_backoff(
        self,
        operation: Callable[[], Awaitable[T]],
        description: str = "provider call",
    ) -> T:
        """Run ``operation`` with up to ``retry_attempts`` retries.

        Waits ``retry_delay_ms * 2 ** attempt`` between attempts.

        Raises:
            ProviderError: After the final failed attempt
        """
        last_error: Optional[BaseException] = None

        for attempt in range(self.retry_attempts + 1):
            try:
                return await operation()
            except self.retryable_exceptions as e:
                last_error = e
                if attempt < self.retry_attempts:
                    wait_ms = self.retry_delay_ms * (2 ** attempt)
                    logger.warning(
                        f"{description} failed (attempt {attempt + 1}/"
                        f"{self.retry_attempts + 1}), retrying in {wait_ms}ms: {e}"
                    )
                    await self._sleep(wait_ms / 1000)

        raise ProviderError(
            f"{description} failed after {self.retry_attempts + 1} attempts: {last_error}"
        ) from last_error

    @staticmethod
    async def _sleep(seconds: float) -> None:
        await asyncio.sleep(seconds)
