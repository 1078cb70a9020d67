"""MindsDB provider implementation.

MindsDB exposes models as SQL tables behind an HTTP endpoint
(``POST /api/sql/query``), so every operation here is a SQL statement:

- training:   CREATE MODEL <db>.<name> FROM (<query>) PREDICT <target> USING ...
- status:     SELECT ... FROM models WHERE name = '<name>'
- prediction: SELECT * FROM <db>.<name> WHERE feature = value AND ... LIMIT 1
- deletion:   DROP MODEL <db>.<name>

Works with MindsDB Cloud (API key, sent as a Bearer token) and self-hosted
instances (HTTP basic auth).
"""

import asyncio
import base64
import logging
import time
from typing import Any, Dict, List, Optional

import aiohttp

from survey_ml.core.errors import ProviderError
from survey_ml.models.enums import FeatureType, ModelStatus, ProviderKind
from survey_ml.models.schemas import ProviderConfig
from survey_ml.providers.base import (
    BaseMLProvider,
    BatchPredictionResult,
    ConnectionTestResult,
    ModelInfo,
    ModelTrainingSpec,
    PredictionRequest,
    PredictionResult,
    ProviderCapabilities,
)

logger = logging.getLogger(__name__)

DEFAULT_DATABASE = "mindsdb"
BATCH_CHUNK_LIMIT = 100

STATUS_MAP = {
    "complete": ModelStatus.READY,
    "training": ModelStatus.TRAINING,
    "generating": ModelStatus.TRAINING,
    "error": ModelStatus.FAILED,
    "failed": ModelStatus.FAILED,
}

MODEL_COLUMNS = "name, status, accuracy, training_time, created_at"


def map_mindsdb_status(status: Optional[str]) -> ModelStatus:
    """Map a MindsDB model status onto the provider-neutral ModelStatus."""
    return STATUS_MAP.get((status or "").lower(), ModelStatus.UNKNOWN)


def sql_literal(value: Any) -> str:
    """Render a Python value as a SQL literal, escaping single quotes."""
    if value is None:
        return "NULL"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return repr(value)
    escaped = str(value).replace("'", "''")
    return f"'{escaped}'"


def rows_from_response(payload: Any) -> List[Dict[str, Any]]:
    """Normalize a /api/sql/query response body into a list of row dicts.

    MindsDB answers ``{"type": "table", "column_names": [...], "data": [[...]]}``
    for result sets, ``{"type": "ok"}`` for statements and
    ``{"type": "error", "error_message": ...}`` on failure.
    """
    if payload is None:
        return []
    if isinstance(payload, list):
        return [row for row in payload if isinstance(row, dict)]
    if not isinstance(payload, dict):
        return []

    if payload.get("type") == "error":
        raise ProviderError(payload.get("error_message") or "MindsDB query failed")

    data = payload.get("data")
    columns = payload.get("column_names")
    if isinstance(data, list) and columns:
        return [dict(zip(columns, row)) for row in data if isinstance(row, (list, tuple))]
    if isinstance(data, list):
        return [row for row in data if isinstance(row, dict)]
    if isinstance(data, dict):
        return [data]
    return []


def _to_float(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


class MindsDBProvider(BaseMLProvider):
    """MindsDB (SQL-over-HTTP) model-serving provider."""

    retryable_exceptions = BaseMLProvider.retryable_exceptions + (aiohttp.ClientError,)

    def __init__(self, config: ProviderConfig, **defaults):
        """Initialize MindsDB provider.

        Args:
            config: Provider configuration with MindsDB endpoint and credentials
            **defaults: Fallback timeout/retry values passed to BaseMLProvider
        """
        super().__init__(config, **defaults)

        if not config.endpoint:
            raise ProviderError("MindsDB endpoint required", status_code=400)

        self.endpoint = config.endpoint.rstrip("/")
        self.database = config.database or DEFAULT_DATABASE
        self.headers = {"Content-Type": "application/json"}

        if config.apiKey:
            self.headers["Authorization"] = f"Bearer {config.apiKey}"
        elif config.username and config.password:
            credentials = base64.b64encode(
                f"{config.username}:{config.password}".encode()
            ).decode()
            self.headers["Authorization"] = f"Basic {credentials}"

    @property
    def provider_type(self) -> str:
        return ProviderKind.MINDSDB.value

    @property
    def capabilities(self) -> ProviderCapabilities:
        return ProviderCapabilities(
            supported_features=list(FeatureType),
            supports_batch_prediction=True,
            supports_streaming=False,
            supports_model_training=True,
            max_batch_size=1000,
            supported_model_types=[
                "classification",
                "regression",
                "time_series",
                "text_classification",
                "anomaly_detection",
            ],
        )

    # -------------------------------------------------------------------------
    # HTTP transport
    # -------------------------------------------------------------------------

    def _timeout(self) -> aiohttp.ClientTimeout:
        return aiohttp.ClientTimeout(total=self.timeout_ms / 1000)

    @staticmethod
    async def _read_json(response: aiohttp.ClientResponse, path: str) -> Any:
        """Decode a JSON body; anything else (a proxy or login page) is a ProviderError."""
        try:
            return await response.json(content_type=None)
        except ValueError as e:
            raise ProviderError(f"MindsDB returned a non-JSON response from {path}: {e}") from e

    async def _get_json(self, path: str) -> Any:
        async with aiohttp.ClientSession(headers=self.headers) as session:
            async with session.get(
                f"{self.endpoint}{path}", timeout=self._timeout()
            ) as response:
                response.raise_for_status()
                return await self._read_json(response, path)

    async def _post_json(self, path: str, payload: Dict[str, Any]) -> Any:
        async with aiohttp.ClientSession(headers=self.headers) as session:
            async with session.post(
                f"{self.endpoint}{path}", json=payload, timeout=self._timeout()
            ) as response:
                response.raise_for_status()
                return await self._read_json(response, path)

    # -------------------------------------------------------------------------
    # Connection
    # -------------------------------------------------------------------------

    async def initialize(self) -> None:
        result = await self.test_connection()
        if not result.success:
            raise ProviderError(f"Failed to initialize MindsDB provider: {result.message}")
        self.is_initialized = True
        logger.info(f"MindsDB provider initialized at {self.endpoint}")

    async def test_connection(self) -> ConnectionTestResult:
        start = time.perf_counter()

        def elapsed_ms() -> float:
            return (time.perf_counter() - start) * 1000

        try:
            status = await self._get_json("/api/status")
            version = None
            if isinstance(status, dict):
                version = status.get("mindsdb_version") or status.get("version")
            return ConnectionTestResult(
                success=True,
                message="Connection successful",
                latency_ms=elapsed_ms(),
                version=version,
            )
        except Exception as e:
            logger.debug(f"MindsDB status endpoint unavailable, trying SQL: {e}")

        try:
            await self.execute_raw_query("SELECT 1")
        except Exception as e:
            return ConnectionTestResult(
                success=False,
                message=getattr(e, "message", None) or str(e) or "Connection failed",
                latency_ms=elapsed_ms(),
            )
        return ConnectionTestResult(
            success=True,
            message="Connection successful (via SQL)",
            latency_ms=elapsed_ms(),
        )

    # -------------------------------------------------------------------------
    # Models
    # -------------------------------------------------------------------------

    def full_model_name(self, model_name: str) -> str:
        return f"{self.database}.{model_name}" if self.database else model_name

    async def create_model(self, spec: ModelTrainingSpec) -> ModelInfo:
        self.validate_model_name(spec.name)

        using = []
        if spec.engine:
            using.append(f"engine = {sql_literal(spec.engine)}")
        for key, value in spec.training_options.items():
            using.append(f"{key} = {sql_literal(value)}")
        using_clause = f" USING {', '.join(using)}" if using else ""

        if spec.query:
            source = f"({spec.query})"
        elif spec.data_source:
            source = spec.data_source
        else:
            raise ProviderError(
                "Either query or data_source must be provided for model training",
                status_code=400,
            )

        query = (
            f"CREATE MODEL {self.full_model_name(spec.name)} "
            f"FROM {source} PREDICT {spec.target_column}{using_clause}"
        )
        await self.execute_raw_query(query)
        logger.info(f"Submitted MindsDB training job for {spec.name}")

        return ModelInfo(
            name=spec.name,
            status=ModelStatus.TRAINING,
            metadata={
                "target_column": spec.target_column,
                "features": spec.features,
                "engine": spec.engine,
            },
        )

    def _model_info_from_row(self, row: Dict[str, Any], fallback_name: str = "") -> ModelInfo:
        created_at = row.get("created_at")
        return ModelInfo(
            name=row.get("name") or fallback_name,
            status=map_mindsdb_status(row.get("status")),
            accuracy=_to_float(row.get("accuracy")),
            training_time=_to_float(row.get("training_time")),
            created_at=str(created_at) if created_at is not None else None,
            metadata=row,
        )

    async def get_model_info(self, model_name: str) -> ModelInfo:
        query = f"SELECT {MODEL_COLUMNS} FROM models WHERE name = {sql_literal(model_name)}"
        rows = rows_from_response(await self.execute_raw_query(query))

        if not rows:
            return ModelInfo(name=model_name, status=ModelStatus.UNKNOWN)
        return self._model_info_from_row(rows[0], model_name)

    async def delete_model(self, model_name: str) -> None:
        self.validate_model_name(model_name)
        await self.execute_raw_query(f"DROP MODEL {self.full_model_name(model_name)}")

    async def list_models(self) -> List[ModelInfo]:
        rows = rows_from_response(
            await self.execute_raw_query(f"SELECT {MODEL_COLUMNS} FROM models")
        )
        return [self._model_info_from_row(row) for row in rows]

    # -------------------------------------------------------------------------
    # Predictions
    # -------------------------------------------------------------------------

    async def predict(self, request: PredictionRequest) -> PredictionResult:
        features = request.input[0] if isinstance(request.input, list) else request.input
        features = features or {}

        conditions = []
        for key, value in features.items():
            if value is None:
                conditions.append(f"{key} IS NULL")
            else:
                conditions.append(f"{key} = {sql_literal(value)}")
        where = f" WHERE {' AND '.join(conditions)}" if conditions else ""

        query = f"SELECT * FROM {self.full_model_name(request.model_name)}{where} LIMIT 1"
        rows = rows_from_response(await self.execute_raw_query(query))
        if not rows:
            raise ProviderError("No prediction returned from model")

        row = rows[0]
        prediction_keys = [
            k for k in row
            if not k.endswith("_confidence")
            and not k.endswith("_explain")
            and k not in features
        ]
        prediction = row[prediction_keys[0]] if prediction_keys else row

        confidence = None
        confidence_key = next((k for k in row if k.endswith("_confidence")), None)
        if confidence_key:
            confidence = _to_float(row[confidence_key])

        return PredictionResult(prediction=prediction, confidence=confidence, metadata=row)

    async def batch_predict(self, request: PredictionRequest) -> BatchPredictionResult:
        inputs = request.input if isinstance(request.input, list) else [request.input]
        chunk_size = min(self.capabilities.max_batch_size, BATCH_CHUNK_LIMIT)

        predictions: List[PredictionResult] = []
        errors = []

        async def run_one(index: int, features: Dict[str, Any]):
            try:
                result = await self.predict(
                    PredictionRequest(
                        model_name=request.model_name,
                        input=features,
                        options=request.options,
                    )
                )
                return index, result, None
            except ProviderError as e:
                return index, None, e.message

        for start in range(0, len(inputs), chunk_size):
            chunk = inputs[start:start + chunk_size]
            outcomes = await asyncio.gather(
                *(run_one(start + offset, features) for offset, features in enumerate(chunk))
            )
            for index, result, error in outcomes:
                if result is not None:
                    predictions.append(result)
                else:
                    errors.append((index, error))

        if errors:
            logger.warning(f"Batch prediction on {request.model_name}: {len(errors)} failures")

        return BatchPredictionResult(
            predictions=predictions,
            total_count=len(inputs),
            processed_count=len(predictions),
            failed_count=len(errors),
            errors=errors,
        )

    # -------------------------------------------------------------------------
    # Raw SQL
    # -------------------------------------------------------------------------

    async def execute_raw_query(self, query: str) -> Any:
        return await self._retry_with_backoff(
            lambda: self._post_json("/api/sql/query", {"query": query.strip()}),
            description="MindsDB query",
        )
