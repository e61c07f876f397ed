"""Models package for PredictionEngine."""

from predictionengine.models.errors import (
    ErrorCode,
    IngestError,
    ModelConflictError,
    ModelNotFoundError,
    PredictionError,
    ProviderError,
    StorageError,
    is_retryable,
)
from predictionengine.models.metrics import GenerationMetrics
from predictionengine.models.records import GenerationRecord, ModelConfiguration, mask_api_key
from predictionengine.models.requests import (
    AspectRatio,
    GenerationRequest,
    RequesterIdentity,
    resolve_dimensions,
)
from predictionengine.models.responses import (
    ContentFilterResults,
    Prediction,
    PredictionStatus,
    ProviderImageData,
    ProviderResponse,
    SafetyVerdict,
    VariationResult,
)

__all__ = [
    "ErrorCode",
    "is_retryable",
    "IngestError",
    "ModelConflictError",
    "ModelNotFoundError",
    "PredictionError",
    "ProviderError",
    "StorageError",
    "GenerationMetrics",
    "GenerationRecord",
    "ModelConfiguration",
    "mask_api_key",
    "AspectRatio",
    "GenerationRequest",
    "RequesterIdentity",
    "resolve_dimensions",
    "ContentFilterResults",
    "Prediction",
    "PredictionStatus",
    "ProviderImageData",
    "ProviderResponse",
    "SafetyVerdict",
    "VariationResult",
]
