"""PredictionEngine - image generation orchestration."""

from predictionengine.interfaces import CreditLedger, GenerationStore, RateLimiter, StorageBackend
from predictionengine.models.errors import (
    ErrorCode,
    IngestError,
    PredictionError,
    ProviderError,
    StorageError,
    is_retryable,
)
from predictionengine.models.metrics import GenerationMetrics
from predictionengine.models.records import GenerationRecord, ModelConfiguration
from predictionengine.models.requests import AspectRatio, GenerationRequest, RequesterIdentity
from predictionengine.models.responses import (
    Prediction,
    PredictionStatus,
    ProviderResponse,
    SafetyVerdict,
    VariationResult,
)
from predictionengine.providers.azure_provider import AzureFluxProvider
from predictionengine.providers.base import ImageProvider
from predictionengine.services.access_policy import AccessPolicy
from predictionengine.services.generation_store import InMemoryGenerationStore
from predictionengine.services.ingest_service import AssetIngestService
from predictionengine.services.metrics_service import MetricsService
from predictionengine.services.model_registry import ModelRegistry
from predictionengine.services.prediction_service import PredictionService
from predictionengine.services.rate_limiter import InMemoryRateLimiter
from predictionengine.services.storage_service import StorageProvider, StorageService

__version__ = "0.1.0"

__all__ = [
    # Interfaces
    "CreditLedger",
    "GenerationStore",
    "RateLimiter",
    "StorageBackend",
    # Errors
    "ErrorCode",
    "is_retryable",
    "IngestError",
    "PredictionError",
    "ProviderError",
    "StorageError",
    # Models
    "AspectRatio",
    "GenerationMetrics",
    "GenerationRecord",
    "GenerationRequest",
    "ModelConfiguration",
    "Prediction",
    "PredictionStatus",
    "ProviderResponse",
    "RequesterIdentity",
    "SafetyVerdict",
    "VariationResult",
    # Providers
    "AzureFluxProvider",
    "ImageProvider",
    # Services
    "AccessPolicy",
    "AssetIngestService",
    "InMemoryGenerationStore",
    "InMemoryRateLimiter",
    "MetricsService",
    "ModelRegistry",
    "PredictionService",
    "StorageProvider",
    "StorageService",
]
