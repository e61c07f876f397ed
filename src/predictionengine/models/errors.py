"""Error codes and exception types for PredictionEngine."""

from enum import Enum


class ErrorCode(str, Enum):
    """Error category codes for prediction operations."""

    # Retryable errors (retryable=True)
    PROVIDER_TIMEOUT = "PROVIDER_TIMEOUT"
    PROVIDER_OVERLOADED = "PROVIDER_OVERLOADED"
    RATE_LIMITED = "RATE_LIMITED"

    # Not retryable errors (retryable=False)
    INVALID_INPUT = "INVALID_INPUT"
    MODEL_UNAVAILABLE = "MODEL_UNAVAILABLE"
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    INSUFFICIENT_CREDITS = "INSUFFICIENT_CREDITS"
    NOT_FOUND = "NOT_FOUND"
    PROVIDER_REJECTED = "PROVIDER_REJECTED"
    MALFORMED_RESPONSE = "MALFORMED_RESPONSE"
    ALL_VARIATIONS_FAILED = "ALL_VARIATIONS_FAILED"


# Set of retryable error codes
RETRYABLE_ERRORS = {
    ErrorCode.PROVIDER_TIMEOUT,
    ErrorCode.PROVIDER_OVERLOADED,
    ErrorCode.RATE_LIMITED,
}


def is_retryable(code: ErrorCode) -> bool:
    """Check if an error code indicates a retryable error."""
    return code in RETRYABLE_ERRORS


class ProviderError(Exception):
    """Failure talking to the image-generation provider."""

    def __init__(
        self,
        error_code: ErrorCode,
        message: str,
        status: int | None = None,
        retryable: bool | None = None,
        original_exception: Exception | None = None,
    ):
        super().__init__(message)
        self.error_code = error_code
        self.message = message
        self.status = status
        self.retryable = is_retryable(error_code) if retryable is None else retryable
        self.original_exception = original_exception


class IngestError(Exception):
    """A single variation could not be turned into a stored asset."""

    def __init__(self, message: str, original_exception: Exception | None = None):
        super().__init__(message)
        self.message = message
        self.original_exception = original_exception


class PredictionError(Exception):
    """Request-level failure surfaced to the client with an HTTP status."""

    def __init__(self, error_code: ErrorCode, message: str, status_code: int = 500):
        super().__init__(message)
        self.error_code = error_code
        self.message = message
        self.status_code = status_code


class ModelNotFoundError(KeyError):
    """Raised when a model configuration id is unknown."""

    def __init__(self, model_id: str):
        super().__init__(model_id)
        self.model_id = model_id
        self.error_code = ErrorCode.NOT_FOUND
        self.message = "Model not found"

    def __str__(self) -> str:
        return self.message


class ModelConflictError(ValueError):
    """Raised when creating a model configuration with an id already in use."""

    def __init__(self, model_id: str):
        self.model_id = model_id
        self.message = f"Model with id '{model_id}' already exists"
        super().__init__(self.message)


class StorageError(Exception):
    """A storage backend could not persist an object."""

    def __init__(self, message: str, original_exception: Exception | None = None):
        super().__init__(message)
        self.message = message
        self.original_exception = original_exception
