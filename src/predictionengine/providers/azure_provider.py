"""Azure-hosted FLUX image generation provider."""

import logging
import os
from typing import Any, Optional, Tuple

import httpx
from pydantic import ValidationError

from predictionengine.models.errors import ErrorCode, ProviderError
from predictionengine.models.responses import ProviderResponse
from predictionengine.services.retry_service import retry_with_backoff

logger = logging.getLogger(__name__)

# Models that default to the "hd" quality tier when no hint is configured
HD_DEFAULT_MODELS = {"azure-flux-1.1-pro"}


def parse_provider_payload(payload: Any) -> ProviderResponse:
    """
    Validate a decoded provider body into a ProviderResponse.

    The body must be an object whose ``data`` (if present) is an array of
    objects. Anything else is a contract violation and is not retried.
    """
    if not isinstance(payload, dict):
        raise ProviderError(
            ErrorCode.MALFORMED_RESPONSE,
            "Unexpected Azure Flux response shape",
            retryable=False,
        )
    data = payload.get("data")
    if data is not None and not isinstance(data, list):
        raise ProviderError(
            ErrorCode.MALFORMED_RESPONSE,
            "Unexpected Azure Flux response shape",
            retryable=False,
        )
    if data is None:
        payload = {**payload, "data": []}
    try:
        return ProviderResponse.model_validate(payload)
    except ValidationError as e:
        raise ProviderError(
            ErrorCode.MALFORMED_RESPONSE,
            f"Unexpected Azure Flux response shape: {e.error_count()} invalid field(s)",
            retryable=False,
            original_exception=e,
        )


class AzureFluxProvider:
    """Image provider calling an Azure OpenAI-style image generation endpoint."""

    def __init__(
        self,
        timeout_seconds: float | None = None,
        retry_config: dict[str, Any] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Initialize Azure Flux provider.

        Args:
            timeout_seconds: Per-attempt HTTP timeout (defaults to PROVIDER_TIMEOUT_SECONDS env var, then 120)
            retry_config: Optional tenacity overrides passed to retry_with_backoff
            transport: Optional httpx transport (used by tests)
        """
        self.timeout_seconds = timeout_seconds or float(os.getenv("PROVIDER_TIMEOUT_SECONDS", "120"))
        self.retry_config = retry_config
        self._transport = transport

    def build_request_body(
        self,
        prompt: str,
        dimensions: Tuple[int, int],
        quality: Optional[str] = None,
        model_id: Optional[str] = None,
    ) -> dict[str, Any]:
        """Provider body for a single image; the provider only ever returns n=1."""
        width, height = dimensions
        body: dict[str, Any] = {
            "prompt": prompt,
            "n": 1,
            "size": f"{width}x{height}",
        }
        if quality:
            body["quality"] = quality
        elif model_id in HD_DEFAULT_MODELS:
            body["quality"] = "hd"
        return body

    async def invoke(
        self,
        endpoint: str,
        api_key: str,
        prompt: str,
        dimensions: Tuple[int, int],
        quality: Optional[str] = None,
        model_id: Optional[str] = None,
    ) -> ProviderResponse:
        """
        Generate one image, retrying transient failures with backoff.

        Args:
            endpoint: Provider image-generation URL
            api_key: Provider API key (sent as the ``api-key`` header)
            prompt: Text prompt for image generation
            dimensions: Output size as (width, height) tuple
            quality: Optional provider quality hint
            model_id: Model id, used to pick a default quality tier

        Returns:
            Validated ProviderResponse

        Raises:
            ProviderError: Fatal status, malformed body, or exhausted retries
        """
        body = self.build_request_body(prompt, dimensions, quality=quality, model_id=model_id)
        return await retry_with_backoff(
            self._post_once,
            endpoint,
            api_key,
            body,
            retry_config=self.retry_config,
        )

    async def _post_once(self, endpoint: str, api_key: str, body: dict[str, Any]) -> ProviderResponse:
        headers = {
            "Content-Type": "application/json",
            "api-key": api_key,
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds, transport=self._transport) as client:
                response = await client.post(endpoint, headers=headers, json=body)
        except httpx.TimeoutException as e:
            raise ProviderError(
                ErrorCode.PROVIDER_TIMEOUT,
                f"Azure Flux request timed out: {str(e)}",
                original_exception=e,
            )
        except httpx.TransportError as e:
            raise ProviderError(
                ErrorCode.PROVIDER_OVERLOADED,
                f"Azure Flux request failed: {str(e)}",
                original_exception=e,
            )

        status = response.status_code
        if status < 200 or status >= 300:
            message = f"Azure API error ({status}): {response.text}"
            if status == 429:
                logger.warning("⏳ [AzureFluxProvider] Provider rate limited the request (429)")
                raise ProviderError(ErrorCode.RATE_LIMITED, message, status=status)
            if status >= 500:
                logger.warning(f"⏳ [AzureFluxProvider] Provider returned {status}, will retry if attempts remain")
                raise ProviderError(ErrorCode.PROVIDER_OVERLOADED, message, status=status)
            raise ProviderError(ErrorCode.PROVIDER_REJECTED, message, status=status, retryable=False)

        try:
            payload = response.json()
        except ValueError as e:
            raise ProviderError(
                ErrorCode.MALFORMED_RESPONSE,
                "Azure Flux returned a non-JSON body",
                status=status,
                retryable=False,
                original_exception=e,
            )

        parsed = parse_provider_payload(payload)
        logger.debug(f"📋 [AzureFluxProvider] Received {status} with {len(parsed.data)} image(s)")
        return parsed
