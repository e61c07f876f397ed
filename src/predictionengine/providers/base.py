"""Base provider interface for image generation."""

from typing import Optional, Protocol, Tuple

from typing_extensions import runtime_checkable

from predictionengine.models.responses import ProviderResponse


@runtime_checkable
class ImageProvider(Protocol):
    """Protocol for image generation providers."""

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
        Request a single image from the provider.

        Args:
            endpoint: Provider image-generation URL
            api_key: Provider API key
            prompt: Text prompt for image generation
            dimensions: Output size as (width, height) tuple
            quality: Optional provider quality hint
            model_id: Model configuration id, for provider-specific defaults

        Returns:
            Validated ProviderResponse (at most one entry in ``data``)

        Raises:
            ProviderError: On fatal or retry-exhausted failures
        """
        ...
