"""Persisted record models: model configurations and generation records."""

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

SUPPORTED_PROVIDER = "azure"


def mask_api_key(api_key: str | None) -> str:
    """Mask an API key for display: ``abc****xyz``, or all stars when short."""
    if not api_key:
        return ""
    if len(api_key) <= 6:
        return "*" * len(api_key)
    return f"{api_key[:3]}****{api_key[-3:]}"


class ModelConfiguration(BaseModel):
    """Provider configuration for one selectable model."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., min_length=1, description="Model id referenced by generation requests")
    label: str = Field("", description="Display name")
    provider: str = Field(SUPPORTED_PROVIDER, description="Provider family; only 'azure' is usable")
    endpoint: str = Field("", description="Provider image-generation endpoint URL")
    api_key: str = Field("", alias="apiKey", description="Provider API key")
    quality: Optional[str] = Field(None, description="Optional provider quality hint")
    enabled: bool = Field(True, description="Disabled models reject generation requests")
    description: Optional[str] = None
    created_at: Optional[str] = Field(None, alias="createdAt")
    updated_at: Optional[str] = Field(None, alias="updatedAt")

    @property
    def has_credentials(self) -> bool:
        return bool(self.endpoint) and bool(self.api_key)

    def to_storage(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)

    def to_client(self) -> dict:
        """Serialize for API responses with the key masked."""
        payload = self.model_dump(by_alias=True, exclude_none=True)
        payload["apiKey"] = mask_api_key(self.api_key)
        return payload


class GenerationRecord(BaseModel):
    """One surviving variation, persisted once and never mutated."""

    model_config = ConfigDict(frozen=True, protected_namespaces=())

    id: str = Field(..., description="Record id")
    prompt: str
    aspect_ratio: str = "1:1"
    is_public: bool = True
    model_id: str
    asset_url: str = Field(..., description="Public URL of the stored image")
    prediction_id: str = Field(..., description="Prediction this variation belongs to")
    requester_id: Optional[str] = Field(None, description="None for anonymous requesters")
    variation_index: int = Field(..., ge=0)
    total_variations: int = Field(..., ge=1)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
