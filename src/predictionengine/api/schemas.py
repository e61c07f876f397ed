"""Request bodies for the HTTP API."""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from predictionengine.models.requests import GenerationRequest, RequesterIdentity


class UserPayload(BaseModel):
    """Requester identity as sent by the client."""

    model_config = ConfigDict(extra="allow")

    id: Optional[Any] = None
    email: Optional[Any] = None


class PredictionOptions(BaseModel):
    """Free-form generation options; only ``variationCount`` is read."""

    model_config = ConfigDict(extra="allow")

    variationCount: Optional[Any] = None


class SubmitPredictionBody(BaseModel):
    """Body of ``POST /api/predictions``."""

    prompts: str = Field("", description="Prompt text")
    ratio: Optional[str] = Field(None, description="Aspect ratio, 1:1 when unknown")
    model: str = Field("", description="Model configuration id")
    isPublic: Optional[bool] = Field(None, description="Gallery visibility, public when omitted")
    user: Optional[UserPayload] = None
    options: Optional[PredictionOptions] = None

    def to_generation_request(self) -> GenerationRequest:
        """Build the validated domain request; raises pydantic.ValidationError."""
        user = self.user or UserPayload()
        return GenerationRequest(
            prompt=self.prompts.strip(),
            aspect_ratio=self.ratio,
            model_id=self.model,
            variation_count=self.options.variationCount if self.options else 1,
            is_public=True if self.isPublic is None else self.isPublic,
            requester=RequesterIdentity(
                id=user.id if isinstance(user.id, str) and user.id else "anonymous",
                email=user.email if isinstance(user.email, str) else None,
            ),
        )


class StorageConfigBody(BaseModel):
    """Body of ``POST /api/storage/config``."""

    provider: Optional[str] = None
