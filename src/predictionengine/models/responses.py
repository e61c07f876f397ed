"""Response models for PredictionEngine."""

from enum import Enum
from typing import Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator


class ContentFilterCategory(BaseModel):
    """Severity-category verdict attached by the provider (sexual, violence, hate, self_harm)."""

    model_config = ConfigDict(extra="allow")

    filtered: bool = Field(False, description="Whether the provider filtered this category")
    severity: Optional[str] = Field(None, description="Provider severity label (safe, low, medium, high)")


class DetectionFlag(BaseModel):
    """Boolean detector verdict (profanity, jailbreak)."""

    model_config = ConfigDict(extra="allow")

    detected: bool = Field(False, description="Whether the detector fired")
    filtered: bool = Field(False, description="Whether the provider filtered on this detector")


class ContentFilterResults(BaseModel):
    """Safety metadata for one generated image."""

    model_config = ConfigDict(extra="allow")

    sexual: Optional[ContentFilterCategory] = None
    violence: Optional[ContentFilterCategory] = None
    hate: Optional[ContentFilterCategory] = None
    self_harm: Optional[ContentFilterCategory] = None
    profanity: Optional[DetectionFlag] = None
    jailbreak: Optional[DetectionFlag] = None


class ProviderImageData(BaseModel):
    """One entry of the provider's ``data`` array."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    url: Optional[str] = Field(None, description="Remote URL of the generated image")
    base64_payload: Optional[str] = Field(None, alias="b64_json", description="Inline base64 image bytes")
    safety_metadata: Optional[ContentFilterResults] = Field(
        None, alias="content_filter_results", description="Provider content filter results"
    )


class ProviderResponse(BaseModel):
    """Validated payload returned by the image-generation provider."""

    model_config = ConfigDict(extra="allow")

    created: Optional[int] = Field(None, description="Provider creation timestamp (epoch seconds)")
    data: list[ProviderImageData] = Field(default_factory=list, description="Generated images (at most one per call)")

    @property
    def first_entry(self) -> ProviderImageData | None:
        return self.data[0] if self.data else None


class SafetyVerdict(BaseModel):
    """Accept/reject decision for a single variation."""

    filtered: bool = Field(..., description="True if the variation must be dropped")
    reason: Optional[str] = Field(None, description="Human-readable cause when filtered")


class VariationResult(BaseModel):
    """A variation that survived safety filtering and ingest."""

    model_config = ConfigDict(frozen=True)

    index: int = Field(..., ge=0, description="Originating variation index")
    final_url: str = Field(..., description="Public URL of the stored asset")
    status: Literal["succeeded"] = "succeeded"


class PredictionStatus(str, Enum):
    """Prediction lifecycle states."""

    QUEUED = "queued"
    PROCESSING = "processing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    # Reserved for cancellation support; nothing produces it yet.
    CANCELED = "canceled"


TERMINAL_STATUSES = {
    PredictionStatus.SUCCEEDED,
    PredictionStatus.FAILED,
    PredictionStatus.CANCELED,
}


class Prediction(BaseModel):
    """Client-visible unit of work returned by submission and poll calls."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., description="Opaque, time-derived prediction id")
    status: PredictionStatus = Field(PredictionStatus.QUEUED, description="Lifecycle state")
    output: Optional[Union[str, list[str]]] = Field(None, description="Asset URL(s) once succeeded")
    data_id: Optional[str] = Field(None, alias="dataId", description="Correlation id for polling")

    @model_validator(mode="after")
    def validate_output_state(self):
        """Succeeded predictions must carry output."""
        if self.status is PredictionStatus.SUCCEEDED and not self.output:
            raise ValueError("output must be present when status=succeeded")
        return self

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def transition(self, status: PredictionStatus, **updates) -> "Prediction":
        """Return a copy moved to ``status``; terminal predictions never move again."""
        if self.is_terminal:
            raise ValueError(f"Prediction {self.id} is already {self.status.value}")
        return self.model_validate({**self.model_dump(), **updates, "status": status})

    def to_client(self) -> dict:
        """Wire shape: camelCase keys, absent fields omitted."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
