"""Request models for PredictionEngine."""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Hard ceiling on concurrent variations for standard identities
MAX_STANDARD_VARIATIONS = 4


class AspectRatio(str, Enum):
    """Logical aspect ratios accepted from clients."""

    SQUARE = "1:1"
    WIDESCREEN = "16:9"
    TALL = "9:16"
    LANDSCAPE = "3:2"
    PORTRAIT = "2:3"


# Pixel dimensions the provider expects for each aspect ratio
ASPECT_RATIO_DIMENSIONS: dict[AspectRatio, tuple[int, int]] = {
    AspectRatio.SQUARE: (1024, 1024),
    AspectRatio.WIDESCREEN: (1344, 768),
    AspectRatio.TALL: (768, 1344),
    AspectRatio.LANDSCAPE: (1216, 832),
    AspectRatio.PORTRAIT: (832, 1216),
}

DEFAULT_DIMENSIONS: tuple[int, int] = (1024, 1024)


def resolve_dimensions(ratio: str | AspectRatio | None) -> tuple[int, int]:
    """Map a ratio string to (width, height); unknown ratios fall back to 1024x1024."""
    try:
        return ASPECT_RATIO_DIMENSIONS[AspectRatio(ratio)]
    except ValueError:
        return DEFAULT_DIMENSIONS


class RequesterIdentity(BaseModel):
    """Who is asking for the generation."""

    id: str = Field("anonymous", description="Stable user id, 'anonymous' when unknown")
    email: Optional[str] = Field(None, description="Email used for privileged-account lookups")

    @property
    def is_anonymous(self) -> bool:
        return self.id == "anonymous"


class GenerationRequest(BaseModel):
    """Input to a single orchestration run."""

    model_config = ConfigDict(protected_namespaces=())

    prompt: str = Field(..., min_length=1, description="Image generation prompt")
    aspect_ratio: AspectRatio = Field(AspectRatio.SQUARE, description="Logical output aspect ratio")
    model_id: str = Field(..., min_length=1, description="Model configuration id")
    variation_count: int = Field(1, description="Requested number of parallel variations")
    is_public: bool = Field(True, description="Whether results appear in the public gallery")
    requester: RequesterIdentity = Field(default_factory=RequesterIdentity)

    @field_validator("aspect_ratio", mode="before")
    @classmethod
    def default_unknown_ratio(cls, value: Any) -> Any:
        """Unrecognised ratios become 1:1 instead of failing validation."""
        if isinstance(value, AspectRatio):
            return value
        try:
            return AspectRatio(value)
        except ValueError:
            return AspectRatio.SQUARE

    @field_validator("variation_count", mode="before")
    @classmethod
    def coerce_variation_count(cls, value: Any) -> int:
        try:
            count = int(value)
        except (TypeError, ValueError):
            return 1
        except OverflowError:
            # +/-Infinity: the largest standard request, or the minimum
            return MAX_STANDARD_VARIATIONS if value > 0 else 1
        return count or 1

    def get_dimensions(self) -> tuple[int, int]:
        """Convert the aspect ratio to the provider's (width, height)."""
        return resolve_dimensions(self.aspect_ratio)

    def clamped_variation_count(self, privileged: bool = False) -> int:
        """Variation count after applying the per-identity clamp."""
        count = max(1, self.variation_count)
        if privileged:
            return count
        return min(count, MAX_STANDARD_VARIATIONS)
