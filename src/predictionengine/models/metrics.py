"""Metrics models for PredictionEngine."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer


class GenerationMetrics(BaseModel):
    """Tracking data for one orchestration run."""

    model_config = ConfigDict(protected_namespaces=())

    duration_ms: int = Field(..., ge=0, description="Total orchestration time in milliseconds")
    model_used: Optional[str] = Field(None, description="Model configuration id")
    prediction_id: Optional[str] = Field(None, description="Prediction the run produced")
    variations_requested: int = Field(0, ge=0, description="Variations dispatched to the provider")
    variations_succeeded: int = Field(0, ge=0, description="Survivors after safety filtering and ingest")
    variations_filtered: int = Field(0, ge=0, description="Variations dropped by the safety filter")
    timestamp: Optional[datetime] = Field(None, description="When the run completed (UTC)")

    @field_serializer("timestamp")
    def serialize_timestamp(self, value: datetime | None) -> str | None:
        return value.isoformat() if value else None

    @property
    def variations_failed(self) -> int:
        return self.variations_requested - self.variations_succeeded - self.variations_filtered
