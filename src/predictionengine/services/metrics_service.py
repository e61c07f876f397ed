"""Metrics service for tracking orchestration runs.

Metrics are held in memory; exporting them elsewhere is left to callers of
``get_all``.
"""

import logging
from typing import Any

from predictionengine.models.metrics import GenerationMetrics

logger = logging.getLogger(__name__)


class MetricsService:
    """Service for aggregating and tracking generation metrics."""

    def __init__(self):
        self._metrics: list[GenerationMetrics] = []

    def record(self, metrics: GenerationMetrics, service_name: str | None = None) -> None:
        """
        Record a generation metrics object.

        Args:
            metrics: The metrics to record
            service_name: Optional service name for categorization
        """
        self._metrics.append(metrics)
        logger.debug(f"📊 [MetricsService] Recorded metrics for {service_name or 'unknown'}: "
                    f"duration={metrics.duration_ms}ms, "
                    f"survivors={metrics.variations_succeeded}/{metrics.variations_requested}")

    def get_all(self) -> list[GenerationMetrics]:
        """Get all recorded metrics."""
        return self._metrics.copy()

    def clear(self) -> None:
        """Clear all recorded metrics."""
        self._metrics.clear()

    def summary(self) -> dict[str, Any]:
        """Get a summary of recorded metrics."""
        if not self._metrics:
            return {
                "count": 0,
                "total_duration_ms": 0,
                "avg_duration_ms": 0,
                "variations_requested": 0,
                "variations_succeeded": 0,
                "variations_filtered": 0,
            }

        total_duration = sum(m.duration_ms for m in self._metrics)

        return {
            "count": len(self._metrics),
            "total_duration_ms": total_duration,
            "avg_duration_ms": total_duration / len(self._metrics),
            "variations_requested": sum(m.variations_requested for m in self._metrics),
            "variations_succeeded": sum(m.variations_succeeded for m in self._metrics),
            "variations_filtered": sum(m.variations_filtered for m in self._metrics),
        }
