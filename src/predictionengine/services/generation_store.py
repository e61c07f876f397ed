"""In-memory generation record store."""

import logging
from typing import Optional

from predictionengine.models.records import GenerationRecord

logger = logging.getLogger(__name__)


class InMemoryGenerationStore:
    """Key-value store for GenerationRecords, indexed by record id and prediction id."""

    def __init__(self):
        self._records: dict[str, GenerationRecord] = {}
        self._by_prediction: dict[str, list[str]] = {}

    async def insert(self, record: GenerationRecord) -> GenerationRecord:
        if record.id in self._records:
            raise ValueError(f"Generation record '{record.id}' already exists")
        self._records[record.id] = record
        self._by_prediction.setdefault(record.prediction_id, []).append(record.id)
        logger.debug(f"📋 [GenerationStore] Stored record {record.id} for prediction {record.prediction_id}")
        return record

    async def get(self, record_id: str) -> Optional[GenerationRecord]:
        return self._records.get(record_id)

    async def find_by_prediction(self, prediction_id: str) -> list[GenerationRecord]:
        records = [self._records[i] for i in self._by_prediction.get(prediction_id, [])]
        return sorted(records, key=lambda r: r.variation_index)

    async def resolve(self, correlation_id: str) -> list[GenerationRecord]:
        """Records behind a poll correlation id: a record id, or a prediction id."""
        record = await self.get(correlation_id)
        if record is not None:
            return [record]
        return await self.find_by_prediction(correlation_id)

    def __len__(self) -> int:
        return len(self._records)
