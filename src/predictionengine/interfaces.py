"""Protocol interfaces for PredictionEngine collaborators."""

from typing import Optional, Protocol

from typing_extensions import runtime_checkable

from predictionengine.models.records import GenerationRecord


@runtime_checkable
class RateLimiter(Protocol):
    """Per-identity request gate."""

    def check_and_consume(self, identity: str, bypass: bool = False) -> bool:
        """Return True and count the request if allowed, False if the window is exhausted."""
        ...


@runtime_checkable
class StorageBackend(Protocol):
    """Object storage that turns bytes into a public URL."""

    async def upload(self, data: bytes, object_key: str) -> Optional[str]:
        """Store ``data`` under ``object_key``; return its public URL or None on failure."""
        ...


@runtime_checkable
class GenerationStore(Protocol):
    """Key-value store for persisted generation records."""

    async def insert(self, record: GenerationRecord) -> GenerationRecord:
        ...

    async def get(self, record_id: str) -> Optional[GenerationRecord]:
        ...

    async def find_by_prediction(self, prediction_id: str) -> list[GenerationRecord]:
        ...

    async def resolve(self, correlation_id: str) -> list[GenerationRecord]:
        """Records behind a poll correlation id."""
        ...


@runtime_checkable
class CreditLedger(Protocol):
    """External user-record store holding integer credit balances."""

    async def balance(self, user_id: str) -> int:
        ...

    async def debit_if_available(self, user_id: str, amount: int) -> bool:
        """Debit only if the balance covers ``amount``, atomically; return whether it did."""
        ...

    async def refund(self, user_id: str, amount: int) -> None:
        ...
