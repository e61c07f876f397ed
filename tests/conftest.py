"""Shared pytest fixtures for PredictionEngine tests."""

import asyncio
import base64
import json

import pytest

from predictionengine.models.responses import ProviderResponse
from predictionengine.services.access_policy import AccessPolicy
from predictionengine.services.generation_store import InMemoryGenerationStore
from predictionengine.services.ingest_service import AssetIngestService
from predictionengine.services.model_registry import ModelRegistry
from predictionengine.services.prediction_service import PredictionService
from predictionengine.services.rate_limiter import InMemoryRateLimiter

PNG_BYTES = b"\x89PNG\r\n\x1a\nmock_image_data"
PRIVILEGED_EMAIL = "admin@example.com"


def make_response(url=None, b64=None, filters=None, empty=False) -> ProviderResponse:
    """Build a provider response with a single entry."""
    if empty:
        return ProviderResponse.model_validate({"data": []})
    entry = {}
    if url:
        entry["url"] = url
    if b64:
        entry["b64_json"] = b64
    if filters is not None:
        entry["content_filter_results"] = filters
    return ProviderResponse.model_validate({"created": 1700000000, "data": [entry]})


def inline_response() -> ProviderResponse:
    return make_response(b64=base64.b64encode(PNG_BYTES).decode())


def filtered_response(category: str = "violence", severity: str = "medium") -> ProviderResponse:
    return make_response(
        b64=base64.b64encode(PNG_BYTES).decode(),
        filters={category: {"filtered": True, "severity": severity}},
    )


class MockImageProvider:
    """Scripted provider: outcome ``i`` answers the ``i``-th invoke call."""

    def __init__(self, script=None, default=None, delays=None):
        """
        Args:
            script: Per-call outcomes (ProviderResponse or Exception to raise)
            default: Outcome once the script runs out (inline image by default)
            delays: Map of call index -> seconds to sleep before answering
        """
        self.script = list(script or [])
        self.default = default
        self.delays = delays or {}
        self.calls: list[dict] = []

    async def invoke(self, endpoint, api_key, prompt, dimensions, quality=None, model_id=None):
        index = len(self.calls)
        self.calls.append({
            "endpoint": endpoint,
            "api_key": api_key,
            "prompt": prompt,
            "dimensions": dimensions,
            "quality": quality,
            "model_id": model_id,
        })
        if self.delays.get(index):
            await asyncio.sleep(self.delays[index])

        outcome = self.script[index] if index < len(self.script) else (self.default or inline_response())
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    @property
    def call_count(self) -> int:
        return len(self.calls)


class MockStorage:
    """Storage backend recording uploads; ``fail=True`` makes every upload return None."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.uploads: list[tuple[str, bytes]] = []

    async def upload(self, data: bytes, object_key: str):
        self.uploads.append((object_key, data))
        if self.fail:
            return None
        return f"https://cdn.example.com/{object_key}"


@pytest.fixture
def models_file(tmp_path):
    """Models config file with one usable model and several unusable ones."""
    path = tmp_path / "models.json"
    path.write_text(json.dumps({
        "models": [
            {
                "id": "m1",
                "label": "Flux Pro",
                "provider": "azure",
                "endpoint": "https://flux.example.com/images/generations",
                "apiKey": "secret-key-123",
                "enabled": True,
            },
            {
                "id": "disabled-model",
                "label": "Disabled",
                "provider": "azure",
                "endpoint": "https://flux.example.com/images/generations",
                "apiKey": "secret-key-123",
                "enabled": False,
            },
            {
                "id": "other-provider",
                "label": "Other",
                "provider": "replicate",
                "endpoint": "https://other.example.com",
                "apiKey": "secret-key-123",
                "enabled": True,
            },
            {
                "id": "no-credentials",
                "label": "Broken",
                "provider": "azure",
                "endpoint": "",
                "apiKey": "",
                "enabled": True,
            },
        ]
    }))
    return path


@pytest.fixture
def model_registry(models_file):
    return ModelRegistry(config_path=models_file)


@pytest.fixture
def mock_provider():
    return MockImageProvider()


@pytest.fixture
def mock_storage():
    return MockStorage()


@pytest.fixture
def generation_store():
    return InMemoryGenerationStore()


@pytest.fixture
def sleep_recorder():
    """Tenacity ``sleep`` override that records delays instead of waiting."""
    delays: list[float] = []

    async def fake_sleep(seconds: float) -> None:
        delays.append(seconds)

    return delays, {"sleep": fake_sleep}


@pytest.fixture
def make_service(model_registry, mock_provider, mock_storage, generation_store):
    """Factory for a PredictionService wired to mocks; keyword overrides replace any collaborator."""

    def _factory(**overrides) -> PredictionService:
        kwargs = {
            "model_registry": model_registry,
            "provider": mock_provider,
            "ingest_service": AssetIngestService(mock_storage),
            "generation_store": generation_store,
            "rate_limiter": InMemoryRateLimiter(window_ms=60_000, max_requests=10),
            "access_policy": AccessPolicy([PRIVILEGED_EMAIL]),
        }
        kwargs.update(overrides)
        return PredictionService(**kwargs)

    return _factory
