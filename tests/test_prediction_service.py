"""Tests for the prediction orchestrator."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from predictionengine.models.errors import ErrorCode, PredictionError, ProviderError
from predictionengine.models.requests import GenerationRequest, RequesterIdentity
from predictionengine.models.responses import PredictionStatus
from predictionengine.services.credit_ledger import InMemoryCreditLedger
from predictionengine.services.ingest_service import AssetIngestService
from predictionengine.services.metrics_service import MetricsService
from predictionengine.services.rate_limiter import InMemoryRateLimiter

from conftest import (
    PRIVILEGED_EMAIL,
    MockImageProvider,
    MockStorage,
    filtered_response,
    make_response,
)


def make_request(count=1, model_id="m1", requester=None, **kwargs) -> GenerationRequest:
    return GenerationRequest(
        prompt="a lighthouse at dusk",
        model_id=model_id,
        variation_count=count,
        requester=requester or RequesterIdentity(id="user-1", email="user@example.com"),
        **kwargs,
    )


def url_script(count):
    return [make_response(url=f"https://img.example.com/{i}.png") for i in range(count)]


@pytest.mark.asyncio
async def test_single_variation_returns_single_url(make_service, mock_provider, mock_storage, generation_store):
    """One inline image: stored, persisted and returned as a plain string."""
    service = make_service()

    prediction = await service.generate(make_request(aspect_ratio="16:9"))

    assert prediction.status is PredictionStatus.SUCCEEDED
    assert isinstance(prediction.output, str)
    assert prediction.output == f"https://cdn.example.com/{mock_storage.uploads[0][0]}"
    assert prediction.data_id == prediction.id
    assert mock_provider.calls[0]["dimensions"] == (1344, 768)
    assert mock_provider.calls[0]["api_key"] == "secret-key-123"

    records = await generation_store.find_by_prediction(prediction.id)
    assert len(records) == 1
    assert records[0].id == f"{prediction.id}-0"
    assert records[0].requester_id == "user-1"
    assert records[0].aspect_ratio == "16:9"
    assert records[0].total_variations == 1


@pytest.mark.asyncio
async def test_multiple_variations_preserve_request_order(make_service):
    """The slowest variation still lands in its own slot."""
    provider = MockImageProvider(script=url_script(4), delays={0: 0.05, 2: 0.02})
    service = make_service(provider=provider)

    prediction = await service.generate(make_request(count=4))

    assert prediction.output == [f"https://img.example.com/{i}.png" for i in range(4)]
    assert provider.call_count == 4


@pytest.mark.asyncio
async def test_filtered_variation_is_dropped_silently(make_service, generation_store):
    script = url_script(4)
    script[2] = filtered_response("violence", "medium")
    service = make_service(provider=MockImageProvider(script=script, delays={2: 0.02}))

    prediction = await service.generate(make_request(count=4))

    assert prediction.status is PredictionStatus.SUCCEEDED
    assert prediction.output == [
        "https://img.example.com/0.png",
        "https://img.example.com/1.png",
        "https://img.example.com/3.png",
    ]
    records = await generation_store.find_by_prediction(prediction.id)
    assert [r.variation_index for r in records] == [0, 1, 3]
    assert all(r.total_variations == 4 for r in records)


@pytest.mark.asyncio
async def test_provider_and_ingest_failures_drop_variations(make_service):
    script = [
        ProviderError(ErrorCode.PROVIDER_OVERLOADED, "Azure API error (503): busy", status=503, retryable=False),
        make_response(empty=True),
        make_response(url="https://img.example.com/2.png"),
        RuntimeError("unexpected"),
    ]
    service = make_service(provider=MockImageProvider(script=script))

    prediction = await service.generate(make_request(count=4))

    assert prediction.output == "https://img.example.com/2.png"


@pytest.mark.asyncio
async def test_all_variations_filtered_fails(make_service, generation_store):
    provider = MockImageProvider(default=filtered_response("hate", "high"))
    service = make_service(provider=provider)

    with pytest.raises(PredictionError) as exc_info:
        await service.generate(make_request(count=3))

    assert exc_info.value.status_code == 500
    assert exc_info.value.error_code == ErrorCode.ALL_VARIATIONS_FAILED
    assert exc_info.value.message == "All variations failed to generate or were filtered"
    assert provider.call_count == 3
    assert len(generation_store) == 0


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "model_id,status,message",
    [
        ("disabled-model", 400, "Requested model is not available"),
        ("unknown-model", 400, "Requested model is not available"),
        ("other-provider", 400, "Only Azure models are supported"),
        ("no-credentials", 500, "Model endpoint or API key is missing"),
    ],
)
async def test_model_preconditions_fail_before_provider(make_service, mock_provider, model_id, status, message):
    service = make_service()

    with pytest.raises(PredictionError) as exc_info:
        await service.generate(make_request(model_id=model_id))

    assert exc_info.value.status_code == status
    assert exc_info.value.message == message
    assert mock_provider.call_count == 0


@pytest.mark.asyncio
async def test_rate_limited_request_rejected(make_service, mock_provider):
    service = make_service(rate_limiter=InMemoryRateLimiter(window_ms=60_000, max_requests=1))
    await service.generate(make_request())

    with pytest.raises(PredictionError) as exc_info:
        await service.generate(make_request())

    assert exc_info.value.status_code == 429
    assert exc_info.value.message == "Rate limit exceeded. Please wait before making more requests."
    assert mock_provider.call_count == 1


@pytest.mark.asyncio
async def test_standard_identity_clamped_to_four(make_service, mock_provider):
    service = make_service()

    await service.generate(make_request(count=6))

    assert mock_provider.call_count == 4


@pytest.mark.asyncio
async def test_privileged_identity_skips_clamp_and_rate_limit(make_service, mock_provider):
    service = make_service(rate_limiter=InMemoryRateLimiter(window_ms=60_000, max_requests=1))
    admin = RequesterIdentity(id="admin-1", email=PRIVILEGED_EMAIL.upper())

    for _ in range(3):
        await service.generate(make_request(count=6, requester=admin))

    assert mock_provider.call_count == 18


@pytest.mark.asyncio
async def test_anonymous_record_has_no_requester(make_service, generation_store):
    service = make_service()

    prediction = await service.generate(make_request(requester=RequesterIdentity()))

    records = await generation_store.find_by_prediction(prediction.id)
    assert records[0].requester_id is None


@pytest.mark.asyncio
async def test_persistence_failure_does_not_fail_request(make_service):
    store = MagicMock()
    store.insert = AsyncMock(side_effect=RuntimeError("db down"))
    service = make_service(generation_store=store)

    prediction = await service.generate(make_request(count=2))

    assert prediction.status is PredictionStatus.SUCCEEDED
    assert len(prediction.output) == 2
    assert store.insert.await_count == 2


@pytest.mark.asyncio
async def test_credits_debited_on_success(make_service):
    ledger = InMemoryCreditLedger({"user-1": 5})
    service = make_service(credit_ledger=ledger, credits_per_request=2)

    await service.generate(make_request())

    assert await ledger.balance("user-1") == 3


@pytest.mark.asyncio
async def test_credits_refunded_when_all_variations_fail(make_service):
    ledger = InMemoryCreditLedger({"user-1": 5})
    provider = MockImageProvider(default=filtered_response())
    service = make_service(provider=provider, credit_ledger=ledger, credits_per_request=2)

    with pytest.raises(PredictionError):
        await service.generate(make_request(count=2))

    assert await ledger.balance("user-1") == 5


@pytest.mark.asyncio
async def test_insufficient_credits_rejected_before_provider(make_service, mock_provider):
    ledger = InMemoryCreditLedger({"user-1": 1})
    service = make_service(credit_ledger=ledger, credits_per_request=2)

    with pytest.raises(PredictionError) as exc_info:
        await service.generate(make_request())

    assert exc_info.value.status_code == 402
    assert exc_info.value.error_code == ErrorCode.INSUFFICIENT_CREDITS
    assert mock_provider.call_count == 0
    assert await ledger.balance("user-1") == 1


@pytest.mark.asyncio
async def test_concurrent_requests_cannot_overdraw(make_service):
    """Two simultaneous requests against a balance that covers one: exactly one is charged."""
    ledger = InMemoryCreditLedger({"user-1": 2})
    service = make_service(
        provider=MockImageProvider(delays={0: 0.02, 1: 0.02}),
        credit_ledger=ledger,
        credits_per_request=2,
    )

    results = await asyncio.gather(
        service.generate(make_request()),
        service.generate(make_request()),
        return_exceptions=True,
    )

    errors = [r for r in results if isinstance(r, PredictionError)]
    assert len(errors) == 1
    assert errors[0].status_code == 402
    assert await ledger.balance("user-1") == 0


@pytest.mark.asyncio
async def test_ledger_debit_if_available():
    ledger = InMemoryCreditLedger({"user-1": 3})

    assert await ledger.debit_if_available("user-1", 2) is True
    assert await ledger.debit_if_available("user-1", 2) is False
    assert await ledger.balance("user-1") == 1


@pytest.mark.asyncio
async def test_privileged_and_anonymous_not_charged(make_service):
    ledger = InMemoryCreditLedger({})
    service = make_service(credit_ledger=ledger, credits_per_request=2)

    await service.generate(make_request(requester=RequesterIdentity(id="admin-1", email=PRIVILEGED_EMAIL)))
    await service.generate(make_request(requester=RequesterIdentity()))

    assert await ledger.balance("admin-1") == 0
    assert await ledger.balance("anonymous") == 0


@pytest.mark.asyncio
async def test_metrics_recorded(make_service):
    metrics = MetricsService()
    script = url_script(3)
    script[1] = filtered_response()
    service = make_service(provider=MockImageProvider(script=script), metrics_service=metrics)

    await service.generate(make_request(count=3))

    recorded = metrics.get_all()
    assert len(recorded) == 1
    assert recorded[0].variations_requested == 3
    assert recorded[0].variations_succeeded == 2
    assert recorded[0].variations_filtered == 1
    assert recorded[0].variations_failed == 0
    assert metrics.summary()["count"] == 1


@pytest.mark.asyncio
async def test_storage_failure_drops_inline_variations(make_service):
    service = make_service(ingest_service=AssetIngestService(MockStorage(fail=True)))

    with pytest.raises(PredictionError) as exc_info:
        await service.generate(make_request(count=2))

    assert exc_info.value.status_code == 500


@pytest.mark.asyncio
async def test_poll_without_correlation_id_is_processing(make_service):
    prediction = await make_service().poll("1700000000000abcdef")

    assert prediction.status is PredictionStatus.PROCESSING
    assert prediction.output is None


@pytest.mark.asyncio
async def test_poll_unknown_correlation_id_is_processing(make_service):
    prediction = await make_service().poll("p1", "missing")

    assert prediction.status is PredictionStatus.PROCESSING
    assert prediction.data_id == "missing"


@pytest.mark.asyncio
async def test_poll_resolves_prediction_and_record_ids(make_service):
    service = make_service(provider=MockImageProvider(script=url_script(2)))
    generated = await service.generate(make_request(count=2))

    by_prediction = await service.poll(generated.id, generated.data_id)
    by_record = await service.poll(generated.id, f"{generated.id}-1")

    assert by_prediction.status is PredictionStatus.SUCCEEDED
    assert by_prediction.output == generated.output
    assert by_prediction.data_id == generated.id
    assert by_record.output == "https://img.example.com/1.png"
    assert by_record.data_id == f"{generated.id}-1"
