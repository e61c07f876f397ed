"""Prediction orchestration: precondition gates, variation fan-out and polling."""

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from predictionengine.interfaces import CreditLedger, GenerationStore, RateLimiter
from predictionengine.models.errors import ErrorCode, IngestError, PredictionError, ProviderError
from predictionengine.models.metrics import GenerationMetrics
from predictionengine.models.records import SUPPORTED_PROVIDER, GenerationRecord, ModelConfiguration
from predictionengine.models.requests import GenerationRequest, RequesterIdentity
from predictionengine.models.responses import Prediction, PredictionStatus, VariationResult
from predictionengine.providers.base import ImageProvider
from predictionengine.services import safety_filter
from predictionengine.services.access_policy import AccessPolicy
from predictionengine.services.ingest_service import AssetIngestService
from predictionengine.services.metrics_service import MetricsService
from predictionengine.services.model_registry import ModelRegistry
from predictionengine.services.rate_limiter import InMemoryRateLimiter

logger = logging.getLogger(__name__)


@dataclass
class _VariationOutcome:
    index: int
    result: Optional[VariationResult] = None
    filtered: bool = False


def new_prediction_id() -> str:
    """Millisecond timestamp plus a short random suffix."""
    return f"{int(time.time() * 1000)}{uuid.uuid4().hex[:6]}"


class PredictionService:
    """Runs one generation request end to end and answers status polls."""

    def __init__(
        self,
        model_registry: ModelRegistry,
        provider: ImageProvider,
        ingest_service: AssetIngestService,
        generation_store: GenerationStore,
        rate_limiter: RateLimiter | None = None,
        access_policy: AccessPolicy | None = None,
        credit_ledger: CreditLedger | None = None,
        credits_per_request: int = 0,
        metrics_service: MetricsService | None = None,
    ):
        """
        Initialize the prediction service.

        Args:
            model_registry: Source of model configurations
            provider: Image provider client
            ingest_service: Turns provider entries into public URLs
            generation_store: Persists one record per surviving variation
            rate_limiter: Per-identity gate (in-memory limiter if omitted)
            access_policy: Privileged identity allowlist (env-configured if omitted)
            credit_ledger: Optional ledger charged before dispatch and refunded on total failure
            credits_per_request: Credits charged per request; 0 disables charging
            metrics_service: Optional MetricsService for recording metrics
        """
        self.model_registry = model_registry
        self.provider = provider
        self.ingest_service = ingest_service
        self.generation_store = generation_store
        self.rate_limiter = rate_limiter or InMemoryRateLimiter()
        self.access_policy = access_policy or AccessPolicy()
        self.credit_ledger = credit_ledger
        self.credits_per_request = credits_per_request
        self._metrics_service = metrics_service

    def _check_model(self, model_id: str) -> ModelConfiguration:
        model = self.model_registry.get(model_id)
        if model is None or not model.enabled:
            raise PredictionError(ErrorCode.MODEL_UNAVAILABLE, "Requested model is not available", 400)
        if model.provider != SUPPORTED_PROVIDER:
            raise PredictionError(ErrorCode.MODEL_UNAVAILABLE, "Only Azure models are supported", 400)
        if not model.has_credentials:
            raise PredictionError(ErrorCode.CONFIGURATION_ERROR, "Model endpoint or API key is missing", 500)
        return model

    def _charges(self, identity: RequesterIdentity, privileged: bool) -> bool:
        return (
            self.credit_ledger is not None
            and self.credits_per_request > 0
            and not privileged
            and not identity.is_anonymous
        )

    async def _debit(self, identity: RequesterIdentity) -> None:
        # Balance check and debit must not interleave with another request for the same user
        if not await self.credit_ledger.debit_if_available(identity.id, self.credits_per_request):
            available = await self.credit_ledger.balance(identity.id)
            raise PredictionError(
                ErrorCode.INSUFFICIENT_CREDITS,
                f"Insufficient credits: {self.credits_per_request} required, {available} available",
                402,
            )

    async def _refund(self, identity: RequesterIdentity) -> None:
        try:
            await self.credit_ledger.refund(identity.id, self.credits_per_request)
        except Exception as e:
            # The debit stands; nothing else can compensate here.
            logger.error(f"❌ [PredictionService] Credit refund failed for {identity.id}: {e}", exc_info=True)

    async def _run_variation(
        self,
        index: int,
        request: GenerationRequest,
        model: ModelConfiguration,
    ) -> _VariationOutcome:
        """Provider call, safety gate and ingest for one variation. Failures drop the variation."""
        label = index + 1
        try:
            response = await self.provider.invoke(
                model.endpoint,
                model.api_key,
                request.prompt,
                request.get_dimensions(),
                model.quality,
                model_id=model.id,
            )
        except ProviderError as e:
            logger.warning(f"⚠️ [PredictionService] Variation {label} failed at provider: {e.message}")
            return _VariationOutcome(index)

        verdict = safety_filter.evaluate(response)
        if verdict.filtered:
            logger.warning(f"🚫 [PredictionService] Variation {label} filtered by safety filters: {verdict.reason}")
            return _VariationOutcome(index, filtered=True)

        try:
            url = await self.ingest_service.ingest(response.first_entry, request.requester.id, model.id)
        except IngestError as e:
            logger.warning(f"⚠️ [PredictionService] Variation {label} dropped at ingest: {e.message}")
            return _VariationOutcome(index)

        return _VariationOutcome(index, result=VariationResult(index=index, final_url=url))

    async def _persist(
        self,
        request: GenerationRequest,
        prediction_id: str,
        survivors: list[VariationResult],
        total_variations: int,
    ) -> None:
        requester_id = None if request.requester.is_anonymous else request.requester.id
        for survivor in survivors:
            record = GenerationRecord(
                id=f"{prediction_id}-{survivor.index}",
                prompt=request.prompt,
                aspect_ratio=request.aspect_ratio.value,
                is_public=request.is_public,
                model_id=request.model_id,
                asset_url=survivor.final_url,
                prediction_id=prediction_id,
                requester_id=requester_id,
                variation_index=survivor.index,
                total_variations=total_variations,
            )
            try:
                await self.generation_store.insert(record)
            except Exception as e:
                # Images already exist; bookkeeping failures do not fail the request.
                logger.error(f"❌ [PredictionService] Failed to persist variation {survivor.index + 1}: {e}", exc_info=True)

    def _record_metrics(
        self,
        start_time: float,
        model_id: str,
        prediction_id: str,
        outcomes: list[_VariationOutcome],
        survivors: list[VariationResult],
    ) -> None:
        if self._metrics_service is None:
            return
        metrics = GenerationMetrics(
            duration_ms=int((time.time() - start_time) * 1000),
            model_used=model_id,
            prediction_id=prediction_id,
            variations_requested=len(outcomes),
            variations_succeeded=len(survivors),
            variations_filtered=sum(1 for o in outcomes if o.filtered),
            timestamp=datetime.now(timezone.utc),
        )
        self._metrics_service.record(metrics, service_name="predictions")

    async def generate(self, request: GenerationRequest) -> Prediction:
        """
        Generate all requested variations and return the succeeded prediction.

        Partial failures are silent: the prediction succeeds as long as one
        variation survives safety filtering and ingest.

        Args:
            request: Validated generation request

        Returns:
            Prediction with status=succeeded

        Raises:
            PredictionError: 400/500 for model preconditions, 429 when rate
                limited, 402 for insufficient credits, 500 when every
                variation failed or was filtered
        """
        start_time = time.time()
        identity = request.requester
        privileged = self.access_policy.is_privileged(identity)

        model = self._check_model(request.model_id)

        if not self.rate_limiter.check_and_consume(identity.id, bypass=privileged):
            raise PredictionError(
                ErrorCode.RATE_LIMITED,
                "Rate limit exceeded. Please wait before making more requests.",
                429,
            )

        charged = self._charges(identity, privileged)
        if charged:
            await self._debit(identity)

        variation_count = request.clamped_variation_count(privileged)
        prediction = Prediction(id=new_prediction_id(), status=PredictionStatus.PROCESSING)
        logger.info(f"📋 [PredictionService] Prediction {prediction.id}: {variation_count} variation(s) with {model.id}")

        results = await asyncio.gather(
            *(self._run_variation(i, request, model) for i in range(variation_count)),
            return_exceptions=True,
        )

        outcomes: list[_VariationOutcome] = []
        for index, result in enumerate(results):
            if isinstance(result, BaseException):
                logger.error(
                    f"❌ [PredictionService] Variation {index + 1} raised unexpectedly: {result!r}",
                    exc_info=result,
                )
                outcomes.append(_VariationOutcome(index))
            else:
                outcomes.append(result)

        # gather preserves argument order, so survivors stay in request-index order
        survivors = [o.result for o in outcomes if o.result is not None]

        if not survivors:
            if charged:
                await self._refund(identity)
            self._record_metrics(start_time, model.id, prediction.id, outcomes, survivors)
            prediction = prediction.transition(PredictionStatus.FAILED)
            logger.error(f"❌ [PredictionService] Prediction {prediction.id} failed: no variation survived")
            raise PredictionError(
                ErrorCode.ALL_VARIATIONS_FAILED,
                "All variations failed to generate or were filtered",
                500,
            )

        await self._persist(request, prediction.id, survivors, variation_count)

        urls = [s.final_url for s in survivors]
        prediction = prediction.transition(
            PredictionStatus.SUCCEEDED,
            output=urls[0] if len(urls) == 1 else urls,
            data_id=prediction.id,
        )
        self._record_metrics(start_time, model.id, prediction.id, outcomes, survivors)
        logger.info(f"✅ [PredictionService] Prediction {prediction.id} succeeded with {len(urls)}/{variation_count} image(s)")
        return prediction

    async def poll(self, prediction_id: str, correlation_id: str | None = None) -> Prediction:
        """
        Immediate, non-blocking status read.

        Without a correlation id nothing can be looked up yet, so the answer is
        always ``processing``. With one, the backing record(s) decide.
        """
        if not correlation_id:
            return Prediction(id=prediction_id, status=PredictionStatus.PROCESSING)

        records = await self.generation_store.resolve(correlation_id)
        urls = [r.asset_url for r in records if r.asset_url]
        if not urls:
            return Prediction(id=prediction_id, status=PredictionStatus.PROCESSING, data_id=correlation_id)

        data_id = records[0].id if len(records) == 1 else correlation_id
        return Prediction(
            id=prediction_id,
            status=PredictionStatus.SUCCEEDED,
            output=urls[0] if len(urls) == 1 else urls,
            data_id=data_id,
        )
