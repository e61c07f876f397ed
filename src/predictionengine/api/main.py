"""PredictionEngine HTTP API (FastAPI).

Endpoints
---------
========  ============================  ====================================
Method    Path                          Purpose
========  ============================  ====================================
POST      ``/api/predictions``          Submit a generation request
GET       ``/api/predictions/{id}``     Poll a prediction (``?pid=`` data id)
GET       ``/api/models``               List model configurations
POST      ``/api/models``               Create a model configuration
GET       ``/api/models/{id}``          Read one model configuration
PATCH     ``/api/models/{id}``          Update a model configuration
DELETE    ``/api/models/{id}``          Delete a model configuration
GET       ``/api/storage/config``       Active storage provider
POST      ``/api/storage/config``       Switch storage provider
========  ============================  ====================================

API keys are always masked in model responses. Polling never blocks; the
client owns its own delay-and-retry loop.
"""

import logging
import os
from typing import Any

from fastapi import Body, FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from predictionengine import __version__
from predictionengine.api.schemas import StorageConfigBody, SubmitPredictionBody
from predictionengine.models.errors import ErrorCode, ModelConflictError, ModelNotFoundError, PredictionError
from predictionengine.providers.azure_provider import AzureFluxProvider
from predictionengine.services.generation_store import InMemoryGenerationStore
from predictionengine.services.ingest_service import AssetIngestService
from predictionengine.services.metrics_service import MetricsService
from predictionengine.services.model_registry import ModelRegistry
from predictionengine.services.prediction_service import PredictionService
from predictionengine.services.storage_service import AVAILABLE_PROVIDERS, StorageService

logger = logging.getLogger(__name__)

_NO_STORE = {"Cache-Control": "no-store"}


def _first_error(exc: ValidationError) -> str:
    error = exc.errors()[0]
    field = ".".join(str(part) for part in error.get("loc", ())) or "body"
    return f"Invalid request: {field}: {error.get('msg')}"


def _not_found(exc: ModelNotFoundError) -> JSONResponse:
    return JSONResponse(
        {"success": False, "error": exc.message, "code": exc.error_code.value},
        status_code=404,
    )


def build_prediction_service(
    model_registry: ModelRegistry,
    storage_service: StorageService,
    metrics_service: MetricsService | None = None,
) -> PredictionService:
    """Wire a PredictionService from environment-configured defaults."""
    return PredictionService(
        model_registry=model_registry,
        provider=AzureFluxProvider(),
        ingest_service=AssetIngestService(storage_service),
        generation_store=InMemoryGenerationStore(),
        metrics_service=metrics_service,
    )


def create_app(
    prediction_service: PredictionService | None = None,
    model_registry: ModelRegistry | None = None,
    storage_service: StorageService | None = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        prediction_service: Orchestrator (built from env defaults if omitted)
        model_registry: Model configuration store (shared with the orchestrator when built here)
        storage_service: Storage router exposed by the storage config endpoints

    Returns:
        Configured FastAPI app with services on ``app.state``
    """
    model_registry = model_registry or (
        prediction_service.model_registry if prediction_service else ModelRegistry()
    )
    storage_service = storage_service or StorageService()
    if prediction_service is None:
        prediction_service = build_prediction_service(model_registry, storage_service, MetricsService())

    app = FastAPI(
        title="PredictionEngine",
        description="Image generation orchestration API.",
        version=__version__,
    )
    app.state.prediction_service = prediction_service
    app.state.model_registry = model_registry
    app.state.storage_service = storage_service

    @app.exception_handler(PredictionError)
    async def prediction_error_handler(request: Request, exc: PredictionError) -> JSONResponse:
        return JSONResponse({"error": exc.message}, status_code=exc.status_code)

    # -- Predictions --------------------------------------------------------

    @app.post("/api/predictions", status_code=201)
    async def submit_prediction(request: Request, body: SubmitPredictionBody) -> JSONResponse:
        """Run a generation request to completion and return the prediction (201)."""
        try:
            generation_request = body.to_generation_request()
        except ValidationError as e:
            raise PredictionError(ErrorCode.INVALID_INPUT, _first_error(e), 400) from e

        service: PredictionService = request.app.state.prediction_service
        prediction = await service.generate(generation_request)
        return JSONResponse(prediction.to_client(), status_code=201)

    @app.get("/api/predictions/{prediction_id}")
    async def poll_prediction(request: Request, prediction_id: str, pid: str | None = None) -> JSONResponse:
        """Immediate status read; ``processing`` until ``pid`` resolves to stored output."""
        service: PredictionService = request.app.state.prediction_service
        prediction = await service.poll(prediction_id, pid)
        return JSONResponse(prediction.to_client(), headers=_NO_STORE)

    # -- Model configurations -------------------------------------------------

    @app.get("/api/models")
    async def list_models(request: Request) -> JSONResponse:
        registry: ModelRegistry = request.app.state.model_registry
        try:
            models = registry.list_models()
        except (OSError, ValueError) as e:
            logger.error(f"❌ [API] Failed to load models: {e}")
            return JSONResponse({"success": False, "error": "Failed to load models"}, status_code=500)
        return JSONResponse({"success": True, "models": [m.to_client() for m in models]})

    @app.post("/api/models")
    async def create_model(request: Request, payload: dict[str, Any] = Body(default_factory=dict)) -> JSONResponse:
        registry: ModelRegistry = request.app.state.model_registry
        try:
            model = registry.create(payload)
        except ModelConflictError as e:
            return JSONResponse({"success": False, "error": e.message}, status_code=409)
        except ValidationError as e:
            return JSONResponse({"success": False, "error": _first_error(e)}, status_code=400)
        except ValueError as e:
            return JSONResponse({"success": False, "error": str(e)}, status_code=400)
        return JSONResponse({"success": True, "model": model.to_client()}, status_code=201)

    @app.get("/api/models/{model_id}")
    async def get_model(request: Request, model_id: str) -> JSONResponse:
        registry: ModelRegistry = request.app.state.model_registry
        model = registry.get(model_id)
        if model is None:
            return _not_found(ModelNotFoundError(model_id))
        return JSONResponse({"success": True, "model": model.to_client()})

    @app.patch("/api/models/{model_id}")
    async def update_model(
        request: Request,
        model_id: str,
        updates: dict[str, Any] = Body(default_factory=dict),
    ) -> JSONResponse:
        registry: ModelRegistry = request.app.state.model_registry
        try:
            model = registry.update(model_id, updates)
        except ModelNotFoundError as e:
            return _not_found(e)
        except ValidationError as e:
            return JSONResponse({"success": False, "error": _first_error(e)}, status_code=400)
        return JSONResponse({"success": True, "model": model.to_client()})

    @app.delete("/api/models/{model_id}")
    async def delete_model(request: Request, model_id: str) -> JSONResponse:
        registry: ModelRegistry = request.app.state.model_registry
        try:
            registry.delete(model_id)
        except ModelNotFoundError as e:
            return _not_found(e)
        return JSONResponse({"success": True})

    # -- Storage --------------------------------------------------------------

    @app.get("/api/storage/config")
    async def get_storage_config(request: Request) -> dict:
        storage: StorageService = request.app.state.storage_service
        return {"provider": storage.get_provider().value, "available": AVAILABLE_PROVIDERS}

    @app.post("/api/storage/config")
    async def set_storage_config(request: Request, body: StorageConfigBody) -> JSONResponse:
        if body.provider not in AVAILABLE_PROVIDERS:
            return JSONResponse(
                {"error": f"Invalid storage provider. Must be one of: {', '.join(AVAILABLE_PROVIDERS)}"},
                status_code=400,
            )
        storage: StorageService = request.app.state.storage_service
        provider = storage.set_provider(body.provider)
        return JSONResponse({
            "success": True,
            "provider": provider.value,
            "message": f"Storage provider switched to {provider.value}",
        })

    return app


app = create_app()


def main() -> None:
    """Launch the uvicorn ASGI server (HOST / PORT env vars, default 0.0.0.0:8000)."""
    import uvicorn

    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(
        "predictionengine.api.main:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
        reload=False,
    )


if __name__ == "__main__":
    main()
