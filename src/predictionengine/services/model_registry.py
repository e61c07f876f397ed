"""JSON-file registry of model configurations.

The file holds ``{"models": [...]}``. ``endpoint`` and ``apiKey`` values of
the form ``${ENV_NAME}`` are resolved from the environment when models are
read for use, and stored unresolved.
"""

import json
import logging
import os
import re
import secrets
import shutil
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from predictionengine.models.errors import ModelConflictError, ModelNotFoundError
from predictionengine.models.records import SUPPORTED_PROVIDER, ModelConfiguration

logger = logging.getLogger(__name__)

_PLACEHOLDER = re.compile(r"^\$\{(.+)\}$")

# Fields a PATCH may not overwrite
_IMMUTABLE_FIELDS = {"id", "createdAt", "created_at"}


def resolve_placeholder(value: str | None) -> str:
    """Replace a whole-value ``${ENV_NAME}`` with the variable's value (empty if unset)."""
    if not value:
        return value or ""
    match = _PLACEHOLDER.match(value)
    if match:
        return os.getenv(match.group(1), "")
    return value


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class ModelRegistry:
    """CRUD over the models configuration file."""

    def __init__(self, config_path: str | Path | None = None):
        """
        Args:
            config_path: Models file (defaults to MODELS_CONFIG_PATH env var, then config/models.json).
                A sibling ``models.example.json`` seeds the file when it does not exist.
        """
        self.config_path = Path(config_path or os.getenv("MODELS_CONFIG_PATH", "config/models.json"))
        self.example_path = self.config_path.with_name("models.example.json")
        self._lock = threading.Lock()

    def _ensure_file(self) -> None:
        if self.config_path.exists():
            return
        self.config_path.parent.mkdir(parents=True, exist_ok=True)
        if self.example_path.exists():
            shutil.copyfile(self.example_path, self.config_path)
            logger.info(f"📋 [ModelRegistry] Seeded {self.config_path} from {self.example_path.name}")
        else:
            self._write_raw([])

    def _read_raw(self) -> list[dict[str, Any]]:
        self._ensure_file()
        data = json.loads(self.config_path.read_text(encoding="utf-8") or "{}")
        models = data.get("models") if isinstance(data, dict) else None
        return models if isinstance(models, list) else []

    def _write_raw(self, models: list[dict[str, Any]]) -> None:
        self.config_path.write_text(json.dumps({"models": models}, indent=2), encoding="utf-8")

    def list_models(self) -> list[ModelConfiguration]:
        """All models with environment placeholders resolved."""
        with self._lock:
            raw_models = self._read_raw()

        models = []
        for raw in raw_models:
            resolved = {
                **raw,
                "endpoint": resolve_placeholder(raw.get("endpoint")),
                "apiKey": resolve_placeholder(raw.get("apiKey")),
            }
            try:
                models.append(ModelConfiguration.model_validate(resolved))
            except ValidationError as e:
                logger.warning(f"⚠️ [ModelRegistry] Skipping invalid model entry {raw.get('id')!r}: {e.error_count()} error(s)")
        return models

    def get(self, model_id: str) -> Optional[ModelConfiguration]:
        return next((m for m in self.list_models() if m.id == model_id), None)

    def enabled_models(self) -> list[ModelConfiguration]:
        return [m for m in self.list_models() if m.enabled]

    def create(self, payload: dict[str, Any]) -> ModelConfiguration:
        """
        Add a model configuration.

        Raises:
            ValueError: Missing label/endpoint/apiKey or unsupported provider
            ModelConflictError: The id is already taken
        """
        if not payload.get("label") or not payload.get("endpoint") or not payload.get("apiKey"):
            raise ValueError("Label, endpoint, and apiKey are required")
        if payload.get("provider", SUPPORTED_PROVIDER) != SUPPORTED_PROVIDER:
            raise ValueError("Only Azure provider is supported")

        now = _now_iso()
        model = ModelConfiguration.model_validate({
            **payload,
            "id": payload.get("id") or secrets.token_urlsafe(9),
            "createdAt": now,
            "updatedAt": now,
        })

        with self._lock:
            models = self._read_raw()
            if any(m.get("id") == model.id for m in models):
                raise ModelConflictError(model.id)
            models.append(model.to_storage())
            self._write_raw(models)

        logger.info(f"✅ [ModelRegistry] Created model {model.id}")
        return model

    def update(self, model_id: str, updates: dict[str, Any]) -> ModelConfiguration:
        """
        Merge ``updates`` into an existing model; id and createdAt are preserved.

        Raises:
            ModelNotFoundError: Unknown id
        """
        with self._lock:
            models = self._read_raw()
            index = next((i for i, m in enumerate(models) if m.get("id") == model_id), None)
            if index is None:
                raise ModelNotFoundError(model_id)

            existing = models[index]
            merged = {k: v for k, v in updates.items() if k not in _IMMUTABLE_FIELDS}
            updated = ModelConfiguration.model_validate({
                **existing,
                **merged,
                "id": existing["id"],
                "createdAt": existing.get("createdAt"),
                "updatedAt": _now_iso(),
            })
            models[index] = updated.to_storage()
            self._write_raw(models)

        logger.info(f"📋 [ModelRegistry] Updated model {model_id}")
        return updated

    def delete(self, model_id: str) -> None:
        """
        Raises:
            ModelNotFoundError: Unknown id
        """
        with self._lock:
            models = self._read_raw()
            remaining = [m for m in models if m.get("id") != model_id]
            if len(remaining) == len(models):
                raise ModelNotFoundError(model_id)
            self._write_raw(remaining)

        logger.info(f"📋 [ModelRegistry] Deleted model {model_id}")
