"""Storage backends (local filesystem, Cloudflare Images) behind one upload call."""

import asyncio
import logging
import os
from enum import Enum
from pathlib import Path, PurePosixPath
from typing import Optional

import httpx

from predictionengine.interfaces import StorageBackend
from predictionengine.models.errors import StorageError

logger = logging.getLogger(__name__)


class StorageProvider(str, Enum):
    """Selectable storage providers."""

    LOCAL = "local"
    CLOUD_BUCKET = "cloud-bucket"


AVAILABLE_PROVIDERS = [p.value for p in StorageProvider]


def _content_type_for(object_key: str) -> str:
    suffix = PurePosixPath(object_key).suffix.lower()
    return {
        ".png": "image/png",
        ".webp": "image/webp",
    }.get(suffix, "image/jpeg")


class LocalStorageBackend:
    """Writes objects under a directory served as static files."""

    def __init__(self, root_dir: str | Path | None = None, public_base_url: str | None = None):
        """
        Args:
            root_dir: Storage root (defaults to LOCAL_STORAGE_DIR env var, then public/generated)
            public_base_url: URL prefix (defaults to PUBLIC_BASE_URL env var, then http://localhost:3000)
        """
        self.root_dir = Path(root_dir or os.getenv("LOCAL_STORAGE_DIR", "public/generated"))
        self.public_base_url = (public_base_url or os.getenv("PUBLIC_BASE_URL", "http://localhost:3000")).rstrip("/")

    def resolve_path(self, object_key: str) -> Path | None:
        """Absolute target path for ``object_key``, or None if the key escapes the root."""
        key = PurePosixPath(object_key)
        if key.is_absolute() or ".." in key.parts:
            return None
        root = self.root_dir.resolve()
        target = (root / key).resolve()
        if root != target and root not in target.parents:
            return None
        return target

    async def upload(self, data: bytes, object_key: str) -> Optional[str]:
        target = self.resolve_path(object_key)
        if target is None:
            logger.error(f"🚫 [LocalStorage] Rejected path traversal attempt: {object_key}")
            return None

        def _write() -> None:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)

        try:
            await asyncio.to_thread(_write)
        except OSError as e:
            raise StorageError(f"Local storage write failed: {str(e)}", original_exception=e)

        logger.info(f"✅ [LocalStorage] Stored {object_key}")
        return f"{self.public_base_url}/generated/{object_key}"


class CloudflareImagesBackend:
    """Uploads objects to the Cloudflare Images API."""

    def __init__(
        self,
        account_id: str | None = None,
        api_token: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Initialize the Cloudflare Images backend.

        Args:
            account_id: Cloudflare account ID (defaults to CLOUDFLARE_ACCOUNT_ID env var)
            api_token: Cloudflare API token (defaults to CLOUDFLARE_IMAGES_API_TOKEN env var)
            transport: Optional httpx transport (used by tests)
        """
        self.account_id = account_id or os.getenv("CLOUDFLARE_ACCOUNT_ID")
        self.api_token = api_token or os.getenv("CLOUDFLARE_IMAGES_API_TOKEN")
        self._transport = transport

        if not self.account_id:
            raise ValueError("CLOUDFLARE_ACCOUNT_ID environment variable or account_id parameter is required")
        if not self.api_token:
            raise ValueError(
                "CLOUDFLARE_IMAGES_API_TOKEN environment variable or api_token parameter is required"
            )

        self.upload_url = f"https://api.cloudflare.com/client/v4/accounts/{self.account_id}/images/v1"

    async def upload(self, data: bytes, object_key: str) -> Optional[str]:
        """
        Upload bytes and return the public variant URL.

        Raises:
            StorageError: On HTTP failure or a response without a public URL
        """
        headers = {"Authorization": f"Bearer {self.api_token}"}
        files = {
            "file": (PurePosixPath(object_key).name, data, _content_type_for(object_key)),
            "id": (None, object_key),
            "requireSignedURLs": (None, "false"),
        }

        try:
            async with httpx.AsyncClient(timeout=30.0, transport=self._transport) as client:
                response = await client.post(self.upload_url, headers=headers, files=files)
        except httpx.HTTPError as e:
            raise StorageError(f"Cloudflare Images upload failed: {str(e)}", original_exception=e)

        if response.status_code != 200:
            raise StorageError(f"Cloudflare Images API error {response.status_code}: {response.text}")

        try:
            body = response.json()
        except ValueError as e:
            raise StorageError("Cloudflare Images API returned a non-JSON body", original_exception=e)

        result = body.get("result") if isinstance(body, dict) else None
        variants = result.get("variants") if isinstance(result, dict) else None
        public_url = variants[0] if isinstance(variants, list) and variants else None
        if not isinstance(public_url, str) or not public_url:
            raise StorageError("Cloudflare Images API returned no public URL")

        # Ensure URL ends with /public
        if not public_url.endswith("/public"):
            public_url = "/".join(public_url.split("/")[:-1]) + "/public"

        return public_url


class StorageService:
    """Routes uploads to the active provider, falling back to local storage."""

    def __init__(
        self,
        provider: StorageProvider | str | None = None,
        local_backend: StorageBackend | None = None,
        cloud_backend: StorageBackend | None = None,
        fallback_to_local: bool = True,
    ):
        """
        Args:
            provider: Active provider (defaults to STORAGE_PROVIDER env var, then local)
            local_backend: Local backend (created with env defaults if omitted)
            cloud_backend: Cloud backend; created lazily from env vars when first needed
            fallback_to_local: Retry failed cloud uploads against local storage
        """
        self.provider = StorageProvider(provider or os.getenv("STORAGE_PROVIDER", StorageProvider.LOCAL.value))
        self.local_backend = local_backend or LocalStorageBackend()
        self._cloud_backend = cloud_backend
        self.fallback_to_local = fallback_to_local

    @property
    def cloud_backend(self) -> StorageBackend:
        if self._cloud_backend is None:
            self._cloud_backend = CloudflareImagesBackend()
        return self._cloud_backend

    def get_provider(self) -> StorageProvider:
        return self.provider

    def set_provider(self, provider: StorageProvider | str) -> StorageProvider:
        self.provider = StorageProvider(provider)
        logger.info(f"📋 [StorageService] Storage provider switched to: {self.provider.value}")
        return self.provider

    async def upload(self, data: bytes, object_key: str) -> Optional[str]:
        """Store ``data``; return its public URL, or None if every option failed."""
        logger.debug(f"📋 [StorageService] Uploading to {self.provider.value}: {object_key}")

        try:
            if self.provider is StorageProvider.LOCAL:
                return await self.local_backend.upload(data, object_key)
            return await self.cloud_backend.upload(data, object_key)
        except Exception as e:
            # Any backend failure (including missing cloud credentials) routes to the fallback
            logger.error(f"❌ [StorageService] Upload failed with {self.provider.value}: {e}", exc_info=True)

        if self.provider is StorageProvider.CLOUD_BUCKET and self.fallback_to_local:
            logger.warning("⚠️ [StorageService] Falling back to local storage")
            try:
                return await self.local_backend.upload(data, object_key)
            except Exception as e:
                logger.error(f"❌ [StorageService] Fallback to local storage failed: {e}")

        return None
