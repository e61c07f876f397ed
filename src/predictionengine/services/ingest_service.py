"""Asset ingest: turns a provider image entry into a stable public URL."""

import base64
import binascii
import logging
import re
import time
import uuid

from predictionengine.interfaces import StorageBackend
from predictionengine.models.errors import IngestError
from predictionengine.models.responses import ProviderImageData

logger = logging.getLogger(__name__)

# Payloads above this size are logged as compression candidates; never rejected
LARGE_PAYLOAD_BYTES = 2 * 1024 * 1024

_DATA_URL_PREFIX = re.compile(r"^data:image/\w+;base64,")


def decode_image_payload(payload: str) -> bytes:
    """Decode base64 image data, tolerating a ``data:image/...;base64,`` prefix."""
    try:
        data = base64.b64decode(_DATA_URL_PREFIX.sub("", payload, count=1), validate=True)
    except (binascii.Error, ValueError) as e:
        raise IngestError(f"Invalid base64 image payload: {str(e)}", original_exception=e)
    if not data:
        raise IngestError("Decoded image payload is empty")
    return data


def build_object_key(identity_id: str, model_id: str) -> str:
    """``<identity>/<model>-<epoch ms>-<8 char suffix>.jpg``"""
    timestamp = int(time.time() * 1000)
    unique_id = uuid.uuid4().hex[:8]
    return f"{identity_id}/{model_id}-{timestamp}-{unique_id}.jpg"


class AssetIngestService:
    """Persists inline image bytes through storage; passes remote URLs through."""

    def __init__(self, storage: StorageBackend):
        self.storage = storage

    async def ingest(self, entry: ProviderImageData | None, identity_id: str, model_id: str) -> str:
        """
        Produce the public URL for one provider entry.

        Args:
            entry: First ``data`` entry of a provider response
            identity_id: Requester id used in the object key
            model_id: Model id used in the object key

        Returns:
            Public URL of the stored (or provider-hosted) image

        Raises:
            IngestError: No usable image data, bad encoding, or storage failure
        """
        if entry is None:
            raise IngestError("Provider returned no image data")

        if entry.base64_payload:
            data = decode_image_payload(entry.base64_payload)

            size_kb = len(data) / 1024
            logger.debug(f"📋 [AssetIngest] Base64 image size: {size_kb:.2f}KB (model: {model_id})")
            if len(data) > LARGE_PAYLOAD_BYTES:
                logger.warning(f"⚠️ [AssetIngest] Large image detected: {size_kb:.2f}KB - consider compression")

            object_key = build_object_key(identity_id, model_id)
            try:
                url = await self.storage.upload(data, object_key)
            except Exception as e:
                raise IngestError(f"Storage upload failed: {str(e)}", original_exception=e)
            if not url:
                raise IngestError(f"Storage upload returned no URL for {object_key}")

            logger.info(f"✅ [AssetIngest] Uploaded image: {object_key}")
            return url

        if entry.url:
            return entry.url

        raise IngestError("Provider entry carries neither a URL nor inline image data")
