"""Content management: storefront settings and product media uploads."""
import asyncio
import json
import logging
import mimetypes
from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import ValidationError

from ..backend import BackendError, Query
from .base import AdminPanel
from .models import MediaRecord, SettingRecord

logger = logging.getLogger(__name__)

UPLOAD_FUNCTION = "admin-upload-media"
RECENT_MEDIA_LIMIT = 10


class ContentAdmin(AdminPanel):
    def __init__(self, backend):
        super().__init__(backend)
        self.settings: list[SettingRecord] = []
        self.media: list[MediaRecord] = []

    def get_setting(self, key: str) -> Optional[SettingRecord]:
        return next((s for s in self.settings if s.key == key), None)

    async def load(self) -> bool:
        backend = self._require_backend()
        if backend is None:
            return False
        try:
            setting_rows, media_rows = await asyncio.gather(
                backend.select(Query("settings", "key, value, description").order("key")),
                backend.select(
                    Query("media", "id, product_id, path, media_type, alt_text, created_at")
                    .order("created_at", ascending=False)
                    .limit(RECENT_MEDIA_LIMIT)
                ),
            )
            self.settings = [SettingRecord(**row) for row in setting_rows]
            self.media = [MediaRecord(**row) for row in media_rows]
        except BackendError as e:
            self._failed_request("Content load", e)
            return False
        except ValidationError as e:
            logger.warning("Content rows did not match the admin schema: %s", e)
            self._fail("Unable to load content records")
            return False
        self.error = None
        return True

    async def save_setting(self, key: str, draft: str) -> bool:
        """Parse `draft` as JSON and upsert it. Invalid JSON never reaches the backend."""
        backend = self._require_backend()
        if backend is None:
            return False
        if not key:
            self._fail("Select a setting to update")
            return False
        try:
            value = json.loads(draft)
        except (TypeError, ValueError):
            self._fail("Setting JSON is invalid")
            return False

        try:
            await backend.upsert("settings", {
                "key": key,
                "value": value,
                "updated_at": datetime.now(timezone.utc).isoformat(),
            })
        except BackendError as e:
            self._failed_request("Setting save", e)
            return False

        self._succeed("Setting saved successfully")
        await self.load()
        return True

    async def upload_media(
        self,
        product_id: str,
        file_name: str,
        content: bytes,
        content_type: str | None = None,
        alt_text: str = "",
    ) -> Optional[str]:
        """
        Two-phase upload: ask the upload function for a signed URL (it checks
        the caller's admin role and registers the media record), then PUT the
        bytes there. Returns the stored object path.
        """
        backend = self._require_backend()
        if backend is None:
            return None
        if not file_name or not content:
            self._fail("Select a file to upload")
            return None
        if not product_id:
            self._fail("Provide a product ID to associate the media with")
            return None

        content_type = content_type or mimetypes.guess_type(file_name)[0] or "application/octet-stream"
        body: dict[str, Any] = {
            "productId": product_id,
            "fileName": file_name,
            "contentType": content_type,
            "altText": (alt_text or "").strip() or None,
        }
        try:
            data = await backend.invoke_function(UPLOAD_FUNCTION, body)
        except BackendError as e:
            self._failed_request("Upload URL request", e)
            return None

        upload_url = data.get("uploadUrl")
        if not upload_url:
            self._fail("Upload URL was not returned from the server")
            return None

        try:
            await backend.upload_to_signed_url(upload_url, content, content_type)
        except BackendError as e:
            self._failed_request("File upload", e)
            return None

        path = data.get("path")
        logger.info("Uploaded %s for product %s to %s", file_name, product_id, path)
        self._succeed("Media asset uploaded and registered")
        await self.load()
        return path
