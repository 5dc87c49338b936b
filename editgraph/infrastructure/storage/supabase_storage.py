from __future__ import annotations

import asyncio
import os
from typing import Any, Callable, TypeVar

from supabase import Client

from editgraph.application.ports import ConnectionCheck
from editgraph.domain.errors import (
    RemoteStoreError,
    StorageErrorCategory,
    StoreNotConfiguredError,
)
from editgraph.utils.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

_CATEGORY_MESSAGES = {
    StorageErrorCategory.NOT_FOUND: "Bucket or object not found. Please check the bucket name.",
    StorageErrorCategory.ACCESS_DENIED: "Access denied. Please check your credentials and permissions.",
    StorageErrorCategory.BAD_REQUEST: "Invalid request. Please check your project URL and credentials.",
}


def categorize_storage_error(exc: BaseException) -> StorageErrorCategory:
    """Map a storage SDK exception to a category using its HTTP status."""
    status = getattr(exc, "status", None) or getattr(exc, "status_code", None)
    if status is None:
        args = getattr(exc, "args", ())
        if args and isinstance(args[0], dict):
            status = args[0].get("statusCode") or args[0].get("status")
    return StorageErrorCategory.from_status(status)


class SupabaseObjectStore:
    """Remote object store backed by a Supabase Storage bucket.

    Without a client (missing credentials or SUPABASE_DISABLED=1) the store
    reports itself as unconfigured and every I/O call raises
    StoreNotConfiguredError.
    """

    def __init__(self, client: Client | None, bucket: str | None = None) -> None:
        self.client = client
        self.bucket = bucket or os.getenv("SUPABASE_STORAGE_BUCKET", "images")
        self.disabled = os.getenv("SUPABASE_DISABLED", "0") == "1"
        if not self.is_configured():
            logger.warning("Supabase Storage is not configured; images will be kept locally only")

    def is_configured(self) -> bool:
        return not self.disabled and self.client is not None

    def _bucket(self):
        return self.client.storage.from_(self.bucket)  # type: ignore[union-attr]

    async def _call(self, action: str, key: str, fn: Callable[[], T]) -> T:
        if not self.is_configured():
            raise StoreNotConfiguredError()
        try:  # pragma: no cover - network
            return await asyncio.to_thread(fn)
        except Exception as exc:  # pragma: no cover - network
            category = categorize_storage_error(exc)
            message = _CATEGORY_MESSAGES.get(category, f"Storage {action} failed: {exc}")
            raise RemoteStoreError(
                message, category, context={"action": action, "key": key, "bucket": self.bucket}
            ) from exc

    async def put(
        self, key: str, data: bytes, content_type: str, metadata: dict[str, str]
    ) -> str:
        def upload() -> str:
            self._bucket().upload(
                path=key,
                file=data,
                file_options={"content-type": content_type, "upsert": "false", "metadata": metadata},
            )
            return self._bucket().get_public_url(key)

        url = await self._call("upload", key, upload)
        logger.bind(key=key, size=len(data)).info(f"Upload successful: {key}")
        return url

    async def get(self, key: str) -> bytes:
        return await self._call("download", key, lambda: self._bucket().download(key))

    async def delete(self, key: str) -> None:
        await self._call("delete", key, lambda: self._bucket().remove([key]))

    async def list(self, prefix: str | None = None) -> list[str]:
        folder = (prefix or "").rstrip("/")

        def list_folder() -> list[str]:
            entries: list[dict[str, Any]] = self._bucket().list(folder) or []
            return [f"{folder}/{e['name']}" if folder else e["name"] for e in entries]

        return await self._call("list", folder, list_folder)

    async def get_metadata(self, key: str) -> dict[str, str] | None:
        if not self.is_configured():
            return None
        try:
            info = await self._call("info", key, lambda: self._bucket().info(key))
        except RemoteStoreError as exc:
            logger.bind(key=key, category=exc.category.value).warning(
                f"Error getting object metadata: {exc.message}"
            )
            return None
        if not isinstance(info, dict):
            return None
        return info.get("metadata") or info.get("user_metadata") or None

    async def test_connection(self) -> ConnectionCheck:
        if not self.is_configured():
            return ConnectionCheck(success=False, error="Supabase Storage is not configured")
        try:
            await self._call("list", "", lambda: self._bucket().list("", {"limit": 1}))
        except RemoteStoreError as exc:
            return ConnectionCheck(success=False, error=exc.message)
        return ConnectionCheck(success=True)
