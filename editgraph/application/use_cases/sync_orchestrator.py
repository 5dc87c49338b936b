from __future__ import annotations

from dataclasses import dataclass, replace

from editgraph.application.ports import RemoteObjectStore, TransientHandleResolver
from editgraph.domain.entities.image_version import ImageVersion, SyncStatus
from editgraph.domain.errors import RemoteStoreError, StorageErrorCategory, UnreadableHandleError
from editgraph.utils.logger import get_logger

logger = get_logger(__name__)

_EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
    "image/gif": "gif",
}


def remote_key_for(version: ImageVersion, content_type: str = "image/jpeg") -> str:
    """Storage key ``images/<id>/<kind>-<timestamp>.<ext>``; unique per version id."""
    stamp = version.created_at.isoformat().replace(":", "-").replace(".", "-")
    ext = _EXTENSIONS.get(content_type, "jpg")
    return f"images/{version.id}/{version.kind.value}-{stamp}.{ext}"


def failure_category(exc: Exception) -> StorageErrorCategory:
    """Category of an upload/delete failure, including errors raised outside the adapters."""
    if isinstance(exc, RemoteStoreError):
        return exc.category
    if isinstance(exc, PermissionError):
        return StorageErrorCategory.ACCESS_DENIED
    if isinstance(exc, FileNotFoundError):
        return StorageErrorCategory.NOT_FOUND
    if isinstance(exc, ValueError):
        return StorageErrorCategory.BAD_REQUEST
    return StorageErrorCategory.UNKNOWN


def upload_metadata(version: ImageVersion) -> dict[str, str]:
    extra = version.metadata.get("remote_metadata") or {}
    return {
        "versionId": version.id,
        "type": version.kind.value,
        "parent": version.parent_id or "",
        "prompt": version.prompt or "",
        "timestamp": version.created_at.isoformat(),
        **{str(k): str(v) for k, v in extra.items()},
    }


@dataclass(frozen=True)
class MaterializeResult:
    version: ImageVersion
    warning: str | None = None


@dataclass
class SyncOrchestrator:
    """
    Moves version payloads between transient local handles and the remote store.

    The remote store is optional: every failure degrades to keeping the
    version local-only and is reported as a warning, never raised.
    """

    store: RemoteObjectStore
    resolver: TransientHandleResolver

    async def materialize(self, version: ImageVersion) -> MaterializeResult:
        """
        Upload the bytes behind a transient handle and point the version at the copy.

        Args:
            version: Uncommitted version as built by the version store

        Returns:
            The version to commit plus an optional warning. Durable versions
            come back untouched, so calling this twice never uploads twice.
        """
        if not self.resolver.is_transient(version.image_location):
            return MaterializeResult(version)

        if not self.store.is_configured():
            return MaterializeResult(
                version, "Remote storage is not configured; image kept in local storage only"
            )

        uploading = replace(version, sync_status=SyncStatus.UPLOADING)
        log = logger.bind(version_id=version.id, kind=version.kind.value)
        try:
            resolved = await self.resolver.resolve(uploading.image_location)
            key = remote_key_for(uploading, resolved.content_type)
            metadata = upload_metadata(uploading)
            url = await self.store.put(key, resolved.data, resolved.content_type, metadata)
        except UnreadableHandleError as exc:
            log.bind(category="unreadable").warning(f"Could not read image for upload: {exc.message}")
            return self._failed(version, f"Upload skipped, image handle is unreadable: {exc.message}")
        except Exception as exc:
            category = failure_category(exc).value
            log.bind(category=category).warning(f"Remote upload failed, keeping image in local storage: {exc}")
            return self._failed(version, f"Remote upload failed ({category}): {exc}")

        log.bind(remote_key=key).info("Image uploaded to remote storage")
        # the durable copy replaces the local bytes
        self.resolver.revoke(version.image_location)
        committed = replace(
            uploading,
            image_location=url,
            remote_key=key,
            sync_status=SyncStatus.REMOTE_BACKED,
            metadata={**uploading.metadata, "remote_metadata": metadata},
        )
        return MaterializeResult(committed)

    @staticmethod
    def _failed(version: ImageVersion, warning: str) -> MaterializeResult:
        return MaterializeResult(replace(version, sync_status=SyncStatus.UPLOAD_FAILED), warning)

    def release(self, version: ImageVersion) -> bool:
        """Drop the local bytes behind a transient version."""
        if not self.resolver.is_transient(version.image_location):
            return False
        return self.resolver.revoke(version.image_location)

    async def dematerialize(self, version: ImageVersion) -> bool:
        """Best-effort removal of the remote copy. Never raises."""
        if not version.remote_key:
            return False
        log = logger.bind(version_id=version.id, remote_key=version.remote_key)
        if not self.store.is_configured():
            log.warning("Remote storage is not configured; remote copy left in place")
            return False
        try:
            await self.store.delete(version.remote_key)
        except Exception as exc:
            log.bind(category=failure_category(exc).value).warning(f"Failed to delete remote image: {exc}")
            return False
        log.info("Remote image deleted")
        return True

    async def load(self, version: ImageVersion) -> bytes | None:
        """Fetch the remote copy of a version, or None if it cannot be read."""
        if not version.remote_key or not self.store.is_configured():
            return None
        try:
            return await self.store.get(version.remote_key)
        except Exception as exc:
            logger.bind(version_id=version.id, category=failure_category(exc).value).warning(
                f"Failed to load version from remote storage: {exc}"
            )
            return None


def content_type_for_key(key: str) -> str:
    ext = key.rsplit(".", 1)[-1].lower() if "." in key else ""
    for content_type, known in _EXTENSIONS.items():
        if known == ext:
            return content_type
    return "image/jpeg"
