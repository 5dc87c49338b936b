from __future__ import annotations

import uuid
from io import BytesIO

from PIL import Image, UnidentifiedImageError

from editgraph.application.ports import ResolvedImage
from editgraph.domain.entities.image_version import TRANSIENT_SCHEME, is_transient_location
from editgraph.domain.errors import UnreadableHandleError, ValidationError


def sniff_content_type(data: bytes) -> str:
    try:
        with Image.open(BytesIO(data)) as img:
            return Image.MIME.get(img.format or "", "application/octet-stream")
    except (UnidentifiedImageError, OSError) as exc:
        raise ValidationError("Data is not a readable image", context={"size": len(data)}) from exc


class BlobHandleRegistry:
    """In-process table of ``blob:`` handles to image bytes.

    Handles die with the process, so a persisted handle is never resolvable
    after a restart.
    """

    def __init__(self) -> None:
        self._blobs: dict[str, ResolvedImage] = {}

    def __len__(self) -> int:
        return len(self._blobs)

    def is_transient(self, location: str) -> bool:
        return is_transient_location(location)

    def register(self, data: bytes, content_type: str | None = None) -> str:
        if not data:
            raise ValidationError("Cannot register an empty image")
        handle = f"{TRANSIENT_SCHEME}{uuid.uuid4()}"
        self._blobs[handle] = ResolvedImage(data=data, content_type=content_type or sniff_content_type(data))
        return handle

    def revoke(self, handle: str) -> bool:
        return self._blobs.pop(handle, None) is not None

    async def resolve(self, location: str) -> ResolvedImage:
        if not self.is_transient(location):
            raise UnreadableHandleError(f"Not a transient handle: {location}", context={"location": location})
        resolved = self._blobs.get(location)
        if resolved is None:
            raise UnreadableHandleError(
                f"Transient handle is stale or revoked: {location}", context={"location": location}
            )
        return resolved
