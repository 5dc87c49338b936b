from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

# Handles with this scheme only live as long as the process that minted them.
TRANSIENT_SCHEME = "blob:"


class VersionKind(str, Enum):
    UPLOAD = "upload"
    AI_EDIT = "ai_edit"
    COLOR = "color"
    CROP = "crop"
    METADATA = "metadata"


class SyncStatus(str, Enum):
    LOCAL_ONLY = "local_only"
    UPLOADING = "uploading"
    REMOTE_BACKED = "remote_backed"
    UPLOAD_FAILED = "upload_failed"


def is_transient_location(location: str) -> bool:
    return location.startswith(TRANSIENT_SCHEME)


@dataclass(frozen=True)
class VersionDraft:
    """Caller-supplied part of a version; id and timestamp come from the store."""

    kind: VersionKind
    image_location: str
    parent_id: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ImageVersion:
    id: str
    kind: VersionKind
    created_at: datetime
    image_location: str  # blob: handle or durable URL/path
    parent_id: str | None = None  # None for original uploads
    remote_key: str | None = None  # storage key once materialized
    metadata: dict[str, Any] = field(default_factory=dict)
    sync_status: SyncStatus = SyncStatus.LOCAL_ONLY

    @property
    def is_transient(self) -> bool:
        return is_transient_location(self.image_location)

    @property
    def prompt(self) -> str | None:
        return self.metadata.get("prompt")
