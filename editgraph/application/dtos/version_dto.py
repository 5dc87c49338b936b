from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from editgraph.domain.entities.image_version import ImageVersion, SyncStatus, VersionKind


class VersionItem(BaseModel):
    """A single node of the edit graph."""
    id: str = Field(..., description="Unique identifier of the version", examples=["v1718000000000"])
    kind: VersionKind = Field(..., description="Pipeline stage that produced the version")
    created_at: datetime = Field(..., description="ISO timestamp when the version was created")
    image_location: str = Field(..., description="Transient handle or durable URL of the image bytes")
    parent_id: str | None = Field(None, description="Version this one was derived from")
    remote_key: str | None = Field(None, description="Object key in remote storage, if uploaded")
    sync_status: SyncStatus = Field(..., description="Remote synchronization status")
    metadata: dict[str, Any] = Field(default_factory=dict, description="Prompt, settings, tags and other attributes")

    @classmethod
    def from_entity(cls, version: ImageVersion) -> "VersionItem":
        return cls(
            id=version.id,
            kind=version.kind,
            created_at=version.created_at,
            image_location=version.image_location,
            parent_id=version.parent_id,
            remote_key=version.remote_key,
            sync_status=version.sync_status,
            metadata=version.metadata,
        )


class CreateVersionRequest(BaseModel):
    """Draft for a version whose image is already addressable."""
    kind: VersionKind = Field(..., description="Pipeline stage producing the version", examples=["color"])
    image_location: str = Field(..., min_length=1, description="Durable URL or a previously registered blob: handle")
    parent_id: str | None = Field(None, description="Version this one is derived from")
    metadata: dict[str, Any] = Field(default_factory=dict, description="Prompt, settings, tags and other attributes")


class VersionMutationResponse(BaseModel):
    """Result of creating a version."""
    version: VersionItem = Field(..., description="The committed version, now current")
    warning: str | None = Field(None, description="Non-fatal synchronization warning")


class ListVersionsResponse(BaseModel):
    """Versions in insertion or chain order."""
    versions: list[VersionItem] = Field(..., description="List of versions")
    total: int = Field(..., ge=0, description="Number of versions returned")


class CurrentRootResponse(BaseModel):
    root_id: str | None = Field(None, description="Root of the chain currently being edited")
    branch_root_id: str | None = Field(None, description="Explicit branch root override, if any")


class SelectVersionRequest(BaseModel):
    version_id: str | None = Field(None, description="Version to select; null clears a branch root")


class VersionStatsResponse(BaseModel):
    total: int = Field(..., ge=0, description="Number of versions in the store")
    by_kind: dict[str, int] = Field(..., description="Version count per pipeline stage")
