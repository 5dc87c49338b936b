from __future__ import annotations

from pydantic import BaseModel, Field


class StorageStatusResponse(BaseModel):
    """Remote storage configuration and reachability."""
    configured: bool = Field(..., description="Whether a remote object store is configured")
    reachable: bool = Field(..., description="Whether a connectivity probe succeeded")
    error: str | None = Field(None, description="Probe failure reason")


class ListObjectsResponse(BaseModel):
    keys: list[str] = Field(..., description="Object keys under the requested prefix")


class ObjectMetadataResponse(BaseModel):
    key: str = Field(..., description="Object key")
    metadata: dict[str, str] | None = Field(None, description="Metadata attached at upload time")
