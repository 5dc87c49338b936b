from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query

from editgraph.application.dtos.storage_dto import (
    ListObjectsResponse,
    ObjectMetadataResponse,
    StorageStatusResponse,
)
from editgraph.application.editor_context import EditorContext
from editgraph.domain.errors import RemoteStoreError, StorageErrorCategory
from editgraph.infrastructure.api.dependencies import get_context

router = APIRouter(prefix="/storage", tags=["Remote Storage"])

_STATUS_CODES = {
    StorageErrorCategory.NOT_FOUND: 404,
    StorageErrorCategory.ACCESS_DENIED: 403,
    StorageErrorCategory.BAD_REQUEST: 400,
}


@router.get("/status", response_model=StorageStatusResponse, summary="Remote Storage Status")
async def storage_status(ctx: EditorContext = Depends(get_context)):
    configured = ctx.remote.is_configured()
    check = await ctx.remote.test_connection()
    return StorageStatusResponse(configured=configured, reachable=check.success, error=check.error)


@router.get("/objects", response_model=ListObjectsResponse, summary="List Stored Objects")
async def list_objects(
    prefix: str | None = Query(None, description="Only keys starting with this prefix"),
    ctx: EditorContext = Depends(get_context),
):
    if not ctx.remote.is_configured():
        raise HTTPException(status_code=409, detail="Remote storage is not configured")
    try:
        keys = await ctx.remote.list(prefix)
    except RemoteStoreError as exc:
        raise HTTPException(status_code=_STATUS_CODES.get(exc.category, 502), detail=exc.message) from exc
    return ListObjectsResponse(keys=keys)


@router.get("/objects/metadata", response_model=ObjectMetadataResponse, summary="Get Object Metadata")
async def object_metadata(
    key: str = Query(..., min_length=1, description="Object key"),
    ctx: EditorContext = Depends(get_context),
):
    return ObjectMetadataResponse(key=key, metadata=await ctx.remote.get_metadata(key))
