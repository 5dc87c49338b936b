from __future__ import annotations

import json
from datetime import UTC, datetime

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile, status

from editgraph.application.dtos.common_dto import SuccessResponse
from editgraph.application.dtos.version_dto import (
    CreateVersionRequest,
    CurrentRootResponse,
    ListVersionsResponse,
    SelectVersionRequest,
    VersionItem,
    VersionMutationResponse,
    VersionStatsResponse,
)
from editgraph.application.version_store import VersionStore
from editgraph.domain.entities.image_version import ImageVersion, VersionDraft, VersionKind
from editgraph.domain.errors import NotFoundError, ValidationError
from editgraph.infrastructure.api.dependencies import get_handle_registry, get_version_store
from editgraph.infrastructure.storage.blob_handles import BlobHandleRegistry

router = APIRouter(
    prefix="/versions",
    tags=["Version History"],
    responses={
        400: {"description": "Bad Request - Invalid draft, image or parent id"},
        404: {"description": "Not Found - Version does not exist"},
        503: {"description": "Service Unavailable - Persisted state is still loading"},
    },
)


def _require(store: VersionStore, version_id: str) -> ImageVersion:
    version = store.get_version(version_id)
    if version is None:
        raise NotFoundError(f"Version {version_id} not found", context={"version_id": version_id})
    return version


def _listing(versions: list[ImageVersion]) -> ListVersionsResponse:
    return ListVersionsResponse(versions=[VersionItem.from_entity(v) for v in versions], total=len(versions))


async def _commit(store: VersionStore, draft: VersionDraft) -> VersionMutationResponse:
    version = await store.add_version(draft)
    if version is None:
        raise HTTPException(status_code=500, detail=store.state.error or "Failed to save image version")
    return VersionMutationResponse(version=VersionItem.from_entity(version), warning=store.state.last_warning)


@router.get("", response_model=ListVersionsResponse, summary="List All Versions")
async def list_versions(
    kind: VersionKind | None = Query(None, description="Only versions produced by this stage"),
    store: VersionStore = Depends(get_version_store),
):
    """All versions in insertion order, across every uploaded image."""
    versions = store.get_versions_by_kind(kind) if kind else store.get_version_history()
    return _listing(versions)


@router.post(
    "",
    response_model=VersionMutationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create Version From Location",
)
async def create_version(body: CreateVersionRequest, store: VersionStore = Depends(get_version_store)):
    """Commit a version whose image is a durable URL or a registered blob handle."""
    draft = VersionDraft(
        kind=body.kind, image_location=body.image_location, parent_id=body.parent_id, metadata=body.metadata
    )
    return await _commit(store, draft)


@router.post(
    "/upload",
    response_model=VersionMutationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Upload Image Version",
    description="""
    Upload image bytes and commit them as a new version.

    The bytes are held behind a transient handle and uploaded to remote
    storage when it is configured. Without remote storage the version stays
    local-only and the response carries a warning.
    """,
)
async def upload_version(
    file: UploadFile = File(..., description="Image file to upload"),
    kind: VersionKind = Form(VersionKind.UPLOAD, description="Pipeline stage producing the image"),
    parent_id: str | None = Form(None, description="Version the image was derived from"),
    metadata: str | None = Form(None, description="JSON object of extra attributes"),
    store: VersionStore = Depends(get_version_store),
    handles: BlobHandleRegistry = Depends(get_handle_registry),
):
    try:
        extra = json.loads(metadata) if metadata else {}
    except json.JSONDecodeError as exc:
        raise HTTPException(status_code=400, detail=f"Invalid metadata JSON: {exc}") from exc
    if not isinstance(extra, dict):
        raise HTTPException(status_code=400, detail="Metadata must be a JSON object")

    data = await file.read()
    # content type comes from the bytes, not the client header
    handle = handles.register(data)
    if kind == VersionKind.UPLOAD:
        extra = {
            "original_file_name": file.filename or "uploaded_image",
            "file_size": len(data),
            "upload_timestamp": datetime.now(UTC).isoformat(),
            **extra,
        }
    draft = VersionDraft(kind=kind, image_location=handle, parent_id=parent_id or None, metadata=extra)
    try:
        return await _commit(store, draft)
    except (ValidationError, HTTPException):
        handles.revoke(handle)
        raise


@router.get("/current", response_model=VersionItem, summary="Get Current Version")
async def get_current_version(store: VersionStore = Depends(get_version_store)):
    version = store.get_current_version()
    if version is None:
        raise HTTPException(status_code=404, detail="No version is currently selected")
    return VersionItem.from_entity(version)


@router.put("/current", response_model=VersionItem, summary="Select Current Version")
async def set_current_version(body: SelectVersionRequest, store: VersionStore = Depends(get_version_store)):
    if not body.version_id or not store.set_current_version(body.version_id):
        raise HTTPException(status_code=404, detail="Version not found")
    return VersionItem.from_entity(store.get_current_version())


@router.get("/current/history", response_model=ListVersionsResponse, summary="Current Chain History")
async def get_current_history(store: VersionStore = Depends(get_version_store)):
    """Versions sharing the root of the image being edited, oldest first."""
    return _listing(store.get_current_version_history())


@router.get("/current/root", response_model=CurrentRootResponse, summary="Current Chain Root")
async def get_current_root(store: VersionStore = Depends(get_version_store)):
    return CurrentRootResponse(root_id=store.get_current_root_id(), branch_root_id=store.state.branch_root_id)


@router.put("/branch-root", response_model=CurrentRootResponse, summary="Set Branch Root")
async def set_branch_root(body: SelectVersionRequest, store: VersionStore = Depends(get_version_store)):
    """Start a new editing chain from a historical version, or clear the override with null."""
    if not store.set_branch_root(body.version_id):
        raise HTTPException(status_code=404, detail="Version not found")
    return CurrentRootResponse(root_id=store.get_current_root_id(), branch_root_id=store.state.branch_root_id)


@router.get("/stats", response_model=VersionStatsResponse, summary="Version Counts")
async def get_stats(store: VersionStore = Depends(get_version_store)):
    counts = store.count_by_kind()
    return VersionStatsResponse(total=sum(counts.values()), by_kind={k.value: n for k, n in counts.items()})


@router.delete("", response_model=SuccessResponse, summary="Clear All Versions")
async def clear_versions(store: VersionStore = Depends(get_version_store)):
    """Forget every version locally. Remote copies are not deleted."""
    store.clear_versions()
    return SuccessResponse(message="All versions cleared")


@router.get("/{version_id}", response_model=VersionItem, summary="Get Version")
async def get_version(version_id: str, store: VersionStore = Depends(get_version_store)):
    return VersionItem.from_entity(_require(store, version_id))


@router.get("/{version_id}/remote", response_model=VersionItem, summary="Load Version From Remote Storage")
async def load_remote_version(version_id: str, store: VersionStore = Depends(get_version_store)):
    """Fetch the uploaded copy and return it inline as a data URL."""
    _require(store, version_id)
    loaded = await store.load_version_from_remote(version_id)
    if loaded is None:
        raise HTTPException(status_code=404, detail="Version has no readable remote copy")
    return VersionItem.from_entity(loaded)


@router.delete("/{version_id}", response_model=SuccessResponse, summary="Delete Version")
async def delete_version(version_id: str, store: VersionStore = Depends(get_version_store)):
    """Delete a version and, best effort, its remote copy. Children move up to its parent."""
    if not await store.delete_version(version_id):
        raise HTTPException(status_code=404, detail="Version not found")
    return SuccessResponse(message=f"Version {version_id} deleted")
