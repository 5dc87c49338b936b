from __future__ import annotations

import os

from fastapi import HTTPException, Request, status

from editgraph.application.editor_context import EditorContext
from editgraph.application.ports import PersistenceChannel, RemoteObjectStore
from editgraph.application.version_store import VersionStore
from editgraph.domain.errors import ConfigurationError
from editgraph.infrastructure.database.postgres_client import get_postgres_client
from editgraph.infrastructure.database.supabase_client import get_supabase_client
from editgraph.infrastructure.persistence.json_file import JsonFilePersistence
from editgraph.infrastructure.persistence.memory import InMemoryPersistence
from editgraph.infrastructure.persistence.postgres import PostgresPersistence
from editgraph.infrastructure.storage.blob_handles import BlobHandleRegistry
from editgraph.infrastructure.storage.local_storage import LocalDirObjectStore
from editgraph.infrastructure.storage.supabase_storage import SupabaseObjectStore


def get_remote_store() -> RemoteObjectStore:
    backend = os.getenv("EDITGRAPH_STORAGE", "supabase").lower()
    if backend == "supabase":
        return SupabaseObjectStore(get_supabase_client())
    if backend == "local":
        return LocalDirObjectStore()
    if backend == "none":
        return SupabaseObjectStore(None)
    raise ConfigurationError(f"Unknown EDITGRAPH_STORAGE backend: {backend}", context={"backend": backend})


def get_persistence() -> PersistenceChannel:
    pg_client = get_postgres_client()
    if pg_client is not None:
        return PostgresPersistence(pg_client)
    if os.getenv("EDITGRAPH_PERSISTENCE", "file").lower() == "memory":
        return InMemoryPersistence()
    return JsonFilePersistence()


def build_editor_context() -> EditorContext:
    return EditorContext.create(
        remote=get_remote_store(),
        resolver=BlobHandleRegistry(),
        persistence=get_persistence(),
    )


def get_context(request: Request) -> EditorContext:
    return request.app.state.editor


def get_version_store(request: Request) -> VersionStore:
    ctx = get_context(request)
    if not ctx.is_ready:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Editor state is still loading"
        )
    return ctx.store


def get_handle_registry(request: Request) -> BlobHandleRegistry:
    resolver = get_context(request).resolver
    if not isinstance(resolver, BlobHandleRegistry):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT, detail="Image uploads are not supported by this handle resolver"
        )
    return resolver
