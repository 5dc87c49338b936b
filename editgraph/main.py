from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from editgraph.application.dtos.common_dto import HealthResponse, RootResponse
from editgraph.application.editor_context import EditorContext
from editgraph.domain.errors import CycleDetectedError, NotFoundError, ValidationError
from editgraph.infrastructure.api.dependencies import build_editor_context
from editgraph.infrastructure.api.middlewares import add_default_middlewares
from editgraph.infrastructure.api.routes.storage_routes import router as storage_router
from editgraph.infrastructure.api.routes.version_routes import router as version_router
from editgraph.infrastructure.persistence.postgres import PostgresPersistence
from editgraph.infrastructure.storage.local_storage import LocalDirObjectStore
from editgraph.utils.logger import setup_logging


def create_app(context: EditorContext | None = None) -> FastAPI:
    editor = context or build_editor_context()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await editor.hydration.run()
        yield
        if isinstance(editor.persistence, PostgresPersistence):
            editor.persistence.client.close()

    app = FastAPI(
        title="editgraph",
        version="0.1.0",
        description="""
        ## editgraph API

        Version graph and branching edit history for an image editing
        pipeline (upload, AI edit, color, crop, metadata), with optional
        synchronization of every version to remote object storage.

        ### Error Responses
        - **400 Bad Request**: Invalid draft, image data or parent id
        - **404 Not Found**: Version does not exist
        - **409 Conflict**: Remote storage not configured, or a corrupted version graph
        - **503 Service Unavailable**: Persisted editor state is still loading
        """,
        lifespan=lifespan,
    )
    app.state.editor = editor
    add_default_middlewares(app)

    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError):
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": exc.message})

    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError):
        return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": exc.message})

    @app.exception_handler(CycleDetectedError)
    async def cycle_handler(request: Request, exc: CycleDetectedError):
        return JSONResponse(status_code=status.HTTP_409_CONFLICT, content={"detail": exc.message})

    @app.get("/", response_model=RootResponse, summary="API Root")
    def root():
        """Get API root information."""
        return {"status": "ok", "service": "editgraph", "version": app.version}

    @app.get("/health", response_model=HealthResponse, summary="Health Check")
    def health():
        """Check API health and hydration status."""
        return {"status": "healthy", "hydrated": editor.is_ready}

    app.include_router(version_router)
    app.include_router(storage_router)
    if isinstance(editor.remote, LocalDirObjectStore):
        app.mount(
            editor.remote.url_prefix,
            StaticFiles(directory=editor.remote.base_dir, check_dir=False),
            name="local-storage",
        )
    return app


def get_app() -> FastAPI:
    setup_logging()
    return create_app()


app = get_app()
