import io
import os
import sys
from datetime import UTC, datetime, timedelta
from pathlib import Path
from unittest.mock import AsyncMock, Mock

import numpy as np
import pytest
from PIL import Image

# Ensure project root is on sys.path so 'editgraph' is importable during tests
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("SUPABASE_DISABLED", "1")
os.environ.setdefault("EDITGRAPH_STORAGE", "none")
os.environ.setdefault("EDITGRAPH_PERSISTENCE", "memory")

from editgraph.application.use_cases.sync_orchestrator import SyncOrchestrator  # noqa: E402
from editgraph.application.version_store import VersionStore  # noqa: E402
from editgraph.infrastructure.persistence.memory import InMemoryPersistence  # noqa: E402
from editgraph.infrastructure.storage.blob_handles import BlobHandleRegistry  # noqa: E402


def make_png_bytes(w=4, h=4, color=(128, 64, 32)) -> bytes:
    arr = np.zeros((h, w, 3), dtype=np.uint8)
    arr[:, :] = color
    img = Image.fromarray(arr)
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


class TickingClock:
    """Deterministic clock advancing one second per call."""

    def __init__(self, start: datetime | None = None, step: timedelta = timedelta(seconds=1)):
        self.now = start or datetime(2024, 1, 1, 12, 0, tzinfo=UTC)
        self.step = step

    def __call__(self) -> datetime:
        current = self.now
        self.now = self.now + self.step
        return current


@pytest.fixture
def png_bytes() -> bytes:
    return make_png_bytes()


@pytest.fixture
def registry() -> BlobHandleRegistry:
    return BlobHandleRegistry()


@pytest.fixture
def unconfigured_remote():
    remote = Mock()
    remote.is_configured.return_value = False
    remote.put = AsyncMock()
    remote.get = AsyncMock()
    remote.delete = AsyncMock()
    return remote


@pytest.fixture
def remote():
    """Configured remote store whose uploads succeed."""
    store = Mock()
    store.is_configured.return_value = True

    async def put(key, data, content_type, metadata):
        return f"https://cdn.example.com/{key}"

    store.put = AsyncMock(side_effect=put)
    store.get = AsyncMock(return_value=make_png_bytes())
    store.delete = AsyncMock(return_value=None)
    return store


@pytest.fixture
def persistence() -> InMemoryPersistence:
    return InMemoryPersistence()


@pytest.fixture
def make_store(registry, persistence, unconfigured_remote):
    def factory(remote_store=None, clock=None) -> VersionStore:
        sync = SyncOrchestrator(store=remote_store or unconfigured_remote, resolver=registry)
        return VersionStore(sync=sync, persistence=persistence, clock=clock or TickingClock())

    return factory


@pytest.fixture
def clock() -> TickingClock:
    return TickingClock()


@pytest.fixture
def client(tmp_path):
    """API client over a local-directory object store, hydrated on entry."""
    from fastapi.testclient import TestClient

    from editgraph.application.editor_context import EditorContext
    from editgraph.infrastructure.storage.local_storage import LocalDirObjectStore
    from editgraph.main import create_app

    context = EditorContext.create(
        remote=LocalDirObjectStore(tmp_path / "bucket"),
        resolver=BlobHandleRegistry(),
        persistence=InMemoryPersistence(),
    )
    with TestClient(create_app(context)) as c:
        yield c
