from __future__ import annotations

import asyncio
import json
import os
from pathlib import Path

from editgraph.application.ports import ConnectionCheck
from editgraph.domain.errors import RemoteStoreError, StorageErrorCategory

_META_SUFFIX = ".meta.json"


class LocalDirObjectStore:
    """Object store that keeps blobs in a local directory.

    Stands in for the remote bucket during development: objects are served
    under ``/local-storage/<key>`` and metadata lives in a JSON sidecar file.
    """

    url_prefix = "/local-storage"

    def __init__(self, base_dir: str | Path | None = None) -> None:
        self.base_dir = Path(base_dir or os.getenv("EDITGRAPH_LOCAL_STORAGE_DIR", ".local_storage"))
        self.base_dir.mkdir(parents=True, exist_ok=True)

    def is_configured(self) -> bool:
        return True

    def _path(self, key: str) -> Path:
        base = self.base_dir.resolve()
        full_path = (base / key).resolve()
        if not key or base not in full_path.parents:
            raise RemoteStoreError(
                f"Invalid object key: {key!r}", StorageErrorCategory.BAD_REQUEST, context={"key": key}
            )
        return full_path

    def public_url(self, key: str) -> str:
        return f"{self.url_prefix}/{key}"

    async def put(
        self, key: str, data: bytes, content_type: str, metadata: dict[str, str]
    ) -> str:
        full_path = self._path(key)

        def write() -> None:
            full_path.parent.mkdir(parents=True, exist_ok=True)
            full_path.write_bytes(data)
            sidecar = {"content_type": content_type, "metadata": metadata}
            full_path.with_name(full_path.name + _META_SUFFIX).write_text(json.dumps(sidecar))

        await asyncio.to_thread(write)
        return self.public_url(key)

    async def get(self, key: str) -> bytes:
        full_path = self._path(key)
        if not full_path.is_file():
            raise RemoteStoreError(
                f"Object not found: {key}", StorageErrorCategory.NOT_FOUND, context={"key": key}
            )
        return await asyncio.to_thread(full_path.read_bytes)

    async def delete(self, key: str) -> None:
        full_path = self._path(key)
        if not full_path.is_file():
            raise RemoteStoreError(
                f"Object not found: {key}", StorageErrorCategory.NOT_FOUND, context={"key": key}
            )
        full_path.unlink()
        full_path.with_name(full_path.name + _META_SUFFIX).unlink(missing_ok=True)

    async def list(self, prefix: str | None = None) -> list[str]:
        def walk() -> list[str]:
            keys = []
            for path in self.base_dir.rglob("*"):
                if not path.is_file() or path.name.endswith(_META_SUFFIX):
                    continue
                key = path.relative_to(self.base_dir).as_posix()
                if not prefix or key.startswith(prefix):
                    keys.append(key)
            return sorted(keys)

        return await asyncio.to_thread(walk)

    async def get_metadata(self, key: str) -> dict[str, str] | None:
        try:
            sidecar = self._path(key)
        except RemoteStoreError:
            return None
        sidecar = sidecar.with_name(sidecar.name + _META_SUFFIX)
        if not sidecar.is_file():
            return None
        return json.loads(sidecar.read_text()).get("metadata") or None

    async def test_connection(self) -> ConnectionCheck:
        if not self.base_dir.is_dir():
            return ConnectionCheck(success=False, error=f"Storage directory missing: {self.base_dir}")
        return ConnectionCheck(success=True)
