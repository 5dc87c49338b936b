"""Interfaces the core consumes. Adapters live under ``editgraph.infrastructure``."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable


@dataclass(frozen=True)
class ResolvedImage:
    data: bytes
    content_type: str


@dataclass(frozen=True)
class ConnectionCheck:
    success: bool
    error: str | None = None


@runtime_checkable
class RemoteObjectStore(Protocol):
    def is_configured(self) -> bool: ...

    async def put(
        self, key: str, data: bytes, content_type: str, metadata: dict[str, str]
    ) -> str: ...

    async def get(self, key: str) -> bytes: ...

    async def delete(self, key: str) -> None: ...

    async def list(self, prefix: str | None = None) -> list[str]: ...

    async def get_metadata(self, key: str) -> dict[str, str] | None: ...

    async def test_connection(self) -> ConnectionCheck: ...


@runtime_checkable
class TransientHandleResolver(Protocol):
    def is_transient(self, location: str) -> bool: ...

    async def resolve(self, location: str) -> ResolvedImage: ...

    def revoke(self, location: str) -> bool: ...


@runtime_checkable
class PersistenceChannel(Protocol):
    def load(self) -> str | None: ...

    def save(self, payload: str) -> None: ...
