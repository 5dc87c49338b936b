from __future__ import annotations

from dataclasses import dataclass

from editgraph.application.ports import PersistenceChannel, RemoteObjectStore, TransientHandleResolver
from editgraph.application.use_cases.hydrate_editor_state import HydrationController
from editgraph.application.use_cases.sync_orchestrator import SyncOrchestrator
from editgraph.application.version_store import VersionStore


@dataclass
class EditorContext:
    """Everything the application shell needs, built once at startup."""

    store: VersionStore
    sync: SyncOrchestrator
    hydration: HydrationController
    remote: RemoteObjectStore
    resolver: TransientHandleResolver
    persistence: PersistenceChannel

    @classmethod
    def create(
        cls,
        remote: RemoteObjectStore,
        resolver: TransientHandleResolver,
        persistence: PersistenceChannel,
    ) -> "EditorContext":
        sync = SyncOrchestrator(store=remote, resolver=resolver)
        store = VersionStore(sync=sync, persistence=persistence)
        hydration = HydrationController(store=store, persistence=persistence)
        return cls(
            store=store,
            sync=sync,
            hydration=hydration,
            remote=remote,
            resolver=resolver,
            persistence=persistence,
        )

    @property
    def is_ready(self) -> bool:
        return self.store.state.is_hydrated
