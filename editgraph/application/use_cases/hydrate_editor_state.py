from __future__ import annotations

from dataclasses import dataclass, field

from editgraph.application.ports import PersistenceChannel
from editgraph.application.state_codec import load_state
from editgraph.application.version_store import VersionStore
from editgraph.domain.entities.editor_state import EditorState
from editgraph.domain.entities.image_version import is_transient_location
from editgraph.domain.errors import CorruptStateError, PersistenceError
from editgraph.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class HydrationController:
    """
    Restores persisted editor state at startup.

    A payload that cannot be parsed, or that references any transient local
    handle, is discarded as a whole: partial repair could leave dangling
    parent links. ``is_hydrated`` becomes true exactly once, after either the
    load or the reset.
    """

    store: VersionStore
    persistence: PersistenceChannel
    _done: bool = field(default=False, init=False)

    @property
    def is_complete(self) -> bool:
        return self._done

    def hydrate(self, payload: str | None) -> EditorState:
        """Build editor state from a persisted payload; corrupt payloads give an empty state."""
        state, _ = self._restore(payload)
        return state

    def _restore(self, payload: str | None) -> tuple[EditorState, bool]:
        if payload is None:
            return EditorState(is_hydrated=True), False
        try:
            persisted = load_state(payload)
        except CorruptStateError as exc:
            logger.warning(f"Discarding unreadable persisted editor state: {exc.message}")
            return EditorState(is_hydrated=True), True

        stale = [v.id for v in persisted.versions if is_transient_location(v.image_location)]
        if stale:
            logger.bind(stale_versions=stale).warning(
                "Found invalid transient handles in stored versions, clearing store"
            )
            return EditorState(is_hydrated=True), True

        state = EditorState(
            versions=persisted.versions,
            current_version_id=persisted.current_version_id,
            branch_root_id=persisted.branch_root_id,
            is_hydrated=True,
        )
        return state, False

    async def run(self) -> EditorState:
        """Load from the persistence channel and install into the store. Never raises."""
        if self._done:
            return self.store.state
        try:
            payload = self.persistence.load()
        except (PersistenceError, OSError) as exc:
            logger.warning(f"Could not load persisted editor state: {exc}")
            payload = None

        state, corrupt = self._restore(payload)
        self.store.install(state)
        if corrupt:
            self.store.clear_versions()
        self._done = True
        logger.bind(versions=len(state.versions), reset=corrupt).info("Editor state hydrated")
        return state
