from __future__ import annotations

import base64
from collections import Counter
from collections.abc import Callable
from dataclasses import replace
from datetime import UTC, datetime

from editgraph.application.ports import PersistenceChannel
from editgraph.application.state_codec import dump_state
from editgraph.application.use_cases.sync_orchestrator import SyncOrchestrator, content_type_for_key
from editgraph.domain.entities.editor_state import EditorState
from editgraph.domain.entities.image_version import ImageVersion, SyncStatus, VersionDraft, VersionKind
from editgraph.domain.errors import PersistenceError, ValidationError
from editgraph.domain.services.version_graph import VersionGraph
from editgraph.utils.logger import get_logger

logger = get_logger(__name__)

ADD_FAILED = "Failed to save image version"


def _utcnow() -> datetime:
    return datetime.now(UTC)


class VersionStore:
    """
    Single source of truth for the version graph and the editing cursor.

    Every mutation writes the persistable part of the state through the
    persistence channel. Operations on unknown ids are logged no-ops that
    return False. Concurrent async calls are not serialized: overlapping
    ``add_version`` calls commit in completion order.
    """

    def __init__(
        self,
        sync: SyncOrchestrator,
        persistence: PersistenceChannel,
        state: EditorState | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.sync = sync
        self.persistence = persistence
        self.state = state or EditorState()
        self.clock = clock
        self._last_id_ms = 0
        self._in_flight = 0

    # -- persistence -----------------------------------------------------

    def _persist(self) -> None:
        try:
            self.persistence.save(dump_state(self.state))
        except (PersistenceError, OSError) as exc:
            logger.warning(f"Failed to persist editor state: {exc}")

    def install(self, state: EditorState) -> None:
        """Replace the whole state; used by hydration."""
        self.state = state
        for version in state.versions:
            if version.id[1:].isdigit():
                self._last_id_ms = max(self._last_id_ms, int(version.id[1:]))

    # -- id assignment ---------------------------------------------------

    def _next_id(self, created_at: datetime) -> str:
        millis = max(int(created_at.timestamp() * 1000), self._last_id_ms + 1)
        existing = {v.id for v in self.state.versions}
        while f"v{millis}" in existing:
            millis += 1
        self._last_id_ms = millis
        return f"v{millis}"

    def _begin(self) -> None:
        self._in_flight += 1
        self.state.is_processing = True

    def _end(self) -> None:
        self._in_flight -= 1
        self.state.is_processing = self._in_flight > 0

    # -- mutators --------------------------------------------------------

    def _validate(self, draft: VersionDraft) -> VersionDraft:
        try:
            kind = VersionKind(draft.kind)
        except ValueError as exc:
            raise ValidationError(f"Unknown version kind: {draft.kind!r}") from exc
        if not draft.image_location:
            raise ValidationError("A version needs an image location")
        if draft.parent_id is not None and self.get_version(draft.parent_id) is None:
            raise ValidationError(
                f"Parent version {draft.parent_id} does not exist", context={"parent_id": draft.parent_id}
            )
        return replace(draft, kind=kind, metadata=dict(draft.metadata or {}))

    async def add_version(self, draft: VersionDraft) -> ImageVersion | None:
        """
        Create a version from ``draft``, materialize it and make it current.

        A failed upload does not abort the add: the version is committed with
        its original location and the reason is left in ``state.last_warning``.

        Raises:
            ValidationError: unknown kind, empty location or unknown parent id
        """
        draft = self._validate(draft)
        ancestry = VersionGraph.ancestors(self.state.index(), draft.parent_id) if draft.parent_id else []
        self._begin()
        try:
            created_at = self.clock()
            version = ImageVersion(
                id=self._next_id(created_at),
                kind=draft.kind,
                created_at=created_at,
                image_location=draft.image_location,
                parent_id=draft.parent_id,
                metadata=draft.metadata,
                sync_status=SyncStatus.LOCAL_ONLY,
            )
            result = await self.sync.materialize(version)
        except Exception:
            logger.exception("Error adding version")
            self.state.error = ADD_FAILED
            return None
        finally:
            self._end()

        committed = result.version
        parent_id = self._surviving_parent(ancestry)
        if parent_id != committed.parent_id:
            # the parent was deleted while the upload was in flight
            logger.bind(version_id=committed.id, lost_parent=committed.parent_id).warning(
                f"Re-attaching new version to {parent_id or 'no parent'}"
            )
            committed = replace(committed, parent_id=parent_id)
        self.state.versions.append(committed)
        self.state.current_version_id = committed.id
        self.state.error = None
        self.state.last_warning = result.warning
        self._persist()
        logger.bind(version_id=committed.id, kind=committed.kind.value).info(
            f"Added version ({committed.sync_status.value})"
        )
        return committed

    def _surviving_parent(self, ancestry: list[str]) -> str | None:
        return next((a for a in ancestry if self.get_version(a) is not None), None)

    def set_current_version(self, version_id: str) -> bool:
        if self.get_version(version_id) is None:
            logger.warning(f"Cannot select unknown version {version_id}")
            return False
        self.state.current_version_id = version_id
        self._persist()
        return True

    def set_branch_root(self, version_id: str | None) -> bool:
        if version_id and self.get_version(version_id) is None:
            logger.warning(f"Cannot branch from unknown version {version_id}")
            return False
        self.state.branch_root_id = version_id or None
        self._persist()
        return True

    def set_processing(self, processing: bool) -> None:
        self.state.is_processing = processing

    def set_error(self, error: str | None) -> None:
        self.state.error = error

    async def delete_version(self, version_id: str) -> bool:
        """
        Remove a version after a best-effort delete of its remote copy.

        Children of the removed version are re-attached to its parent, so a
        deleted root turns its children into roots.
        """
        version = self.get_version(version_id)
        if version is None:
            logger.warning(f"Cannot delete unknown version {version_id}")
            return False
        self._begin()
        try:
            await self.sync.dematerialize(version)
        finally:
            self._end()

        version = self.get_version(version_id)
        if version is None:
            # removed by an overlapping delete while the remote call was in flight
            return False
        orphans = {v.id for v in VersionGraph.children(self.state.versions, version_id)}
        survivors = [
            replace(v, parent_id=version.parent_id) if v.id in orphans else v
            for v in self.state.versions
            if v.id != version_id
        ]
        self.sync.release(version)
        self.state.versions = survivors
        if self.state.current_version_id == version_id:
            self.state.current_version_id = None
        if self.state.branch_root_id == version_id:
            self.state.branch_root_id = None
        self._persist()
        logger.bind(version_id=version_id).info("Deleted version")
        return True

    def clear_versions(self) -> None:
        """Local-only reset; remote copies are left alone."""
        for version in self.state.versions:
            self.sync.release(version)
        self.state.versions = []
        self.state.current_version_id = None
        self.state.branch_root_id = None
        self.state.error = None
        self._persist()

    # -- queries ---------------------------------------------------------

    def get_version(self, version_id: str) -> ImageVersion | None:
        return next((v for v in self.state.versions if v.id == version_id), None)

    def get_current_version(self) -> ImageVersion | None:
        if self.state.current_version_id is None:
            return None
        return self.get_version(self.state.current_version_id)

    def get_version_history(self) -> list[ImageVersion]:
        return list(self.state.versions)

    def get_current_root_id(self) -> str | None:
        if self.state.branch_root_id:
            return self.state.branch_root_id
        if not self.state.current_version_id:
            return None
        return VersionGraph.resolve_root(self.state.index(), self.state.current_version_id)

    def get_current_version_history(self) -> list[ImageVersion]:
        """Versions of the chain being edited, oldest first."""
        root_id = self.get_current_root_id()
        if not root_id:
            return []
        return VersionGraph.chain(self.state.versions, root_id)

    def get_versions_by_kind(self, kind: VersionKind | str) -> list[ImageVersion]:
        return [v for v in self.state.versions if v.kind == VersionKind(kind)]

    def count_by_kind(self) -> dict[VersionKind, int]:
        counts = Counter(v.kind for v in self.state.versions)
        return {kind: counts.get(kind, 0) for kind in VersionKind}

    async def load_version_from_remote(self, version_id: str) -> ImageVersion | None:
        """Detached copy of a version with its remote bytes inlined as a data URL."""
        version = self.get_version(version_id)
        if version is None or not version.remote_key:
            return None
        data = await self.sync.load(version)
        if data is None:
            return None
        content_type = content_type_for_key(version.remote_key)
        encoded = base64.b64encode(data).decode("ascii")
        return replace(
            version,
            image_location=f"data:{content_type};base64,{encoded}",
            created_at=self.clock(),
        )
