"""JSON form of the persisted editor state.

Only the version set, the cursor and the branch root persist; processing,
error and hydration flags are session-only.
"""
from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from editgraph.domain.entities.editor_state import EditorState
from editgraph.domain.entities.image_version import ImageVersion, SyncStatus, VersionKind
from editgraph.domain.errors import CorruptStateError, CycleDetectedError
from editgraph.domain.services.version_graph import VersionGraph

FORMAT_VERSION = 1


@dataclass(frozen=True)
class PersistedState:
    versions: list[ImageVersion]
    current_version_id: str | None
    branch_root_id: str | None


def normalize_timestamp(value: Any) -> datetime:
    """Accept a datetime, an ISO string or epoch milliseconds."""
    if isinstance(value, datetime):
        ts = value
    elif isinstance(value, str):
        ts = datetime.fromisoformat(value)
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        ts = datetime.fromtimestamp(value / 1000.0, UTC)
    else:
        raise ValueError(f"Unsupported timestamp: {value!r}")
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=UTC)
    return ts


def version_to_row(version: ImageVersion) -> dict[str, Any]:
    return {
        "id": version.id,
        "kind": version.kind.value,
        "created_at": version.created_at.isoformat(),
        "image_location": version.image_location,
        "parent_id": version.parent_id,
        "remote_key": version.remote_key,
        "metadata": version.metadata,
        "sync_status": version.sync_status.value,
    }


def row_to_version(row: dict[str, Any]) -> ImageVersion:
    remote_key = row.get("remote_key")
    default_status = SyncStatus.REMOTE_BACKED if remote_key else SyncStatus.LOCAL_ONLY
    return ImageVersion(
        id=str(row["id"]),
        kind=VersionKind(row["kind"]),
        created_at=normalize_timestamp(row["created_at"]),
        image_location=str(row["image_location"]),
        parent_id=row.get("parent_id") or None,
        remote_key=remote_key or None,
        metadata=dict(row.get("metadata") or {}),
        sync_status=SyncStatus(row.get("sync_status") or default_status),
    )


def dump_state(state: EditorState) -> str:
    return json.dumps(
        {
            "version": FORMAT_VERSION,
            "state": {
                "current_version_id": state.current_version_id,
                "branch_root_id": state.branch_root_id,
                "versions": [version_to_row(v) for v in state.versions],
            },
        },
        default=str,
    )


def load_state(payload: str) -> PersistedState:
    """Parse a persisted payload; any shape problem raises CorruptStateError."""
    try:
        doc = json.loads(payload)
        body = doc["state"]
        rows = body.get("versions") or []
        if not isinstance(rows, list):
            raise TypeError("versions must be a list")
        versions = [row_to_version(row) for row in rows]
        ids = [v.id for v in versions]
        if len(ids) != len(set(ids)):
            raise ValueError("duplicate version ids")
        index = {v.id: v for v in versions}
        for version_id in ids:
            VersionGraph.ancestors(index, version_id)
        return PersistedState(
            versions=versions,
            current_version_id=body.get("current_version_id"),
            branch_root_id=body.get("branch_root_id"),
        )
    except CycleDetectedError as exc:
        raise CorruptStateError(f"Persisted editor state has a parent cycle: {exc.message}", exc.context) from exc
    except (ValueError, TypeError, KeyError, AttributeError) as exc:
        raise CorruptStateError(f"Persisted editor state is malformed: {exc}") from exc
