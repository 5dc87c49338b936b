from __future__ import annotations

from collections.abc import Iterable, Mapping

from editgraph.domain.entities.image_version import ImageVersion
from editgraph.domain.errors import CycleDetectedError


class VersionGraph:
    """Pure queries over a forest of image versions linked by ``parent_id``.

    Versions whose parent id is missing from the index are treated as roots.
    """

    # Ids from ``version_id`` up to its root, inclusive
    @staticmethod
    def ancestors(index: Mapping[str, ImageVersion], version_id: str) -> list[str]:
        path: list[str] = []
        node = index.get(version_id)
        while node is not None:
            if node.id in path:
                raise CycleDetectedError(
                    f"Parent links loop back through version {node.id}",
                    context={"start": version_id, "path": path},
                )
            path.append(node.id)
            node = index.get(node.parent_id) if node.parent_id else None
        return path

    # Walk parent links up to the root, or up to ``stop_at`` if it lies on the path
    @staticmethod
    def resolve_root(
        index: Mapping[str, ImageVersion],
        version_id: str,
        stop_at: str | None = None,
    ) -> str | None:
        path = VersionGraph.ancestors(index, version_id)
        if not path:
            return None
        if stop_at is not None and stop_at in path:
            return stop_at
        return path[-1]

    # Every version whose root is ``root_id``, oldest first; versions caught in a cycle are skipped
    @staticmethod
    def chain(versions: Iterable[ImageVersion], root_id: str) -> list[ImageVersion]:
        items = list(versions)
        index = {v.id: v for v in items}
        members = []
        for v in items:
            try:
                if VersionGraph.resolve_root(index, v.id, stop_at=root_id) == root_id:
                    members.append(v)
            except CycleDetectedError:
                continue
        return sorted(members, key=lambda v: v.created_at)

    @staticmethod
    def children(versions: Iterable[ImageVersion], parent_id: str) -> list[ImageVersion]:
        return [v for v in versions if v.parent_id == parent_id]
