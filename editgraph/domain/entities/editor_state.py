from __future__ import annotations

from dataclasses import dataclass, field

from editgraph.domain.entities.image_version import ImageVersion


@dataclass
class EditorState:
    """Process-wide editing state. Only the version store mutates it."""

    versions: list[ImageVersion] = field(default_factory=list)
    current_version_id: str | None = None
    branch_root_id: str | None = None
    is_processing: bool = False
    error: str | None = None
    last_warning: str | None = None
    is_hydrated: bool = False

    def index(self) -> dict[str, ImageVersion]:
        return {v.id: v for v in self.versions}
