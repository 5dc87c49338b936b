from __future__ import annotations

import os
from pathlib import Path

from editgraph.domain.errors import PersistenceError


class JsonFilePersistence:
    """Keeps the serialized editor state in a single JSON file."""

    def __init__(self, path: str | Path | None = None) -> None:
        self.path = Path(path or os.getenv("EDITGRAPH_STATE_FILE", ".editgraph/state.json"))

    def load(self) -> str | None:
        if not self.path.is_file():
            return None
        try:
            return self.path.read_text(encoding="utf-8")
        except OSError as exc:
            raise PersistenceError(f"Failed to read state file: {exc}", context={"path": str(self.path)}) from exc

    def save(self, payload: str) -> None:
        # write-then-rename so a crash never leaves a half-written file
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(payload, encoding="utf-8")
            os.replace(tmp, self.path)
        except OSError as exc:
            raise PersistenceError(f"Failed to write state file: {exc}", context={"path": str(self.path)}) from exc
