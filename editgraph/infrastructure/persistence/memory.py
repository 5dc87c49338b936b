from __future__ import annotations


class InMemoryPersistence:
    """Persistence channel that lives only as long as the process."""

    def __init__(self, payload: str | None = None) -> None:
        self.payload = payload
        self.saves = 0

    def load(self) -> str | None:
        return self.payload

    def save(self, payload: str) -> None:
        self.payload = payload
        self.saves += 1
