from __future__ import annotations

import psycopg2

from editgraph.domain.errors import PersistenceError
from editgraph.infrastructure.database.postgres_client import PostgresClient

_CREATE_TABLE = """
    CREATE TABLE IF NOT EXISTS editor_state (
        name TEXT PRIMARY KEY,
        payload TEXT NOT NULL,
        updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
    )
"""


class PostgresPersistence:
    """Stores the serialized editor state as one row of the ``editor_state`` table."""

    def __init__(self, client: PostgresClient, name: str = "image-editor-storage") -> None:
        self.client = client
        self.name = name
        self._table_ready = False

    def _ensure_table(self) -> None:
        if not self._table_ready:
            self.client.execute(_CREATE_TABLE)
            self._table_ready = True

    def load(self) -> str | None:
        try:
            self._ensure_table()
            row = self.client.execute_one("SELECT payload FROM editor_state WHERE name = %s", (self.name,))
        except psycopg2.Error as exc:
            raise PersistenceError(f"PostgreSQL load state failed: {exc}", context={"name": self.name}) from exc
        return row["payload"] if row else None

    def save(self, payload: str) -> None:
        query = """
            INSERT INTO editor_state (name, payload, updated_at)
            VALUES (%s, %s, now())
            ON CONFLICT (name) DO UPDATE SET payload = EXCLUDED.payload, updated_at = now()
        """
        try:
            self._ensure_table()
            self.client.execute(query, (self.name, payload))
        except psycopg2.Error as exc:
            raise PersistenceError(f"PostgreSQL save state failed: {exc}", context={"name": self.name}) from exc
