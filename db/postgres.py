"""
PostgreSQL adapter for Energy Today.

Multi-user support:  every read/write is scoped to a USER_ID.
This allows several app instances to share one Postgres database while
keeping their data fully isolated.

Activated automatically when DATABASE_URL is set.
Falls back to the JSON file store when DATABASE_URL is absent (local development).

Tables
------
  kv_store  — key/value blobs for streaks, streak_recovery and energy_history
              key format:  "{user_id}:{storage_key}"
"""
from contextlib import closing
from typing import Callable, Optional

import psycopg2

from db.storage import KeyLocks, StorageError


class PostgresStore(KeyLocks):

    def __init__(self, database_url: str, user_id: str = "default",
                 connect: Optional[Callable] = None):
        super().__init__()
        self._url = database_url
        self.user_id = user_id
        self._connect = connect or (lambda url: psycopg2.connect(url, sslmode="require"))

    # ── Connection ─────────────────────────────────────────────────────────────

    def get_conn(self):
        """New connection per call; callers wrap it in closing() so it is released."""
        if not self._url:
            raise StorageError("DATABASE_URL is not set — cannot connect to Postgres")
        try:
            return self._connect(self._url)
        except psycopg2.Error as e:
            raise StorageError(f"Postgres connection failed: {e}") from e

    def _scoped(self, key: str) -> str:
        return f"{self.user_id}:{key}"

    # ── Schema bootstrap ───────────────────────────────────────────────────────

    def init_schema(self):
        """Create the kv_store table if it does not yet exist. Safe to call on every startup."""
        try:
            with closing(self.get_conn()) as conn:
                with conn.cursor() as cur:
                    cur.execute("""
                        CREATE TABLE IF NOT EXISTS kv_store (
                            key   TEXT PRIMARY KEY,
                            value TEXT NOT NULL
                        )
                    """)
                conn.commit()
        except psycopg2.Error as e:
            raise StorageError(f"Schema bootstrap failed: {e}") from e

    # ── Key/value access ───────────────────────────────────────────────────────

    def get(self, key: str) -> Optional[str]:
        try:
            with closing(self.get_conn()) as conn:
                with conn.cursor() as cur:
                    cur.execute("SELECT value FROM kv_store WHERE key = %s", (self._scoped(key),))
                    row = cur.fetchone()
                    return row[0] if row else None
        except psycopg2.Error as e:
            raise StorageError(f"Postgres read of '{key}' failed: {e}") from e

    def set(self, key: str, value: str) -> None:
        try:
            with closing(self.get_conn()) as conn:
                with conn.cursor() as cur:
                    cur.execute("""
                        INSERT INTO kv_store (key, value) VALUES (%s, %s)
                        ON CONFLICT (key) DO UPDATE SET value = EXCLUDED.value
                    """, (self._scoped(key), value))
                conn.commit()
        except psycopg2.Error as e:
            raise StorageError(f"Postgres write of '{key}' failed: {e}") from e

    def remove(self, key: str) -> None:
        try:
            with closing(self.get_conn()) as conn:
                with conn.cursor() as cur:
                    cur.execute("DELETE FROM kv_store WHERE key = %s", (self._scoped(key),))
                conn.commit()
        except psycopg2.Error as e:
            raise StorageError(f"Postgres delete of '{key}' failed: {e}") from e
