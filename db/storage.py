"""
Key/value storage port.

Every persisted record (streaks, freeze state, energy history) is one JSON
string under one key. Subsystems receive a store at construction time and
never reach for a global handle, so tests can hand in a MemoryStore.

Backends
--------
  MemoryStore    — dict in process memory (tests, dry runs)
  JsonFileStore  — one JSON document on disk, one entry per key (local default)
  PostgresStore  — kv_store table, see db/postgres.py (when DATABASE_URL is set)

Read-modify-write cycles are serialized per key through store.lock(key).
"""
import json
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, Protocol

from loguru import logger


class StorageError(Exception):
    """A backend failed to read or write a key."""


class KeyValueStore(Protocol):
    def get(self, key: str) -> Optional[str]: ...
    def set(self, key: str, value: str) -> None: ...
    def remove(self, key: str) -> None: ...
    def lock(self, key: str) -> threading.RLock: ...


class KeyLocks:
    """Hands out one re-entrant lock per storage key."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: dict[str, threading.RLock] = {}

    def lock(self, key: str) -> threading.RLock:
        with self._guard:
            if key not in self._locks:
                self._locks[key] = threading.RLock()
            return self._locks[key]


# ── Backends ──────────────────────────────────────────────────────────────────

class MemoryStore(KeyLocks):
    def __init__(self, initial: Optional[dict] = None):
        super().__init__()
        self.data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        self.data[key] = value

    def remove(self, key: str) -> None:
        self.data.pop(key, None)


class JsonFileStore(KeyLocks):
    """
    All keys live in a single JSON object on disk: {key: value_string}.
    The whole file is rewritten on every set/remove; it holds a handful of
    small records so this stays cheap.
    """

    def __init__(self, path: Path):
        super().__init__()
        self._path = Path(path)
        self._file_lock = threading.Lock()

    def _read_all(self) -> dict:
        if not self._path.exists():
            return {}
        try:
            with open(self._path) as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            logger.warning(f"Storage file {self._path} is corrupted ({e}) — starting fresh")
            return {}
        except OSError as e:
            raise StorageError(f"Cannot read {self._path}: {e}") from e
        return data if isinstance(data, dict) else {}

    def _write_all(self, data: dict):
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with open(self._path, "w") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
        except OSError as e:
            raise StorageError(f"Cannot write {self._path}: {e}") from e

    def get(self, key: str) -> Optional[str]:
        with self._file_lock:
            return self._read_all().get(key)

    def set(self, key: str, value: str) -> None:
        with self._file_lock:
            data = self._read_all()
            data[key] = value
            self._write_all(data)

    def remove(self, key: str) -> None:
        with self._file_lock:
            data = self._read_all()
            if key in data:
                del data[key]
                self._write_all(data)


# ── JSON helpers ──────────────────────────────────────────────────────────────

@dataclass
class Loaded:
    """Result of load_json. degraded=True means the default was substituted."""
    value: Any
    degraded: bool = False
    error: Optional[str] = None


def load_json(store: KeyValueStore, key: str, default: Any, strict: bool = False) -> Loaded:
    """
    Read and decode one key. A missing key is the normal "not yet initialized"
    state. Malformed JSON is logged and degrades to default.

    A read failure also degrades to default, unless strict=True, in which case
    the StorageError is raised. Read-modify-write callers pass strict=True so a
    default never gets written over data that could not be read.
    """
    try:
        raw = store.get(key)
    except StorageError as e:
        if strict:
            raise
        logger.warning(f"Read of '{key}' failed ({e}) — using defaults")
        return Loaded(default, degraded=True, error=str(e))

    if raw is None:
        return Loaded(default)

    try:
        return Loaded(json.loads(raw))
    except (json.JSONDecodeError, TypeError) as e:
        logger.warning(f"Malformed JSON under '{key}' ({e}) — using defaults")
        return Loaded(default, degraded=True, error=str(e))


def save_json(store: KeyValueStore, key: str, value: Any) -> None:
    """Encode and write one key. Raises StorageError on failure."""
    store.set(key, json.dumps(value, ensure_ascii=False))


def open_store() -> KeyValueStore:
    """Pick the backend from configuration (Postgres when DATABASE_URL is set)."""
    import config

    if config.DATABASE_URL:
        from db.postgres import PostgresStore

        store = PostgresStore(config.DATABASE_URL, user_id=config.USER_ID)
        store.init_schema()
        logger.info(f"PostgreSQL storage enabled (user_id='{config.USER_ID}').")
        return store

    logger.info(f"Using JSON file storage at {config.DATA_PATH} (DATABASE_URL not set).")
    return JsonFileStore(Path(config.DATA_PATH))
