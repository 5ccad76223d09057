"""Key-value persistence for budget collections.

Each collection is stored as one JSON document under its own key. The stores
never raise to callers: unreadable records load as the supplied default and
failed writes are logged and reported as ``False``.
"""

from __future__ import annotations

import json
import logging
import os
import sqlite3
from threading import Lock, Timer
from typing import Any, Final, Iterable, Protocol

_LOGGER = logging.getLogger(__name__)

STORAGE_KEYS: Final[dict[str, str]] = {
    "incomes": "kapitalen_incomes",
    "freelance": "kapitalen_freelance",
    "expenses": "kapitalen_expenses",
    "enk_expenses": "kapitalen_enk_expenses",
    "tax_method": "kapitalen_tax_method",
    "tax_percentage": "kapitalen_tax_percentage",
}

DEFAULT_DEBOUNCE_SECONDS: Final = 0.3


class KeyValueStore(Protocol):
    """Interface shared by the budget stores."""

    def load(self, key: str, default: Any = None) -> Any:
        ...

    def save(self, key: str, value: Any) -> bool:
        ...

    def remove(self, key: str) -> bool:
        ...

    def has(self, key: str) -> bool:
        ...

    def clear(self, keys: Iterable[str] | None = None) -> bool:
        ...


def _decode(key: str, raw: str | None, default: Any) -> Any:
    if raw is None:
        return default
    try:
        return json.loads(raw)
    except ValueError as exc:
        _LOGGER.warning("Failed to load storage key %r: %s", key, exc)
        return default


class InMemoryKeyValueStore:
    """Thread-safe store keeping serialised documents in a dictionary.

    Values are stored as JSON text so that reads return fresh copies and
    unserialisable values fail the same way as with the SQLite store.
    """

    def __init__(self) -> None:
        self._records: dict[str, str] = {}
        self._lock = Lock()

    def load(self, key: str, default: Any = None) -> Any:
        with self._lock:
            raw = self._records.get(key)
        return _decode(key, raw, default)

    def save(self, key: str, value: Any) -> bool:
        try:
            serialised = json.dumps(value)
        except (TypeError, ValueError) as exc:
            _LOGGER.warning("Failed to save storage key %r: %s", key, exc)
            return False
        with self._lock:
            self._records[key] = serialised
        return True

    def remove(self, key: str) -> bool:
        with self._lock:
            self._records.pop(key, None)
        return True

    def has(self, key: str) -> bool:
        with self._lock:
            return key in self._records

    def clear(self, keys: Iterable[str] | None = None) -> bool:
        targets = list(STORAGE_KEYS.values() if keys is None else keys)
        with self._lock:
            for key in targets:
                self._records.pop(key, None)
        return True


class SQLiteKeyValueStore:
    """SQLite-backed store for deployments that keep budgets across restarts."""

    def __init__(self, path: str | os.PathLike[str]) -> None:
        self._path = str(path)
        self._lock = Lock()
        self._initialise()

    def _connect(self) -> sqlite3.Connection:
        connection = sqlite3.connect(self._path, check_same_thread=False)
        connection.execute("PRAGMA journal_mode=WAL")
        connection.execute("PRAGMA synchronous=NORMAL")
        return connection

    def _initialise(self) -> None:
        with self._lock, self._connect() as connection:
            connection.execute(
                """
                CREATE TABLE IF NOT EXISTS records (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
                """
            )

    def load(self, key: str, default: Any = None) -> Any:
        try:
            with self._lock, self._connect() as connection:
                row = connection.execute(
                    "SELECT value FROM records WHERE key = ?", (key,)
                ).fetchone()
        except sqlite3.Error as exc:
            _LOGGER.warning("Failed to load storage key %r: %s", key, exc)
            return default
        return _decode(key, row[0] if row else None, default)

    def save(self, key: str, value: Any) -> bool:
        try:
            serialised = json.dumps(value)
            with self._lock, self._connect() as connection:
                connection.execute(
                    "INSERT OR REPLACE INTO records (key, value) VALUES (?, ?)",
                    (key, serialised),
                )
        except (TypeError, ValueError, sqlite3.Error) as exc:
            _LOGGER.warning("Failed to save storage key %r: %s", key, exc)
            return False
        return True

    def remove(self, key: str) -> bool:
        try:
            with self._lock, self._connect() as connection:
                connection.execute("DELETE FROM records WHERE key = ?", (key,))
        except sqlite3.Error as exc:
            _LOGGER.warning("Failed to remove storage key %r: %s", key, exc)
            return False
        return True

    def has(self, key: str) -> bool:
        try:
            with self._lock, self._connect() as connection:
                row = connection.execute(
                    "SELECT 1 FROM records WHERE key = ?", (key,)
                ).fetchone()
        except sqlite3.Error:
            return False
        return row is not None

    def clear(self, keys: Iterable[str] | None = None) -> bool:
        targets = [(key,) for key in (STORAGE_KEYS.values() if keys is None else keys)]
        try:
            with self._lock, self._connect() as connection:
                connection.executemany("DELETE FROM records WHERE key = ?", targets)
        except sqlite3.Error as exc:
            _LOGGER.warning("Failed to clear storage: %s", exc)
            return False
        return True


class DebouncedSaver:
    """Coalesce rapid saves so only the last value per key is written."""

    def __init__(
        self, store: KeyValueStore, *, delay_seconds: float = DEFAULT_DEBOUNCE_SECONDS
    ) -> None:
        self._store = store
        self._delay = delay_seconds
        self._pending: dict[str, Any] = {}
        self._timers: dict[str, Timer] = {}
        self._lock = Lock()

    def __call__(self, key: str, value: Any) -> None:
        self.schedule(key, value)

    def schedule(self, key: str, value: Any) -> None:
        with self._lock:
            previous = self._timers.pop(key, None)
            if previous is not None:
                previous.cancel()
            self._pending[key] = value
            timer = Timer(self._delay, self._write, args=(key,))
            timer.daemon = True
            self._timers[key] = timer
            timer.start()

    def _write(self, key: str) -> None:
        with self._lock:
            self._timers.pop(key, None)
            if key not in self._pending:
                return
            value = self._pending.pop(key)
        self._store.save(key, value)

    @property
    def pending_keys(self) -> tuple[str, ...]:
        with self._lock:
            return tuple(self._pending)

    def flush(self) -> None:
        """Write every pending value immediately."""

        with self._lock:
            for timer in self._timers.values():
                timer.cancel()
            self._timers.clear()
            pending, self._pending = self._pending, {}
        for key, value in pending.items():
            self._store.save(key, value)

    def cancel(self) -> None:
        with self._lock:
            for timer in self._timers.values():
                timer.cancel()
            self._timers.clear()
            self._pending.clear()


__all__ = [
    "DEFAULT_DEBOUNCE_SECONDS",
    "DebouncedSaver",
    "InMemoryKeyValueStore",
    "KeyValueStore",
    "SQLiteKeyValueStore",
    "STORAGE_KEYS",
]
