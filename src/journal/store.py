"""Durable journal entry store.

Entries are kept as one JSON array under a fixed key in a string key-value
store, most recent first. Reads are full scans; the collection is small and
local.
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Callable
from datetime import datetime, time, timedelta
from pathlib import Path
from typing import Protocol

from pydantic import TypeAdapter, ValidationError

from whisperwell.errors import PersistenceError
from whisperwell.journal.models import JournalEntry

logger = logging.getLogger(__name__)

JOURNAL_STORAGE_KEY = "whisper-well-journal-entries"

_ENTRIES = TypeAdapter(list[JournalEntry])

# Alias to avoid shadowing by EntryStore.list method
_list = list


class KeyValueStore(Protocol):
    """Durable string store keyed by string."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...


class MemoryKeyValueStore:
    """Process-local key-value store."""

    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)


class FileKeyValueStore:
    """Key-value store persisted as a single JSON object on disk.

    Writes go to a temp file that is renamed over the original.
    """

    def __init__(self, path: Path) -> None:
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def _read_all(self) -> dict[str, str]:
        if not self._path.exists():
            return {}
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise PersistenceError(f"Cannot read store at {self._path}: {exc}") from exc
        if not isinstance(raw, dict):
            raise PersistenceError(f"Store at {self._path} is not a JSON object")
        return {str(k): str(v) for k, v in raw.items()}

    def _write_all(self, data: dict[str, str]) -> None:
        tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(json.dumps(data, indent=2), encoding="utf-8")
            os.replace(tmp_path, self._path)
        except OSError as exc:
            raise PersistenceError(f"Cannot write store at {self._path}: {exc}") from exc

    def get(self, key: str) -> str | None:
        return self._read_all().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._read_all()
        data[key] = value
        self._write_all(data)

    def delete(self, key: str) -> None:
        data = self._read_all()
        if data.pop(key, None) is not None:
            self._write_all(data)


class EntryStore:
    """Append-only journal entry collection with date-range reads.

    Read-modify-write is not isolated: two writers sharing the same backing
    store can overwrite each other's appends.
    """

    def __init__(
        self,
        backend: KeyValueStore,
        *,
        key: str = JOURNAL_STORAGE_KEY,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._backend = backend
        self._key = key
        self._clock = clock

    # ── Private helpers ──────────────────────────────────────────

    def _read_strict(self) -> _list[JournalEntry]:
        try:
            payload = self._backend.get(self._key)
        except PersistenceError:
            raise
        except Exception as exc:
            raise PersistenceError(f"Cannot read journal entries: {exc}") from exc
        if payload is None:
            return []
        try:
            return _ENTRIES.validate_json(payload)
        except ValidationError as exc:
            raise PersistenceError(f"Corrupt journal entries payload: {exc}") from exc

    # ── Write operations ─────────────────────────────────────────

    def append(
        self,
        content: str,
        mood: str | None = None,
        tags: _list[str] | None = None,
        date: datetime | None = None,
    ) -> JournalEntry:
        """Persist a new entry at the head of the collection.

        Raises:
            ValueError: If ``content`` is empty or whitespace.
            PersistenceError: If the backing store cannot be read or written.
        """
        entry = JournalEntry(
            content=content,
            date=date or self._clock(),
            mood=mood,
            tags=tags or [],
        )
        entries = [entry, *self._read_strict()]
        payload = _ENTRIES.dump_json(entries).decode("utf-8")
        try:
            self._backend.set(self._key, payload)
        except PersistenceError:
            raise
        except Exception as exc:
            raise PersistenceError(f"Cannot write journal entries: {exc}") from exc
        logger.info("Saved journal entry (%d total)", len(entries))
        return entry

    def clear(self) -> None:
        """Remove every entry."""
        try:
            self._backend.delete(self._key)
        except PersistenceError:
            raise
        except Exception as exc:
            raise PersistenceError(f"Cannot clear journal entries: {exc}") from exc

    # ── Read operations ──────────────────────────────────────────

    def list(self) -> _list[JournalEntry]:
        """Return all entries, most recent first. Never raises."""
        try:
            return self._read_strict()
        except PersistenceError as exc:
            logger.warning("Error retrieving journal entries: %s", exc)
            return []

    def list_by_date_range(self, start: datetime, end: datetime) -> _list[JournalEntry]:
        """Return entries with ``start <= date <= end``."""
        return [e for e in self.list() if start <= e.date <= end]

    def list_today(self) -> _list[JournalEntry]:
        """Return entries from local midnight up to (not including) the next."""
        midnight = datetime.combine(self._clock().date(), time.min)
        tomorrow = midnight + timedelta(days=1)
        return [e for e in self.list() if midnight <= e.date < tomorrow]

    def list_past_week(self) -> _list[JournalEntry]:
        """Return entries from the last seven days."""
        now = self._clock()
        return self.list_by_date_range(now - timedelta(days=7), now)

    def list_on_this_day(self) -> _list[JournalEntry]:
        """Return entries written on today's month and day in earlier years."""
        today = self._clock()
        return [
            e
            for e in self.list()
            if e.date.day == today.day
            and e.date.month == today.month
            and e.date.year < today.year
        ]
