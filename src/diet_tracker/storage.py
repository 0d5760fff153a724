"""Persistencia SQLite clave/valor para registros y recordatorios."""

from __future__ import annotations

import asyncio
import json
import logging
import sqlite3
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from diet_tracker.errors import StorageError
from diet_tracker.model import ReminderTime

logger = logging.getLogger(__name__)

WEIGHTS_KEY = "weights_v1"
MEALS_KEY = "meals_v1"

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS kv_store (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
);
"""


class ReminderSlot(str, Enum):
    """Stored reminder preference keys."""

    AM = "remind_am"
    PM = "remind_pm"


@dataclass(frozen=True)
class StoredState:
    """Everything persisted, as read at startup."""

    weights: list[str] = field(default_factory=list)
    meals: list[str] = field(default_factory=list)
    reminder_am: ReminderTime | None = None
    reminder_pm: ReminderTime | None = None


class SQLiteStore:
    """Async key/value store on top of SQLite.

    Each operation opens its own connection inside a worker thread; writes are
    committed atomically per call.
    """

    def __init__(self, db_path: Path) -> None:
        """Create store and ensure schema exists.

        Raises:
            StorageError: If the database cannot be created or opened.
        """
        self._db_path = db_path
        try:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            self._init_schema()
        except (OSError, sqlite3.Error) as exc:
            raise StorageError(f"Cannot open {db_path}: {exc}") from exc

    @property
    def db_path(self) -> Path:
        return self._db_path

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_schema(self) -> None:
        conn = self._connect()
        try:
            conn.executescript(SCHEMA_SQL)
            conn.commit()
        finally:
            conn.close()

    async def load(self) -> StoredState:
        """Read both entry lists and both reminder slots."""
        values = await self._run(self._read_all)
        return StoredState(
            weights=_parse_record_list(values.get(WEIGHTS_KEY), WEIGHTS_KEY),
            meals=_parse_record_list(values.get(MEALS_KEY), MEALS_KEY),
            reminder_am=_parse_reminder(values.get(ReminderSlot.AM.value), "am"),
            reminder_pm=_parse_reminder(values.get(ReminderSlot.PM.value), "pm"),
        )

    async def save_weights(self, records: list[str]) -> None:
        """Replace the stored weight records."""
        await self._run(self._write, WEIGHTS_KEY, json.dumps(records))

    async def save_meals(self, records: list[str]) -> None:
        """Replace the stored meal records."""
        await self._run(self._write, MEALS_KEY, json.dumps(records))

    async def save_reminder(
        self, slot: ReminderSlot, value: ReminderTime | None
    ) -> None:
        """Store a reminder as ``H:MM`` (empty string when unset)."""
        await self._run(self._write, slot.value, _reminder_text(value))

    async def save_reminders(
        self, am: ReminderTime | None, pm: ReminderTime | None
    ) -> None:
        """Store both reminder slots in a single transaction."""
        await self._run(
            self._write_many,
            [
                (ReminderSlot.AM.value, _reminder_text(am)),
                (ReminderSlot.PM.value, _reminder_text(pm)),
            ],
        )

    async def clear_entries(self) -> None:
        """Erase both entry lists; reminders are kept."""
        await self._run(self._delete, (WEIGHTS_KEY, MEALS_KEY))

    async def _run(self, func: Any, *args: Any) -> Any:
        try:
            return await asyncio.to_thread(func, *args)
        except (OSError, sqlite3.Error) as exc:
            raise StorageError(f"SQLite error on {self._db_path}: {exc}") from exc

    def _read_all(self) -> dict[str, str]:
        conn = self._connect()
        try:
            rows = conn.execute("SELECT key, value FROM kv_store").fetchall()
        finally:
            conn.close()
        return {row["key"]: row["value"] for row in rows}

    def _write(self, key: str, value: str) -> None:
        self._write_many([(key, value)])

    def _write_many(self, items: list[tuple[str, str]]) -> None:
        conn = self._connect()
        try:
            with conn:
                conn.executemany(
                    """
                    INSERT INTO kv_store(key, value) VALUES(?, ?)
                    ON CONFLICT(key) DO UPDATE SET value=excluded.value
                    """,
                    items,
                )
        finally:
            conn.close()

    def _delete(self, keys: tuple[str, ...]) -> None:
        placeholders = ",".join("?" for _ in keys)
        conn = self._connect()
        try:
            with conn:
                conn.execute(
                    f"DELETE FROM kv_store WHERE key IN ({placeholders})", keys
                )
        finally:
            conn.close()


def _parse_record_list(raw: str | None, key: str) -> list[str]:
    if raw is None:
        return []
    try:
        parsed: Any = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("Stored value for %s is not JSON; starting empty", key)
        return []
    if not isinstance(parsed, list):
        logger.warning("Stored value for %s is not a list; starting empty", key)
        return []
    out = [item for item in parsed if isinstance(item, str)]
    if len(out) != len(parsed):
        logger.warning("Dropped %d non-text items from %s", len(parsed) - len(out), key)
    return out


def _reminder_text(value: ReminderTime | None) -> str:
    return "" if value is None else value.format()


def _parse_reminder(raw: str | None, label: str) -> ReminderTime | None:
    value = ReminderTime.parse(raw)
    if value is None and raw is not None and raw.strip():
        logger.warning("Ignoring malformed %s reminder %r", label, raw)
    return value
