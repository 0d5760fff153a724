"""Repositorio en memoria con persistencia write-through y notificaciones."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from itertools import count
from typing import TypeVar

from diet_tracker.errors import DeserializationError
from diet_tracker.model import MealEntry, ReminderTime, WeightEntry
from diet_tracker.storage import SQLiteStore, StoredState

logger = logging.getLogger(__name__)

Listener = Callable[[], None]
_E = TypeVar("_E", WeightEntry, MealEntry)


@dataclass(frozen=True)
class RepositorySnapshot:
    """Consistent read-only view for the metrics functions."""

    weights: tuple[WeightEntry, ...]
    meals: tuple[MealEntry, ...]
    reminder_am: ReminderTime | None
    reminder_pm: ReminderTime | None


class Repository:
    """Single owner of the weight/meal collections and reminder times.

    Mutations persist the whole affected collection before updating memory and
    notifying subscribers. Callers must await one mutation before starting the
    next.
    """

    def __init__(
        self,
        store: SQLiteStore,
        weights: Iterable[WeightEntry] = (),
        meals: Iterable[MealEntry] = (),
        reminder_am: ReminderTime | None = None,
        reminder_pm: ReminderTime | None = None,
    ) -> None:
        self._store = store
        self._weights = _sorted(weights)
        self._meals = _sorted(meals)
        self._reminder_am = reminder_am
        self._reminder_pm = reminder_pm
        self._listeners: dict[int, Listener] = {}
        self._ids = count()

    @classmethod
    async def open(cls, store: SQLiteStore) -> Repository:
        """Load persisted state; corrupt records are skipped and logged."""
        state: StoredState = await store.load()
        weights = _decode_all(state.weights, WeightEntry.loads, "weight")
        meals = _decode_all(state.meals, MealEntry.loads, "meal")
        logger.info("Loaded %d weights and %d meals", len(weights), len(meals))
        return cls(
            store,
            weights=weights,
            meals=meals,
            reminder_am=state.reminder_am,
            reminder_pm=state.reminder_pm,
        )

    @property
    def weights(self) -> tuple[WeightEntry, ...]:
        return self._weights

    @property
    def meals(self) -> tuple[MealEntry, ...]:
        return self._meals

    @property
    def reminder_am(self) -> ReminderTime | None:
        return self._reminder_am

    @property
    def reminder_pm(self) -> ReminderTime | None:
        return self._reminder_pm

    def snapshot(self) -> RepositorySnapshot:
        return RepositorySnapshot(
            weights=self._weights,
            meals=self._meals,
            reminder_am=self._reminder_am,
            reminder_pm=self._reminder_pm,
        )

    def subscribe(self, callback: Listener) -> Callable[[], None]:
        """Register ``callback``; returns a function that unregisters it."""
        token = next(self._ids)
        self._listeners[token] = callback

        def unsubscribe() -> None:
            self._listeners.pop(token, None)

        return unsubscribe

    async def add_weight(self, entry: WeightEntry) -> None:
        """Append a weight entry and persist the full collection.

        Raises:
            StorageError: If the write fails; memory is left unchanged.
        """
        weights = _sorted([*self._weights, entry])
        await self._store.save_weights([w.dumps() for w in weights])
        self._weights = weights
        logger.info(
            "Added %s weight %.1f kg at %s",
            entry.time_of_day.value,
            entry.kilograms,
            entry.timestamp.isoformat(),
        )
        self._notify()

    async def add_meal(self, entry: MealEntry) -> None:
        """Append a meal entry and persist the full collection.

        Raises:
            StorageError: If the write fails; memory is left unchanged.
        """
        meals = _sorted([*self._meals, entry])
        await self._store.save_meals([m.dumps() for m in meals])
        self._meals = meals
        logger.info("Added meal at %s", entry.timestamp.isoformat())
        self._notify()

    async def clear_all(self) -> None:
        """Delete every weight and meal entry. Reminders are not touched."""
        await self._store.clear_entries()
        self._weights = ()
        self._meals = ()
        logger.info("Cleared all entries")
        self._notify()

    async def set_reminder(
        self,
        am: ReminderTime | None = None,
        pm: ReminderTime | None = None,
    ) -> None:
        """Update the supplied slots and persist both in one write.

        Raises:
            StorageError: If the write fails; memory is left unchanged.
        """
        new_am = am if am is not None else self._reminder_am
        new_pm = pm if pm is not None else self._reminder_pm
        await self._store.save_reminders(new_am, new_pm)
        self._reminder_am = new_am
        self._reminder_pm = new_pm
        logger.info(
            "Reminders set: am=%s pm=%s",
            new_am.format() if new_am else "-",
            new_pm.format() if new_pm else "-",
        )
        self._notify()

    def _notify(self) -> None:
        for callback in list(self._listeners.values()):
            callback()


def _sorted(entries: Iterable[_E]) -> tuple[_E, ...]:
    # sorted() es estable: empates conservan el orden de insercion
    return tuple(sorted(entries, key=lambda e: e.timestamp.timestamp()))


def _decode_all(
    raw_records: list[str], loads: Callable[[str], _E], kind: str
) -> list[_E]:
    out: list[_E] = []
    for index, raw in enumerate(raw_records):
        try:
            out.append(loads(raw))
        except DeserializationError as exc:
            logger.warning("Skipping corrupt %s record #%d: %s", kind, index, exc)
    return out
