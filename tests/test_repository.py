from __future__ import annotations

import json
import logging
import sqlite3
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from diet_tracker.errors import StorageError
from diet_tracker.model import MealEntry, ReminderTime, TimeOfDay, WeightEntry
from diet_tracker.repository import Repository
from diet_tracker.storage import MEALS_KEY, WEIGHTS_KEY, SQLiteStore


def _weight(
    hour: int, kg: float, day: int = 10, tod: TimeOfDay = TimeOfDay.AM
) -> WeightEntry:
    return WeightEntry(datetime(2024, 5, day, hour, 0), tod, kg)


async def _open(tmp_path: Path) -> tuple[SQLiteStore, Repository]:
    store = SQLiteStore(tmp_path / "app.sqlite3")
    return store, await Repository.open(store)


@pytest.mark.asyncio
async def test_add_weight_keeps_sorted_and_persists(tmp_path: Path) -> None:
    store, repo = await _open(tmp_path)
    await repo.add_weight(_weight(21, 69.0, tod=TimeOfDay.PM))
    await repo.add_weight(_weight(7, 68.0))
    await repo.add_weight(_weight(12, 68.5, day=9))

    stamps = [w.timestamp for w in repo.weights]
    assert stamps == sorted(stamps)
    assert [w.kilograms for w in repo.weights] == [68.5, 68.0, 69.0]

    reopened = await Repository.open(store)
    assert reopened.weights == repo.weights


@pytest.mark.asyncio
async def test_add_meal_keeps_sorted_and_persists(tmp_path: Path) -> None:
    store, repo = await _open(tmp_path)
    await repo.add_meal(MealEntry(datetime(2024, 5, 10, 19, 0), "cena", 600))
    await repo.add_meal(MealEntry(datetime(2024, 5, 10, 8, 0), "desayuno"))

    assert [m.note for m in repo.meals] == ["desayuno", "cena"]
    assert (await Repository.open(store)).meals == repo.meals


@pytest.mark.asyncio
async def test_identical_timestamps_keep_insertion_order(tmp_path: Path) -> None:
    _, repo = await _open(tmp_path)
    await repo.add_weight(_weight(7, 68.0))
    await repo.add_weight(_weight(7, 68.5))
    await repo.add_weight(_weight(6, 67.0))
    assert [w.kilograms for w in repo.weights] == [67.0, 68.0, 68.5]


@pytest.mark.asyncio
async def test_mixed_naive_and_aware_timestamps_sort(tmp_path: Path) -> None:
    _, repo = await _open(tmp_path)
    aware = WeightEntry(
        datetime(2024, 5, 12, 7, 0, tzinfo=timezone(timedelta(hours=-3))),
        TimeOfDay.AM,
        70.0,
    )
    await repo.add_weight(aware)
    await repo.add_weight(_weight(7, 68.0, day=1))
    assert repo.weights[-1] == aware


@pytest.mark.asyncio
async def test_repository_accepts_out_of_range_values(tmp_path: Path) -> None:
    _, repo = await _open(tmp_path)
    await repo.add_weight(_weight(7, 12.0))
    assert repo.weights[0].kilograms == 12.0


@pytest.mark.asyncio
async def test_clear_all_is_idempotent_and_keeps_reminders(tmp_path: Path) -> None:
    store, repo = await _open(tmp_path)
    await repo.add_weight(_weight(7, 68.0))
    await repo.add_meal(MealEntry(datetime(2024, 5, 10, 8, 0), "pan", 200))
    await repo.set_reminder(am=ReminderTime(7, 0))

    await repo.clear_all()
    first = repo.snapshot()
    await repo.clear_all()

    assert repo.snapshot() == first
    assert repo.weights == ()
    assert repo.meals == ()
    assert repo.reminder_am == ReminderTime(7, 0)
    reopened = await Repository.open(store)
    assert reopened.weights == ()
    assert reopened.meals == ()
    assert reopened.reminder_am == ReminderTime(7, 0)


@pytest.mark.asyncio
async def test_set_reminder_updates_only_supplied_slot(tmp_path: Path) -> None:
    store, repo = await _open(tmp_path)
    await repo.set_reminder(am=ReminderTime(7, 30), pm=ReminderTime(21, 0))
    await repo.set_reminder(pm=ReminderTime(22, 15))

    assert repo.reminder_am == ReminderTime(7, 30)
    assert repo.reminder_pm == ReminderTime(22, 15)
    reopened = await Repository.open(store)
    assert reopened.reminder_am == ReminderTime(7, 30)
    assert reopened.reminder_pm == ReminderTime(22, 15)


@pytest.mark.asyncio
async def test_subscribers_notified_after_each_mutation(tmp_path: Path) -> None:
    _, repo = await _open(tmp_path)
    seen: list[int] = []
    unsubscribe = repo.subscribe(lambda: seen.append(len(repo.weights)))
    other: list[str] = []
    repo.subscribe(lambda: other.append("x"))

    await repo.add_weight(_weight(7, 68.0))
    await repo.add_meal(MealEntry(datetime(2024, 5, 10, 8, 0), "pan"))
    await repo.set_reminder(am=ReminderTime(7, 0))
    await repo.clear_all()
    unsubscribe()
    unsubscribe()
    await repo.add_weight(_weight(8, 68.0))

    assert seen == [1, 1, 1, 0]
    assert len(other) == 5


@pytest.mark.asyncio
async def test_failed_write_leaves_state_and_skips_notification(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    store, repo = await _open(tmp_path)
    await repo.add_weight(_weight(7, 68.0))
    calls: list[str] = []
    repo.subscribe(lambda: calls.append("changed"))

    async def _fail(_: list[str]) -> None:
        raise StorageError("disk full")

    monkeypatch.setattr(store, "save_weights", _fail)
    with pytest.raises(StorageError, match="disk full"):
        await repo.add_weight(_weight(8, 69.0))

    assert [w.kilograms for w in repo.weights] == [68.0]
    assert calls == []


@pytest.mark.asyncio
async def test_open_skips_corrupt_records(
    tmp_path: Path, caplog: pytest.LogCaptureFixture
) -> None:
    db = tmp_path / "app.sqlite3"
    store = SQLiteStore(db)
    good_late = _weight(21, 69.0, tod=TimeOfDay.PM).dumps()
    good_early = _weight(7, 68.0).dumps()
    conn = sqlite3.connect(db)
    with conn:
        conn.execute(
            "INSERT INTO kv_store(key, value) VALUES(?, ?)",
            (WEIGHTS_KEY, json.dumps([good_late, "{broken", good_early])),
        )
    conn.close()

    with caplog.at_level(logging.WARNING, logger="diet_tracker"):
        repo = await Repository.open(store)

    assert [w.kilograms for w in repo.weights] == [68.0, 69.0]
    assert "Skipping corrupt weight record #1" in caplog.text


def _raw_put(db: Path, key: str, value: str) -> None:
    conn = sqlite3.connect(db)
    with conn:
        conn.execute("INSERT INTO kv_store(key, value) VALUES(?, ?)", (key, value))
    conn.close()


@pytest.mark.asyncio
async def test_open_skips_corrupt_meal_records(
    tmp_path: Path, caplog: pytest.LogCaptureFixture
) -> None:
    db = tmp_path / "app.sqlite3"
    store = SQLiteStore(db)
    good = MealEntry(datetime(2024, 5, 10, 8, 0), "pan", 200).dumps()
    records = [
        '{"t": "2024-05-10T09:00:00", "n": "x", "k": NaN}',
        '{"t": "2024-05-10T10:00:00", "n": "y", "k": Infinity}',
        '{"t": "2024-05-10T11:00:00", "n": "z", "k": 450.9}',
        good,
    ]
    _raw_put(db, MEALS_KEY, json.dumps(records))

    with caplog.at_level(logging.WARNING, logger="diet_tracker"):
        repo = await Repository.open(store)

    assert [m.note for m in repo.meals] == ["pan"]
    assert "Skipping corrupt meal record #0" in caplog.text
    assert "Skipping corrupt meal record #2" in caplog.text


@pytest.mark.asyncio
async def test_open_treats_non_ascii_reminder_as_unset(tmp_path: Path) -> None:
    db = tmp_path / "app.sqlite3"
    store = SQLiteStore(db)
    _raw_put(db, "remind_am", "²:30")
    _raw_put(db, "remind_pm", "21:15")

    repo = await Repository.open(store)

    assert repo.reminder_am is None
    assert repo.reminder_pm == ReminderTime(21, 15)


@pytest.mark.asyncio
async def test_failed_reminder_write_persists_neither_slot(tmp_path: Path) -> None:
    store, repo = await _open(tmp_path)
    conn = sqlite3.connect(store.db_path)
    conn.execute(
        """
        CREATE TRIGGER block_pm BEFORE INSERT ON kv_store
        WHEN NEW.key = 'remind_pm'
        BEGIN SELECT RAISE(ABORT, 'blocked'); END
        """
    )
    conn.commit()
    conn.close()
    calls: list[str] = []
    repo.subscribe(lambda: calls.append("changed"))

    with pytest.raises(StorageError):
        await repo.set_reminder(am=ReminderTime(6, 0), pm=ReminderTime(22, 0))

    assert repo.reminder_am is None
    assert repo.reminder_pm is None
    assert calls == []
    reopened = await Repository.open(store)
    assert reopened.reminder_am is None
    assert reopened.reminder_pm is None
