"""Métricas derivadas: hoy, historial por día, promedio móvil y racha."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta

import pandas as pd

from diet_tracker.model import MealEntry, TimeOfDay, WeightEntry

DEFAULT_WINDOW = 7


@dataclass(frozen=True)
class TodaysWeights:
    """Last AM and PM readings of the reference day."""

    am: WeightEntry | None = None
    pm: WeightEntry | None = None


@dataclass(frozen=True)
class DaySummary:
    """One history row: both weight slots and the day's meals."""

    day: date
    am: WeightEntry | None = None
    pm: WeightEntry | None = None
    meals: tuple[MealEntry, ...] = field(default_factory=tuple)

    @property
    def total_kilocalories(self) -> int:
        return sum(m.kilocalories or 0 for m in self.meals)


@dataclass(frozen=True)
class DailyAverage:
    """Mean of all weights recorded on one day."""

    day: date
    mean_kg: float


def _same_day(ts: datetime, ref: date) -> bool:
    return ts.date() == ref


def todays_weights(weights: Sequence[WeightEntry], now: datetime) -> TodaysWeights:
    """Pick the last AM and last PM entries on ``now``'s calendar day."""
    am: WeightEntry | None = None
    pm: WeightEntry | None = None
    today = now.date()
    for entry in weights:
        if not _same_day(entry.timestamp, today):
            continue
        if entry.time_of_day is TimeOfDay.AM:
            am = entry
        else:
            pm = entry
    return TodaysWeights(am=am, pm=pm)


def todays_calories(meals: Sequence[MealEntry], now: datetime) -> int:
    """Sum calories of today's meals; missing values count as 0."""
    today = now.date()
    return sum(m.kilocalories or 0 for m in meals if _same_day(m.timestamp, today))


def group_by_day(
    weights: Sequence[WeightEntry], meals: Sequence[MealEntry]
) -> list[DaySummary]:
    """Group entries per calendar day, newest day first.

    When a slot has several readings on the same day the later one in
    collection order wins.
    """
    slots: dict[date, dict[TimeOfDay, WeightEntry]] = {}
    day_meals: dict[date, list[MealEntry]] = {}
    for w in weights:
        slots.setdefault(w.timestamp.date(), {})[w.time_of_day] = w
    for m in meals:
        day_meals.setdefault(m.timestamp.date(), []).append(m)

    days = sorted(set(slots) | set(day_meals), reverse=True)
    return [
        DaySummary(
            day=day,
            am=slots.get(day, {}).get(TimeOfDay.AM),
            pm=slots.get(day, {}).get(TimeOfDay.PM),
            meals=tuple(day_meals.get(day, [])),
        )
        for day in days
    ]


def weights_to_frame(weights: Sequence[WeightEntry]) -> pd.DataFrame:
    """Convert weight entries to DataFrame with date, slot and kg."""
    rows = [
        {
            "date": w.timestamp.date(),
            "tod": w.time_of_day.value,
            "kg": w.kilograms,
        }
        for w in weights
    ]
    return pd.DataFrame(rows, columns=["date", "tod", "kg"])


def daily_average_series(weights: Sequence[WeightEntry]) -> list[DailyAverage]:
    """Per-day mean weight (AM and PM together), ascending by date."""
    df = weights_to_frame(weights)
    if df.empty:
        return []
    g = df.groupby("date", as_index=False).agg(mean_kg=("kg", "mean"))
    g = g.sort_values("date").reset_index(drop=True)
    return [
        DailyAverage(day=row.date, mean_kg=float(row.mean_kg))
        for row in g.itertuples(index=False)
    ]


def trailing_average(
    series: Sequence[DailyAverage], window_size: int = DEFAULT_WINDOW
) -> float | None:
    """Mean of the last ``window_size`` points; ``None`` when there is no data.

    Raises:
        ValueError: If ``window_size`` is smaller than 1.
    """
    if window_size < 1:
        raise ValueError("window_size must be >= 1")
    if not series:
        return None
    tail = series[-window_size:]
    return sum(p.mean_kg for p in tail) / len(tail)


def weight_change(series: Sequence[DailyAverage]) -> float | None:
    """Last daily mean minus the first one; ``None`` with fewer than 2 points."""
    if len(series) < 2:
        return None
    return series[-1].mean_kg - series[0].mean_kg


def consecutive_day_streak(
    weights: Sequence[WeightEntry], today: date | datetime
) -> int:
    """Count consecutive logged days ending at ``today`` (0 if today is empty)."""
    ref = today.date() if isinstance(today, datetime) else today
    logged = {w.timestamp.date() for w in weights}
    streak = 0
    cur = ref
    while cur in logged:
        streak += 1
        cur -= timedelta(days=1)
    return streak
