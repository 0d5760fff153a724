"""Modelos tipados para registros de peso, comidas y recordatorios."""

from __future__ import annotations

import json
import math
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from dateutil.parser import isoparse

from diet_tracker.errors import DeserializationError, ValidationError

MIN_KG = 30.0
MAX_KG = 300.0


class TimeOfDay(str, Enum):
    """Morning or evening weight slot."""

    AM = "am"
    PM = "pm"


@dataclass(frozen=True)
class WeightEntry:
    """One body-weight measurement (timestamped)."""

    timestamp: datetime
    time_of_day: TimeOfDay
    kilograms: float

    def to_record(self) -> dict[str, Any]:
        """Flat record stored under ``weights_v1``."""
        return {
            "t": self.timestamp.isoformat(),
            "tod": self.time_of_day.value,
            "kg": self.kilograms,
        }

    @classmethod
    def from_record(cls, record: Any) -> WeightEntry:
        """Build an entry from a stored record.

        Raises:
            DeserializationError: If a field is missing or malformed.
        """
        data = _require_mapping(record)
        tod_raw = _require(data, "tod")
        try:
            tod = TimeOfDay(tod_raw)
        except ValueError as exc:
            raise DeserializationError(f"Unknown time of day: {tod_raw!r}") from exc
        return cls(
            timestamp=_parse_timestamp(_require(data, "t")),
            time_of_day=tod,
            kilograms=float(_require_number(data, "kg")),
        )

    def dumps(self) -> str:
        """Serialize to JSON text."""
        return json.dumps(self.to_record(), ensure_ascii=False)

    @classmethod
    def loads(cls, text: str) -> WeightEntry:
        """Parse JSON text produced by :meth:`dumps`."""
        return cls.from_record(_decode(text))


@dataclass(frozen=True)
class MealEntry:
    """One meal note, with optional calories."""

    timestamp: datetime
    note: str
    kilocalories: int | None = None

    def to_record(self) -> dict[str, Any]:
        """Flat record stored under ``meals_v1`` (``k`` is null when absent)."""
        return {
            "t": self.timestamp.isoformat(),
            "n": self.note,
            "k": self.kilocalories,
        }

    @classmethod
    def from_record(cls, record: Any) -> MealEntry:
        """Build an entry from a stored record.

        Raises:
            DeserializationError: If a field is missing or malformed.
        """
        data = _require_mapping(record)
        note = _require(data, "n")
        if not isinstance(note, str):
            raise DeserializationError("Field 'n' must be text")
        if "k" not in data:
            raise DeserializationError("Missing field 'k'")
        kcal = None if data["k"] is None else _require_integral(data, "k")
        return cls(
            timestamp=_parse_timestamp(_require(data, "t")),
            note=note,
            kilocalories=kcal,
        )

    def dumps(self) -> str:
        """Serialize to JSON text."""
        return json.dumps(self.to_record(), ensure_ascii=False)

    @classmethod
    def loads(cls, text: str) -> MealEntry:
        """Parse JSON text produced by :meth:`dumps`."""
        return cls.from_record(_decode(text))


@dataclass(frozen=True)
class ReminderTime:
    """Wall-clock reminder time (24h)."""

    hour: int
    minute: int

    def __post_init__(self) -> None:
        if not 0 <= self.hour <= 23:
            raise ValidationError(f"Hour out of range: {self.hour}")
        if not 0 <= self.minute <= 59:
            raise ValidationError(f"Minute out of range: {self.minute}")

    def format(self) -> str:
        """Render as ``H:MM`` (hour unpadded, minute zero-padded)."""
        return f"{self.hour}:{self.minute:02d}"

    @classmethod
    def parse(cls, raw: str | None) -> ReminderTime | None:
        """Parse ``H:MM``; absent, empty or malformed values mean unset."""
        if raw is None or not raw.strip():
            return None
        parts = raw.strip().split(":")
        if len(parts) != 2:
            return None
        hour_s, minute_s = parts
        # solo digitos ASCII
        if not (hour_s + minute_s).isascii():
            return None
        if not hour_s.isdecimal() or not minute_s.isdecimal():
            return None
        try:
            return cls(hour=int(hour_s), minute=int(minute_s))
        except ValidationError:
            return None


def validate_kilograms(kg: float) -> float:
    """Check a weight against the accepted [30, 300] kg range.

    Raises:
        ValidationError: If the value is out of range.
    """
    if not MIN_KG <= kg <= MAX_KG:
        raise ValidationError(f"Weight must be between {MIN_KG:g} and {MAX_KG:g} kg")
    return float(kg)


def parse_kilograms(text: str) -> float:
    """Parse user input (``67,8`` or ``67.8``) into a validated weight."""
    try:
        kg = float(text.strip().replace(",", "."))
    except ValueError as exc:
        raise ValidationError(f"Not a number: {text!r}") from exc
    return validate_kilograms(kg)


def validate_note(text: str) -> str:
    """Strip a meal note and reject empty ones."""
    note = text.strip()
    if not note:
        raise ValidationError("Meal note must not be empty")
    return note


def parse_kilocalories(text: str | None) -> int | None:
    """Parse optional calories; blank input means absent."""
    if text is None or not text.strip():
        return None
    try:
        kcal = int(text.strip())
    except ValueError as exc:
        raise ValidationError(f"Calories must be an integer: {text!r}") from exc
    if kcal < 0:
        raise ValidationError("Calories must not be negative")
    return kcal


def _decode(text: str) -> Any:
    try:
        return json.loads(text)
    except (TypeError, json.JSONDecodeError) as exc:
        raise DeserializationError(f"Invalid record: {exc}") from exc


def _require_mapping(record: Any) -> dict[str, Any]:
    if not isinstance(record, dict):
        raise DeserializationError("Record must be an object")
    return record


def _require(data: dict[str, Any], key: str) -> Any:
    value = data.get(key)
    if value is None:
        raise DeserializationError(f"Missing field {key!r}")
    return value


def _require_number(data: dict[str, Any], key: str) -> int | float:
    value = _require(data, key)
    # bool es subclase de int
    if isinstance(value, bool) or not isinstance(value, int | float):
        raise DeserializationError(f"Field {key!r} must be a number")
    if not math.isfinite(value):
        raise DeserializationError(f"Field {key!r} must be finite")
    return value


def _require_integral(data: dict[str, Any], key: str) -> int:
    value = _require_number(data, key)
    if isinstance(value, float) and not value.is_integer():
        raise DeserializationError(f"Field {key!r} must be an integer")
    return int(value)


def _parse_timestamp(raw: Any) -> datetime:
    """Parse an ISO-8601 instant."""
    if not isinstance(raw, str):
        raise DeserializationError("Field 't' must be an ISO-8601 string")
    try:
        return isoparse(raw)
    except ValueError as exc:
        raise DeserializationError(f"Malformed timestamp: {raw!r}") from exc
