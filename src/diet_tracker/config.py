"""Configuracion desde variables de entorno (y .env opcional)."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import tzinfo
from pathlib import Path

from dateutil import tz
from dotenv import load_dotenv

from diet_tracker.errors import ValidationError

_DEFAULT_HOME = Path.home() / ".diet_tracker"
_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True)
class Settings:
    """Resolved runtime settings."""

    db_path: Path
    log_dir: Path
    log_level: str
    timezone: tzinfo
    trend_window: int
    user_name: str | None = None
    user_email: str | None = None


def load_settings(env: Mapping[str, str] | None = None) -> Settings:
    """Build settings from ``env`` or from the process environment.

    When ``env`` is omitted a ``.env`` file in the working directory is loaded
    first.

    Raises:
        ValidationError: If a value cannot be interpreted.
    """
    if env is None:
        load_dotenv()
        env = os.environ

    db_path = Path(
        env.get("DIET_TRACKER_DB", str(_DEFAULT_HOME / "diet_tracker.sqlite3"))
    ).expanduser()
    log_dir = Path(
        env.get("DIET_TRACKER_LOG_DIR", str(_DEFAULT_HOME / "logs"))
    ).expanduser()

    log_level = env.get("DIET_TRACKER_LOG_LEVEL", "INFO").strip().upper()
    if log_level not in _LOG_LEVELS:
        raise ValidationError(f"Unknown log level: {log_level}")

    return Settings(
        db_path=db_path,
        log_dir=log_dir,
        log_level=log_level,
        timezone=_parse_timezone(env.get("DIET_TRACKER_TZ")),
        trend_window=_parse_window(env.get("DIET_TRACKER_TREND_WINDOW", "7")),
        user_name=_blank_to_none(env.get("DIET_TRACKER_USER_NAME")),
        user_email=_blank_to_none(env.get("DIET_TRACKER_USER_EMAIL")),
    )


def _parse_timezone(name: str | None) -> tzinfo:
    if name is None or not name.strip():
        return tz.tzlocal()
    zone = tz.gettz(name.strip())
    if zone is None:
        raise ValidationError(f"Unknown timezone: {name}")
    return zone


def _parse_window(raw: str) -> int:
    try:
        window = int(raw)
    except ValueError as exc:
        raise ValidationError(f"Trend window must be an integer: {raw!r}") from exc
    if window < 1:
        raise ValidationError("Trend window must be positive")
    return window


def _blank_to_none(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None
