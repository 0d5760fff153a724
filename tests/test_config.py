from __future__ import annotations

from datetime import datetime
from pathlib import Path

import pytest
from dateutil import tz

from diet_tracker.config import load_settings
from diet_tracker.errors import ValidationError


def test_defaults_from_empty_env() -> None:
    settings = load_settings({})
    assert settings.db_path.name == "diet_tracker.sqlite3"
    assert settings.log_dir.name == "logs"
    assert settings.log_level == "INFO"
    assert settings.trend_window == 7
    assert settings.user_name is None
    assert settings.user_email is None
    assert isinstance(settings.timezone, tz.tzlocal)


def test_values_from_env(tmp_path: Path) -> None:
    settings = load_settings(
        {
            "DIET_TRACKER_DB": str(tmp_path / "db.sqlite3"),
            "DIET_TRACKER_LOG_DIR": str(tmp_path / "logs"),
            "DIET_TRACKER_LOG_LEVEL": "debug",
            "DIET_TRACKER_TZ": "Asia/Tokyo",
            "DIET_TRACKER_TREND_WINDOW": "14",
            "DIET_TRACKER_USER_NAME": " Hana ",
            "DIET_TRACKER_USER_EMAIL": "",
        }
    )
    assert settings.db_path == tmp_path / "db.sqlite3"
    assert settings.log_level == "DEBUG"
    assert settings.trend_window == 14
    assert settings.user_name == "Hana"
    assert settings.user_email is None
    offset = datetime(2024, 5, 10, tzinfo=settings.timezone).utcoffset()
    assert offset is not None
    assert offset.total_seconds() == 9 * 3600


@pytest.mark.parametrize(
    "env",
    [
        {"DIET_TRACKER_LOG_LEVEL": "LOUD"},
        {"DIET_TRACKER_TZ": "Mars/Olympus_Mons"},
        {"DIET_TRACKER_TREND_WINDOW": "seven"},
        {"DIET_TRACKER_TREND_WINDOW": "0"},
    ],
)
def test_invalid_values_raise(env: dict[str, str]) -> None:
    with pytest.raises(ValidationError):
        load_settings(env)
