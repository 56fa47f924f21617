"""Environment-driven application settings."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path


PROJECT_ROOT = Path(__file__).resolve().parents[2]


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_tuple(name: str, default: tuple[str, ...]) -> tuple[str, ...]:
    raw = os.getenv(name)
    if raw is None:
        return default
    return tuple(item.strip() for item in raw.split(",") if item.strip())


@dataclass(frozen=True)
class Settings:
    app_name: str
    app_version: str
    log_level: str
    database_path: Path
    slot_day_start: str
    slot_day_end: str
    slot_minutes: int
    slot_excluded_starts: tuple[str, ...]
    calendar_slack_days: int
    conflict_lookahead_days: int
    participation_quota_ratio: int
    demo_seed_enabled: bool


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings(
        app_name=os.getenv("APP_NAME", "Jury Planner"),
        app_version=os.getenv("APP_VERSION", "1.0.0"),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        database_path=Path(
            os.getenv("DATABASE_PATH", str(PROJECT_ROOT / "data" / "jury_planner.db"))
        ),
        slot_day_start=os.getenv("SLOT_DAY_START", "08:00"),
        slot_day_end=os.getenv("SLOT_DAY_END", "18:00"),
        slot_minutes=_env_int("SLOT_MINUTES", 30),
        slot_excluded_starts=_env_tuple("SLOT_EXCLUDED_STARTS", ("17:30",)),
        calendar_slack_days=_env_int("CALENDAR_SLACK_DAYS", 1),
        conflict_lookahead_days=_env_int("CONFLICT_LOOKAHEAD_DAYS", 14),
        participation_quota_ratio=_env_int("PARTICIPATION_QUOTA_RATIO", 3),
        demo_seed_enabled=_env_bool("DEMO_SEED_ENABLED", True),
    )
