"""Environment-driven application settings."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Optional


PROJECT_ROOT = Path(__file__).resolve().parents[2]


def _env_str(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip()


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {value!r}") from exc


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_optional(name: str) -> Optional[str]:
    value = os.getenv(name)
    if value is None or not value.strip():
        return None
    return value.strip()


@dataclass(frozen=True)
class Settings:
    app_name: str
    app_version: str
    log_level: str
    database_path: Path
    api_token: Optional[str]

    synthetic_random_seed: int
    availability_lookahead_days: int
    availability_source: str

    student_cache_ttl_seconds: int
    teacher_cache_ttl_seconds: int
    booking_cache_ttl_seconds: int
    course_cache_ttl_seconds: int

    scoring_max_workers: int
    recommendation_limit: int
    alternative_slot_limit: int
    alternative_window_days: int
    algorithm_version: str

    meeting_link_base: str
    persist_bookings: bool


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load settings once per process; call ``get_settings.cache_clear()`` to reload."""
    return Settings(
        app_name=_env_str("ACADEMY_APP_NAME", "HeyPeter Academy 1:1 Booking"),
        app_version=_env_str("ACADEMY_APP_VERSION", "1.0.0"),
        log_level=_env_str("ACADEMY_LOG_LEVEL", "INFO"),
        database_path=Path(
            _env_str(
                "ACADEMY_DATABASE_PATH",
                str(PROJECT_ROOT / "data" / "academy_booking.db"),
            )
        ),
        api_token=_env_optional("API_TOKEN"),
        synthetic_random_seed=_env_int("ACADEMY_SYNTHETIC_RANDOM_SEED", 42),
        availability_lookahead_days=_env_int("ACADEMY_AVAILABILITY_LOOKAHEAD_DAYS", 14),
        availability_source=_env_str("ACADEMY_AVAILABILITY_SOURCE", "seeded"),
        student_cache_ttl_seconds=_env_int("ACADEMY_STUDENT_CACHE_TTL_SECONDS", 300),
        teacher_cache_ttl_seconds=_env_int("ACADEMY_TEACHER_CACHE_TTL_SECONDS", 300),
        booking_cache_ttl_seconds=_env_int("ACADEMY_BOOKING_CACHE_TTL_SECONDS", 30),
        course_cache_ttl_seconds=_env_int("ACADEMY_COURSE_CACHE_TTL_SECONDS", 600),
        scoring_max_workers=_env_int("ACADEMY_SCORING_MAX_WORKERS", 4),
        recommendation_limit=_env_int("ACADEMY_RECOMMENDATION_LIMIT", 5),
        alternative_slot_limit=_env_int("ACADEMY_ALTERNATIVE_SLOT_LIMIT", 3),
        alternative_window_days=_env_int("ACADEMY_ALTERNATIVE_WINDOW_DAYS", 7),
        algorithm_version=_env_str("ACADEMY_ALGORITHM_VERSION", "1.0.0"),
        meeting_link_base=_env_str(
            "ACADEMY_MEETING_LINK_BASE",
            "https://meet.heypeter.academy",
        ),
        persist_bookings=_env_bool("ACADEMY_PERSIST_BOOKINGS", True),
    )
