"""Teacher availability feeds consumed by the booking engine."""

from __future__ import annotations

import zlib
from datetime import date, datetime, timedelta, timezone
from typing import Callable, Optional, Protocol, Sequence

import numpy as np

from academy_booking.domain.models import (
    AvailabilitySummary,
    SlotCapacity,
    TeacherAvailability,
    TimeSlot,
)
from academy_booking.repository.data_repository import DataRepository
from academy_booking.utils.config import Settings, get_settings
from academy_booking.utils.logger import get_logger
from academy_booking.utils.time_utils import add_minutes, day_of_week_index


logger = get_logger(__name__)

ONE_ON_ONE_CAPACITY = SlotCapacity(
    max_students=1,
    min_students=1,
    current_enrollment=0,
    available_spots=1,
)

# (label, start time, probability that the slot is open)
DEMO_SLOT_TEMPLATES: tuple[tuple[str, str, float], ...] = (
    ("morning", "09:00", 0.7),
    ("afternoon", "14:00", 0.6),
)


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


class AvailabilityProvider(Protocol):
    """Point-in-time source of open slots for one teacher."""

    def get_teacher_availability(self, teacher_id: str) -> TeacherAvailability:
        ...


def _is_weekend(value: date) -> bool:
    return value.weekday() >= 5


def build_one_on_one_slot(
    slot_id: str,
    slot_date: date,
    start_time: str,
    duration: int = 60,
) -> TimeSlot:
    return TimeSlot(
        slot_id=slot_id,
        start_time=start_time,
        end_time=add_minutes(start_time, duration),
        duration=duration,
        day_of_week=day_of_week_index(slot_date),
        is_available=True,
        capacity=ONE_ON_ONE_CAPACITY,
        location="Online",
        slot_date=slot_date.isoformat(),
    )


class SeededAvailabilityProvider:
    """Deterministic demonstration feed.

    Emits a morning and an afternoon slot on every weekday of the lookahead
    window and opens each with a fixed probability. Draws come from a numpy
    generator seeded by (seed, teacher id, today) so repeated calls within a
    day agree with each other.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        seed: Optional[int] = None,
        lookahead_days: Optional[int] = None,
        today_provider: Callable[[], date] = utc_today,
    ) -> None:
        self._settings = settings or get_settings()
        self._seed = seed if seed is not None else self._settings.synthetic_random_seed
        self._lookahead_days = (
            lookahead_days
            if lookahead_days is not None
            else self._settings.availability_lookahead_days
        )
        if self._lookahead_days <= 0:
            raise ValueError("lookahead_days must be > 0")
        self._today_provider = today_provider

    def _generator(self, teacher_id: str, today: date) -> np.random.Generator:
        teacher_key = zlib.crc32(teacher_id.encode("utf-8"))
        return np.random.default_rng([self._seed, teacher_key, today.toordinal()])

    def get_teacher_availability(self, teacher_id: str) -> TeacherAvailability:
        today = self._today_provider()
        draws = self._generator(teacher_id, today).random(
            (self._lookahead_days, len(DEMO_SLOT_TEMPLATES))
        )
        thresholds = np.array([probability for _, _, probability in DEMO_SLOT_TEMPLATES])
        open_mask = draws < thresholds

        slots: list[TimeSlot] = []
        for offset in range(1, self._lookahead_days + 1):
            slot_day = today + timedelta(days=offset)
            if _is_weekend(slot_day):
                continue
            for index, (label, start_time, _) in enumerate(DEMO_SLOT_TEMPLATES):
                if not open_mask[offset - 1, index]:
                    continue
                slots.append(
                    build_one_on_one_slot(
                        slot_id=f"slot-{teacher_id}-{offset}-{label}",
                        slot_date=slot_day,
                        start_time=start_time,
                    )
                )

        return TeacherAvailability(teacher_id=teacher_id, available_slots=tuple(slots))


class RepositoryAvailabilityProvider:
    """Reads published teacher slots from the TeacherAvailability table."""

    def __init__(
        self,
        repository: DataRepository,
        settings: Optional[Settings] = None,
        *,
        today_provider: Callable[[], date] = utc_today,
    ) -> None:
        self._repository = repository
        self._settings = settings or get_settings()
        self._today_provider = today_provider

    def get_teacher_availability(self, teacher_id: str) -> TeacherAvailability:
        today = self._today_provider()
        start = today + timedelta(days=1)
        end = today + timedelta(days=self._settings.availability_lookahead_days)
        records = self._repository.list_teacher_slots(
            teacher_id=teacher_id,
            start_date=start.isoformat(),
            end_date=end.isoformat(),
        )

        slots: list[TimeSlot] = []
        for record in records:
            slot_day = date.fromisoformat(record.slot_date)
            if _is_weekend(slot_day):
                continue
            slots.append(
                build_one_on_one_slot(
                    slot_id=record.slot_id,
                    slot_date=slot_day,
                    start_time=record.start_time,
                    duration=record.duration,
                )
            )
        logger.debug(
            "Availability loaded | teacher_id=%s | open_slots=%s",
            teacher_id,
            len(slots),
        )
        return TeacherAvailability(teacher_id=teacher_id, available_slots=tuple(slots))


def summarize_availability(slots: Sequence[TimeSlot], today: date) -> AvailabilitySummary:
    """Count open slots through the coming Sunday and in the week after it."""
    end_of_week = today + timedelta(days=7 - day_of_week_index(today))
    start_of_next_week = end_of_week + timedelta(days=1)
    end_of_next_week = start_of_next_week + timedelta(days=6)

    this_week = 0
    next_week = 0
    for slot in slots:
        if slot.slot_date is None:
            continue
        slot_day = date.fromisoformat(slot.slot_date)
        if slot_day <= end_of_week:
            this_week += 1
        elif start_of_next_week <= slot_day <= end_of_next_week:
            next_week += 1

    return AvailabilitySummary(
        next_available_slot=slots[0] if slots else None,
        available_this_week=this_week,
        available_next_week=next_week,
    )


def build_availability_provider(
    repository: DataRepository,
    settings: Optional[Settings] = None,
) -> AvailabilityProvider:
    """Select the configured availability feed."""
    resolved = settings or get_settings()
    if resolved.availability_source == "repository":
        return RepositoryAvailabilityProvider(repository=repository, settings=resolved)
    if resolved.availability_source == "seeded":
        return SeededAvailabilityProvider(settings=resolved)
    raise ValueError(
        f"Unknown availability_source {resolved.availability_source!r}; "
        "expected 'seeded' or 'repository'"
    )
