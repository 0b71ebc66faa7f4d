from __future__ import annotations

from dataclasses import replace
from datetime import date

import pytest

from academy_booking.repository.data_repository import DataRepository
from academy_booking.services.availability_service import (
    RepositoryAvailabilityProvider,
    SeededAvailabilityProvider,
    build_availability_provider,
    build_one_on_one_slot,
    summarize_availability,
)
from academy_booking.utils.config import get_settings

# Friday, so the lookahead window crosses a weekend immediately.
TODAY = date(2026, 2, 27)


def _build_test_settings(tmp_path, filename: str, **overrides):
    base = get_settings()
    return replace(base, database_path=tmp_path / filename, **overrides)


def test_seeded_provider_is_deterministic_per_teacher_and_day(tmp_path) -> None:
    settings = _build_test_settings(tmp_path, "seeded.db")
    first = SeededAvailabilityProvider(settings, today_provider=lambda: TODAY)
    second = SeededAvailabilityProvider(settings, today_provider=lambda: TODAY)

    assert first.get_teacher_availability("teacher-1") == second.get_teacher_availability(
        "teacher-1"
    )


def test_seeded_provider_varies_with_seed(tmp_path) -> None:
    settings = _build_test_settings(tmp_path, "seeded.db", availability_lookahead_days=30)
    runs = {
        tuple(
            slot.slot_id
            for slot in SeededAvailabilityProvider(
                settings, seed=seed, today_provider=lambda: TODAY
            ).get_teacher_availability("teacher-1").available_slots
        )
        for seed in range(5)
    }
    assert len(runs) > 1


def test_seeded_slots_are_future_weekday_one_on_one(tmp_path) -> None:
    settings = _build_test_settings(tmp_path, "seeded.db")
    availability = SeededAvailabilityProvider(
        settings, today_provider=lambda: TODAY
    ).get_teacher_availability("teacher-2")

    assert availability.teacher_id == "teacher-2"
    for slot in availability.available_slots:
        slot_day = date.fromisoformat(slot.slot_date)
        assert slot_day > TODAY
        assert slot_day.weekday() < 5
        assert slot.day_of_week not in (0, 6)
        assert slot.start_time in ("09:00", "14:00")
        assert slot.capacity.max_students == 1
        assert slot.capacity.available_spots == 1
        assert slot.duration == 60
        assert slot.location == "Online"


def test_seeded_provider_rejects_empty_window(tmp_path) -> None:
    settings = _build_test_settings(tmp_path, "seeded.db")
    with pytest.raises(ValueError):
        SeededAvailabilityProvider(settings, lookahead_days=0)


def test_summary_splits_this_week_and_next_week() -> None:
    slots = [
        build_one_on_one_slot("a", date(2026, 3, 1), "09:00"),  # Sunday, this week
        build_one_on_one_slot("b", date(2026, 3, 2), "09:00"),  # Monday, next week
        build_one_on_one_slot("c", date(2026, 3, 8), "09:00"),  # Sunday, next week
        build_one_on_one_slot("d", date(2026, 3, 9), "09:00"),  # beyond
    ]
    summary = summarize_availability(slots, TODAY)

    assert summary.next_available_slot == slots[0]
    assert summary.available_this_week == 1
    assert summary.available_next_week == 2


def test_summary_of_no_slots() -> None:
    summary = summarize_availability([], TODAY)
    assert summary.next_available_slot is None
    assert summary.available_this_week == 0
    assert summary.available_next_week == 0


def test_repository_provider_reads_open_slots_in_window(tmp_path) -> None:
    settings = _build_test_settings(tmp_path, "availability.db", availability_lookahead_days=7)
    repository = DataRepository(settings)
    repository.initialize_database()
    repository.create_teacher("T1", "Emma Clarke")
    repository.create_availability_slot("past", "T1", "2026-02-26", "09:00")
    repository.create_availability_slot("mon", "T1", "2026-03-02", "09:00")
    repository.create_availability_slot("mon-closed", "T1", "2026-03-02", "14:00", is_available=False)
    repository.create_availability_slot("tue-short", "T1", "2026-03-03", "10:00", duration=30)
    repository.create_availability_slot("far", "T1", "2026-03-20", "09:00")

    provider = RepositoryAvailabilityProvider(
        repository, settings, today_provider=lambda: TODAY
    )
    availability = provider.get_teacher_availability("T1")

    assert [slot.slot_id for slot in availability.available_slots] == ["mon", "tue-short"]
    monday = availability.available_slots[0]
    assert monday.day_of_week == 1
    assert monday.end_time == "10:00"
    assert availability.available_slots[1].end_time == "10:30"


def test_build_availability_provider_selects_source(tmp_path) -> None:
    settings = _build_test_settings(tmp_path, "select.db")
    repository = DataRepository(settings)

    assert isinstance(
        build_availability_provider(repository, replace(settings, availability_source="seeded")),
        SeededAvailabilityProvider,
    )
    assert isinstance(
        build_availability_provider(
            repository, replace(settings, availability_source="repository")
        ),
        RepositoryAvailabilityProvider,
    )
    with pytest.raises(ValueError, match="availability_source"):
        build_availability_provider(repository, replace(settings, availability_source="crm"))
