from __future__ import annotations

from dataclasses import replace
from datetime import date, datetime, timezone

import pytest

from academy_booking.domain.constraints import DEFAULT_SCORE_WEIGHTS
from academy_booking.domain.models import (
    BookingPipelineState,
    BookingRequest,
    LearningGoals,
    MatchingCriteria,
    SchedulingConflict,
    TeacherAvailability,
    TeacherSelectionPreferences,
    TimeSlot,
)
from academy_booking.repository.data_repository import DataRepository
from academy_booking.services.availability_service import build_one_on_one_slot
from academy_booking.services.booking_service import OneOnOneBookingService
from academy_booking.utils.config import get_settings

NOW = datetime(2026, 2, 27, 12, 0, tzinfo=timezone.utc)
MONDAY = date(2026, 3, 2)
TUESDAY = date(2026, 3, 3)


class StubAvailabilityProvider:
    def __init__(self, slots_by_teacher: dict[str, tuple[TimeSlot, ...]]) -> None:
        self._slots_by_teacher = slots_by_teacher
        self.calls: list[str] = []

    def get_teacher_availability(self, teacher_id: str) -> TeacherAvailability:
        self.calls.append(teacher_id)
        return TeacherAvailability(
            teacher_id=teacher_id,
            available_slots=self._slots_by_teacher.get(teacher_id, ()),
        )


class FailingAvailabilityProvider:
    def get_teacher_availability(self, teacher_id: str) -> TeacherAvailability:
        raise RuntimeError("calendar feed unavailable")


class StubConflictDetector:
    def __init__(self, conflicts: list[SchedulingConflict] | None = None) -> None:
        self._conflicts = conflicts or []
        self.calls = 0

    def detect_booking_conflicts(self, student_id, teacher_id, slot, duration):
        self.calls += 1
        return list(self._conflicts)


def _build_test_settings(tmp_path, filename: str = "booking_service.db"):
    get_settings.cache_clear()
    return replace(get_settings(), database_path=tmp_path / filename)


def _build_repository(settings, teacher_count: int = 2) -> DataRepository:
    repository = DataRepository(settings)
    repository.initialize_database()
    repository.create_student("student-1", "Alicia Gomez", "alicia@example.com")
    repository.create_course("course-1v1", "Private Coaching", "1-on-1")
    teachers = [
        ("T1", "Emma Clarke", 6, ("Business English", "Conversation"), 4.8),
        ("T2", "Liam Patel", 3, ("Pronunciation",), 4.5),
        ("T3", "Sofia Rossi", 12, ("Grammar",), 4.9),
        ("T4", "Noah Kim", 1, ("Conversation",), 4.3),
        ("T5", "Chloe Martin", 8, ("Business English",), 4.7),
    ]
    for teacher_id, name, years, specializations, rating in teachers[:teacher_count]:
        repository.create_teacher(
            teacher_id,
            name,
            experience_years=years,
            specializations=specializations,
            average_rating=rating,
            total_reviews=10,
        )
    return repository


def _request(**overrides) -> BookingRequest:
    defaults = {
        "request_id": "req-1",
        "student_id": "student-1",
        "course_id": "course-1v1",
        "duration": 60,
        "matching_criteria": MatchingCriteria(
            preferred_time_slots=(build_one_on_one_slot("pref-1", MONDAY, "09:00"),),
            teacher_preferences=TeacherSelectionPreferences(experience_level="advanced"),
            learning_goals=LearningGoals(primary_objectives=("Business English",)),
        ),
    }
    defaults.update(overrides)
    return BookingRequest(**defaults)


def _default_slots() -> dict[str, tuple[TimeSlot, ...]]:
    return {
        "T1": (build_one_on_one_slot("t1-mon-9", MONDAY, "09:00"),),
        "T2": (
            build_one_on_one_slot("t2-tue-14", TUESDAY, "14:00"),
            build_one_on_one_slot("t2-tue-9", TUESDAY, "09:00"),
        ),
        "T3": (build_one_on_one_slot("t3-mon-14", MONDAY, "14:00"),),
        "T4": (build_one_on_one_slot("t4-tue-9", TUESDAY, "09:00"),),
        "T5": (build_one_on_one_slot("t5-mon-14", MONDAY, "14:00"),),
    }


def _build_service(
    settings,
    repository: DataRepository,
    *,
    availability_provider=None,
    conflict_detector=None,
) -> OneOnOneBookingService:
    return OneOnOneBookingService(
        repository=repository,
        settings=settings,
        availability_provider=availability_provider or StubAvailabilityProvider(_default_slots()),
        conflict_detector=conflict_detector or StubConflictDetector(),
        clock=lambda: NOW,
    )


# --- Validation ---

def test_invalid_duration_is_rejected(tmp_path) -> None:
    settings = _build_test_settings(tmp_path)
    service = _build_service(settings, _build_repository(settings))

    result = service.book_1v1_session(_request(duration=45))

    assert result.success is False
    assert result.state is BookingPipelineState.ERROR
    assert result.error.code == "BOOKING_FAILED"
    assert result.error.category == "validation"
    assert result.error.message == "Duration must be either 30 or 60 minutes"
    assert result.error.stack_trace is None
    assert result.metrics.teachers_evaluated == 0
    assert result.metrics.time_slots_considered == 0


def test_missing_preferred_slots_abort_before_scoring(tmp_path) -> None:
    settings = _build_test_settings(tmp_path)
    provider = StubAvailabilityProvider(_default_slots())
    service = _build_service(settings, _build_repository(settings), availability_provider=provider)

    result = service.book_1v1_session(
        _request(matching_criteria=MatchingCriteria(preferred_time_slots=()))
    )

    assert result.success is False
    assert result.error.message == "At least one preferred time slot is required"
    assert provider.calls == []


def test_empty_student_id_is_rejected(tmp_path) -> None:
    settings = _build_test_settings(tmp_path)
    service = _build_service(settings, _build_repository(settings))

    result = service.book_1v1_session(_request(student_id=""))

    assert result.success is False
    assert result.error.message.startswith("Student not found")


def test_unknown_course_is_rejected(tmp_path) -> None:
    settings = _build_test_settings(tmp_path)
    service = _build_service(settings, _build_repository(settings))

    result = service.book_1v1_session(_request(course_id="course-missing"))

    assert result.error.message == "Course not found: course-missing"
    assert result.error.category == "validation"


# --- Happy path ---

def test_best_teacher_is_booked_in_preferred_slot(tmp_path) -> None:
    settings = _build_test_settings(tmp_path)
    repository = _build_repository(settings)
    detector = StubConflictDetector()
    service = _build_service(settings, repository, conflict_detector=detector)

    result = service.book_1v1_session(_request())

    assert result.success is True
    assert result.state is BookingPipelineState.BOOKED
    assert result.error is None
    booking = result.booking
    assert booking.teacher_id == "T1"
    assert booking.time_slot.slot_id == "t1-mon-9"
    assert booking.time_slot.start_time == "09:00"
    assert booking.time_slot.day_of_week == 1
    assert booking.status == "confirmed"
    assert booking.location == "Online"
    assert booking.booking_id.startswith(f"booking-{int(NOW.timestamp() * 1000)}-")
    assert booking.booking_reference == f"1V1-{booking.booking_id[-8:].upper()}"
    assert booking.meeting_link.endswith(booking.booking_id)

    top = result.recommendations[0]
    assert top.teacher_match.teacher_id == "T1"
    assert top.teacher_match.overall_score > 0.7
    assert top.constraints.latest_booking_time == "2026-03-01T09:00:00+00:00"
    assert detector.calls == 1

    assert result.metrics.teachers_evaluated == 2
    assert result.metrics.time_slots_considered == 3
    assert result.metrics.algorithm_version == settings.algorithm_version
    assert result.metrics.processing_time_ms >= 0.0


def test_booking_is_persisted_and_retrievable(tmp_path) -> None:
    settings = _build_test_settings(tmp_path)
    repository = _build_repository(settings)
    service = _build_service(settings, repository)

    result = service.book_1v1_session(_request())
    record = service.get_booking(result.booking.booking_id)

    assert repository.count_bookings() == 1
    assert record is not None
    assert record.teacher_id == "T1"
    assert record.slot_date == "2026-03-02"
    assert record.end_time == "10:00"


def test_booking_not_persisted_when_disabled(tmp_path) -> None:
    settings = replace(_build_test_settings(tmp_path), persist_bookings=False)
    repository = _build_repository(settings)
    service = _build_service(settings, repository)

    result = service.book_1v1_session(_request())

    assert result.success is True
    assert repository.count_bookings() == 0


def test_second_booking_of_same_slot_conflicts_with_repository_detector(tmp_path) -> None:
    settings = _build_test_settings(tmp_path)
    repository = _build_repository(settings)
    repository.create_student("student-2", "Kenji Watanabe")
    service = OneOnOneBookingService(
        repository=repository,
        settings=settings,
        availability_provider=StubAvailabilityProvider(_default_slots()),
        clock=lambda: NOW,
    )

    first = service.book_1v1_session(_request())
    second = service.book_1v1_session(_request(request_id="req-2", student_id="student-2"))

    assert first.success is True
    assert second.success is False
    assert second.state is BookingPipelineState.ALTERNATIVES_OFFERED
    assert second.conflicts[0].conflict_id == f"conflict-{first.booking.booking_id}"
    assert repository.count_bookings() == 1


def test_result_serializes_state_as_string(tmp_path) -> None:
    settings = _build_test_settings(tmp_path)
    service = _build_service(settings, _build_repository(settings))

    payload = service.book_1v1_session(_request()).to_dict()

    assert payload["state"] == "BOOKED"
    assert payload["booking"]["teacher_id"] == "T1"


# --- No teachers / conflicts ---

def test_no_teachers_yields_no_available_teachers(tmp_path) -> None:
    settings = _build_test_settings(tmp_path)
    service = _build_service(settings, _build_repository(settings, teacher_count=0))

    result = service.book_1v1_session(_request())

    assert result.success is False
    assert result.state is BookingPipelineState.ERROR
    assert result.error.code == "NO_AVAILABLE_TEACHERS"
    assert result.error.category == "resource"
    assert result.error.severity == "warning"
    assert result.recommendations == ()
    assert result.booking is None


def test_teachers_without_slots_yield_no_available_teachers(tmp_path) -> None:
    settings = _build_test_settings(tmp_path)
    service = _build_service(
        settings,
        _build_repository(settings),
        availability_provider=StubAvailabilityProvider({}),
    )

    result = service.book_1v1_session(_request())

    assert result.error.code == "NO_AVAILABLE_TEACHERS"
    assert result.metrics.teachers_evaluated == 2


def test_conflict_offers_alternatives_instead_of_booking(tmp_path) -> None:
    settings = _build_test_settings(tmp_path)
    repository = _build_repository(settings, teacher_count=5)
    conflict = SchedulingConflict(
        conflict_id="conflict-x",
        conflict_type="time_overlap",
        severity="high",
        entity_ids=("T1", "booking-x"),
        description="Teacher already booked",
        detected_at=NOW.isoformat(),
    )
    service = _build_service(
        settings,
        repository,
        conflict_detector=StubConflictDetector([conflict]),
    )

    result = service.book_1v1_session(_request())

    assert result.success is False
    assert result.state is BookingPipelineState.ALTERNATIVES_OFFERED
    assert result.booking is None
    assert result.error is None
    assert result.conflicts == (conflict,)
    alternatives = result.alternatives
    assert len(alternatives.alternative_teachers) == 3
    assert result.recommendations[0].teacher_match.teacher_id == "T1"
    assert "T1" not in {score.teacher_id for score in alternatives.alternative_teachers}
    assert alternatives.alternative_durations == (30,)
    assert len(alternatives.alternative_time_slots) == settings.alternative_window_days
    assert repository.count_bookings() == 0


# --- Collaborator failures ---

def test_availability_failure_is_reported_as_system_error(tmp_path) -> None:
    settings = _build_test_settings(tmp_path)
    service = _build_service(
        settings,
        _build_repository(settings),
        availability_provider=FailingAvailabilityProvider(),
    )

    result = service.book_1v1_session(_request())

    assert result.success is False
    assert result.state is BookingPipelineState.ERROR
    assert result.error.code == "BOOKING_FAILED"
    assert result.error.category == "system"
    assert result.error.message == "calendar feed unavailable"
    assert "RuntimeError" in result.error.stack_trace


def test_teacher_listing_failure_is_reported_as_system_error(tmp_path, monkeypatch) -> None:
    settings = _build_test_settings(tmp_path)
    repository = _build_repository(settings)
    service = _build_service(settings, repository)

    def _boom():
        raise RuntimeError("teacher directory offline")

    monkeypatch.setattr(repository, "list_active_1v1_teachers", _boom)

    result = service.book_1v1_session(_request())

    assert result.error.category == "system"
    assert "teacher directory offline" in result.error.message


# --- Teachers listing and caching ---

def test_available_teachers_are_cached_between_calls(tmp_path, monkeypatch) -> None:
    settings = _build_test_settings(tmp_path)
    repository = _build_repository(settings)
    service = _build_service(settings, repository)
    calls: list[int] = []
    original = repository.list_active_1v1_teachers

    def _counting():
        calls.append(1)
        return original()

    monkeypatch.setattr(repository, "list_active_1v1_teachers", _counting)

    first = service.get_available_teachers(_request())
    second = service.get_available_teachers(_request())

    assert [profile.teacher_id for profile in first] == ["T1", "T2"]
    assert [profile.teacher_id for profile in second] == ["T1", "T2"]
    assert len(calls) == 1

    service.clear_caches(["teachers"])
    service.get_available_teachers(_request())
    assert len(calls) == 2


def test_available_teacher_profiles_carry_summary_and_pricing(tmp_path) -> None:
    settings = _build_test_settings(tmp_path)
    service = _build_service(settings, _build_repository(settings))

    profile = service.get_available_teachers(_request())[0]

    assert profile.full_name == "Emma Clarke"
    assert profile.availability_summary.next_available_slot.slot_id == "t1-mon-9"
    assert profile.availability_summary.available_this_week == 0
    assert profile.availability_summary.available_next_week == 1
    assert profile.pricing.rate_30_min == 50
    assert profile.pricing.rate_60_min == 90


def test_equal_scores_keep_fetch_order(tmp_path) -> None:
    settings = _build_test_settings(tmp_path)
    repository = DataRepository(settings)
    repository.initialize_database()
    repository.create_teacher("T-b", "Teacher B", experience_years=5, average_rating=4.0)
    repository.create_teacher("T-a", "Teacher A", experience_years=5, average_rating=4.0)
    slot = build_one_on_one_slot("s", MONDAY, "09:00")
    service = _build_service(
        settings,
        repository,
        availability_provider=StubAvailabilityProvider({"T-b": (slot,), "T-a": (slot,)}),
    )
    teachers = service.get_available_teachers(_request())

    ranked = service.score_teachers(teachers, _request().matching_criteria)

    assert [score.teacher_id for score in ranked] == ["T-b", "T-a"]
    assert ranked[0].overall_score == ranked[1].overall_score


def test_invalid_weights_are_rejected(tmp_path) -> None:
    settings = _build_test_settings(tmp_path)
    with pytest.raises(ValueError):
        OneOnOneBookingService(
            repository=DataRepository(settings),
            settings=settings,
            availability_provider=StubAvailabilityProvider({}),
            conflict_detector=StubConflictDetector(),
            weights=replace(DEFAULT_SCORE_WEIGHTS, availability=0.9),
        )


def test_inactive_and_group_only_teachers_are_not_candidates(tmp_path) -> None:
    settings = _build_test_settings(tmp_path)
    repository = _build_repository(settings)
    repository.create_teacher("T-off", "Retired Teacher", is_active=False)
    repository.create_teacher("T-group", "Group Teacher", available_for_1v1=False)
    service = _build_service(settings, repository)

    teachers = service.get_available_teachers(_request())

    assert [profile.teacher_id for profile in teachers] == ["T1", "T2"]
