"""Scheduling conflict detection for a proposed 1:1 booking."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional, Protocol

from academy_booking.domain.models import SchedulingConflict, TimeSlot
from academy_booking.repository.data_repository import BookingRecord, DataRepository
from academy_booking.utils.logger import get_logger
from academy_booking.utils.time_utils import clock_to_minutes


logger = get_logger(__name__)


class ConflictDetector(Protocol):
    def detect_booking_conflicts(
        self,
        student_id: str,
        teacher_id: str,
        slot: TimeSlot,
        duration: int,
    ) -> list[SchedulingConflict]:
        ...


def ranges_intersect(first_start: int, first_end: int, second_start: int, second_end: int) -> bool:
    return first_start < second_end and second_start < first_end


class RepositoryConflictDetector:
    """Flags confirmed bookings that collide with the proposed session.

    A collision is any confirmed booking of the same teacher or the same
    student on the same date whose minute range intersects
    ``[start, start + duration)``. Undated slots are compared by weekday.
    """

    def __init__(self, repository: DataRepository) -> None:
        self._repository = repository

    def _to_conflict(
        self,
        existing: BookingRecord,
        student_id: str,
        teacher_id: str,
        detected_at: str,
    ) -> SchedulingConflict:
        if existing.teacher_id == teacher_id:
            party = f"teacher {teacher_id}"
            entity_ids = (teacher_id, existing.booking_id)
        else:
            party = f"student {student_id}"
            entity_ids = (student_id, existing.booking_id)
        return SchedulingConflict(
            conflict_id=f"conflict-{existing.booking_id}",
            conflict_type="time_overlap",
            severity="high",
            entity_ids=entity_ids,
            description=(
                f"Overlaps booking {existing.booking_reference} for {party} "
                f"({existing.start_time}-{existing.end_time})"
            ),
            detected_at=detected_at,
        )

    def detect_booking_conflicts(
        self,
        student_id: str,
        teacher_id: str,
        slot: TimeSlot,
        duration: int,
        now: Optional[datetime] = None,
    ) -> list[SchedulingConflict]:
        proposed_start = clock_to_minutes(slot.start_time)
        proposed_end = proposed_start + duration
        existing_bookings = self._repository.list_confirmed_bookings_for(
            teacher_id=teacher_id,
            student_id=student_id,
            slot_date=slot.slot_date,
            day_of_week=slot.day_of_week,
        )

        detected_at = (now or datetime.now(timezone.utc)).isoformat()
        conflicts = [
            self._to_conflict(existing, student_id, teacher_id, detected_at)
            for existing in existing_bookings
            if ranges_intersect(
                proposed_start,
                proposed_end,
                clock_to_minutes(existing.start_time),
                clock_to_minutes(existing.start_time) + existing.duration,
            )
        ]
        if conflicts:
            logger.info(
                "Booking conflicts detected | teacher_id=%s | student_id=%s | slot_id=%s | count=%s",
                teacher_id,
                student_id,
                slot.slot_id,
                len(conflicts),
            )
        return conflicts
