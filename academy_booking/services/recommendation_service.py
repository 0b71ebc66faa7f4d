"""Turn ranked teacher scores into concrete booking recommendations."""

from __future__ import annotations

from datetime import date, timedelta
from typing import Optional, Sequence

from academy_booking.domain.constraints import (
    CANCELLATION_POLICY,
    LATEST_BOOKING_LEAD_HOURS,
    RESCHEDULING_POLICY,
)
from academy_booking.domain.models import (
    AlternativeBookingOptions,
    BookingConstraints,
    BookingRecommendation,
    BookingRequest,
    FlexibleOption,
    ScoreBreakdown,
    TeacherMatchingScore,
    TimeSlot,
)
from academy_booking.services.availability_service import build_one_on_one_slot
from academy_booking.services.scoring_service import slots_overlap
from academy_booking.utils.time_utils import slot_start


DEFAULT_RECOMMENDATION_LIMIT = 5
DEFAULT_ALTERNATIVE_SLOT_LIMIT = 3
DEFAULT_ALTERNATIVE_TEACHER_LIMIT = 3
DEFAULT_ALTERNATIVE_WINDOW_DAYS = 7
ALTERNATIVE_SLOT_START = "10:00"

FLEXIBLE_OPTIONS: tuple[FlexibleOption, ...] = (
    FlexibleOption(
        description="Consider sessions at different times of day",
        option_type="time",
        confidence_level=0.8,
    ),
    FlexibleOption(
        description="Try different teachers with similar expertise",
        option_type="teacher",
        confidence_level=0.7,
    ),
)


def find_best_time_slot(
    available: Sequence[TimeSlot],
    preferred: Sequence[TimeSlot],
) -> Optional[TimeSlot]:
    """First exact match in preference order, else the first open slot."""
    for wanted in preferred:
        for candidate in available:
            if slots_overlap(wanted, candidate):
                return candidate
    return available[0] if available else None


def calculate_booking_success_probability(score: TeacherMatchingScore) -> float:
    return min(0.95, score.overall_score * 0.9 + 0.05)


def generate_benefits(breakdown: ScoreBreakdown) -> tuple[str, ...]:
    benefits: list[str] = []
    if breakdown.experience > 0.8:
        benefits.append("Highly experienced teacher")
    if breakdown.performance > 0.8:
        benefits.append("Excellent student ratings")
    if breakdown.availability > 0.7:
        benefits.append("Good availability match")
    if breakdown.specialization > 0.7:
        benefits.append("Specializes in your learning goals")
    return tuple(benefits)


def generate_drawbacks(breakdown: ScoreBreakdown) -> tuple[str, ...]:
    drawbacks: list[str] = []
    if breakdown.availability < 0.5:
        drawbacks.append("Limited availability matching your preferences")
    if breakdown.experience < 0.5:
        drawbacks.append("Less experienced teacher")
    if breakdown.specialization < 0.5:
        drawbacks.append("May not specialize in your specific learning goals")
    return tuple(drawbacks)


def calculate_latest_booking_time(slot: TimeSlot) -> Optional[str]:
    """ISO timestamp 24h before the slot; ``None`` for undated slots."""
    start = slot_start(slot.slot_date, slot.start_time)
    if start is None:
        return None
    return (start - timedelta(hours=LATEST_BOOKING_LEAD_HOURS)).isoformat()


def build_recommendation(
    score: TeacherMatchingScore,
    request: BookingRequest,
    *,
    alternative_limit: int = DEFAULT_ALTERNATIVE_SLOT_LIMIT,
) -> Optional[BookingRecommendation]:
    best_slot = find_best_time_slot(
        score.available_slots,
        request.matching_criteria.preferred_time_slots,
    )
    if best_slot is None:
        return None

    alternatives = tuple(
        slot for slot in score.available_slots if slot.slot_id != best_slot.slot_id
    )[:alternative_limit]

    return BookingRecommendation(
        recommendation_id=f"rec-{request.request_id}-{score.teacher_id}",
        teacher_match=score,
        recommended_slot=best_slot,
        alternative_slots=alternatives,
        confidence=score.confidence_level,
        booking_success_probability=calculate_booking_success_probability(score),
        benefits=generate_benefits(score.score_breakdown),
        drawbacks=generate_drawbacks(score.score_breakdown),
        reason=score.matching_rationale,
        constraints=BookingConstraints(
            latest_booking_time=calculate_latest_booking_time(best_slot),
            cancellation_policy=CANCELLATION_POLICY,
            rescheduling_policy=RESCHEDULING_POLICY,
        ),
    )


def build_recommendations(
    ranked_scores: Sequence[TeacherMatchingScore],
    request: BookingRequest,
    *,
    limit: int = DEFAULT_RECOMMENDATION_LIMIT,
    alternative_limit: int = DEFAULT_ALTERNATIVE_SLOT_LIMIT,
) -> list[BookingRecommendation]:
    """Pair the top-ranked teachers with a slot, skipping teachers with none.

    ``ranked_scores`` must already be sorted; only the first ``limit`` teachers
    are considered, so the output can hold fewer than ``limit`` entries.
    """
    recommendations: list[BookingRecommendation] = []
    for score in ranked_scores[:limit]:
        recommendation = build_recommendation(
            score,
            request,
            alternative_limit=alternative_limit,
        )
        if recommendation is not None:
            recommendations.append(recommendation)
    return recommendations


def generate_alternative_time_slots(
    today: date,
    days: int = DEFAULT_ALTERNATIVE_WINDOW_DAYS,
) -> tuple[TimeSlot, ...]:
    return tuple(
        build_one_on_one_slot(
            slot_id=f"alt-slot-{offset}",
            slot_date=today + timedelta(days=offset),
            start_time=ALTERNATIVE_SLOT_START,
        )
        for offset in range(1, days + 1)
    )


def build_alternative_options(
    ranked_scores: Sequence[TeacherMatchingScore],
    request: BookingRequest,
    today: date,
    *,
    teacher_limit: int = DEFAULT_ALTERNATIVE_TEACHER_LIMIT,
    window_days: int = DEFAULT_ALTERNATIVE_WINDOW_DAYS,
) -> AlternativeBookingOptions:
    """Fallback choices when the top recommendation cannot be committed."""
    return AlternativeBookingOptions(
        alternative_teachers=tuple(ranked_scores[1 : 1 + teacher_limit]),
        alternative_time_slots=generate_alternative_time_slots(today, window_days),
        alternative_durations=(60,) if request.duration == 30 else (30,),
        waitlist_options=(),
        flexible_options=FLEXIBLE_OPTIONS,
    )
