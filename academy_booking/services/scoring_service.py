"""Six-factor teacher scoring for 1:1 matching.

Each sub-score lands in [0, 1]. Defaults for criteria the student left empty
are applied here rather than on the request type, because they shift the
ranking and must stay stable:

* experience     -> 0.8 when no experience level is requested
* specialization -> 0.8 when no primary objectives are given
* preference     -> 0.5 when no teacher preference dimension is given
* language       -> 0.8 when no language is requested
"""

from __future__ import annotations

from typing import Iterable, Optional, Sequence

import numpy as np

from academy_booking.domain.constraints import (
    DEFAULT_SCORE_WEIGHTS,
    EXPERIENCE_BRACKETS,
    ScoreWeights,
    validate_score_weights,
)
from academy_booking.domain.models import (
    LearningGoals,
    MatchingCriteria,
    ScoreBreakdown,
    TeacherAvailability,
    TeacherMatchingScore,
    TeacherProfile,
    TeacherSelectionPreferences,
    TimeSlot,
)
from academy_booking.utils.logger import get_logger


logger = get_logger(__name__)

DEFAULT_EXPERIENCE_SCORE = 0.8
DEFAULT_SPECIALIZATION_SCORE = 0.8
DEFAULT_PREFERENCE_SCORE = 0.5
DEFAULT_LANGUAGE_SCORE = 0.8

BELOW_BRACKET_DECAY_PER_YEAR = 0.2
ABOVE_BRACKET_DECAY_PER_YEAR = 0.1
ABOVE_BRACKET_FLOOR = 0.7


def _clamp_unit(value: float) -> float:
    return float(min(1.0, max(0.0, value)))


def slots_overlap(first: TimeSlot, second: TimeSlot) -> bool:
    """Exact day/time match; partial overlaps do not count."""
    return first.start_time == second.start_time and first.day_of_week == second.day_of_week


def calculate_availability_score(
    available_slots: Sequence[TimeSlot],
    preferred_slots: Sequence[TimeSlot],
) -> float:
    if not available_slots or not preferred_slots:
        return 0.0
    matched = sum(
        1
        for preferred in preferred_slots
        if any(slots_overlap(preferred, available) for available in available_slots)
    )
    return matched / len(preferred_slots)


def calculate_experience_score(
    experience_years: float,
    preferences: TeacherSelectionPreferences,
) -> float:
    level = preferences.experience_level
    if not level:
        return DEFAULT_EXPERIENCE_SCORE
    bracket = EXPERIENCE_BRACKETS.get(level.lower())
    if bracket is None:
        logger.warning("Unknown experience level ignored | level=%s", level)
        return DEFAULT_EXPERIENCE_SCORE

    minimum, maximum = bracket
    if minimum <= experience_years <= maximum:
        return 1.0
    if experience_years < minimum:
        return max(0.0, 1.0 - (minimum - experience_years) * BELOW_BRACKET_DECAY_PER_YEAR)
    return max(
        ABOVE_BRACKET_FLOOR,
        1.0 - (experience_years - maximum) * ABOVE_BRACKET_DECAY_PER_YEAR,
    )


def _substring_match_either_way(left: str, right: str) -> bool:
    left_lower = left.lower()
    right_lower = right.lower()
    return left_lower in right_lower or right_lower in left_lower


def calculate_specialization_score(
    specializations: Sequence[str],
    learning_goals: LearningGoals,
) -> float:
    objectives = learning_goals.primary_objectives
    if not objectives:
        return DEFAULT_SPECIALIZATION_SCORE
    matched = sum(
        1
        for objective in objectives
        if any(_substring_match_either_way(spec, objective) for spec in specializations)
    )
    return matched / len(objectives)


def _overlap_fraction(wanted: Sequence[str], offered: Iterable[str]) -> float:
    offered_set = set(offered)
    return sum(1 for item in wanted if item in offered_set) / len(wanted)


def calculate_preference_score(
    teacher: TeacherProfile,
    preferences: TeacherSelectionPreferences,
) -> float:
    """Average of the preference dimensions the student actually filled in."""
    factors: list[float] = []
    if preferences.preferred_teacher_ids:
        factors.append(1.0 if teacher.teacher_id in preferences.preferred_teacher_ids else 0.0)
    if preferences.teaching_styles:
        factors.append(_overlap_fraction(preferences.teaching_styles, teacher.teaching_style))
    if preferences.personality_traits:
        factors.append(
            _overlap_fraction(preferences.personality_traits, teacher.personality_traits)
        )
    if not factors:
        return DEFAULT_PREFERENCE_SCORE
    return sum(factors) / len(factors)


def calculate_performance_score(average_rating: float) -> float:
    return _clamp_unit(average_rating / 5.0)


def calculate_language_score(
    languages_spoken: Sequence[str],
    preferences: TeacherSelectionPreferences,
) -> float:
    requested = preferences.language_specializations
    if not requested:
        return DEFAULT_LANGUAGE_SCORE
    spoken = [language.lower() for language in languages_spoken]
    matched = sum(
        1
        for language in requested
        if any(language.lower() in candidate for candidate in spoken)
    )
    return matched / len(requested)


def calculate_confidence_level(overall_score: float) -> float:
    return min(0.9, overall_score * 0.8 + 0.1)


def _format_years(years: float) -> str:
    return str(int(years)) if float(years).is_integer() else f"{years:g}"


def generate_matching_rationale(teacher: TeacherProfile, overall_score: float) -> str:
    if overall_score > 0.8:
        return (
            f"Excellent match: {teacher.full_name} has {_format_years(teacher.experience_years)} "
            "years of experience and specializes in your learning areas."
        )
    if overall_score > 0.6:
        return (
            f"Good match: {teacher.full_name} meets most of your criteria "
            "and has strong reviews."
        )
    return (
        f"Potential match: {teacher.full_name} is available but may not perfectly "
        "match all preferences."
    )


def combine_scores(breakdown: ScoreBreakdown, weights: ScoreWeights) -> float:
    components = np.array(
        [
            breakdown.availability,
            breakdown.experience,
            breakdown.specialization,
            breakdown.preference,
            breakdown.performance,
            breakdown.language,
        ],
        dtype=float,
    )
    return _clamp_unit(float(np.dot(np.array(weights.as_tuple(), dtype=float), components)))


def score_teacher(
    teacher: TeacherProfile,
    availability: TeacherAvailability,
    criteria: MatchingCriteria,
    weights: Optional[ScoreWeights] = None,
) -> TeacherMatchingScore:
    """Score one teacher against the request criteria."""
    resolved_weights = weights or DEFAULT_SCORE_WEIGHTS
    preferences = criteria.teacher_preferences

    breakdown = ScoreBreakdown(
        availability=calculate_availability_score(
            availability.available_slots,
            criteria.preferred_time_slots,
        ),
        experience=calculate_experience_score(teacher.experience_years, preferences),
        specialization=calculate_specialization_score(
            teacher.specializations,
            criteria.learning_goals,
        ),
        preference=calculate_preference_score(teacher, preferences),
        performance=calculate_performance_score(teacher.ratings.average_rating),
        language=calculate_language_score(teacher.languages_spoken, preferences),
    )
    overall_score = combine_scores(breakdown, resolved_weights)

    return TeacherMatchingScore(
        teacher_id=teacher.teacher_id,
        overall_score=overall_score,
        score_breakdown=breakdown,
        available_slots=availability.available_slots,
        confidence_level=calculate_confidence_level(overall_score),
        matching_rationale=generate_matching_rationale(teacher, overall_score),
    )


def rank_teacher_scores(scores: Iterable[TeacherMatchingScore]) -> list[TeacherMatchingScore]:
    """Stable descending sort; equal scores keep their fetch order."""
    return sorted(scores, key=lambda score: score.overall_score, reverse=True)


def count_time_slots(scores: Iterable[TeacherMatchingScore]) -> int:
    return sum(len(score.available_slots) for score in scores)


validate_score_weights(DEFAULT_SCORE_WEIGHTS)
