"""Domain-level rules for 1:1 teacher matching."""

from __future__ import annotations

import math
from dataclasses import astuple, dataclass

from academy_booking.domain.models import BookingRequest


ALLOWED_DURATIONS: tuple[int, ...] = (30, 60)

EXPERIENCE_BRACKETS: dict[str, tuple[float, float]] = {
    "beginner": (0.0, 2.0),
    "intermediate": (2.0, 5.0),
    "advanced": (5.0, 10.0),
    "expert": (10.0, math.inf),
}

CANCELLATION_POLICY = "24 hours before session"
RESCHEDULING_POLICY = "Up to 2 hours before session"
LATEST_BOOKING_LEAD_HOURS = 24


@dataclass(frozen=True)
class ScoreWeights:
    availability: float = 0.30
    experience: float = 0.20
    specialization: float = 0.20
    preference: float = 0.15
    performance: float = 0.10
    language: float = 0.05

    def as_tuple(self) -> tuple[float, ...]:
        return astuple(self)


DEFAULT_SCORE_WEIGHTS = ScoreWeights()


def validate_score_weights(weights: ScoreWeights) -> None:
    values = weights.as_tuple()
    if any(not 0.0 <= value <= 1.0 for value in values):
        raise ValueError("score weights must each be between 0 and 1")
    if not math.isclose(sum(values), 1.0, abs_tol=1e-9):
        raise ValueError("score weights must sum to 1.0")


def validate_request_shape(request: BookingRequest) -> None:
    """Structural checks that need no lookup."""
    if request.duration not in ALLOWED_DURATIONS:
        raise ValueError("Duration must be either 30 or 60 minutes")
    if not request.matching_criteria.preferred_time_slots:
        raise ValueError("At least one preferred time slot is required")
