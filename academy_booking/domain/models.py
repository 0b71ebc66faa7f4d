"""Domain models for 1:1 lesson matching and booking."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Optional


class BookingPipelineState(str, Enum):
    PENDING = "PENDING"
    VALIDATED = "VALIDATED"
    SCORED = "SCORED"
    RECOMMENDED = "RECOMMENDED"
    CONFLICT_CHECKED = "CONFLICT_CHECKED"
    BOOKED = "BOOKED"
    ALTERNATIVES_OFFERED = "ALTERNATIVES_OFFERED"
    ERROR = "ERROR"


@dataclass(frozen=True)
class SlotCapacity:
    max_students: int = 1
    min_students: int = 1
    current_enrollment: int = 0
    available_spots: int = 1


@dataclass(frozen=True)
class TimeSlot:
    """A bookable window; ``day_of_week`` counts from Sunday=0."""

    slot_id: str
    start_time: str
    end_time: str
    duration: int
    day_of_week: int
    is_available: bool = True
    capacity: SlotCapacity = field(default_factory=SlotCapacity)
    location: str = "Online"
    slot_date: Optional[str] = None


@dataclass(frozen=True)
class TeacherSelectionPreferences:
    preferred_teacher_ids: tuple[str, ...] = ()
    gender_preference: Optional[str] = None
    experience_level: Optional[str] = None
    teaching_styles: tuple[str, ...] = ()
    personality_traits: tuple[str, ...] = ()
    language_specializations: tuple[str, ...] = ()


@dataclass(frozen=True)
class LearningGoals:
    primary_objectives: tuple[str, ...] = ()
    skill_focus: tuple[str, ...] = ()
    improvement_areas: tuple[str, ...] = ()
    target_proficiency: Optional[str] = None


@dataclass(frozen=True)
class FlexibilityOptions:
    flexible_timing: bool = False
    flexible_teacher: bool = False
    flexible_duration: bool = False


@dataclass(frozen=True)
class SearchRadius:
    time_variation_minutes: int = 0
    date_variation_days: int = 0


@dataclass(frozen=True)
class MatchingCriteria:
    preferred_time_slots: tuple[TimeSlot, ...]
    duration_preference: Optional[int] = None
    teacher_preferences: TeacherSelectionPreferences = field(
        default_factory=TeacherSelectionPreferences
    )
    learning_goals: LearningGoals = field(default_factory=LearningGoals)
    urgency: str = "medium"
    flexibility: FlexibilityOptions = field(default_factory=FlexibilityOptions)
    max_search_radius: SearchRadius = field(default_factory=SearchRadius)


@dataclass(frozen=True)
class BookingRequest:
    request_id: str
    student_id: str
    course_id: str
    duration: int
    matching_criteria: MatchingCriteria
    request_type: str = "individual"
    priority: str = "normal"
    status: str = "pending"
    requested_at: Optional[str] = None


@dataclass(frozen=True)
class StudentRecord:
    student_id: str
    full_name: str
    email: Optional[str] = None


@dataclass(frozen=True)
class CourseRecord:
    course_id: str
    title: str
    course_type: str


@dataclass(frozen=True)
class TeacherReview:
    text: str
    rating: int
    student_name: str
    date: str


@dataclass(frozen=True)
class TeacherRatings:
    average_rating: float
    total_reviews: int
    recent_reviews: tuple[TeacherReview, ...] = ()


@dataclass(frozen=True)
class AvailabilitySummary:
    next_available_slot: Optional[TimeSlot]
    available_this_week: int
    available_next_week: int


@dataclass(frozen=True)
class TeacherPricing:
    rate_30_min: float = 50.0
    rate_60_min: float = 90.0
    currency: str = "USD"


@dataclass(frozen=True)
class TeacherProfile:
    teacher_id: str
    full_name: str
    experience_years: float
    specializations: tuple[str, ...]
    certifications: tuple[str, ...]
    languages_spoken: tuple[str, ...]
    ratings: TeacherRatings
    availability_summary: AvailabilitySummary
    pricing: TeacherPricing = field(default_factory=TeacherPricing)
    teaching_style: tuple[str, ...] = ()
    personality_traits: tuple[str, ...] = ()
    bio: str = ""


@dataclass(frozen=True)
class TeacherAvailability:
    teacher_id: str
    available_slots: tuple[TimeSlot, ...]
    minimum_advance_hours: int = 24
    maximum_advance_days: int = 30
    preferred_advance_hours: int = 48


@dataclass(frozen=True)
class ScoreBreakdown:
    availability: float
    experience: float
    specialization: float
    preference: float
    performance: float
    language: float


@dataclass(frozen=True)
class TeacherMatchingScore:
    teacher_id: str
    overall_score: float
    score_breakdown: ScoreBreakdown
    available_slots: tuple[TimeSlot, ...]
    confidence_level: float
    matching_rationale: str


@dataclass(frozen=True)
class BookingConstraints:
    latest_booking_time: Optional[str]
    cancellation_policy: str
    rescheduling_policy: str


@dataclass(frozen=True)
class BookingRecommendation:
    recommendation_id: str
    teacher_match: TeacherMatchingScore
    recommended_slot: TimeSlot
    alternative_slots: tuple[TimeSlot, ...]
    confidence: float
    booking_success_probability: float
    benefits: tuple[str, ...]
    drawbacks: tuple[str, ...]
    reason: str
    constraints: BookingConstraints


@dataclass(frozen=True)
class SchedulingConflict:
    conflict_id: str
    conflict_type: str
    severity: str
    entity_ids: tuple[str, ...]
    description: str
    detected_at: str


@dataclass(frozen=True)
class FlexibleOption:
    description: str
    option_type: str
    confidence_level: float


@dataclass(frozen=True)
class AlternativeBookingOptions:
    alternative_teachers: tuple[TeacherMatchingScore, ...]
    alternative_time_slots: tuple[TimeSlot, ...]
    alternative_durations: tuple[int, ...]
    waitlist_options: tuple[str, ...]
    flexible_options: tuple[FlexibleOption, ...]


@dataclass(frozen=True)
class Booking:
    booking_id: str
    booking_reference: str
    student_id: str
    teacher_id: str
    course_id: str
    time_slot: TimeSlot
    duration: int
    learning_goals: LearningGoals
    meeting_link: str
    status: str = "confirmed"
    location: str = "Online"


@dataclass(frozen=True)
class BookingMetrics:
    processing_time_ms: float
    teachers_evaluated: int
    time_slots_considered: int
    algorithm_version: str


@dataclass(frozen=True)
class BookingErrorDetail:
    code: str
    message: str
    category: str
    severity: str
    timestamp: str
    stack_trace: Optional[str] = None


@dataclass(frozen=True)
class BookingResult:
    request_id: str
    success: bool
    state: BookingPipelineState
    metrics: BookingMetrics
    booking: Optional[Booking] = None
    recommendations: Optional[tuple[BookingRecommendation, ...]] = None
    conflicts: Optional[tuple[SchedulingConflict, ...]] = None
    alternatives: Optional[AlternativeBookingOptions] = None
    error: Optional[BookingErrorDetail] = None

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["state"] = self.state.value
        return payload
