"""HTTP controller layer for 1:1 booking."""

from __future__ import annotations

import uuid
from dataclasses import asdict
from datetime import date, datetime, timezone
from typing import Any, Literal

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field, model_validator

from academy_booking.controllers.dependencies import get_booking_service, require_api_token
from academy_booking.domain.models import (
    BookingRequest,
    FlexibilityOptions,
    LearningGoals,
    MatchingCriteria,
    SearchRadius,
    TeacherProfile,
    TeacherSelectionPreferences,
    TimeSlot,
)
from academy_booking.services.availability_service import ONE_ON_ONE_CAPACITY
from academy_booking.services.booking_service import (
    OneOnOneBookingService,
    TeacherLookupError,
)
from academy_booking.utils.logger import get_logger
from academy_booking.utils.time_utils import add_minutes, day_of_week_index


logger = get_logger(__name__)

router = APIRouter(tags=["booking"])

CLOCK_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"


class TimeSlotPayload(BaseModel):
    slot_id: str = Field(min_length=1)
    start_time: str = Field(pattern=CLOCK_PATTERN)
    end_time: str | None = Field(default=None, pattern=CLOCK_PATTERN)
    duration: int = Field(default=60, gt=0)
    day_of_week: int | None = Field(default=None, ge=0, le=6)
    slot_date: date | None = None
    location: str = "Online"

    @model_validator(mode="after")
    def resolve_day_of_week(self) -> "TimeSlotPayload":
        if self.slot_date is not None:
            derived = day_of_week_index(self.slot_date)
            if self.day_of_week is not None and self.day_of_week != derived:
                raise ValueError("day_of_week does not match slot_date")
            self.day_of_week = derived
        if self.day_of_week is None:
            raise ValueError("either day_of_week or slot_date is required")
        return self

    def to_domain(self) -> TimeSlot:
        return TimeSlot(
            slot_id=self.slot_id,
            start_time=self.start_time,
            end_time=self.end_time or add_minutes(self.start_time, self.duration),
            duration=self.duration,
            day_of_week=int(self.day_of_week),
            is_available=True,
            capacity=ONE_ON_ONE_CAPACITY,
            location=self.location,
            slot_date=self.slot_date.isoformat() if self.slot_date else None,
        )


class TeacherPreferencesPayload(BaseModel):
    preferred_teacher_ids: list[str] = Field(default_factory=list)
    gender_preference: str | None = None
    experience_level: Literal["beginner", "intermediate", "advanced", "expert"] | None = None
    teaching_styles: list[str] = Field(default_factory=list)
    personality_traits: list[str] = Field(default_factory=list)
    language_specializations: list[str] = Field(default_factory=list)

    def to_domain(self) -> TeacherSelectionPreferences:
        return TeacherSelectionPreferences(
            preferred_teacher_ids=tuple(self.preferred_teacher_ids),
            gender_preference=self.gender_preference,
            experience_level=self.experience_level,
            teaching_styles=tuple(self.teaching_styles),
            personality_traits=tuple(self.personality_traits),
            language_specializations=tuple(self.language_specializations),
        )


class LearningGoalsPayload(BaseModel):
    primary_objectives: list[str] = Field(default_factory=list)
    skill_focus: list[str] = Field(default_factory=list)
    improvement_areas: list[str] = Field(default_factory=list)
    target_proficiency: str | None = None

    def to_domain(self) -> LearningGoals:
        return LearningGoals(
            primary_objectives=tuple(self.primary_objectives),
            skill_focus=tuple(self.skill_focus),
            improvement_areas=tuple(self.improvement_areas),
            target_proficiency=self.target_proficiency,
        )


class FlexibilityPayload(BaseModel):
    flexible_timing: bool = False
    flexible_teacher: bool = False
    flexible_duration: bool = False


class SearchRadiusPayload(BaseModel):
    time_variation_minutes: int = Field(default=0, ge=0)
    date_variation_days: int = Field(default=0, ge=0)


class MatchingCriteriaPayload(BaseModel):
    preferred_time_slots: list[TimeSlotPayload] = Field(default_factory=list)
    duration_preference: int | None = None
    teacher_preferences: TeacherPreferencesPayload = Field(
        default_factory=TeacherPreferencesPayload
    )
    learning_goals: LearningGoalsPayload = Field(default_factory=LearningGoalsPayload)
    urgency: Literal["low", "medium", "high"] = "medium"
    flexibility: FlexibilityPayload = Field(default_factory=FlexibilityPayload)
    max_search_radius: SearchRadiusPayload = Field(default_factory=SearchRadiusPayload)

    def to_domain(self) -> MatchingCriteria:
        return MatchingCriteria(
            preferred_time_slots=tuple(slot.to_domain() for slot in self.preferred_time_slots),
            duration_preference=self.duration_preference,
            teacher_preferences=self.teacher_preferences.to_domain(),
            learning_goals=self.learning_goals.to_domain(),
            urgency=self.urgency,
            flexibility=FlexibilityOptions(**self.flexibility.model_dump()),
            max_search_radius=SearchRadius(**self.max_search_radius.model_dump()),
        )


class BookingRequestPayload(BaseModel):
    """Duration and slot presence are checked by the engine, not here."""

    request_id: str | None = None
    student_id: str
    course_id: str
    duration: int
    matching_criteria: MatchingCriteriaPayload
    request_type: str = "individual"
    priority: Literal["low", "normal", "high", "urgent"] = "normal"

    def to_domain(self) -> BookingRequest:
        return BookingRequest(
            request_id=self.request_id or f"req-{uuid.uuid4().hex[:12]}",
            student_id=self.student_id,
            course_id=self.course_id,
            duration=self.duration,
            matching_criteria=self.matching_criteria.to_domain(),
            request_type=self.request_type,
            priority=self.priority,
            status="pending",
            requested_at=datetime.now(timezone.utc).isoformat(),
        )


class BookingMetricsResponse(BaseModel):
    processing_time_ms: float = Field(ge=0.0)
    teachers_evaluated: int = Field(ge=0)
    time_slots_considered: int = Field(ge=0)
    algorithm_version: str


class BookingErrorResponse(BaseModel):
    code: str
    message: str
    category: Literal["validation", "constraint", "resource", "algorithm", "system"]
    severity: Literal["warning", "error", "critical"]
    timestamp: str
    stack_trace: str | None = None


class BookingResultResponse(BaseModel):
    request_id: str
    success: bool
    state: str
    metrics: BookingMetricsResponse
    booking: dict[str, Any] | None = None
    recommendations: list[dict[str, Any]] | None = None
    conflicts: list[dict[str, Any]] | None = None
    alternatives: dict[str, Any] | None = None
    error: BookingErrorResponse | None = None


class TeacherSummaryResponse(BaseModel):
    teacher_id: str
    full_name: str
    experience_years: float = Field(ge=0.0)
    specializations: list[str]
    certifications: list[str]
    languages_spoken: list[str]
    teaching_style: list[str]
    personality_traits: list[str]
    average_rating: float = Field(ge=0.0, le=5.0)
    total_reviews: int = Field(ge=0)
    next_available_slot_id: str | None
    available_this_week: int = Field(ge=0)
    available_next_week: int = Field(ge=0)
    rate_30_min: float
    rate_60_min: float
    currency: str

    @classmethod
    def from_profile(cls, profile: TeacherProfile) -> "TeacherSummaryResponse":
        summary = profile.availability_summary
        return cls(
            teacher_id=profile.teacher_id,
            full_name=profile.full_name,
            experience_years=profile.experience_years,
            specializations=list(profile.specializations),
            certifications=list(profile.certifications),
            languages_spoken=list(profile.languages_spoken),
            teaching_style=list(profile.teaching_style),
            personality_traits=list(profile.personality_traits),
            average_rating=profile.ratings.average_rating,
            total_reviews=profile.ratings.total_reviews,
            next_available_slot_id=(
                summary.next_available_slot.slot_id if summary.next_available_slot else None
            ),
            available_this_week=summary.available_this_week,
            available_next_week=summary.available_next_week,
            rate_30_min=profile.pricing.rate_30_min,
            rate_60_min=profile.pricing.rate_60_min,
            currency=profile.pricing.currency,
        )


class AvailableTeachersResponse(BaseModel):
    teachers: list[TeacherSummaryResponse]


class BookingRecordResponse(BaseModel):
    booking_id: str
    booking_reference: str
    student_id: str
    teacher_id: str
    course_id: str
    slot_id: str
    slot_date: str | None
    day_of_week: int = Field(ge=0, le=6)
    start_time: str
    end_time: str
    duration: int
    status: str
    meeting_link: str
    location: str


@router.get("/health", status_code=status.HTTP_200_OK)
async def health() -> dict[str, str]:
    return {"status": "ok"}


@router.post(
    "/bookings/1v1",
    response_model=BookingResultResponse,
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_api_token)],
)
async def book_1v1_session(
    payload: BookingRequestPayload,
    service: OneOnOneBookingService = Depends(get_booking_service),
) -> BookingResultResponse:
    """Match and book; business failures come back in the body, not as HTTP errors."""
    try:
        result = service.book_1v1_session(payload.to_domain())
        body = result.to_dict()
        # Traces stay in the server log.
        if body["error"] is not None:
            body["error"]["stack_trace"] = None
        return BookingResultResponse(**body)
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected booking endpoint failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to process booking request",
        ) from exc


@router.post(
    "/teachers/available",
    response_model=AvailableTeachersResponse,
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_api_token)],
)
async def available_teachers(
    payload: BookingRequestPayload,
    service: OneOnOneBookingService = Depends(get_booking_service),
) -> AvailableTeachersResponse:
    try:
        profiles = service.get_available_teachers(payload.to_domain())
    except TeacherLookupError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(exc),
        ) from exc
    return AvailableTeachersResponse(
        teachers=[TeacherSummaryResponse.from_profile(profile) for profile in profiles]
    )


@router.get(
    "/bookings/{booking_id}",
    response_model=BookingRecordResponse,
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_api_token)],
)
async def get_booking(
    booking_id: str,
    service: OneOnOneBookingService = Depends(get_booking_service),
) -> BookingRecordResponse:
    record = service.get_booking(booking_id)
    if record is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Booking not found: {booking_id}",
        )
    return BookingRecordResponse(**asdict(record))
