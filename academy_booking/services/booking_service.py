"""1:1 lesson booking orchestration: validate, score, recommend, commit."""

from __future__ import annotations

import secrets
import string
import time
import traceback
from concurrent.futures import ThreadPoolExecutor
from datetime import date, datetime, timezone
from typing import Callable, Iterable, Mapping, Optional, Sequence, TypeVar

from academy_booking.domain.constraints import (
    DEFAULT_SCORE_WEIGHTS,
    ScoreWeights,
    validate_request_shape,
    validate_score_weights,
)
from academy_booking.domain.models import (
    AlternativeBookingOptions,
    Booking,
    BookingErrorDetail,
    BookingMetrics,
    BookingPipelineState,
    BookingRecommendation,
    BookingRequest,
    BookingResult,
    CourseRecord,
    MatchingCriteria,
    SchedulingConflict,
    StudentRecord,
    TeacherAvailability,
    TeacherMatchingScore,
    TeacherPricing,
    TeacherProfile,
    TeacherRatings,
)
from academy_booking.repository.data_repository import (
    BookingRecord,
    DataRepository,
    TeacherRecord,
)
from academy_booking.services.availability_service import (
    AvailabilityProvider,
    build_availability_provider,
    summarize_availability,
)
from academy_booking.services.conflict_service import (
    ConflictDetector,
    RepositoryConflictDetector,
)
from academy_booking.services.recommendation_service import (
    build_alternative_options,
    build_recommendations,
)
from academy_booking.services.scoring_service import (
    count_time_slots,
    rank_teacher_scores,
    score_teacher,
)
from academy_booking.utils.cache import TTLCache
from academy_booking.utils.config import Settings, get_settings
from academy_booking.utils.logger import get_logger


logger = get_logger(__name__)

T = TypeVar("T")
R = TypeVar("R")

ACTIVE_TEACHERS_CACHE_KEY = "active-1v1"
BOOKING_ID_ALPHABET = string.ascii_lowercase + string.digits


class BookingEngineError(Exception):
    """Base exception for booking pipeline failures."""


class BookingValidationError(BookingEngineError):
    """Raised when a booking request fails a precondition."""


class TeacherLookupError(BookingEngineError):
    """Raised when the eligible teacher list cannot be loaded."""


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class OneOnOneBookingService:
    """Matches a student to a teacher and slot, then books or offers fallbacks.

    Construct one instance per application and inject it where needed. The
    only state kept between calls is the read-through lookup caches.
    """

    def __init__(
        self,
        repository: Optional[DataRepository] = None,
        settings: Optional[Settings] = None,
        *,
        availability_provider: Optional[AvailabilityProvider] = None,
        conflict_detector: Optional[ConflictDetector] = None,
        weights: Optional[ScoreWeights] = None,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository or DataRepository(self._settings)
        self._availability_provider = availability_provider or build_availability_provider(
            self._repository,
            self._settings,
        )
        self._conflict_detector = conflict_detector or RepositoryConflictDetector(
            self._repository
        )
        self._weights = weights or DEFAULT_SCORE_WEIGHTS
        validate_score_weights(self._weights)
        self._clock = clock

        self._student_cache: TTLCache[StudentRecord] = TTLCache(
            "students", self._settings.student_cache_ttl_seconds
        )
        self._teacher_cache: TTLCache[list[TeacherRecord]] = TTLCache(
            "teachers", self._settings.teacher_cache_ttl_seconds
        )
        self._booking_cache: TTLCache[BookingRecord] = TTLCache(
            "bookings", self._settings.booking_cache_ttl_seconds
        )
        self._course_cache: TTLCache[CourseRecord] = TTLCache(
            "courses", self._settings.course_cache_ttl_seconds
        )

    # Lookups ---------------------------------------------------------------

    def _get_student(self, student_id: str) -> Optional[StudentRecord]:
        return self._student_cache.get_or_load(student_id, self._repository.get_student)

    def _get_course(self, course_id: str) -> Optional[CourseRecord]:
        return self._course_cache.get_or_load(course_id, self._repository.get_course)

    def get_booking(self, booking_id: str) -> Optional[BookingRecord]:
        return self._booking_cache.get_or_load(booking_id, self._repository.get_booking)

    def _list_eligible_teachers(self) -> list[TeacherRecord]:
        records = self._teacher_cache.get_or_load(
            ACTIVE_TEACHERS_CACHE_KEY,
            lambda _: self._repository.list_active_1v1_teachers(),
        )
        return list(records or [])

    def _parallel_map(self, func: Callable[[T], R], items: Sequence[T]) -> list[R]:
        workers = self._settings.scoring_max_workers
        if workers <= 1 or len(items) <= 1:
            return [func(item) for item in items]
        with ThreadPoolExecutor(max_workers=workers) as executor:
            return list(executor.map(func, items))

    # Validation --------------------------------------------------------------

    def validate_booking_request(self, request: BookingRequest) -> None:
        """Check student, course, duration and preferred slots, in that order."""
        if not request.student_id or self._get_student(request.student_id) is None:
            raise BookingValidationError(f"Student not found: {request.student_id}")
        if not request.course_id or self._get_course(request.course_id) is None:
            raise BookingValidationError(f"Course not found: {request.course_id}")
        try:
            validate_request_shape(request)
        except ValueError as exc:
            raise BookingValidationError(str(exc)) from exc

    # Teachers ----------------------------------------------------------------

    def _build_candidate(
        self,
        record: TeacherRecord,
        today: date,
    ) -> tuple[TeacherProfile, TeacherAvailability]:
        availability = self._availability_provider.get_teacher_availability(record.teacher_id)
        reviews = self._repository.list_recent_reviews(record.teacher_id)
        profile = TeacherProfile(
            teacher_id=record.teacher_id,
            full_name=record.full_name,
            bio=record.bio,
            experience_years=record.experience_years,
            specializations=record.specializations,
            certifications=record.certifications,
            languages_spoken=record.languages_spoken,
            ratings=TeacherRatings(
                average_rating=record.average_rating,
                total_reviews=record.total_reviews,
                recent_reviews=tuple(reviews),
            ),
            availability_summary=summarize_availability(availability.available_slots, today),
            pricing=TeacherPricing(
                rate_30_min=record.rate_30_min,
                rate_60_min=record.rate_60_min,
            ),
            teaching_style=record.teaching_style,
            personality_traits=record.personality_traits,
        )
        return profile, availability

    def _collect_candidates(
        self,
        request: BookingRequest,
    ) -> list[tuple[TeacherProfile, TeacherAvailability]]:
        try:
            records = self._list_eligible_teachers()
        except Exception as exc:
            raise TeacherLookupError(f"Failed to load available teachers: {exc}") from exc

        today = self._clock().date()
        candidates = self._parallel_map(
            lambda record: self._build_candidate(record, today),
            records,
        )
        logger.info(
            "Eligible teachers loaded | request_id=%s | teachers=%s",
            request.request_id,
            len(candidates),
        )
        return candidates

    def get_available_teachers(self, request: BookingRequest) -> list[TeacherProfile]:
        """Active, 1:1-eligible teachers with their availability summary."""
        return [profile for profile, _ in self._collect_candidates(request)]

    def score_teachers(
        self,
        teachers: Sequence[TeacherProfile],
        criteria: MatchingCriteria,
        availability: Optional[Mapping[str, TeacherAvailability]] = None,
    ) -> list[TeacherMatchingScore]:
        """Score teachers independently and return them ranked best-first."""
        known = availability or {}

        def _score(teacher: TeacherProfile) -> TeacherMatchingScore:
            teacher_availability = known.get(teacher.teacher_id)
            if teacher_availability is None:
                teacher_availability = self._availability_provider.get_teacher_availability(
                    teacher.teacher_id
                )
            return score_teacher(teacher, teacher_availability, criteria, self._weights)

        return rank_teacher_scores(self._parallel_map(_score, list(teachers)))

    # Commit ------------------------------------------------------------------

    def _generate_booking_id(self) -> str:
        epoch_ms = int(self._clock().timestamp() * 1000)
        suffix = "".join(secrets.choice(BOOKING_ID_ALPHABET) for _ in range(9))
        return f"booking-{epoch_ms}-{suffix}"

    def _create_booking(
        self,
        recommendation: BookingRecommendation,
        request: BookingRequest,
    ) -> Booking:
        booking_id = self._generate_booking_id()
        booking = Booking(
            booking_id=booking_id,
            booking_reference=f"1V1-{booking_id[-8:].upper()}",
            student_id=request.student_id,
            teacher_id=recommendation.teacher_match.teacher_id,
            course_id=request.course_id,
            time_slot=recommendation.recommended_slot,
            duration=request.duration,
            learning_goals=request.matching_criteria.learning_goals,
            meeting_link=f"{self._settings.meeting_link_base.rstrip('/')}/{booking_id}",
            status="confirmed",
            location="Online",
        )
        # No slot reservation: a concurrent request can pass the same conflict
        # check; the store's primary/unique keys are the last line of defence.
        if self._settings.persist_bookings:
            self._repository.save_booking(booking)
            self._booking_cache.invalidate(booking_id)
        return booking

    def _check_conflicts(
        self,
        recommendation: BookingRecommendation,
        request: BookingRequest,
    ) -> list[SchedulingConflict]:
        return list(
            self._conflict_detector.detect_booking_conflicts(
                student_id=request.student_id,
                teacher_id=recommendation.teacher_match.teacher_id,
                slot=recommendation.recommended_slot,
                duration=request.duration,
            )
        )

    # Orchestration -----------------------------------------------------------

    def _transition(
        self,
        request: BookingRequest,
        state: BookingPipelineState,
    ) -> BookingPipelineState:
        logger.debug(
            "Booking pipeline transition | request_id=%s | state=%s",
            request.request_id,
            state.value,
        )
        return state

    def _metrics(
        self,
        started: float,
        teachers_evaluated: int = 0,
        time_slots_considered: int = 0,
    ) -> BookingMetrics:
        return BookingMetrics(
            processing_time_ms=(time.perf_counter() - started) * 1000.0,
            teachers_evaluated=teachers_evaluated,
            time_slots_considered=time_slots_considered,
            algorithm_version=self._settings.algorithm_version,
        )

    def _error(
        self,
        *,
        code: str,
        message: str,
        category: str,
        severity: str,
        stack_trace: Optional[str] = None,
    ) -> BookingErrorDetail:
        return BookingErrorDetail(
            code=code,
            message=message,
            category=category,
            severity=severity,
            timestamp=self._clock().isoformat(),
            stack_trace=stack_trace,
        )

    def book_1v1_session(self, request: BookingRequest) -> BookingResult:
        """Run the full matching pipeline; never raises.

        Every outcome, including validation and collaborator failures, comes
        back as a populated ``BookingResult``.
        """
        started = time.perf_counter()
        state = self._transition(request, BookingPipelineState.PENDING)

        try:
            self.validate_booking_request(request)
            state = self._transition(request, BookingPipelineState.VALIDATED)

            candidates = self._collect_candidates(request)
            ranked_scores = self.score_teachers(
                [profile for profile, _ in candidates],
                request.matching_criteria,
                availability={
                    profile.teacher_id: availability for profile, availability in candidates
                },
            )
            state = self._transition(request, BookingPipelineState.SCORED)

            recommendations = build_recommendations(
                ranked_scores,
                request,
                limit=self._settings.recommendation_limit,
                alternative_limit=self._settings.alternative_slot_limit,
            )
            today = self._clock().date()

            if not recommendations:
                state = self._transition(request, BookingPipelineState.ERROR)
                logger.warning(
                    "No recommendation produced | request_id=%s | teachers_evaluated=%s",
                    request.request_id,
                    len(ranked_scores),
                )
                return BookingResult(
                    request_id=request.request_id,
                    success=False,
                    state=state,
                    metrics=self._metrics(started, teachers_evaluated=len(ranked_scores)),
                    recommendations=(),
                    alternatives=self._alternatives(ranked_scores, request, today),
                    error=self._error(
                        code="NO_AVAILABLE_TEACHERS",
                        message="No suitable teachers found for the requested criteria",
                        category="resource",
                        severity="warning",
                    ),
                )

            state = self._transition(request, BookingPipelineState.RECOMMENDED)
            best = recommendations[0]
            conflicts = self._check_conflicts(best, request)
            state = self._transition(request, BookingPipelineState.CONFLICT_CHECKED)
            metrics_kwargs = {
                "teachers_evaluated": len(ranked_scores),
                "time_slots_considered": count_time_slots(ranked_scores),
            }

            if conflicts:
                state = self._transition(request, BookingPipelineState.ALTERNATIVES_OFFERED)
                logger.info(
                    "Top recommendation conflicted | request_id=%s | teacher_id=%s | conflicts=%s",
                    request.request_id,
                    best.teacher_match.teacher_id,
                    len(conflicts),
                )
                return BookingResult(
                    request_id=request.request_id,
                    success=False,
                    state=state,
                    metrics=self._metrics(started, **metrics_kwargs),
                    recommendations=tuple(recommendations),
                    conflicts=tuple(conflicts),
                    alternatives=self._alternatives(ranked_scores, request, today),
                )

            booking = self._create_booking(best, request)
            state = self._transition(request, BookingPipelineState.BOOKED)
            logger.info(
                "Booking confirmed | request_id=%s | booking_id=%s | teacher_id=%s | slot_id=%s",
                request.request_id,
                booking.booking_id,
                booking.teacher_id,
                booking.time_slot.slot_id,
            )
            return BookingResult(
                request_id=request.request_id,
                success=True,
                state=state,
                metrics=self._metrics(started, **metrics_kwargs),
                booking=booking,
                recommendations=tuple(recommendations),
            )
        except BookingValidationError as exc:
            logger.info(
                "Booking request rejected | request_id=%s | reason=%s",
                request.request_id,
                exc,
            )
            return self._failure(
                request,
                started,
                self._error(
                    code="BOOKING_FAILED",
                    message=str(exc),
                    category="validation",
                    severity="error",
                ),
            )
        except Exception as exc:
            logger.exception(
                "Booking pipeline failed | request_id=%s | last_state=%s",
                request.request_id,
                state.value,
            )
            return self._failure(
                request,
                started,
                self._error(
                    code="BOOKING_FAILED",
                    message=str(exc) or exc.__class__.__name__,
                    category="system",
                    severity="error",
                    stack_trace=traceback.format_exc(),
                ),
            )

    def _alternatives(
        self,
        ranked_scores: Sequence[TeacherMatchingScore],
        request: BookingRequest,
        today: date,
    ) -> AlternativeBookingOptions:
        return build_alternative_options(
            ranked_scores,
            request,
            today,
            window_days=self._settings.alternative_window_days,
        )

    def _failure(
        self,
        request: BookingRequest,
        started: float,
        error: BookingErrorDetail,
    ) -> BookingResult:
        return BookingResult(
            request_id=request.request_id,
            success=False,
            state=BookingPipelineState.ERROR,
            metrics=self._metrics(started),
            error=error,
        )

    def clear_caches(self, names: Optional[Iterable[str]] = None) -> None:
        caches = {
            "students": self._student_cache,
            "teachers": self._teacher_cache,
            "bookings": self._booking_cache,
            "courses": self._course_cache,
        }
        for name in names or caches:
            caches[name].clear()
