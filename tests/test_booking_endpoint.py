from __future__ import annotations

from dataclasses import replace
from datetime import date, datetime, timezone

from fastapi import FastAPI
from fastapi.testclient import TestClient

from academy_booking.controllers.booking_controller import router
from academy_booking.domain.models import TeacherAvailability
from academy_booking.repository.data_repository import DataRepository
from academy_booking.services.availability_service import build_one_on_one_slot
from academy_booking.services.booking_service import OneOnOneBookingService
from academy_booking.services.conflict_service import RepositoryConflictDetector
from academy_booking.utils.config import get_settings
from app import create_app

NOW = datetime(2026, 2, 27, 12, 0, tzinfo=timezone.utc)
MONDAY = date(2026, 3, 2)
API_TOKEN = "secret-booking-token"


class StubAvailabilityProvider:
    def get_teacher_availability(self, teacher_id: str) -> TeacherAvailability:
        slots = {
            "teacher-1": (build_one_on_one_slot("t1-mon-9", MONDAY, "09:00"),),
            "teacher-2": (build_one_on_one_slot("t2-mon-14", MONDAY, "14:00"),),
        }
        return TeacherAvailability(teacher_id=teacher_id, available_slots=slots.get(teacher_id, ()))


class FailingAvailabilityProvider:
    def get_teacher_availability(self, teacher_id: str) -> TeacherAvailability:
        raise RuntimeError("calendar feed unavailable")


def _build_test_settings(tmp_path, filename: str, api_token: str | None = API_TOKEN):
    get_settings.cache_clear()
    return replace(get_settings(), database_path=tmp_path / filename, api_token=api_token)


def _build_test_app(
    tmp_path,
    api_token: str | None = API_TOKEN,
    availability_provider=None,
) -> tuple[FastAPI, DataRepository]:
    settings = _build_test_settings(tmp_path, "booking_endpoint.db", api_token)
    repository = DataRepository(settings)
    repository.initialize_database()
    repository.create_student("student-1", "Alicia Gomez")
    repository.create_course("course-1v1", "Private Coaching", "1-on-1")
    repository.create_teacher(
        "teacher-1",
        "Emma Clarke",
        experience_years=6,
        specializations=("Business English",),
        average_rating=4.8,
        total_reviews=124,
    )
    repository.create_teacher("teacher-2", "Liam Patel", experience_years=3, average_rating=4.5)

    service = OneOnOneBookingService(
        repository=repository,
        settings=settings,
        availability_provider=availability_provider or StubAvailabilityProvider(),
        conflict_detector=RepositoryConflictDetector(repository),
        clock=lambda: NOW,
    )

    app = FastAPI()
    app.include_router(router)
    app.state.repository = repository
    app.state.booking_service = service
    app.state.api_token = api_token
    return app, repository


def _payload(**overrides) -> dict:
    payload = {
        "request_id": "req-http-1",
        "student_id": "student-1",
        "course_id": "course-1v1",
        "duration": 60,
        "matching_criteria": {
            "preferred_time_slots": [
                {"slot_id": "pref-1", "start_time": "09:00", "slot_date": MONDAY.isoformat()}
            ],
            "teacher_preferences": {"experience_level": "advanced"},
            "learning_goals": {"primary_objectives": ["Business English"]},
        },
    }
    payload.update(overrides)
    return payload


def _auth() -> dict[str, str]:
    return {"Authorization": f"Bearer {API_TOKEN}"}


def test_health_is_open(tmp_path) -> None:
    app, _ = _build_test_app(tmp_path)
    client = TestClient(app)
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_booking_requires_token_when_configured(tmp_path) -> None:
    app, _ = _build_test_app(tmp_path)
    client = TestClient(app)

    assert client.post("/bookings/1v1", json=_payload()).status_code == 401
    wrong = client.post(
        "/bookings/1v1",
        json=_payload(),
        headers={"Authorization": "Bearer wrong"},
    )
    assert wrong.status_code == 401


def test_booking_endpoint_books_and_exposes_record(tmp_path) -> None:
    app, repository = _build_test_app(tmp_path)
    client = TestClient(app)

    response = client.post("/bookings/1v1", json=_payload(), headers=_auth())

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["state"] == "BOOKED"
    assert body["request_id"] == "req-http-1"
    assert body["booking"]["teacher_id"] == "teacher-1"
    assert body["booking"]["time_slot"]["day_of_week"] == 1
    assert body["recommendations"][0]["teacher_match"]["overall_score"] > 0.7
    assert body["metrics"]["teachers_evaluated"] == 2
    assert repository.count_bookings() == 1

    booking_id = body["booking"]["booking_id"]
    fetched = client.get(f"/bookings/{booking_id}", headers=_auth())
    assert fetched.status_code == 200
    assert fetched.json()["booking_reference"] == body["booking"]["booking_reference"]


def test_business_failures_come_back_in_body(tmp_path) -> None:
    app, _ = _build_test_app(tmp_path)
    client = TestClient(app)

    response = client.post("/bookings/1v1", json=_payload(duration=45), headers=_auth())

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is False
    assert body["state"] == "ERROR"
    assert body["error"]["code"] == "BOOKING_FAILED"
    assert body["error"]["message"] == "Duration must be either 30 or 60 minutes"


def test_second_request_for_same_slot_gets_alternatives(tmp_path) -> None:
    app, repository = _build_test_app(tmp_path)
    repository.create_student("student-2", "Kenji Watanabe")
    client = TestClient(app)

    client.post("/bookings/1v1", json=_payload(), headers=_auth())
    response = client.post(
        "/bookings/1v1",
        json=_payload(request_id="req-http-2", student_id="student-2"),
        headers=_auth(),
    )

    body = response.json()
    assert body["success"] is False
    assert body["state"] == "ALTERNATIVES_OFFERED"
    assert len(body["conflicts"]) == 1
    assert len(body["alternatives"]["alternative_teachers"]) <= 3


def test_malformed_slot_is_rejected_by_schema(tmp_path) -> None:
    app, _ = _build_test_app(tmp_path)
    client = TestClient(app)
    payload = _payload()
    payload["matching_criteria"]["preferred_time_slots"] = [
        {"slot_id": "pref-1", "start_time": "9am", "day_of_week": 1}
    ]

    response = client.post("/bookings/1v1", json=payload, headers=_auth())

    assert response.status_code == 422


def test_slot_day_mismatch_is_rejected(tmp_path) -> None:
    app, _ = _build_test_app(tmp_path)
    client = TestClient(app)
    payload = _payload()
    payload["matching_criteria"]["preferred_time_slots"] = [
        {"slot_id": "pref-1", "start_time": "09:00", "slot_date": "2026-03-02", "day_of_week": 3}
    ]

    assert client.post("/bookings/1v1", json=payload, headers=_auth()).status_code == 422


def test_available_teachers_endpoint(tmp_path) -> None:
    app, _ = _build_test_app(tmp_path, api_token=None)
    client = TestClient(app)

    response = client.post("/teachers/available", json=_payload())

    assert response.status_code == 200
    teachers = response.json()["teachers"]
    assert [teacher["teacher_id"] for teacher in teachers] == ["teacher-1", "teacher-2"]
    assert teachers[0]["next_available_slot_id"] == "t1-mon-9"
    assert teachers[0]["currency"] == "USD"


def test_unknown_booking_returns_404(tmp_path) -> None:
    app, _ = _build_test_app(tmp_path)
    client = TestClient(app)

    response = client.get("/bookings/booking-missing", headers=_auth())

    assert response.status_code == 404


def test_create_app_seeds_demo_academy_on_startup(tmp_path) -> None:
    settings = _build_test_settings(tmp_path, "startup.db", api_token=None)

    with TestClient(create_app(settings)) as client:
        assert client.get("/health").status_code == 200
        teachers = client.post("/teachers/available", json=_payload()).json()["teachers"]

    assert len(teachers) == 5


def test_system_failure_hides_stack_trace_from_clients(tmp_path) -> None:
    app, _ = _build_test_app(tmp_path, availability_provider=FailingAvailabilityProvider())
    client = TestClient(app)

    response = client.post("/bookings/1v1", json=_payload(), headers=_auth())

    assert response.status_code == 200
    error = response.json()["error"]
    assert error["category"] == "system"
    assert error["message"] == "calendar feed unavailable"
    assert error["stack_trace"] is None
