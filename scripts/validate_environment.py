#!/usr/bin/env python3
"""Validate local booking engine environment readiness."""

from __future__ import annotations

import importlib
import shutil
import sys
import tempfile
from dataclasses import replace
from datetime import date, timedelta
from importlib.metadata import version
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from academy_booking.domain.models import BookingRequest, MatchingCriteria
from academy_booking.repository.data_repository import DataRepository
from academy_booking.services.availability_service import (
    SeededAvailabilityProvider,
    build_one_on_one_slot,
)
from academy_booking.services.booking_service import OneOnOneBookingService
from academy_booking.utils.config import get_settings

SEPARATOR_LINE = "=" * 44


def _print_result(name: str, success: bool, detail: str = "") -> tuple[bool, str]:
    if success:
        return True, f"[PASS] {name}{detail}"
    return False, f"[FAIL] {name}: {detail}"


def _next_weekday(start: date) -> date:
    candidate = start + timedelta(days=1)
    while candidate.weekday() >= 5:
        candidate += timedelta(days=1)
    return candidate


def main() -> int:
    results: list[str] = []
    all_passed = True
    temp_dir = tempfile.mkdtemp(prefix="academy-env-")

    # CHECK 1: Python version >= 3.11
    if sys.version_info >= (3, 11):
        ok, line = _print_result("Python " + sys.version.split()[0], True)
    else:
        ok, line = _print_result(
            "Python version >= 3.11",
            False,
            f"found {sys.version.split()[0]}",
        )
    results.append(line)
    all_passed = all_passed and ok

    # CHECK 2: Required packages importable with versions
    package_specs = [
        ("fastapi", "fastapi"),
        ("uvicorn", "uvicorn"),
        ("pydantic", "pydantic"),
        ("numpy", "numpy"),
        ("httpx", "httpx"),
        ("pytest", "pytest"),
    ]
    import_errors: list[str] = []
    for module_name, dist_name in package_specs:
        try:
            importlib.import_module(module_name)
            _ = version(dist_name)
        except Exception as exc:  # pragma: no cover - runtime guard
            import_errors.append(f"{module_name} ({exc})")
    if import_errors:
        ok, line = _print_result(
            "Required packages",
            False,
            "missing/unimportable -> " + "; ".join(import_errors),
        )
    else:
        ok, line = _print_result("Required packages: all importable", True)
    results.append(line)
    all_passed = all_passed and ok

    try:
        validation_settings = replace(
            get_settings(),
            database_path=Path(temp_dir) / "academy_validation.db",
        )
        repository = DataRepository(validation_settings)

        # CHECK 3: Database initialization
        try:
            repository.initialize_database()
            ok, line = _print_result("Database initialization", True)
        except Exception as exc:
            ok, line = _print_result("Database initialization", False, str(exc))
        results.append(line)
        all_passed = all_passed and ok

        # CHECK 4: Demo academy seeding
        try:
            repository.seed_synthetic_data()
            teachers = repository.list_active_1v1_teachers()
            if len(teachers) != 5:
                raise RuntimeError(f"expected 5 teachers, got {len(teachers)}")
            ok, line = _print_result("Demo academy: 5 teachers", True)
        except Exception as exc:
            ok, line = _print_result("Demo academy seeding", False, str(exc))
        results.append(line)
        all_passed = all_passed and ok

        # CHECK 5: Dry-run booking (nothing persisted)
        try:
            today = date.today()
            slot_day = _next_weekday(today)
            service = OneOnOneBookingService(
                repository=repository,
                settings=replace(validation_settings, persist_bookings=False),
                availability_provider=SeededAvailabilityProvider(
                    validation_settings,
                    today_provider=lambda: today,
                ),
            )
            request = BookingRequest(
                request_id="req-validate",
                student_id="student-1",
                course_id="course-1v1",
                duration=60,
                matching_criteria=MatchingCriteria(
                    preferred_time_slots=(
                        build_one_on_one_slot("pref-1", slot_day, "09:00"),
                    ),
                ),
            )
            result = service.book_1v1_session(request)
            if result.error is not None and result.error.category == "system":
                raise RuntimeError(result.error.message)
            ok, line = _print_result(
                "Dry-run booking",
                True,
                f": state={result.state.value} teachers={result.metrics.teachers_evaluated}",
            )
        except Exception as exc:
            ok, line = _print_result("Dry-run booking", False, str(exc))
        results.append(line)
        all_passed = all_passed and ok

    finally:
        shutil.rmtree(temp_dir, ignore_errors=True)

    print(SEPARATOR_LINE)
    print(" Academy Booking Environment Validation")
    print(SEPARATOR_LINE)
    for line in results:
        print(f" {line}")
    print(SEPARATOR_LINE)
    if all_passed:
        print(" All checks passed. Environment is ready.")
        print(SEPARATOR_LINE)
        return 0
    print(" One or more checks failed.")
    print(SEPARATOR_LINE)
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
