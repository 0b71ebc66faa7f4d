"""Repository layer responsible for all database access."""

from __future__ import annotations

import json
import random
import sqlite3
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Iterable, Optional, Sequence

from academy_booking.domain.models import (
    Booking,
    CourseRecord,
    StudentRecord,
    TeacherReview,
)
from academy_booking.utils.config import Settings, get_settings
from academy_booking.utils.logger import get_logger
from academy_booking.utils.time_utils import add_minutes


logger = get_logger(__name__)


class RepositoryError(Exception):
    """Raised when a lookup or write against the backing store fails."""


@dataclass(frozen=True)
class TeacherRecord:
    """Teacher projection used by the booking service."""

    teacher_id: str
    full_name: str
    bio: str
    experience_years: float
    specializations: tuple[str, ...]
    certifications: tuple[str, ...]
    languages_spoken: tuple[str, ...]
    teaching_style: tuple[str, ...]
    personality_traits: tuple[str, ...]
    average_rating: float
    total_reviews: int
    rate_30_min: float
    rate_60_min: float


@dataclass(frozen=True)
class AvailabilitySlotRecord:
    slot_id: str
    teacher_id: str
    slot_date: str
    start_time: str
    end_time: str
    duration: int
    is_available: bool


@dataclass(frozen=True)
class BookingRecord:
    """Persisted booking projection for lookups and conflict detection."""

    booking_id: str
    booking_reference: str
    student_id: str
    teacher_id: str
    course_id: str
    slot_id: str
    slot_date: Optional[str]
    day_of_week: int
    start_time: str
    end_time: str
    duration: int
    status: str
    meeting_link: str
    location: str


def _to_json_list(values: Iterable[str]) -> str:
    return json.dumps(list(values))


def _from_json_list(raw: Optional[str]) -> tuple[str, ...]:
    if not raw:
        return ()
    return tuple(str(item) for item in json.loads(raw))


class DataRepository:
    """Encapsulates SQLite access so business logic stays storage-agnostic."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self._settings = settings or get_settings()
        self._db_path = Path(self._settings.database_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def database_path(self) -> Path:
        return self._db_path

    def _connect(self) -> sqlite3.Connection:
        connection = sqlite3.connect(self._db_path)
        connection.row_factory = sqlite3.Row
        connection.execute("PRAGMA foreign_keys = ON;")
        return connection

    def _fetch_one(self, query: str, params: Sequence[Any]) -> Optional[sqlite3.Row]:
        try:
            with self._connect() as conn:
                cursor = conn.cursor()
                cursor.execute(query, tuple(params))
                return cursor.fetchone()
        except sqlite3.Error as exc:
            raise RepositoryError(f"Lookup failed: {exc}") from exc

    def _fetch_all(self, query: str, params: Sequence[Any] = ()) -> list[sqlite3.Row]:
        try:
            with self._connect() as conn:
                cursor = conn.cursor()
                cursor.execute(query, tuple(params))
                return cursor.fetchall()
        except sqlite3.Error as exc:
            raise RepositoryError(f"Query failed: {exc}") from exc

    def initialize_database(self) -> None:
        """Create all persistence artifacts before API startup."""
        try:
            with self._connect() as conn:
                cursor = conn.cursor()

                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS Students (
                        id TEXT PRIMARY KEY,
                        full_name TEXT NOT NULL,
                        email TEXT,
                        created_at DATETIME DEFAULT CURRENT_TIMESTAMP
                    );
                    """
                )

                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS Courses (
                        id TEXT PRIMARY KEY,
                        title TEXT NOT NULL,
                        course_type TEXT NOT NULL
                    );
                    """
                )

                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS Teachers (
                        id TEXT PRIMARY KEY,
                        full_name TEXT NOT NULL,
                        bio TEXT NOT NULL DEFAULT '',
                        experience_years REAL NOT NULL DEFAULT 0 CHECK (experience_years >= 0),
                        specializations TEXT NOT NULL DEFAULT '[]',
                        certifications TEXT NOT NULL DEFAULT '[]',
                        languages_spoken TEXT NOT NULL DEFAULT '["English"]',
                        teaching_style TEXT NOT NULL DEFAULT '[]',
                        personality_traits TEXT NOT NULL DEFAULT '[]',
                        average_rating REAL NOT NULL DEFAULT 0
                            CHECK (average_rating >= 0 AND average_rating <= 5),
                        total_reviews INTEGER NOT NULL DEFAULT 0,
                        rate_30min REAL NOT NULL DEFAULT 50,
                        rate_60min REAL NOT NULL DEFAULT 90,
                        is_active INTEGER NOT NULL DEFAULT 1 CHECK (is_active IN (0,1)),
                        available_for_1v1 INTEGER NOT NULL DEFAULT 1
                            CHECK (available_for_1v1 IN (0,1)),
                        created_at DATETIME DEFAULT CURRENT_TIMESTAMP
                    );
                    """
                )

                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS TeacherReviews (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        teacher_id TEXT NOT NULL,
                        rating INTEGER NOT NULL CHECK (rating BETWEEN 1 AND 5),
                        review_text TEXT NOT NULL,
                        student_name TEXT NOT NULL DEFAULT 'Anonymous Student',
                        reviewed_at TEXT NOT NULL,
                        FOREIGN KEY (teacher_id) REFERENCES Teachers(id)
                    );
                    """
                )

                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS TeacherAvailability (
                        id TEXT PRIMARY KEY,
                        teacher_id TEXT NOT NULL,
                        slot_date TEXT NOT NULL,
                        start_time TEXT NOT NULL,
                        end_time TEXT NOT NULL,
                        duration INTEGER NOT NULL CHECK (duration > 0),
                        is_available INTEGER NOT NULL DEFAULT 1 CHECK (is_available IN (0,1)),
                        FOREIGN KEY (teacher_id) REFERENCES Teachers(id)
                    );
                    """
                )

                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS Bookings (
                        id TEXT PRIMARY KEY,
                        booking_reference TEXT NOT NULL,
                        student_id TEXT NOT NULL,
                        teacher_id TEXT NOT NULL,
                        course_id TEXT NOT NULL,
                        slot_id TEXT NOT NULL,
                        slot_date TEXT,
                        day_of_week INTEGER NOT NULL CHECK (day_of_week BETWEEN 0 AND 6),
                        start_time TEXT NOT NULL,
                        end_time TEXT NOT NULL,
                        duration INTEGER NOT NULL CHECK (duration IN (30, 60)),
                        status TEXT NOT NULL DEFAULT 'confirmed',
                        meeting_link TEXT NOT NULL,
                        location TEXT NOT NULL DEFAULT 'Online',
                        created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
                        FOREIGN KEY (student_id) REFERENCES Students(id),
                        FOREIGN KEY (teacher_id) REFERENCES Teachers(id),
                        FOREIGN KEY (course_id) REFERENCES Courses(id)
                    );
                    """
                )

                cursor.execute(
                    """
                    CREATE INDEX IF NOT EXISTS idx_teachers_active_1v1
                    ON Teachers(is_active, available_for_1v1);
                    """
                )
                cursor.execute(
                    """
                    CREATE INDEX IF NOT EXISTS idx_availability_teacher_date
                    ON TeacherAvailability(teacher_id, slot_date, start_time);
                    """
                )
                cursor.execute(
                    """
                    CREATE INDEX IF NOT EXISTS idx_bookings_teacher_date
                    ON Bookings(teacher_id, slot_date, status);
                    """
                )
                cursor.execute(
                    """
                    CREATE INDEX IF NOT EXISTS idx_bookings_student_date
                    ON Bookings(student_id, slot_date, status);
                    """
                )
                conn.commit()
            logger.info("Database initialized at %s", self._db_path)
        except sqlite3.Error as exc:
            raise RuntimeError(f"Database initialization failed: {exc}") from exc

    def seed_synthetic_data(self) -> None:
        """Seed a deterministic demo academy only when tables are empty."""
        rng = random.Random(self._settings.synthetic_random_seed)
        try:
            with self._connect() as conn:
                cursor = conn.cursor()

                cursor.execute("SELECT COUNT(*) AS count FROM Teachers;")
                teacher_count = int(cursor.fetchone()["count"])
                if teacher_count > 0:
                    logger.info("Synthetic data already present; skipping seed")
                    return

                cursor.executemany(
                    "INSERT INTO Students (id, full_name, email) VALUES (?, ?, ?);",
                    [
                        ("student-1", "Alicia Gomez", "alicia@example.com"),
                        ("student-2", "Kenji Watanabe", "kenji@example.com"),
                        ("student-3", "Priya Nair", "priya@example.com"),
                    ],
                )
                cursor.executemany(
                    "INSERT INTO Courses (id, title, course_type) VALUES (?, ?, ?);",
                    [
                        ("course-basic", "Everyday English", "Basic"),
                        ("course-business", "Business English", "Business English"),
                        ("course-1v1", "Private Coaching", "1-on-1"),
                    ],
                )

                teachers = [
                    ("teacher-1", "Emma Clarke", 6, ["Business English", "Conversation"],
                     ["CELTA"], ["English", "French"], ["structured", "interactive"],
                     ["patient", "encouraging"], 4.8, 124),
                    ("teacher-2", "Liam Patel", 3, ["Pronunciation", "Conversation"],
                     ["TEFL"], ["English", "Hindi"], ["conversational"],
                     ["energetic"], 4.5, 61),
                    ("teacher-3", "Sofia Rossi", 12, ["Grammar", "Exam Preparation"],
                     ["DELTA", "CELTA"], ["English", "Italian", "Spanish"], ["structured"],
                     ["detail-oriented", "patient"], 4.9, 210),
                    ("teacher-4", "Noah Kim", 1, ["Conversation"],
                     [], ["English", "Korean"], ["interactive"],
                     ["friendly"], 4.3, 22),
                    ("teacher-5", "Chloe Martin", 8, ["Business English", "Presentation Skills"],
                     ["TESOL"], ["English", "French", "German"], ["task-based", "interactive"],
                     ["encouraging"], 4.7, 98),
                ]
                cursor.executemany(
                    """
                    INSERT INTO Teachers (
                        id, full_name, experience_years, specializations, certifications,
                        languages_spoken, teaching_style, personality_traits,
                        average_rating, total_reviews
                    )
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?);
                    """,
                    [
                        (
                            teacher_id,
                            name,
                            years,
                            _to_json_list(specializations),
                            _to_json_list(certifications),
                            _to_json_list(languages),
                            _to_json_list(styles),
                            _to_json_list(traits),
                            rating,
                            reviews,
                        )
                        for (
                            teacher_id,
                            name,
                            years,
                            specializations,
                            certifications,
                            languages,
                            styles,
                            traits,
                            rating,
                            reviews,
                        ) in teachers
                    ],
                )

                today = datetime.now(timezone.utc).date()
                review_rows = [
                    (
                        teacher[0],
                        5,
                        "Great teacher, very patient and knowledgeable",
                        "Anonymous Student",
                        (today - timedelta(days=rng.randint(1, 30))).isoformat(),
                    )
                    for teacher in teachers
                ]
                cursor.executemany(
                    """
                    INSERT INTO TeacherReviews (
                        teacher_id, rating, review_text, student_name, reviewed_at
                    )
                    VALUES (?, ?, ?, ?, ?);
                    """,
                    review_rows,
                )

                slot_rows = []
                for teacher in teachers:
                    teacher_id = teacher[0]
                    for offset in range(1, self._settings.availability_lookahead_days + 1):
                        slot_day = today + timedelta(days=offset)
                        if slot_day.weekday() >= 5:
                            continue
                        for label, start_time, probability in (
                            ("morning", "09:00", 0.7),
                            ("afternoon", "14:00", 0.6),
                        ):
                            slot_rows.append(
                                (
                                    f"slot-{teacher_id}-{slot_day.isoformat()}-{label}",
                                    teacher_id,
                                    slot_day.isoformat(),
                                    start_time,
                                    add_minutes(start_time, 60),
                                    60,
                                    1 if rng.random() < probability else 0,
                                )
                            )
                cursor.executemany(
                    """
                    INSERT INTO TeacherAvailability (
                        id, teacher_id, slot_date, start_time, end_time, duration, is_available
                    )
                    VALUES (?, ?, ?, ?, ?, ?, ?);
                    """,
                    slot_rows,
                )
                conn.commit()
            logger.info(
                "Synthetic seed completed | teachers=%s | availability_slots=%s",
                len(teachers),
                len(slot_rows),
            )
        except sqlite3.Error as exc:
            raise RuntimeError(f"Synthetic data seeding failed: {exc}") from exc

    def get_student(self, student_id: str) -> Optional[StudentRecord]:
        row = self._fetch_one(
            "SELECT id, full_name, email FROM Students WHERE id = ?;",
            (student_id,),
        )
        if row is None:
            return None
        return StudentRecord(
            student_id=str(row["id"]),
            full_name=str(row["full_name"]),
            email=row["email"],
        )

    def get_course(self, course_id: str) -> Optional[CourseRecord]:
        row = self._fetch_one(
            "SELECT id, title, course_type FROM Courses WHERE id = ?;",
            (course_id,),
        )
        if row is None:
            return None
        return CourseRecord(
            course_id=str(row["id"]),
            title=str(row["title"]),
            course_type=str(row["course_type"]),
        )

    @staticmethod
    def _to_teacher_record(row: sqlite3.Row) -> TeacherRecord:
        languages = _from_json_list(row["languages_spoken"]) or ("English",)
        return TeacherRecord(
            teacher_id=str(row["id"]),
            full_name=str(row["full_name"] or "Unknown Teacher"),
            bio=str(row["bio"] or ""),
            experience_years=float(row["experience_years"] or 0),
            specializations=_from_json_list(row["specializations"]),
            certifications=_from_json_list(row["certifications"]),
            languages_spoken=languages,
            teaching_style=_from_json_list(row["teaching_style"]),
            personality_traits=_from_json_list(row["personality_traits"]),
            average_rating=float(row["average_rating"] or 0),
            total_reviews=int(row["total_reviews"] or 0),
            rate_30_min=float(row["rate_30min"] or 50),
            rate_60_min=float(row["rate_60min"] or 90),
        )

    def list_active_1v1_teachers(self) -> list[TeacherRecord]:
        """Return active, 1:1-eligible teachers in stable insertion order."""
        rows = self._fetch_all(
            """
            SELECT *
            FROM Teachers
            WHERE is_active = 1
              AND available_for_1v1 = 1
            ORDER BY rowid ASC;
            """
        )
        return [self._to_teacher_record(row) for row in rows]

    def list_recent_reviews(self, teacher_id: str, limit: int = 3) -> list[TeacherReview]:
        rows = self._fetch_all(
            """
            SELECT rating, review_text, student_name, reviewed_at
            FROM TeacherReviews
            WHERE teacher_id = ?
            ORDER BY reviewed_at DESC, id DESC
            LIMIT ?;
            """,
            (teacher_id, limit),
        )
        return [
            TeacherReview(
                text=str(row["review_text"]),
                rating=int(row["rating"]),
                student_name=str(row["student_name"]),
                date=str(row["reviewed_at"]),
            )
            for row in rows
        ]

    def list_teacher_slots(
        self,
        teacher_id: str,
        start_date: str,
        end_date: str,
    ) -> list[AvailabilitySlotRecord]:
        """Return open slots for a teacher in ``[start_date, end_date]``."""
        rows = self._fetch_all(
            """
            SELECT id, teacher_id, slot_date, start_time, end_time, duration, is_available
            FROM TeacherAvailability
            WHERE teacher_id = ?
              AND slot_date >= ?
              AND slot_date <= ?
              AND is_available = 1
            ORDER BY slot_date ASC, start_time ASC;
            """,
            (teacher_id, start_date, end_date),
        )
        return [
            AvailabilitySlotRecord(
                slot_id=str(row["id"]),
                teacher_id=str(row["teacher_id"]),
                slot_date=str(row["slot_date"]),
                start_time=str(row["start_time"]),
                end_time=str(row["end_time"]),
                duration=int(row["duration"]),
                is_available=bool(row["is_available"]),
            )
            for row in rows
        ]

    @staticmethod
    def _to_booking_record(row: sqlite3.Row) -> BookingRecord:
        return BookingRecord(
            booking_id=str(row["id"]),
            booking_reference=str(row["booking_reference"]),
            student_id=str(row["student_id"]),
            teacher_id=str(row["teacher_id"]),
            course_id=str(row["course_id"]),
            slot_id=str(row["slot_id"]),
            slot_date=row["slot_date"],
            day_of_week=int(row["day_of_week"]),
            start_time=str(row["start_time"]),
            end_time=str(row["end_time"]),
            duration=int(row["duration"]),
            status=str(row["status"]),
            meeting_link=str(row["meeting_link"]),
            location=str(row["location"]),
        )

    def get_booking(self, booking_id: str) -> Optional[BookingRecord]:
        row = self._fetch_one("SELECT * FROM Bookings WHERE id = ?;", (booking_id,))
        if row is None:
            return None
        return self._to_booking_record(row)

    def list_confirmed_bookings_for(
        self,
        *,
        teacher_id: str,
        student_id: str,
        slot_date: Optional[str],
        day_of_week: int,
    ) -> list[BookingRecord]:
        """Return confirmed bookings of either party on the same day.

        Undated bookings recur weekly, so they collide with any dated slot on
        the same weekday.
        """
        if slot_date is not None:
            day_clause = "(slot_date = ? OR (slot_date IS NULL AND day_of_week = ?))"
            day_params: tuple[Any, ...] = (slot_date, day_of_week)
        else:
            day_clause = "day_of_week = ?"
            day_params = (day_of_week,)
        rows = self._fetch_all(
            f"""
            SELECT *
            FROM Bookings
            WHERE status = 'confirmed'
              AND (teacher_id = ? OR student_id = ?)
              AND {day_clause}
            ORDER BY start_time ASC, id ASC;
            """,
            (teacher_id, student_id, *day_params),
        )
        return [self._to_booking_record(row) for row in rows]

    def save_booking(self, booking: Booking) -> None:
        """Persist a confirmed booking; the store decides first-write-wins."""
        slot = booking.time_slot
        try:
            with self._connect() as conn:
                cursor = conn.cursor()
                cursor.execute(
                    """
                    INSERT INTO Bookings (
                        id, booking_reference, student_id, teacher_id, course_id,
                        slot_id, slot_date, day_of_week, start_time, end_time,
                        duration, status, meeting_link, location
                    )
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?);
                    """,
                    (
                        booking.booking_id,
                        booking.booking_reference,
                        booking.student_id,
                        booking.teacher_id,
                        booking.course_id,
                        slot.slot_id,
                        slot.slot_date,
                        slot.day_of_week,
                        slot.start_time,
                        add_minutes(slot.start_time, booking.duration),
                        booking.duration,
                        booking.status,
                        booking.meeting_link,
                        booking.location,
                    ),
                )
                conn.commit()
        except sqlite3.Error as exc:
            raise RepositoryError(f"Booking persistence failed: {exc}") from exc

    def create_student(self, student_id: str, full_name: str, email: Optional[str] = None) -> str:
        with self._connect() as conn:
            conn.execute(
                "INSERT INTO Students (id, full_name, email) VALUES (?, ?, ?);",
                (student_id, full_name, email),
            )
            conn.commit()
        return student_id

    def create_course(self, course_id: str, title: str, course_type: str) -> str:
        with self._connect() as conn:
            conn.execute(
                "INSERT INTO Courses (id, title, course_type) VALUES (?, ?, ?);",
                (course_id, title, course_type),
            )
            conn.commit()
        return course_id

    def create_teacher(
        self,
        teacher_id: str,
        full_name: str,
        *,
        experience_years: float = 0,
        specializations: Sequence[str] = (),
        certifications: Sequence[str] = (),
        languages_spoken: Sequence[str] = ("English",),
        teaching_style: Sequence[str] = (),
        personality_traits: Sequence[str] = (),
        average_rating: float = 0.0,
        total_reviews: int = 0,
        is_active: bool = True,
        available_for_1v1: bool = True,
    ) -> str:
        """Insert teacher row and return the id."""
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO Teachers (
                    id, full_name, experience_years, specializations, certifications,
                    languages_spoken, teaching_style, personality_traits,
                    average_rating, total_reviews, is_active, available_for_1v1
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?);
                """,
                (
                    teacher_id,
                    full_name,
                    experience_years,
                    _to_json_list(specializations),
                    _to_json_list(certifications),
                    _to_json_list(languages_spoken),
                    _to_json_list(teaching_style),
                    _to_json_list(personality_traits),
                    average_rating,
                    total_reviews,
                    int(is_active),
                    int(available_for_1v1),
                ),
            )
            conn.commit()
        return teacher_id

    def create_availability_slot(
        self,
        slot_id: str,
        teacher_id: str,
        slot_date: str,
        start_time: str,
        duration: int = 60,
        is_available: bool = True,
    ) -> str:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO TeacherAvailability (
                    id, teacher_id, slot_date, start_time, end_time, duration, is_available
                )
                VALUES (?, ?, ?, ?, ?, ?, ?);
                """,
                (
                    slot_id,
                    teacher_id,
                    slot_date,
                    start_time,
                    add_minutes(start_time, duration),
                    duration,
                    int(is_available),
                ),
            )
            conn.commit()
        return slot_id

    def count_bookings(self) -> int:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT COUNT(*) AS count FROM Bookings;")
            return int(cursor.fetchone()["count"])
