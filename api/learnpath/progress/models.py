"""Database models for lesson progress and course enrollment.

Cassandra table definitions for:
- Lesson progress: completion flag and resume position per (user, lesson)
- Lesson time: counters for seconds spent and minutes credited to the course
- Enrollments: one row per (user, course)
- Enrollment time: minute counters split by source

Counters live in their own tables because Cassandra does not mix counter and
regular columns. Increments never read first, so concurrent reports from
several devices add up exactly.
"""

from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID

from learnpath.core.clock import ensure_utc_aware


class EnrollmentStatus(str, Enum):
    """Course enrollment status."""

    ENROLLED = "enrolled"  # Registered, no progress reported yet
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"  # Every lesson of the course completed


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

# Progress per user, partitioned by user so both "this course" and
# "all my lessons" are single-partition reads.
# is_completed/completed_at are only written by the conditional completion
# update, which keeps completion monotonic. Every update to this table and to
# enrollments is conditional (IF EXISTS at least), so all writes to a row are
# serialized by Paxos instead of mixing with plain writes on timestamps.
LESSON_PROGRESS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.lesson_progress (
    user_id UUID,
    course_id UUID,
    lesson_id UUID,
    module_id UUID,
    is_completed BOOLEAN,
    completed_at TIMESTAMP,
    last_position_seconds INT,
    started_at TIMESTAMP,
    last_accessed_at TIMESTAMP,
    PRIMARY KEY ((user_id), course_id, lesson_id)
)
"""

# minutes_credited is the lesson's share of the enrollment's lesson_minutes;
# reconciliation sums it back up.
LESSON_PROGRESS_TIME_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.lesson_progress_time (
    user_id UUID,
    course_id UUID,
    lesson_id UUID,
    time_spent_seconds COUNTER,
    minutes_credited COUNTER,
    PRIMARY KEY ((user_id), course_id, lesson_id)
)
"""

ENROLLMENTS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.enrollments (
    user_id UUID,
    course_id UUID,
    status TEXT,
    enrolled_at TIMESTAMP,
    started_at TIMESTAMP,
    completed_at TIMESTAMP,
    last_accessed_at TIMESTAMP,
    last_lesson_id UUID,
    PRIMARY KEY ((user_id), course_id)
)
"""

# Two sources of enrollment time: lesson reports and closed study sessions.
ENROLLMENT_TIME_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.enrollment_time (
    user_id UUID,
    course_id UUID,
    lesson_minutes COUNTER,
    session_minutes COUNTER,
    PRIMARY KEY ((user_id), course_id)
)
"""

PROGRESS_TABLES_CQL = [
    LESSON_PROGRESS_TABLE_CQL,
    LESSON_PROGRESS_TIME_TABLE_CQL,
    ENROLLMENTS_TABLE_CQL,
    ENROLLMENT_TIME_TABLE_CQL,
]


# ==============================================================================
# Entity Classes
# ==============================================================================


class LessonProgress:
    """A user's state on one lesson.

    Attributes:
        user_id: User UUID
        course_id: Course UUID
        lesson_id: Lesson UUID
        module_id: Module UUID
        is_completed: Terminal once true
        completed_at: First completion timestamp (never changes)
        last_position_seconds: Resume position
        time_spent_seconds: Accumulated time spent on the lesson
        started_at: First report timestamp
        last_accessed_at: Last report timestamp
    """

    def __init__(
        self,
        user_id: UUID,
        course_id: UUID,
        lesson_id: UUID,
        module_id: UUID | None = None,
        is_completed: bool = False,
        completed_at: datetime | None = None,
        last_position_seconds: int = 0,
        time_spent_seconds: int = 0,
        started_at: datetime | None = None,
        last_accessed_at: datetime | None = None,
    ):
        self.user_id = user_id
        self.course_id = course_id
        self.lesson_id = lesson_id
        self.module_id = module_id
        self.is_completed = is_completed
        self.completed_at = ensure_utc_aware(completed_at)
        self.last_position_seconds = last_position_seconds
        self.time_spent_seconds = time_spent_seconds
        self.started_at = ensure_utc_aware(started_at)
        self.last_accessed_at = ensure_utc_aware(last_accessed_at)

    @classmethod
    def from_row(cls, row: Any, time_spent_seconds: int = 0) -> "LessonProgress":
        """Create LessonProgress from a Cassandra row and its time counter."""
        return cls(
            user_id=row.user_id,
            course_id=row.course_id,
            lesson_id=row.lesson_id,
            module_id=row.module_id,
            is_completed=bool(row.is_completed),
            completed_at=row.completed_at,
            last_position_seconds=row.last_position_seconds or 0,
            time_spent_seconds=time_spent_seconds,
            started_at=row.started_at,
            last_accessed_at=row.last_accessed_at,
        )

    def __repr__(self) -> str:
        return (
            f"<LessonProgress user={self.user_id} lesson={self.lesson_id} "
            f"completed={self.is_completed}>"
        )


class Enrollment:
    """A user's registration in a course.

    ``total_time_spent`` is in minutes: lesson-report minutes plus study
    session minutes.
    """

    def __init__(
        self,
        user_id: UUID,
        course_id: UUID,
        status: str = EnrollmentStatus.ENROLLED.value,
        enrolled_at: datetime | None = None,
        started_at: datetime | None = None,
        completed_at: datetime | None = None,
        last_accessed_at: datetime | None = None,
        last_lesson_id: UUID | None = None,
        lesson_minutes: int = 0,
        session_minutes: int = 0,
    ):
        self.user_id = user_id
        self.course_id = course_id
        self.status = status
        self.enrolled_at = ensure_utc_aware(enrolled_at)
        self.started_at = ensure_utc_aware(started_at)
        self.completed_at = ensure_utc_aware(completed_at)
        self.last_accessed_at = ensure_utc_aware(last_accessed_at)
        self.last_lesson_id = last_lesson_id
        self.lesson_minutes = lesson_minutes
        self.session_minutes = session_minutes

    @property
    def is_completed(self) -> bool:
        """Check if the course is completed."""
        return self.status == EnrollmentStatus.COMPLETED.value

    @property
    def total_time_spent(self) -> int:
        """Minutes spent on the course from all sources."""
        return self.lesson_minutes + self.session_minutes

    @classmethod
    def from_row(cls, row: Any, time_row: Any = None) -> "Enrollment":
        """Create Enrollment from a Cassandra row and its time counters."""
        return cls(
            user_id=row.user_id,
            course_id=row.course_id,
            status=row.status or EnrollmentStatus.ENROLLED.value,
            enrolled_at=row.enrolled_at,
            started_at=row.started_at,
            completed_at=row.completed_at,
            last_accessed_at=row.last_accessed_at,
            last_lesson_id=row.last_lesson_id,
            lesson_minutes=(time_row.lesson_minutes or 0) if time_row else 0,
            session_minutes=(time_row.session_minutes or 0) if time_row else 0,
        )

    def __repr__(self) -> str:
        return f"<Enrollment user={self.user_id} course={self.course_id} status={self.status}>"


class CourseProgress:
    """Course completion computed on demand from lesson progress."""

    def __init__(
        self,
        course_id: UUID,
        completed_lessons: int,
        total_lessons: int,
        time_spent: int = 0,
    ):
        self.course_id = course_id
        self.completed_lessons = completed_lessons
        self.total_lessons = total_lessons
        self.time_spent = time_spent

    @property
    def percentage(self) -> float:
        """Percent of lessons completed (0 for a course with no lessons)."""
        if self.total_lessons == 0:
            return 0.0
        return self.completed_lessons * 100 / self.total_lessons

    @property
    def is_complete(self) -> bool:
        """Certificate eligibility: every lesson of a non-empty course done."""
        return self.total_lessons > 0 and self.completed_lessons == self.total_lessons
