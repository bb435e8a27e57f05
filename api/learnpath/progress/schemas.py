"""Pydantic schemas for progress tracking.

Request and response models for:
- Lesson progress reports
- Course enrollment
- Course completion queries
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from .models import CourseProgress, Enrollment, EnrollmentStatus, LessonProgress


# ==============================================================================
# Lesson Progress Schemas
# ==============================================================================


class RecordLessonProgressRequest(BaseModel):
    """Progress report sent while a lesson is open."""

    is_completed: bool = False
    time_spent_delta_seconds: int = Field(
        default=0, ge=0, description="Seconds spent since the previous report"
    )
    last_position_seconds: int = Field(default=0, ge=0, description="Resume position")


class LessonProgressResponse(BaseModel):
    """Lesson progress response."""

    model_config = ConfigDict(from_attributes=True)

    lesson_id: UUID
    course_id: UUID
    module_id: UUID | None = None
    is_completed: bool
    completed_at: datetime | None = None
    last_position_seconds: int
    time_spent_seconds: int
    started_at: datetime | None = None
    last_accessed_at: datetime | None = None

    @classmethod
    def from_entity(cls, entity: LessonProgress) -> "LessonProgressResponse":
        """Create response from entity."""
        return cls(
            lesson_id=entity.lesson_id,
            course_id=entity.course_id,
            module_id=entity.module_id,
            is_completed=entity.is_completed,
            completed_at=entity.completed_at,
            last_position_seconds=entity.last_position_seconds,
            time_spent_seconds=entity.time_spent_seconds,
            started_at=entity.started_at,
            last_accessed_at=entity.last_accessed_at,
        )


# ==============================================================================
# Course Progress Schemas
# ==============================================================================


class CourseProgressResponse(BaseModel):
    """Course completion for the current user."""

    course_id: UUID
    percentage: float = Field(description="0-100 percentage")
    completed_lessons: int
    total_lessons: int
    time_spent: int = Field(description="Minutes spent on the course")

    @classmethod
    def from_entity(cls, entity: CourseProgress) -> "CourseProgressResponse":
        """Create response from entity."""
        return cls(
            course_id=entity.course_id,
            percentage=entity.percentage,
            completed_lessons=entity.completed_lessons,
            total_lessons=entity.total_lessons,
            time_spent=entity.time_spent,
        )


class ReconcileResponse(BaseModel):
    """Result of an enrollment time reconciliation."""

    course_id: UUID
    minutes_added: int
    total_time_spent: int


# ==============================================================================
# Enrollment Schemas
# ==============================================================================


class EnrollRequest(BaseModel):
    """Request to enroll in a course."""

    course_id: UUID = Field(..., description="Course UUID to enroll in")


class EnrollmentResponse(BaseModel):
    """Enrollment response."""

    model_config = ConfigDict(from_attributes=True)

    course_id: UUID
    user_id: UUID
    status: EnrollmentStatus
    enrolled_at: datetime | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    last_accessed_at: datetime | None = None
    last_lesson_id: UUID | None = None
    total_time_spent: int = Field(description="Minutes spent on the course")

    @classmethod
    def from_entity(cls, entity: Enrollment) -> "EnrollmentResponse":
        """Create response from entity."""
        return cls(
            course_id=entity.course_id,
            user_id=entity.user_id,
            status=EnrollmentStatus(entity.status),
            enrolled_at=entity.enrolled_at,
            started_at=entity.started_at,
            completed_at=entity.completed_at,
            last_accessed_at=entity.last_accessed_at,
            last_lesson_id=entity.last_lesson_id,
            total_time_spent=entity.total_time_spent,
        )


class EnrollmentListResponse(BaseModel):
    """List of user enrollments."""

    items: list[EnrollmentResponse]
    total: int
