"""Pydantic schemas for study sessions."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from .models import StudySession


class StartSessionRequest(BaseModel):
    """Start studying, optionally within a course and lesson."""

    course_id: UUID | None = None
    lesson_id: UUID | None = None


class EndSessionRequest(BaseModel):
    """End a previously started session."""

    session_id: UUID = Field(..., description="Session UUID")


class StudySessionResponse(BaseModel):
    """Study session."""

    session_id: UUID
    user_id: UUID
    course_id: UUID | None = None
    lesson_id: UUID | None = None
    start_time: datetime
    end_time: datetime | None = None
    duration_seconds: int
    is_active: bool

    @classmethod
    def from_entity(cls, entity: StudySession) -> "StudySessionResponse":
        """Create response from entity."""
        return cls(
            session_id=entity.session_id,
            user_id=entity.user_id,
            course_id=entity.course_id,
            lesson_id=entity.lesson_id,
            start_time=entity.start_time,
            end_time=entity.end_time,
            duration_seconds=entity.duration_seconds,
            is_active=entity.is_active,
        )


class EndSessionResponse(BaseModel):
    """Closed session with the points it earned."""

    session: StudySessionResponse
    points_earned: int


class StudySessionListResponse(BaseModel):
    """List of study sessions."""

    items: list[StudySessionResponse]
    total: int
