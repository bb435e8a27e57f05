"""Database models for timed study sessions.

States: ACTIVE -> ENDED (terminal). Sessions are append-only: each start
creates a new row.

Tables:
- study_sessions: main table, closed with a conditional update
- study_sessions_by_user: lookup for "my sessions", newest first
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from learnpath.core.clock import ensure_utc_aware


STUDY_SESSIONS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.study_sessions (
    session_id UUID PRIMARY KEY,
    user_id UUID,
    course_id UUID,
    lesson_id UUID,
    start_time TIMESTAMP,
    end_time TIMESTAMP,
    duration_seconds INT,
    points_earned INT,
    is_active BOOLEAN
)
"""

STUDY_SESSIONS_BY_USER_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.study_sessions_by_user (
    user_id UUID,
    start_time TIMESTAMP,
    session_id UUID,
    course_id UUID,
    lesson_id UUID,
    PRIMARY KEY ((user_id), start_time, session_id)
) WITH CLUSTERING ORDER BY (start_time DESC, session_id ASC)
"""

STUDY_SESSIONS_TABLES_CQL = [
    STUDY_SESSIONS_TABLE_CQL,
    STUDY_SESSIONS_BY_USER_TABLE_CQL,
]


class StudySession:
    """A timed interval of study."""

    def __init__(
        self,
        session_id: UUID,
        user_id: UUID,
        start_time: datetime,
        course_id: UUID | None = None,
        lesson_id: UUID | None = None,
        end_time: datetime | None = None,
        duration_seconds: int = 0,
        points_earned: int = 0,
        is_active: bool = True,
    ):
        self.session_id = session_id
        self.user_id = user_id
        self.course_id = course_id
        self.lesson_id = lesson_id
        self.start_time = ensure_utc_aware(start_time)
        self.end_time = ensure_utc_aware(end_time)
        self.duration_seconds = duration_seconds
        self.points_earned = points_earned
        self.is_active = is_active

    @classmethod
    def from_row(cls, row: Any) -> "StudySession":
        """Create StudySession instance from Cassandra row."""
        return cls(
            session_id=row.session_id,
            user_id=row.user_id,
            course_id=row.course_id,
            lesson_id=row.lesson_id,
            start_time=row.start_time,
            end_time=row.end_time,
            duration_seconds=row.duration_seconds or 0,
            points_earned=row.points_earned or 0,
            is_active=bool(row.is_active),
        )

    def __repr__(self) -> str:
        return f"<StudySession {self.session_id} user={self.user_id} active={self.is_active}>"
