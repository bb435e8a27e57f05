"""Study session tracking.

Converts closed sessions into points (one per full minute) and enrollment
time. Ending is terminal: a second end is a conflict, not a no-op.
"""

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

import structlog

from learnpath.core.clock import utc_now
from learnpath.core.exceptions import ConflictError, NotFoundError, UnauthorizedError
from learnpath.points.models import SECONDS_PER_STUDY_POINT
from learnpath.progress.service import SECONDS_PER_MINUTE

from .models import StudySession


if TYPE_CHECKING:
    from cassandra.cluster import Session

    from learnpath.achievements.service import AchievementService
    from learnpath.points.service import PointsLedger
    from learnpath.progress.service import ProgressService
    from learnpath.users.service import UserService

logger = structlog.get_logger(__name__)


class SessionNotFoundError(NotFoundError):
    """Study session not found."""

    def __init__(self, message: str = "Study session not found"):
        super().__init__(message, "session_not_found")


class SessionAlreadyEndedError(ConflictError):
    """Study session already ended."""

    def __init__(self, message: str = "Study session already ended"):
        super().__init__(message, "session_already_ended")


class NotSessionOwnerError(UnauthorizedError):
    """Session belongs to another user."""

    def __init__(self, message: str = "Study session belongs to another user"):
        super().__init__(message, "not_session_owner")


def session_duration_seconds(start_time: datetime, end_time: datetime) -> int:
    """Whole seconds between start and end (never negative)."""
    return max(0, int((end_time - start_time).total_seconds()))


class StudySessionService:
    """Service for study sessions."""

    def __init__(
        self,
        session: "Session",
        keyspace: str,
        user_service: "UserService",
        progress_service: "ProgressService",
        points_ledger: "PointsLedger",
        achievement_service: "AchievementService",
    ):
        """Initialize with Cassandra session and collaborating services."""
        self.session = session
        self.keyspace = keyspace
        self.user_service = user_service
        self.progress_service = progress_service
        self.points_ledger = points_ledger
        self.achievement_service = achievement_service
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for efficient execution."""
        self._insert_session = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.study_sessions
            (session_id, user_id, course_id, lesson_id, start_time,
             duration_seconds, points_earned, is_active)
            VALUES (?, ?, ?, ?, ?, 0, 0, true)
        """)

        self._insert_session_by_user = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.study_sessions_by_user
            (user_id, start_time, session_id, course_id, lesson_id)
            VALUES (?, ?, ?, ?, ?)
        """)

        self._get_session = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.study_sessions WHERE session_id = ?
        """)

        self._get_sessions = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.study_sessions WHERE session_id IN ?
        """)

        self._get_user_session_ids = self.session.prepare(f"""
            SELECT session_id FROM {self.keyspace}.study_sessions_by_user
            WHERE user_id = ?
            LIMIT ?
        """)

        self._end_session = self.session.prepare(f"""
            UPDATE {self.keyspace}.study_sessions
            SET end_time = ?, duration_seconds = ?, points_earned = ?, is_active = false
            WHERE session_id = ?
            IF is_active = true
        """)

    async def start_session(
        self,
        user_id: UUID,
        course_id: UUID | None = None,
        lesson_id: UUID | None = None,
    ) -> StudySession:
        """Open a new active session.

        Raises:
            UserNotFoundError: If the user is not mirrored locally
        """
        await self.user_service.require_user(user_id)

        study_session = StudySession(
            session_id=uuid4(),
            user_id=user_id,
            course_id=course_id,
            lesson_id=lesson_id,
            start_time=utc_now(),
        )
        await self.session.aexecute(
            self._insert_session,
            [
                study_session.session_id,
                user_id,
                course_id,
                lesson_id,
                study_session.start_time,
            ],
        )
        await self.session.aexecute(
            self._insert_session_by_user,
            [
                user_id,
                study_session.start_time,
                study_session.session_id,
                course_id,
                lesson_id,
            ],
        )

        logger.info(
            "study_session_started",
            session_id=str(study_session.session_id),
            user_id=str(user_id),
        )
        return study_session

    async def get_session(self, session_id: UUID) -> StudySession | None:
        """Get session by id."""
        result = await self.session.aexecute(self._get_session, [session_id])
        row = result.one()
        return StudySession.from_row(row) if row else None

    async def end_session(self, session_id: UUID, user_id: UUID) -> StudySession:
        """Close an active session and pay out its points.

        The close is a conditional update, so of two concurrent ends exactly
        one wins and only the winner awards points.

        Raises:
            SessionNotFoundError: If the session does not exist
            NotSessionOwnerError: If the session belongs to another user
            SessionAlreadyEndedError: If the session was already ended
        """
        study_session = await self.get_session(session_id)
        if study_session is None:
            raise SessionNotFoundError
        if study_session.user_id != user_id:
            raise NotSessionOwnerError
        if not study_session.is_active:
            raise SessionAlreadyEndedError

        end_time = utc_now()
        duration = session_duration_seconds(study_session.start_time, end_time)
        points = duration // SECONDS_PER_STUDY_POINT

        result = await self.session.aexecute(
            self._end_session, [end_time, duration, points, session_id]
        )
        if not result.was_applied:
            raise SessionAlreadyEndedError

        study_session.end_time = end_time
        study_session.duration_seconds = duration
        study_session.points_earned = points
        study_session.is_active = False

        logger.info(
            "study_session_ended",
            session_id=str(session_id),
            user_id=str(user_id),
            duration_seconds=duration,
            points_earned=points,
        )

        await self.points_ledger.award_points(user_id, points, reason="study_session")
        if study_session.course_id is not None:
            await self.progress_service.add_session_minutes(
                user_id, study_session.course_id, duration // SECONDS_PER_MINUTE
            )
        await self.user_service.record_activity(user_id, end_time)
        await self.achievement_service.evaluate_and_unlock(user_id)

        return study_session

    async def list_active_sessions(self, user_id: UUID, limit: int = 50) -> list[StudySession]:
        """Still-active sessions among the user's most recent ones."""
        id_rows = await self.session.aexecute(self._get_user_session_ids, [user_id, limit])
        session_ids = [row.session_id for row in id_rows]
        if not session_ids:
            return []
        rows = await self.session.aexecute(self._get_sessions, [session_ids])
        sessions = [StudySession.from_row(row) for row in rows]
        active = [s for s in sessions if s.is_active]
        return sorted(active, key=lambda s: s.start_time, reverse=True)
