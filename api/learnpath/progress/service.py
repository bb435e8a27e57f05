"""Progress tracking service.

Business logic for:
- Course enrollment
- Lesson progress reports (monotonic completion, accumulated time)
- Course completion computed from lesson progress
- Enrollment time reconciliation
"""

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

import structlog
from cassandra import DriverException, RequestExecutionException

from learnpath.core.clock import utc_now
from learnpath.core.exceptions import ConflictError, NotFoundError, ValidationError

from .models import CourseProgress, Enrollment, EnrollmentStatus, LessonProgress


if TYPE_CHECKING:
    from cassandra.cluster import Session

    from learnpath.achievements.service import AchievementService
    from learnpath.catalog.service import CatalogService
    from learnpath.users.service import UserService

logger = structlog.get_logger(__name__)

SECONDS_PER_MINUTE = 60


# ==============================================================================
# Exceptions
# ==============================================================================


class NotEnrolledError(NotFoundError):
    """User not enrolled in course."""

    def __init__(self, message: str = "User is not enrolled in this course"):
        super().__init__(message, "not_enrolled")


class AlreadyEnrolledError(ConflictError):
    """User already enrolled in course."""

    def __init__(self, message: str = "User is already enrolled in this course"):
        super().__init__(message, "already_enrolled")


class LessonProgressNotFoundError(NotFoundError):
    """Lesson progress not found."""

    def __init__(self, message: str = "No progress recorded for this lesson"):
        super().__init__(message, "progress_not_found")


# ==============================================================================
# Progress Service
# ==============================================================================


class ProgressService:
    """Service for lesson progress and enrollments."""

    def __init__(
        self,
        session: "Session",
        keyspace: str,
        catalog_service: "CatalogService",
        user_service: "UserService",
        achievement_service: "AchievementService | None" = None,
    ):
        """Initialize with Cassandra session and collaborating services.

        ``achievement_service`` reads facts from this service, so it is
        usually attached after both are built.
        """
        self.session = session
        self.keyspace = keyspace
        self.catalog_service = catalog_service
        self.user_service = user_service
        self.achievement_service = achievement_service
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for efficient execution."""
        # Enrollments
        self._insert_enrollment = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.enrollments
            (user_id, course_id, status, enrolled_at, last_accessed_at)
            VALUES (?, ?, ?, ?, ?)
            IF NOT EXISTS
        """)

        self._get_enrollment = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.enrollments
            WHERE user_id = ? AND course_id = ?
        """)

        self._get_user_enrollments = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.enrollments WHERE user_id = ?
        """)

        self._touch_enrollment = self.session.prepare(f"""
            UPDATE {self.keyspace}.enrollments
            SET last_accessed_at = ?, last_lesson_id = ?
            WHERE user_id = ? AND course_id = ?
            IF EXISTS
        """)

        self._start_enrollment = self.session.prepare(f"""
            UPDATE {self.keyspace}.enrollments
            SET status = ?, started_at = ?
            WHERE user_id = ? AND course_id = ?
            IF status = ?
        """)

        self._complete_enrollment = self.session.prepare(f"""
            UPDATE {self.keyspace}.enrollments
            SET status = ?, completed_at = ?
            WHERE user_id = ? AND course_id = ?
            IF status != ?
        """)

        # Enrollment time counters
        self._get_enrollment_time = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.enrollment_time
            WHERE user_id = ? AND course_id = ?
        """)

        self._get_user_enrollment_times = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.enrollment_time WHERE user_id = ?
        """)

        self._add_lesson_minutes = self.session.prepare(f"""
            UPDATE {self.keyspace}.enrollment_time
            SET lesson_minutes = lesson_minutes + ?
            WHERE user_id = ? AND course_id = ?
        """)

        self._add_session_minutes = self.session.prepare(f"""
            UPDATE {self.keyspace}.enrollment_time
            SET session_minutes = session_minutes + ?
            WHERE user_id = ? AND course_id = ?
        """)

        # Lesson progress
        self._insert_progress = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.lesson_progress
            (user_id, course_id, lesson_id, module_id, is_completed,
             last_position_seconds, started_at, last_accessed_at)
            VALUES (?, ?, ?, ?, false, ?, ?, ?)
            IF NOT EXISTS
        """)

        self._get_progress = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.lesson_progress
            WHERE user_id = ? AND course_id = ? AND lesson_id = ?
        """)

        self._get_course_progress_rows = self.session.prepare(f"""
            SELECT lesson_id, is_completed FROM {self.keyspace}.lesson_progress
            WHERE user_id = ? AND course_id = ?
        """)

        self._get_user_progress_rows = self.session.prepare(f"""
            SELECT lesson_id, is_completed FROM {self.keyspace}.lesson_progress
            WHERE user_id = ?
        """)

        self._update_position = self.session.prepare(f"""
            UPDATE {self.keyspace}.lesson_progress
            SET last_position_seconds = ?, last_accessed_at = ?
            WHERE user_id = ? AND course_id = ? AND lesson_id = ?
            IF EXISTS
        """)

        self._complete_progress = self.session.prepare(f"""
            UPDATE {self.keyspace}.lesson_progress
            SET is_completed = true, completed_at = ?
            WHERE user_id = ? AND course_id = ? AND lesson_id = ?
            IF is_completed = false
        """)

        # Lesson time counters
        self._add_lesson_time = self.session.prepare(f"""
            UPDATE {self.keyspace}.lesson_progress_time
            SET time_spent_seconds = time_spent_seconds + ?,
                minutes_credited = minutes_credited + ?
            WHERE user_id = ? AND course_id = ? AND lesson_id = ?
        """)

        self._get_lesson_time = self.session.prepare(f"""
            SELECT time_spent_seconds FROM {self.keyspace}.lesson_progress_time
            WHERE user_id = ? AND course_id = ? AND lesson_id = ?
        """)

        self._get_course_minutes_credited = self.session.prepare(f"""
            SELECT minutes_credited FROM {self.keyspace}.lesson_progress_time
            WHERE user_id = ? AND course_id = ?
        """)

    # ==========================================================================
    # Enrollment Operations
    # ==========================================================================

    async def enroll_user(self, user_id: UUID, course_id: UUID) -> Enrollment:
        """Enroll user in a course.

        Args:
            user_id: User UUID
            course_id: Course UUID

        Returns:
            Created Enrollment entity

        Raises:
            CourseNotFoundError: If the course does not exist
            AlreadyEnrolledError: If user is already enrolled
        """
        await self.catalog_service.require_course(course_id)

        enrollment, created = await self._create_enrollment(user_id, course_id)
        if not created:
            raise AlreadyEnrolledError
        return enrollment

    async def ensure_enrollment(self, user_id: UUID, course_id: UUID) -> Enrollment:
        """Get the enrollment, creating it when missing.

        Tolerates concurrent creators: whoever loses the insert reads the
        winner's row.
        """
        enrollment = await self.get_enrollment(user_id, course_id)
        if enrollment:
            return enrollment
        enrollment, _ = await self._create_enrollment(user_id, course_id)
        return enrollment

    async def _create_enrollment(
        self, user_id: UUID, course_id: UUID
    ) -> tuple[Enrollment, bool]:
        now = utc_now()
        result = await self.session.aexecute(
            self._insert_enrollment,
            [user_id, course_id, EnrollmentStatus.ENROLLED.value, now, now],
        )
        if not result.was_applied:
            existing = await self.get_enrollment(user_id, course_id)
            if existing is None:
                raise NotEnrolledError
            return existing, False

        logger.info(
            "user_enrolled",
            user_id=str(user_id),
            course_id=str(course_id),
        )
        enrollment = Enrollment(
            user_id=user_id,
            course_id=course_id,
            status=EnrollmentStatus.ENROLLED.value,
            enrolled_at=now,
            last_accessed_at=now,
        )
        return enrollment, True

    async def get_enrollment(self, user_id: UUID, course_id: UUID) -> Enrollment | None:
        """Get enrollment for user in course, with its time totals."""
        result = await self.session.aexecute(self._get_enrollment, [user_id, course_id])
        row = result.one()
        if not row:
            return None
        time_result = await self.session.aexecute(
            self._get_enrollment_time, [user_id, course_id]
        )
        return Enrollment.from_row(row, time_result.one())

    async def require_enrollment(self, user_id: UUID, course_id: UUID) -> Enrollment:
        """Get enrollment or raise NotEnrolledError."""
        enrollment = await self.get_enrollment(user_id, course_id)
        if enrollment is None:
            raise NotEnrolledError
        return enrollment

    async def get_user_enrollments(self, user_id: UUID) -> list[Enrollment]:
        """Get all enrollments for a user."""
        rows = await self.session.aexecute(self._get_user_enrollments, [user_id])
        time_rows = await self.session.aexecute(self._get_user_enrollment_times, [user_id])
        times = {row.course_id: row for row in time_rows}
        return [Enrollment.from_row(row, times.get(row.course_id)) for row in rows]

    async def count_completed_courses(self, user_id: UUID) -> int:
        """Number of enrollments with status COMPLETED."""
        enrollments = await self.get_user_enrollments(user_id)
        return sum(1 for e in enrollments if e.is_completed)

    async def _mark_enrollment_completed(
        self, user_id: UUID, course_id: UUID, at: datetime
    ) -> bool:
        result = await self.session.aexecute(
            self._complete_enrollment,
            [
                EnrollmentStatus.COMPLETED.value,
                at,
                user_id,
                course_id,
                EnrollmentStatus.COMPLETED.value,
            ],
        )
        if result.was_applied:
            logger.info(
                "course_completed",
                user_id=str(user_id),
                course_id=str(course_id),
            )
        return bool(result.was_applied)

    # ==========================================================================
    # Lesson Progress Operations
    # ==========================================================================

    async def record_lesson_progress(
        self,
        user_id: UUID,
        lesson_id: UUID,
        is_completed: bool = False,
        time_spent_delta_seconds: int = 0,
        last_position_seconds: int = 0,
    ) -> LessonProgress:
        """Record a progress report for a lesson.

        Upsert semantics: the first report creates the progress row, later
        ones update it. Time is added, never overwritten. Completion is
        terminal; a later report with ``is_completed=False`` leaves it set.
        The enrollment is created on first report and credited
        ``floor(delta / 60)`` minutes.
        A completion report is followed by achievement evaluation, which also
        pays rewards left pending by an earlier failed report.

        Raises:
            ValidationError: If the time delta or position is negative
            UserNotFoundError: If the user is not mirrored locally
            LessonNotFoundError: If the lesson does not exist
        """
        if time_spent_delta_seconds < 0:
            raise ValidationError("time_spent_delta_seconds must not be negative")
        if last_position_seconds < 0:
            raise ValidationError("last_position_seconds must not be negative")

        await self.user_service.require_user(user_id)
        lesson = await self.catalog_service.require_lesson(lesson_id)
        course_id = lesson.course_id
        now = utc_now()

        enrollment = await self.ensure_enrollment(user_id, course_id)

        # Create or update the progress row
        existing = await self._get_progress_row(user_id, course_id, lesson_id)
        created = False
        if existing is None:
            result = await self.session.aexecute(
                self._insert_progress,
                [
                    user_id,
                    course_id,
                    lesson_id,
                    lesson.module_id,
                    last_position_seconds,
                    now,
                    now,
                ],
            )
            created = bool(result.was_applied)
        if not created:
            await self.session.aexecute(
                self._update_position,
                [last_position_seconds, now, user_id, course_id, lesson_id],
            )

        # Completion is only ever written conditionally
        newly_completed = False
        if is_completed:
            result = await self.session.aexecute(
                self._complete_progress, [now, user_id, course_id, lesson_id]
            )
            newly_completed = bool(result.was_applied)
            if newly_completed:
                logger.info(
                    "lesson_completed",
                    user_id=str(user_id),
                    lesson_id=str(lesson_id),
                    course_id=str(course_id),
                )
        elif existing is not None and existing.is_completed:
            logger.debug(
                "lesson_completion_downgrade_ignored",
                user_id=str(user_id),
                lesson_id=str(lesson_id),
            )

        minutes = time_spent_delta_seconds // SECONDS_PER_MINUTE
        if time_spent_delta_seconds > 0:
            await self.session.aexecute(
                self._add_lesson_time,
                [time_spent_delta_seconds, minutes, user_id, course_id, lesson_id],
            )

        await self.session.aexecute(
            self._touch_enrollment, [now, lesson_id, user_id, course_id]
        )
        if minutes > 0:
            await self._credit_enrollment_minutes(user_id, course_id, minutes)

        if enrollment.status == EnrollmentStatus.ENROLLED.value:
            await self.session.aexecute(
                self._start_enrollment,
                [
                    EnrollmentStatus.IN_PROGRESS.value,
                    now,
                    user_id,
                    course_id,
                    EnrollmentStatus.ENROLLED.value,
                ],
            )

        if newly_completed:
            course_progress = await self._compute_course_progress(user_id, course_id)
            if course_progress.is_complete:
                await self._mark_enrollment_completed(user_id, course_id, now)

        await self.user_service.record_activity(user_id, now)

        progress = await self._load_progress(user_id, course_id, lesson_id)
        if progress is None:
            raise LessonProgressNotFoundError

        if is_completed and self.achievement_service is not None:
            await self.achievement_service.evaluate_and_unlock(user_id)
        return progress

    async def _credit_enrollment_minutes(
        self, user_id: UUID, course_id: UUID, minutes: int
    ) -> None:
        """Add lesson minutes to the enrollment, reconciling on failure.

        The progress counters are already written at this point and are the
        source of truth, so a failed increment is repaired from them.
        """
        try:
            await self.session.aexecute(
                self._add_lesson_minutes, [minutes, user_id, course_id]
            )
        except (DriverException, RequestExecutionException) as e:
            logger.warning(
                "enrollment_time_increment_failed",
                user_id=str(user_id),
                course_id=str(course_id),
                minutes=minutes,
                error=str(e),
            )
            await self.reconcile_enrollment_time(user_id, course_id)

    async def reconcile_enrollment_time(self, user_id: UUID, course_id: UUID) -> int:
        """Top up the enrollment's lesson minutes from lesson minute credits.

        Returns:
            Minutes added (0 when already consistent)
        """
        credited_rows = await self.session.aexecute(
            self._get_course_minutes_credited, [user_id, course_id]
        )
        expected = sum((row.minutes_credited or 0) for row in credited_rows)

        time_result = await self.session.aexecute(
            self._get_enrollment_time, [user_id, course_id]
        )
        time_row = time_result.one()
        recorded = (time_row.lesson_minutes or 0) if time_row else 0

        missing = expected - recorded
        if missing <= 0:
            return 0

        await self.session.aexecute(self._add_lesson_minutes, [missing, user_id, course_id])
        logger.info(
            "enrollment_time_reconciled",
            user_id=str(user_id),
            course_id=str(course_id),
            minutes_added=missing,
        )
        return missing

    async def add_session_minutes(self, user_id: UUID, course_id: UUID, minutes: int) -> None:
        """Credit study session minutes to the enrollment, if one exists."""
        if minutes <= 0:
            return
        enrollment = await self.get_enrollment(user_id, course_id)
        if enrollment is None:
            return
        await self.session.aexecute(
            self._add_session_minutes, [minutes, user_id, course_id]
        )

    async def _get_progress_row(
        self, user_id: UUID, course_id: UUID, lesson_id: UUID
    ) -> LessonProgress | None:
        result = await self.session.aexecute(
            self._get_progress, [user_id, course_id, lesson_id]
        )
        row = result.one()
        return LessonProgress.from_row(row) if row else None

    async def _load_progress(
        self, user_id: UUID, course_id: UUID, lesson_id: UUID
    ) -> LessonProgress | None:
        result = await self.session.aexecute(
            self._get_progress, [user_id, course_id, lesson_id]
        )
        row = result.one()
        if not row:
            return None
        time_result = await self.session.aexecute(
            self._get_lesson_time, [user_id, course_id, lesson_id]
        )
        time_row = time_result.one()
        time_spent = (time_row.time_spent_seconds or 0) if time_row else 0
        return LessonProgress.from_row(row, time_spent)

    async def get_lesson_progress(
        self, user_id: UUID, lesson_id: UUID
    ) -> LessonProgress | None:
        """Get progress for a specific lesson.

        Raises:
            LessonNotFoundError: If the lesson does not exist
        """
        lesson = await self.catalog_service.require_lesson(lesson_id)
        return await self._load_progress(user_id, lesson.course_id, lesson_id)

    async def count_completed_lessons(self, user_id: UUID) -> int:
        """Number of completed lessons across all courses."""
        rows = await self.session.aexecute(self._get_user_progress_rows, [user_id])
        return sum(1 for row in rows if row.is_completed)

    # ==========================================================================
    # Course Completion
    # ==========================================================================

    async def _compute_course_progress(
        self, user_id: UUID, course_id: UUID, time_spent: int = 0
    ) -> CourseProgress:
        lesson_ids = await self.catalog_service.list_course_lesson_ids(course_id)
        rows = await self.session.aexecute(
            self._get_course_progress_rows, [user_id, course_id]
        )
        completed = sum(
            1 for row in rows if row.is_completed and row.lesson_id in lesson_ids
        )
        return CourseProgress(
            course_id=course_id,
            completed_lessons=completed,
            total_lessons=len(lesson_ids),
            time_spent=time_spent,
        )

    async def get_course_progress(self, user_id: UUID, course_id: UUID) -> CourseProgress:
        """Compute course completion for a user.

        Not stored: derived from lesson progress on every call. A user who is
        not enrolled gets 0% without error.
        """
        enrollment = await self.get_enrollment(user_id, course_id)
        if enrollment is None:
            total = len(await self.catalog_service.list_course_lesson_ids(course_id))
            return CourseProgress(course_id=course_id, completed_lessons=0, total_lessons=total)

        return await self._compute_course_progress(
            user_id, course_id, time_spent=enrollment.total_time_spent
        )
