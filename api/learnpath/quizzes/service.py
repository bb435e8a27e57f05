"""Quiz attempt service.

Scores submissions, appends them to the attempt history and pays out pass
rewards through the points ledger.
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

import structlog

from learnpath.core.clock import utc_now
from learnpath.core.exceptions import ValidationError

from .models import QuizAttempt
from .scoring import ScoreResult, score_attempt


if TYPE_CHECKING:
    from cassandra.cluster import Session

    from learnpath.achievements.service import AchievementService
    from learnpath.catalog.models import Quiz
    from learnpath.catalog.service import CatalogService
    from learnpath.points.service import PointsLedger

logger = structlog.get_logger(__name__)


@dataclass
class AttemptOutcome:
    """A recorded attempt together with its scoring details."""

    attempt: QuizAttempt
    result: ScoreResult


def validate_answers(answers: object) -> dict[str, str]:
    """Check the answers map is question id -> answer, both strings.

    Raises:
        ValidationError: If the map is malformed
    """
    if not isinstance(answers, dict):
        raise ValidationError("answers must be a map of question id to answer")
    for key, value in answers.items():
        if not isinstance(key, str) or not isinstance(value, str):
            raise ValidationError("answers keys and values must be strings")
    return answers


class QuizService:
    """Service for quiz attempts."""

    def __init__(
        self,
        session: "Session",
        keyspace: str,
        catalog_service: "CatalogService",
        points_ledger: "PointsLedger",
        achievement_service: "AchievementService",
    ):
        """Initialize with Cassandra session and collaborating services."""
        self.session = session
        self.keyspace = keyspace
        self.catalog_service = catalog_service
        self.points_ledger = points_ledger
        self.achievement_service = achievement_service
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for efficient execution."""
        self._insert_attempt = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.quiz_attempts
            (user_id, quiz_id, completed_at, attempt_id, answers, score,
             is_passed, points_earned)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        """)

        self._get_attempts = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.quiz_attempts
            WHERE user_id = ? AND quiz_id = ?
        """)

    async def get_quiz(self, quiz_id: UUID) -> "Quiz":
        """Get quiz with ordered questions.

        Raises:
            QuizNotFoundError: If the quiz does not exist
        """
        return await self.catalog_service.require_quiz(quiz_id)

    async def submit_attempt(
        self,
        user_id: UUID,
        quiz_id: UUID,
        answers: dict[str, str],
    ) -> AttemptOutcome:
        """Score and record an attempt.

        Every call appends a new attempt, including retries of the same
        answers. A pass awards points and re-evaluates achievements.

        Raises:
            QuizNotFoundError: If the quiz does not exist
            ValidationError: If the answers map is malformed
        """
        answers = validate_answers(answers)
        quiz = await self.catalog_service.require_quiz(quiz_id)

        result = score_attempt(quiz, answers)
        attempt = QuizAttempt(
            attempt_id=uuid4(),
            user_id=user_id,
            quiz_id=quiz_id,
            answers=answers,
            score=result.score,
            is_passed=result.is_passed,
            completed_at=utc_now(),
            points_earned=result.points_earned,
        )

        await self.session.aexecute(
            self._insert_attempt,
            [
                attempt.user_id,
                attempt.quiz_id,
                attempt.completed_at,
                attempt.attempt_id,
                attempt.answers,
                attempt.score,
                attempt.is_passed,
                attempt.points_earned,
            ],
        )

        logger.info(
            "quiz_attempt_recorded",
            user_id=str(user_id),
            quiz_id=str(quiz_id),
            score=result.score,
            is_passed=result.is_passed,
        )

        if result.is_passed:
            await self.points_ledger.award_points(
                user_id, result.points_earned, reason="quiz_passed"
            )
            await self.achievement_service.evaluate_and_unlock(user_id)

        return AttemptOutcome(attempt=attempt, result=result)

    async def list_attempts(self, user_id: UUID, quiz_id: UUID) -> list[QuizAttempt]:
        """All attempts of a user on a quiz, newest first."""
        rows = await self.session.aexecute(self._get_attempts, [user_id, quiz_id])
        return [QuizAttempt.from_row(row) for row in rows]
