"""Database models for quiz attempts.

Attempts are append-only: every submission is a new row, none is ever
overwritten or deleted.
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from learnpath.core.clock import ensure_utc_aware


# Partition key: (user_id, quiz_id) so "my attempts at this quiz" is a
# single-partition read, newest first.
QUIZ_ATTEMPTS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.quiz_attempts (
    user_id UUID,
    quiz_id UUID,
    completed_at TIMESTAMP,
    attempt_id UUID,
    answers MAP<TEXT, TEXT>,
    score DOUBLE,
    is_passed BOOLEAN,
    points_earned INT,
    PRIMARY KEY ((user_id, quiz_id), completed_at, attempt_id)
) WITH CLUSTERING ORDER BY (completed_at DESC, attempt_id ASC)
"""

QUIZZES_TABLES_CQL = [
    QUIZ_ATTEMPTS_TABLE_CQL,
]


class QuizAttempt:
    """One scoring event."""

    def __init__(
        self,
        attempt_id: UUID,
        user_id: UUID,
        quiz_id: UUID,
        answers: dict[str, str],
        score: float,
        is_passed: bool,
        completed_at: datetime,
        points_earned: int = 0,
    ):
        self.attempt_id = attempt_id
        self.user_id = user_id
        self.quiz_id = quiz_id
        self.answers = answers
        self.score = score
        self.is_passed = is_passed
        self.completed_at = ensure_utc_aware(completed_at)
        self.points_earned = points_earned

    @classmethod
    def from_row(cls, row: Any) -> "QuizAttempt":
        """Create QuizAttempt instance from Cassandra row."""
        return cls(
            attempt_id=row.attempt_id,
            user_id=row.user_id,
            quiz_id=row.quiz_id,
            answers=dict(row.answers or {}),
            score=row.score or 0.0,
            is_passed=bool(row.is_passed),
            completed_at=row.completed_at,
            points_earned=row.points_earned or 0,
        )

    def __repr__(self) -> str:
        return f"<QuizAttempt {self.attempt_id} score={self.score} passed={self.is_passed}>"
