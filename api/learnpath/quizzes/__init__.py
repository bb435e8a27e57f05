"""Quiz attempts: scoring, append-only recording and pass rewards."""

from .models import QUIZZES_TABLES_CQL, QuizAttempt
from .scoring import ScoreResult, score_attempt


__all__ = ["QUIZZES_TABLES_CQL", "QuizAttempt", "ScoreResult", "score_attempt"]
