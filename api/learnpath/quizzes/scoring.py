"""Quiz scoring.

All-or-nothing per question: an answer counts only when it equals the
question's correct answer exactly. Pure function of (quiz, answers).
"""

from dataclasses import dataclass, field
from uuid import UUID

from learnpath.catalog.models import Quiz
from learnpath.points.models import PERFECT_SCORE_BONUS, QUIZ_PASS_POINTS


PERFECT_SCORE = 100.0


@dataclass(frozen=True)
class QuestionFeedback:
    """Outcome for one question. The explanation is always included."""

    question_id: UUID
    correct: bool
    explanation: str | None


@dataclass(frozen=True)
class ScoreResult:
    """Score of one attempt."""

    score: float
    is_passed: bool
    correct_count: int
    total_questions: int
    feedback: list[QuestionFeedback] = field(default_factory=list)

    @property
    def points_earned(self) -> int:
        """Points a passing attempt is worth."""
        if not self.is_passed:
            return 0
        if self.score == PERFECT_SCORE:
            return QUIZ_PASS_POINTS + PERFECT_SCORE_BONUS
        return QUIZ_PASS_POINTS


def score_attempt(quiz: Quiz, answers: dict[str, str]) -> ScoreResult:
    """Score answers against the quiz's questions in their fixed order.

    ``answers`` maps question id (string form) to the chosen answer.
    Unanswered questions are incorrect; ids that match no question are
    ignored. A quiz without questions scores 0 and passes.
    """
    feedback = []
    correct_count = 0
    for question in quiz.questions:
        given = answers.get(str(question.question_id))
        correct = given is not None and given == question.correct_answer
        if correct:
            correct_count += 1
        feedback.append(
            QuestionFeedback(
                question_id=question.question_id,
                correct=correct,
                explanation=question.explanation,
            )
        )

    total = len(quiz.questions)
    if total == 0:
        return ScoreResult(
            score=0.0,
            is_passed=True,
            correct_count=0,
            total_questions=0,
            feedback=[],
        )

    score = correct_count * 100 / total
    return ScoreResult(
        score=score,
        is_passed=score >= quiz.passing_score,
        correct_count=correct_count,
        total_questions=total,
        feedback=feedback,
    )
