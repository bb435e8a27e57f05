"""Pydantic schemas for quizzes and attempts."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from learnpath.catalog.models import Quiz

from .models import QuizAttempt
from .scoring import QuestionFeedback


# ==============================================================================
# Quiz Schemas
# ==============================================================================


class QuestionResponse(BaseModel):
    """Question as shown to a learner (no correct answer)."""

    question_id: UUID
    position: int
    question: str
    options: list[str] = []
    difficulty: str | None = None
    topic: str | None = None


class AttemptSummary(BaseModel):
    """Previous attempt, without answers."""

    attempt_id: UUID
    score: float
    is_passed: bool
    points_earned: int
    completed_at: datetime

    @classmethod
    def from_entity(cls, entity: QuizAttempt) -> "AttemptSummary":
        """Create response from entity."""
        return cls(
            attempt_id=entity.attempt_id,
            score=entity.score,
            is_passed=entity.is_passed,
            points_earned=entity.points_earned,
            completed_at=entity.completed_at,
        )


class QuizResponse(BaseModel):
    """Quiz with its questions in order and the caller's attempts."""

    quiz_id: UUID
    lesson_id: UUID
    title: str
    passing_score: int
    questions: list[QuestionResponse]
    attempts: list[AttemptSummary] = []

    @classmethod
    def from_entity(
        cls, quiz: Quiz, attempts: list[QuizAttempt] | None = None
    ) -> "QuizResponse":
        """Create response from entity."""
        return cls(
            quiz_id=quiz.quiz_id,
            lesson_id=quiz.lesson_id,
            title=quiz.title,
            passing_score=quiz.passing_score,
            questions=[
                QuestionResponse(
                    question_id=q.question_id,
                    position=q.position,
                    question=q.question,
                    options=q.options,
                    difficulty=q.difficulty,
                    topic=q.topic,
                )
                for q in quiz.questions
            ],
            attempts=[AttemptSummary.from_entity(a) for a in attempts or []],
        )


# ==============================================================================
# Attempt Schemas
# ==============================================================================


class SubmitAttemptRequest(BaseModel):
    """Answers keyed by question id."""

    answers: dict[str, str] = Field(default_factory=dict)


class FeedbackResponse(BaseModel):
    """Per-question outcome."""

    question_id: UUID
    correct: bool
    explanation: str | None = None

    @classmethod
    def from_feedback(cls, item: QuestionFeedback) -> "FeedbackResponse":
        """Create response from scoring feedback."""
        return cls(
            question_id=item.question_id,
            correct=item.correct,
            explanation=item.explanation,
        )


class AttemptResponse(BaseModel):
    """Result of a scored attempt."""

    attempt: AttemptSummary
    score: float
    is_passed: bool
    correct_count: int
    total_questions: int
    points_earned: int
    feedback: list[FeedbackResponse]


class AttemptListResponse(BaseModel):
    """Attempt history for one quiz."""

    items: list[AttemptSummary]
    total: int
