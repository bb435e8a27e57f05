"""Pydantic schemas for quiz ingestion from the content generator."""

from uuid import UUID

from pydantic import BaseModel, Field


class GeneratedQuestion(BaseModel):
    """One generated question, consumed as-is."""

    question: str
    options: list[str] = Field(default_factory=list)
    correct_answer: str
    explanation: str | None = None
    difficulty: str | None = None
    topic: str | None = None


class SaveGeneratedQuizRequest(BaseModel):
    """Question set produced for a lesson."""

    title: str = ""
    passing_score: int = Field(default=70, ge=0, le=100)
    questions: list[GeneratedQuestion] = Field(default_factory=list)


class SaveGeneratedQuizResponse(BaseModel):
    """Stored quiz reference."""

    quiz_id: UUID
    lesson_id: UUID
    question_count: int
