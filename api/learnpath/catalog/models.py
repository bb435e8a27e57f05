"""Database models for the read-only course catalog.

Courses, lessons and quizzes are owned by authoring workflows. The ledger
only reads them, except for ingesting AI-generated quiz question sets.

Tables:
- courses / lessons: main tables
- lessons_by_course: lesson ids per course, clustered by module
- quizzes / quiz_questions: quiz header and its questions in fixed order
- quizzes_by_lesson: lookup from lesson to its quiz
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from learnpath.core.clock import ensure_utc_aware, utc_now


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

COURSES_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.courses (
    course_id UUID PRIMARY KEY,
    title TEXT,
    description TEXT,
    instructor_id UUID,
    created_at TIMESTAMP
)
"""

LESSONS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.lessons (
    lesson_id UUID PRIMARY KEY,
    course_id UUID,
    module_id UUID,
    title TEXT,
    duration_seconds INT,
    position INT
)
"""

# Partition key: course_id so "how many lessons does this course have?" is a
# single-partition read. Clustering follows the module -> lesson hierarchy.
LESSONS_BY_COURSE_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.lessons_by_course (
    course_id UUID,
    module_id UUID,
    lesson_id UUID,
    PRIMARY KEY (course_id, module_id, lesson_id)
)
"""

QUIZZES_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.quizzes (
    quiz_id UUID PRIMARY KEY,
    lesson_id UUID,
    title TEXT,
    passing_score INT,
    created_at TIMESTAMP
)
"""

QUIZ_QUESTIONS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.quiz_questions (
    quiz_id UUID,
    position INT,
    question_id UUID,
    question TEXT,
    options LIST<TEXT>,
    correct_answer TEXT,
    explanation TEXT,
    difficulty TEXT,
    topic TEXT,
    PRIMARY KEY (quiz_id, position)
) WITH CLUSTERING ORDER BY (position ASC)
"""

QUIZZES_BY_LESSON_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.quizzes_by_lesson (
    lesson_id UUID PRIMARY KEY,
    quiz_id UUID
)
"""

CATALOG_TABLES_CQL = [
    COURSES_TABLE_CQL,
    LESSONS_TABLE_CQL,
    LESSONS_BY_COURSE_TABLE_CQL,
    QUIZZES_TABLE_CQL,
    QUIZ_QUESTIONS_TABLE_CQL,
    QUIZZES_BY_LESSON_TABLE_CQL,
]


# ==============================================================================
# Entity Classes
# ==============================================================================


class Course:
    """Course header (read-only here)."""

    def __init__(
        self,
        course_id: UUID,
        title: str,
        description: str | None = None,
        instructor_id: UUID | None = None,
        created_at: datetime | None = None,
    ):
        self.course_id = course_id
        self.title = title
        self.description = description
        self.instructor_id = instructor_id
        self.created_at = ensure_utc_aware(created_at)

    @classmethod
    def from_row(cls, row: Any) -> "Course":
        """Create Course instance from Cassandra row."""
        return cls(
            course_id=row.course_id,
            title=row.title or "",
            description=row.description,
            instructor_id=row.instructor_id,
            created_at=row.created_at,
        )


class Lesson:
    """Atomic unit of content within a course module."""

    def __init__(
        self,
        lesson_id: UUID,
        course_id: UUID,
        module_id: UUID,
        title: str = "",
        duration_seconds: int | None = None,
        position: int = 0,
    ):
        self.lesson_id = lesson_id
        self.course_id = course_id
        self.module_id = module_id
        self.title = title
        self.duration_seconds = duration_seconds
        self.position = position

    @classmethod
    def from_row(cls, row: Any) -> "Lesson":
        """Create Lesson instance from Cassandra row."""
        return cls(
            lesson_id=row.lesson_id,
            course_id=row.course_id,
            module_id=row.module_id,
            title=row.title or "",
            duration_seconds=row.duration_seconds,
            position=row.position or 0,
        )


class Question:
    """One quiz item. Answers are compared by exact value equality."""

    def __init__(
        self,
        question_id: UUID,
        position: int,
        question: str,
        correct_answer: str,
        options: list[str] | None = None,
        explanation: str | None = None,
        difficulty: str | None = None,
        topic: str | None = None,
    ):
        self.question_id = question_id
        self.position = position
        self.question = question
        self.correct_answer = correct_answer
        self.options = options or []
        self.explanation = explanation
        self.difficulty = difficulty
        self.topic = topic

    @classmethod
    def from_row(cls, row: Any) -> "Question":
        """Create Question instance from Cassandra row."""
        return cls(
            question_id=row.question_id,
            position=row.position,
            question=row.question or "",
            correct_answer=row.correct_answer,
            options=list(row.options or []),
            explanation=row.explanation,
            difficulty=row.difficulty,
            topic=row.topic,
        )


class Quiz:
    """A scored assessment tied to a lesson, with questions in fixed order."""

    def __init__(
        self,
        quiz_id: UUID,
        lesson_id: UUID,
        passing_score: int,
        title: str = "",
        questions: list[Question] | None = None,
        created_at: datetime | None = None,
    ):
        self.quiz_id = quiz_id
        self.lesson_id = lesson_id
        self.passing_score = passing_score
        self.title = title
        self.questions = sorted(questions or [], key=lambda q: q.position)
        self.created_at = ensure_utc_aware(created_at) or utc_now()

    @classmethod
    def from_rows(cls, row: Any, question_rows: list[Any]) -> "Quiz":
        """Create Quiz from its header row and question rows."""
        return cls(
            quiz_id=row.quiz_id,
            lesson_id=row.lesson_id,
            passing_score=row.passing_score if row.passing_score is not None else 0,
            title=row.title or "",
            questions=[Question.from_row(q) for q in question_rows],
            created_at=row.created_at,
        )

    def __repr__(self) -> str:
        return (
            f"<Quiz {self.quiz_id} lesson={self.lesson_id} "
            f"questions={len(self.questions)} pass>={self.passing_score}>"
        )
