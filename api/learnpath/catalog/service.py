"""Catalog read service.

Reads courses, lessons and quizzes for the ledger, and ingests quiz question
sets produced by the AI content generator without judging their quality.
"""

from typing import TYPE_CHECKING
from uuid import UUID, uuid4

import structlog

from learnpath.core.clock import utc_now
from learnpath.core.exceptions import NotFoundError, ValidationError

from .models import Course, Lesson, Question, Quiz


if TYPE_CHECKING:
    from cassandra.cluster import Session

logger = structlog.get_logger(__name__)


class CourseNotFoundError(NotFoundError):
    """Course not found."""

    def __init__(self, message: str = "Course not found"):
        super().__init__(message, "course_not_found")


class LessonNotFoundError(NotFoundError):
    """Lesson not found."""

    def __init__(self, message: str = "Lesson not found"):
        super().__init__(message, "lesson_not_found")


class QuizNotFoundError(NotFoundError):
    """Quiz not found."""

    def __init__(self, message: str = "Quiz not found"):
        super().__init__(message, "quiz_not_found")


class CatalogService:
    """Read access to courses, lessons and quizzes."""

    def __init__(self, session: "Session", keyspace: str):
        """Initialize with Cassandra session."""
        self.session = session
        self.keyspace = keyspace
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for efficient execution."""
        self._get_course = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.courses WHERE course_id = ?
        """)

        self._get_lesson = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.lessons WHERE lesson_id = ?
        """)

        self._get_course_lesson_ids = self.session.prepare(f"""
            SELECT lesson_id FROM {self.keyspace}.lessons_by_course
            WHERE course_id = ?
        """)

        self._get_quiz = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.quizzes WHERE quiz_id = ?
        """)

        self._get_quiz_questions = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.quiz_questions WHERE quiz_id = ?
        """)

        self._get_quiz_id_by_lesson = self.session.prepare(f"""
            SELECT quiz_id FROM {self.keyspace}.quizzes_by_lesson
            WHERE lesson_id = ?
        """)

        self._insert_quiz = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.quizzes
            (quiz_id, lesson_id, title, passing_score, created_at)
            VALUES (?, ?, ?, ?, ?)
        """)

        self._insert_question = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.quiz_questions
            (quiz_id, position, question_id, question, options, correct_answer,
             explanation, difficulty, topic)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
        """)

        self._upsert_quiz_by_lesson = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.quizzes_by_lesson (lesson_id, quiz_id)
            VALUES (?, ?)
        """)

    # ==========================================================================
    # Courses and Lessons
    # ==========================================================================

    async def get_course(self, course_id: UUID) -> Course | None:
        """Get course by id."""
        result = await self.session.aexecute(self._get_course, [course_id])
        row = result.one()
        return Course.from_row(row) if row else None

    async def require_course(self, course_id: UUID) -> Course:
        """Get course by id or raise CourseNotFoundError."""
        course = await self.get_course(course_id)
        if course is None:
            raise CourseNotFoundError
        return course

    async def get_lesson(self, lesson_id: UUID) -> Lesson | None:
        """Get lesson by id."""
        result = await self.session.aexecute(self._get_lesson, [lesson_id])
        row = result.one()
        return Lesson.from_row(row) if row else None

    async def require_lesson(self, lesson_id: UUID) -> Lesson:
        """Get lesson by id or raise LessonNotFoundError."""
        lesson = await self.get_lesson(lesson_id)
        if lesson is None:
            raise LessonNotFoundError
        return lesson

    async def list_course_lesson_ids(self, course_id: UUID) -> set[UUID]:
        """Ids of all lessons under the course's modules."""
        rows = await self.session.aexecute(self._get_course_lesson_ids, [course_id])
        return {row.lesson_id for row in rows}

    # ==========================================================================
    # Quizzes
    # ==========================================================================

    async def get_quiz(self, quiz_id: UUID) -> Quiz | None:
        """Get quiz with its questions in position order."""
        result = await self.session.aexecute(self._get_quiz, [quiz_id])
        row = result.one()
        if not row:
            return None
        question_rows = await self.session.aexecute(self._get_quiz_questions, [quiz_id])
        return Quiz.from_rows(row, list(question_rows))

    async def require_quiz(self, quiz_id: UUID) -> Quiz:
        """Get quiz or raise QuizNotFoundError."""
        quiz = await self.get_quiz(quiz_id)
        if quiz is None:
            raise QuizNotFoundError
        return quiz

    async def get_quiz_for_lesson(self, lesson_id: UUID) -> Quiz | None:
        """Get the quiz attached to a lesson, if any."""
        result = await self.session.aexecute(self._get_quiz_id_by_lesson, [lesson_id])
        row = result.one()
        return await self.get_quiz(row.quiz_id) if row else None

    async def save_generated_quiz(
        self,
        lesson_id: UUID,
        passing_score: int,
        questions: list[dict],
        title: str = "",
    ) -> Quiz:
        """Store an AI-generated question set as the lesson's quiz.

        Question order is fixed here: positions follow the given order.
        Each question dict carries ``question``, ``options``,
        ``correct_answer``, ``explanation``, ``difficulty`` and ``topic``.
        """
        if not 0 <= passing_score <= 100:
            raise ValidationError("passing_score must be between 0 and 100")
        await self.require_lesson(lesson_id)

        quiz = Quiz(
            quiz_id=uuid4(),
            lesson_id=lesson_id,
            passing_score=passing_score,
            title=title,
            questions=[
                Question(
                    question_id=uuid4(),
                    position=position,
                    question=item.get("question", ""),
                    correct_answer=str(item.get("correct_answer", "")),
                    options=[str(option) for option in item.get("options", [])],
                    explanation=item.get("explanation"),
                    difficulty=item.get("difficulty"),
                    topic=item.get("topic"),
                )
                for position, item in enumerate(questions)
            ],
            created_at=utc_now(),
        )

        await self.session.aexecute(
            self._insert_quiz,
            [quiz.quiz_id, quiz.lesson_id, quiz.title, quiz.passing_score, quiz.created_at],
        )
        for q in quiz.questions:
            await self.session.aexecute(
                self._insert_question,
                [
                    quiz.quiz_id,
                    q.position,
                    q.question_id,
                    q.question,
                    q.options,
                    q.correct_answer,
                    q.explanation,
                    q.difficulty,
                    q.topic,
                ],
            )
        # Lookup last: a quiz becomes visible from its lesson once complete
        await self.session.aexecute(self._upsert_quiz_by_lesson, [lesson_id, quiz.quiz_id])

        logger.info(
            "quiz_ingested",
            quiz_id=str(quiz.quiz_id),
            lesson_id=str(lesson_id),
            questions=len(quiz.questions),
        )
        return quiz
