"""Read side of the course catalog: courses, lessons and quizzes."""

from .models import CATALOG_TABLES_CQL, Course, Lesson, Question, Quiz


__all__ = ["CATALOG_TABLES_CQL", "Course", "Lesson", "Question", "Quiz"]
