"""Lesson progress tracking and course enrollment.

Provides:
- Lesson progress reports with monotonic completion
- Course completion computed from lesson progress
- Course enrollment and time-spent totals
"""

from .models import (
    PROGRESS_TABLES_CQL,
    CourseProgress,
    Enrollment,
    EnrollmentStatus,
    LessonProgress,
)


__all__ = [
    "PROGRESS_TABLES_CQL",
    "CourseProgress",
    "Enrollment",
    "EnrollmentStatus",
    "LessonProgress",
]
