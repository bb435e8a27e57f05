"""Timed study sessions converted into points and enrollment time."""

from .models import STUDY_SESSIONS_TABLES_CQL, StudySession


__all__ = ["STUDY_SESSIONS_TABLES_CQL", "StudySession"]
