"""Shared fixtures for the ledger test suite.

``InMemoryLedgerStore`` stands in for a cassandra-asyncio session: ``prepare``
returns the normalized CQL text and ``aexecute`` dispatches on it. Counter
updates add to the stored value and conditional statements report
``was_applied`` the way Cassandra does, so the services run unmodified.
"""

import asyncio
import os
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from types import SimpleNamespace
from typing import Any
from uuid import UUID, uuid4

import pytest


os.environ.setdefault("ENVIRONMENT", "testing")

from fastapi.testclient import TestClient  # noqa: E402
from jose import jwt  # noqa: E402

from learnpath.config import get_settings  # noqa: E402
from learnpath.main import app, init_services  # noqa: E402


KEYSPACE = "test_ks"


# ==============================================================================
# Cassandra session double
# ==============================================================================


class FakeResult:
    """Result set: iterable rows, ``one()`` and ``was_applied``."""

    def __init__(self, rows: list[Any] | None = None, was_applied: bool = True):
        self._rows = list(rows or [])
        self.was_applied = was_applied

    def one(self) -> Any:
        return self._rows[0] if self._rows else None

    def __iter__(self):
        return iter(self._rows)


def _rows(*items: dict | None) -> FakeResult:
    return FakeResult([SimpleNamespace(**item) for item in items if item is not None])


def _applied(applied: bool) -> FakeResult:
    return FakeResult(was_applied=applied)


class InMemoryLedgerStore:
    """Dict-backed session double for every statement the services prepare."""

    def __init__(self, keyspace: str = KEYSPACE):
        self.keyspace = keyspace
        self.executed: list[tuple[str, list[Any]]] = []
        self._failures: list[tuple[str, Exception]] = []

        self.users: dict[UUID, dict] = {}
        self.external_ids: dict[str, UUID] = {}
        self.courses: dict[UUID, dict] = {}
        self.lessons: dict[UUID, dict] = {}
        self.lessons_by_course: dict[UUID, list[dict]] = {}
        self.quizzes: dict[UUID, dict] = {}
        self.quiz_questions: dict[UUID, dict[int, dict]] = {}
        self.quizzes_by_lesson: dict[UUID, UUID] = {}
        self.lesson_progress: dict[tuple, dict] = {}
        self.lesson_time: dict[tuple, dict] = {}
        self.enrollments: dict[tuple, dict] = {}
        self.enrollment_time: dict[tuple, dict] = {}
        self.points: dict[UUID, int] = {}
        self.attempts: list[dict] = []
        self.unlocks: dict[tuple, dict] = {}
        self.certificates: dict[tuple, dict] = {}
        self.certificates_by_id: dict[UUID, dict] = {}
        self.study_sessions: dict[UUID, dict] = {}
        self.study_sessions_by_user: list[dict] = []

        ks = keyspace
        # First match wins: longer fragments sharing a prefix come first
        self._routes: list[tuple[str, Callable[..., FakeResult]]] = [
            # users
            (f"DELETE FROM {ks}.users WHERE", self._delete_user),
            (f"FROM {ks}.users WHERE user_id = ?", self._select_user),
            (f"SELECT * FROM {ks}.users", self._select_all_users),
            (f"FROM {ks}.users_by_external_id WHERE", self._select_external_id),
            (f"INSERT INTO {ks}.users_by_external_id", self._claim_external_id),
            (f"INSERT INTO {ks}.users (", self._insert_user),
            (f"UPDATE {ks}.users SET email", self._update_profile),
            (f"UPDATE {ks}.users SET streak", self._update_streak),
            # catalog
            (f"FROM {ks}.courses WHERE", self._select_course),
            (f"FROM {ks}.lessons WHERE", self._select_lesson),
            (f"FROM {ks}.lessons_by_course WHERE", self._select_course_lessons),
            (f"FROM {ks}.quizzes WHERE", self._select_quiz),
            (f"FROM {ks}.quiz_questions WHERE", self._select_questions),
            (f"FROM {ks}.quizzes_by_lesson WHERE", self._select_quiz_by_lesson),
            (f"INSERT INTO {ks}.quizzes (", self._insert_quiz),
            (f"INSERT INTO {ks}.quiz_questions (", self._insert_question),
            (f"INSERT INTO {ks}.quizzes_by_lesson (", self._insert_quiz_by_lesson),
            # enrollments
            (f"INSERT INTO {ks}.enrollments (", self._insert_enrollment),
            (
                f"FROM {ks}.enrollments WHERE user_id = ? AND course_id = ?",
                self._select_enrollment,
            ),
            (f"FROM {ks}.enrollments WHERE user_id = ?", self._select_enrollments),
            (f"UPDATE {ks}.enrollments SET last_accessed_at", self._touch_enrollment),
            (f"UPDATE {ks}.enrollments SET status = ?, started_at", self._start_enrollment),
            (
                f"UPDATE {ks}.enrollments SET status = ?, completed_at",
                self._complete_enrollment,
            ),
            (
                f"FROM {ks}.enrollment_time WHERE user_id = ? AND course_id = ?",
                self._select_enrollment_time,
            ),
            (f"FROM {ks}.enrollment_time WHERE user_id = ?", self._select_enrollment_times),
            ("SET lesson_minutes = lesson_minutes + ?", self._add_lesson_minutes),
            ("SET session_minutes = session_minutes + ?", self._add_session_minutes),
            # lesson progress
            (f"INSERT INTO {ks}.lesson_progress (", self._insert_progress),
            (
                f"FROM {ks}.lesson_progress WHERE user_id = ? AND course_id = ? "
                "AND lesson_id = ?",
                self._select_progress,
            ),
            (
                f"FROM {ks}.lesson_progress WHERE user_id = ? AND course_id = ?",
                self._select_course_progress,
            ),
            (f"FROM {ks}.lesson_progress WHERE user_id = ?", self._select_user_progress),
            (f"UPDATE {ks}.lesson_progress SET last_position", self._update_position),
            (f"UPDATE {ks}.lesson_progress SET is_completed", self._complete_progress),
            (f"UPDATE {ks}.lesson_progress_time", self._add_lesson_time),
            (f"SELECT time_spent_seconds FROM {ks}.lesson_progress_time", self._select_time),
            (
                f"SELECT minutes_credited FROM {ks}.lesson_progress_time",
                self._select_minutes_credited,
            ),
            # points
            (f"UPDATE {ks}.user_points", self._increment_points),
            (f"SELECT points FROM {ks}.user_points", self._select_points),
            (f"SELECT user_id, points FROM {ks}.user_points", self._select_all_points),
            # quiz attempts
            (f"INSERT INTO {ks}.quiz_attempts", self._insert_attempt),
            (f"FROM {ks}.quiz_attempts WHERE", self._select_attempts),
            # achievements
            (f"INSERT INTO {ks}.user_achievements", self._insert_unlock),
            (f"UPDATE {ks}.user_achievements SET reward_paid = true", self._claim_reward),
            (f"UPDATE {ks}.user_achievements SET reward_paid = false", self._release_reward),
            (f"FROM {ks}.user_achievements WHERE", self._select_unlocks),
            # certificates
            (f"INSERT INTO {ks}.certificates_by_id", self._insert_certificate_by_id),
            (f"INSERT INTO {ks}.certificates (", self._insert_certificate),
            (
                f"FROM {ks}.certificates WHERE user_id = ? AND course_id = ?",
                self._select_certificate,
            ),
            (f"FROM {ks}.certificates WHERE user_id = ?", self._select_certificates),
            (f"FROM {ks}.certificates_by_id WHERE", self._select_certificate_by_id),
            # study sessions
            (f"INSERT INTO {ks}.study_sessions_by_user", self._insert_session_by_user),
            (f"INSERT INTO {ks}.study_sessions (", self._insert_session),
            (f"FROM {ks}.study_sessions WHERE session_id IN ?", self._select_sessions),
            (f"FROM {ks}.study_sessions WHERE session_id = ?", self._select_session),
            (f"FROM {ks}.study_sessions_by_user WHERE", self._select_user_session_ids),
            (f"UPDATE {ks}.study_sessions SET end_time", self._end_session),
        ]

    # --------------------------------------------------------------------------
    # Session API
    # --------------------------------------------------------------------------

    def prepare(self, cql: str) -> str:
        return " ".join(cql.split())

    async def aexecute(self, statement: str, params: list[Any] | None = None) -> FakeResult:
        params = list(params or [])
        self.executed.append((statement, params))

        for index, (fragment, error) in enumerate(self._failures):
            if fragment in statement:
                del self._failures[index]
                raise error

        # Yield so concurrent callers interleave between statements
        await asyncio.sleep(0)

        for fragment, handler in self._routes:
            if fragment in statement:
                return handler(*params)
        msg = f"Unexpected statement: {statement}"
        raise AssertionError(msg)

    def fail_next(self, fragment: str, error: Exception) -> None:
        """Make the next statement containing ``fragment`` raise ``error``."""
        self._failures.append((fragment, error))

    def count(self, fragment: str) -> int:
        """How many executed statements contain ``fragment``."""
        return sum(1 for statement, _ in self.executed if fragment in statement)

    # --------------------------------------------------------------------------
    # Seeding
    # --------------------------------------------------------------------------

    def add_user(
        self,
        name: str = "Test User",
        external_id: str | None = None,
        streak: int = 0,
        last_active_at: datetime | None = None,
        email: str | None = None,
        user_id: UUID | None = None,
    ) -> UUID:
        user_id = user_id or uuid4()
        external_id = external_id or f"ext-{user_id.hex[:8]}"
        now = datetime.now(UTC)
        self.users[user_id] = {
            "user_id": user_id,
            "external_id": external_id,
            "email": email,
            "name": name,
            "image_url": None,
            "streak": streak,
            "last_active_at": last_active_at,
            "created_at": now,
            "updated_at": now,
        }
        self.external_ids[external_id] = user_id
        return user_id

    def add_course(self, title: str = "Test Course") -> UUID:
        course_id = uuid4()
        self.courses[course_id] = {
            "course_id": course_id,
            "title": title,
            "description": None,
            "instructor_id": None,
            "created_at": datetime.now(UTC),
        }
        self.lessons_by_course.setdefault(course_id, [])
        return course_id

    def add_lesson(self, course_id: UUID, module_id: UUID | None = None) -> UUID:
        lesson_id = uuid4()
        module_id = module_id or uuid4()
        position = len(self.lessons_by_course.setdefault(course_id, []))
        self.lessons[lesson_id] = {
            "lesson_id": lesson_id,
            "course_id": course_id,
            "module_id": module_id,
            "title": f"Lesson {position + 1}",
            "duration_seconds": 600,
            "position": position,
        }
        self.lessons_by_course[course_id].append(
            {"course_id": course_id, "module_id": module_id, "lesson_id": lesson_id}
        )
        return lesson_id

    def add_quiz(
        self,
        lesson_id: UUID,
        correct_answers: list[str],
        passing_score: int = 70,
    ) -> tuple[UUID, list[UUID]]:
        """Seed a quiz whose questions have the given correct answers, in order."""
        quiz_id = uuid4()
        self.quizzes[quiz_id] = {
            "quiz_id": quiz_id,
            "lesson_id": lesson_id,
            "title": "Quiz",
            "passing_score": passing_score,
            "created_at": datetime.now(UTC),
        }
        question_ids = []
        self.quiz_questions[quiz_id] = {}
        for position, answer in enumerate(correct_answers):
            question_id = uuid4()
            question_ids.append(question_id)
            self.quiz_questions[quiz_id][position] = {
                "quiz_id": quiz_id,
                "position": position,
                "question_id": question_id,
                "question": f"Question {position + 1}?",
                "options": [answer, "other"],
                "correct_answer": answer,
                "explanation": f"Because {answer}",
                "difficulty": "easy",
                "topic": "basics",
            }
        self.quizzes_by_lesson[lesson_id] = quiz_id
        return quiz_id, question_ids

    def start_session_at(self, user_id: UUID, start_time: datetime, course_id=None) -> UUID:
        session_id = uuid4()
        self._insert_session(session_id, user_id, course_id, None, start_time)
        self._insert_session_by_user(user_id, start_time, session_id, course_id, None)
        return session_id

    # --------------------------------------------------------------------------
    # users
    # --------------------------------------------------------------------------

    def _select_user(self, user_id):
        return _rows(self.users.get(user_id))

    def _select_all_users(self):
        return _rows(*self.users.values())

    def _select_external_id(self, external_id):
        user_id = self.external_ids.get(external_id)
        return _rows({"user_id": user_id} if user_id else None)

    def _claim_external_id(self, external_id, user_id):
        if external_id in self.external_ids:
            return _applied(False)
        self.external_ids[external_id] = user_id
        return _applied(True)

    def _insert_user(self, user_id, external_id, email, name, image_url, streak,
                     last_active_at, created_at, updated_at):
        self.users[user_id] = {
            "user_id": user_id,
            "external_id": external_id,
            "email": email,
            "name": name,
            "image_url": image_url,
            "streak": streak,
            "last_active_at": last_active_at,
            "created_at": created_at,
            "updated_at": updated_at,
        }
        return FakeResult()

    def _delete_user(self, user_id):
        self.users.pop(user_id, None)
        return FakeResult()

    def _update_profile(self, email, name, image_url, updated_at, user_id):
        user = self.users.get(user_id)
        if user is None:
            return _applied(False)
        user.update(email=email, name=name, image_url=image_url, updated_at=updated_at)
        return _applied(True)

    def _update_streak(self, streak, last_active_at, user_id, expected):
        user = self.users.get(user_id)
        if user is None or user["streak"] != expected:
            return _applied(False)
        user.update(streak=streak, last_active_at=last_active_at)
        return _applied(True)

    # --------------------------------------------------------------------------
    # catalog
    # --------------------------------------------------------------------------

    def _select_course(self, course_id):
        return _rows(self.courses.get(course_id))

    def _select_lesson(self, lesson_id):
        return _rows(self.lessons.get(lesson_id))

    def _select_course_lessons(self, course_id):
        return _rows(*self.lessons_by_course.get(course_id, []))

    def _select_quiz(self, quiz_id):
        return _rows(self.quizzes.get(quiz_id))

    def _select_questions(self, quiz_id):
        questions = self.quiz_questions.get(quiz_id, {})
        return _rows(*(questions[position] for position in sorted(questions)))

    def _select_quiz_by_lesson(self, lesson_id):
        quiz_id = self.quizzes_by_lesson.get(lesson_id)
        return _rows({"quiz_id": quiz_id} if quiz_id else None)

    def _insert_quiz(self, quiz_id, lesson_id, title, passing_score, created_at):
        self.quizzes[quiz_id] = {
            "quiz_id": quiz_id,
            "lesson_id": lesson_id,
            "title": title,
            "passing_score": passing_score,
            "created_at": created_at,
        }
        return FakeResult()

    def _insert_question(self, quiz_id, position, question_id, question, options,
                         correct_answer, explanation, difficulty, topic):
        self.quiz_questions.setdefault(quiz_id, {})[position] = {
            "quiz_id": quiz_id,
            "position": position,
            "question_id": question_id,
            "question": question,
            "options": options,
            "correct_answer": correct_answer,
            "explanation": explanation,
            "difficulty": difficulty,
            "topic": topic,
        }
        return FakeResult()

    def _insert_quiz_by_lesson(self, lesson_id, quiz_id):
        self.quizzes_by_lesson[lesson_id] = quiz_id
        return FakeResult()

    # --------------------------------------------------------------------------
    # enrollments
    # --------------------------------------------------------------------------

    def _insert_enrollment(self, user_id, course_id, status, enrolled_at, last_accessed_at):
        key = (user_id, course_id)
        if key in self.enrollments:
            return _applied(False)
        self.enrollments[key] = {
            "user_id": user_id,
            "course_id": course_id,
            "status": status,
            "enrolled_at": enrolled_at,
            "started_at": None,
            "completed_at": None,
            "last_accessed_at": last_accessed_at,
            "last_lesson_id": None,
        }
        return _applied(True)

    def _select_enrollment(self, user_id, course_id):
        return _rows(self.enrollments.get((user_id, course_id)))

    def _select_enrollments(self, user_id):
        return _rows(*(e for (u, _), e in self.enrollments.items() if u == user_id))

    def _touch_enrollment(self, last_accessed_at, last_lesson_id, user_id, course_id):
        enrollment = self.enrollments.get((user_id, course_id))
        if enrollment is not None:
            enrollment.update(last_accessed_at=last_accessed_at, last_lesson_id=last_lesson_id)
        return _applied(enrollment is not None)

    def _start_enrollment(self, status, started_at, user_id, course_id, expected):
        enrollment = self.enrollments.get((user_id, course_id))
        if enrollment is None or enrollment["status"] != expected:
            return _applied(False)
        enrollment.update(status=status, started_at=started_at)
        return _applied(True)

    def _complete_enrollment(self, status, completed_at, user_id, course_id, not_status):
        enrollment = self.enrollments.get((user_id, course_id))
        if enrollment is None or enrollment["status"] == not_status:
            return _applied(False)
        enrollment.update(status=status, completed_at=completed_at)
        return _applied(True)

    def _time_row(self, user_id, course_id):
        return self.enrollment_time.setdefault(
            (user_id, course_id),
            {
                "user_id": user_id,
                "course_id": course_id,
                "lesson_minutes": 0,
                "session_minutes": 0,
            },
        )

    def _select_enrollment_time(self, user_id, course_id):
        return _rows(self.enrollment_time.get((user_id, course_id)))

    def _select_enrollment_times(self, user_id):
        return _rows(*(t for (u, _), t in self.enrollment_time.items() if u == user_id))

    def _add_lesson_minutes(self, minutes, user_id, course_id):
        self._time_row(user_id, course_id)["lesson_minutes"] += minutes
        return FakeResult()

    def _add_session_minutes(self, minutes, user_id, course_id):
        self._time_row(user_id, course_id)["session_minutes"] += minutes
        return FakeResult()

    # --------------------------------------------------------------------------
    # lesson progress
    # --------------------------------------------------------------------------

    def _insert_progress(self, user_id, course_id, lesson_id, module_id,
                         last_position_seconds, started_at, last_accessed_at):
        key = (user_id, course_id, lesson_id)
        if key in self.lesson_progress:
            return _applied(False)
        self.lesson_progress[key] = {
            "user_id": user_id,
            "course_id": course_id,
            "lesson_id": lesson_id,
            "module_id": module_id,
            "is_completed": False,
            "completed_at": None,
            "last_position_seconds": last_position_seconds,
            "started_at": started_at,
            "last_accessed_at": last_accessed_at,
        }
        return _applied(True)

    def _select_progress(self, user_id, course_id, lesson_id):
        return _rows(self.lesson_progress.get((user_id, course_id, lesson_id)))

    def _select_course_progress(self, user_id, course_id):
        return _rows(
            *(p for (u, c, _), p in self.lesson_progress.items() if (u, c) == (user_id, course_id))
        )

    def _select_user_progress(self, user_id):
        return _rows(*(p for (u, _, _), p in self.lesson_progress.items() if u == user_id))

    def _update_position(self, position, last_accessed_at, user_id, course_id, lesson_id):
        progress = self.lesson_progress.get((user_id, course_id, lesson_id))
        if progress is not None:
            progress.update(last_position_seconds=position, last_accessed_at=last_accessed_at)
        return _applied(progress is not None)

    def _complete_progress(self, completed_at, user_id, course_id, lesson_id):
        progress = self.lesson_progress.get((user_id, course_id, lesson_id))
        if progress is None or progress["is_completed"]:
            return _applied(False)
        progress.update(is_completed=True, completed_at=completed_at)
        return _applied(True)

    def _add_lesson_time(self, seconds, minutes, user_id, course_id, lesson_id):
        key = (user_id, course_id, lesson_id)
        row = self.lesson_time.setdefault(
            key,
            {
                "user_id": user_id,
                "course_id": course_id,
                "lesson_id": lesson_id,
                "time_spent_seconds": 0,
                "minutes_credited": 0,
            },
        )
        row["time_spent_seconds"] += seconds
        row["minutes_credited"] += minutes
        return FakeResult()

    def _select_time(self, user_id, course_id, lesson_id):
        return _rows(self.lesson_time.get((user_id, course_id, lesson_id)))

    def _select_minutes_credited(self, user_id, course_id):
        return _rows(
            *(t for (u, c, _), t in self.lesson_time.items() if (u, c) == (user_id, course_id))
        )

    # --------------------------------------------------------------------------
    # points
    # --------------------------------------------------------------------------

    def _increment_points(self, amount, bucket, user_id):
        self.points[user_id] = self.points.get(user_id, 0) + amount
        return FakeResult()

    def _select_points(self, bucket, user_id):
        if user_id not in self.points:
            return FakeResult()
        return _rows({"points": self.points[user_id]})

    def _select_all_points(self, bucket):
        return _rows(*({"user_id": u, "points": p} for u, p in self.points.items()))

    # --------------------------------------------------------------------------
    # quiz attempts
    # --------------------------------------------------------------------------

    def _insert_attempt(self, user_id, quiz_id, completed_at, attempt_id, answers,
                        score, is_passed, points_earned):
        self.attempts.append(
            {
                "user_id": user_id,
                "quiz_id": quiz_id,
                "completed_at": completed_at,
                "attempt_id": attempt_id,
                "answers": answers,
                "score": score,
                "is_passed": is_passed,
                "points_earned": points_earned,
            }
        )
        return FakeResult()

    def _select_attempts(self, user_id, quiz_id):
        matching = [
            a for a in self.attempts if a["user_id"] == user_id and a["quiz_id"] == quiz_id
        ]
        matching.sort(key=lambda a: a["completed_at"], reverse=True)
        return _rows(*matching)

    # --------------------------------------------------------------------------
    # achievements
    # --------------------------------------------------------------------------

    def _insert_unlock(self, user_id, achievement_id, unlocked_at):
        key = (user_id, achievement_id)
        if key in self.unlocks:
            return _applied(False)
        self.unlocks[key] = {
            "user_id": user_id,
            "achievement_id": achievement_id,
            "unlocked_at": unlocked_at,
            "reward_paid": False,
        }
        return _applied(True)

    def _set_reward_paid(self, user_id, achievement_id, paid):
        row = self.unlocks.get((user_id, achievement_id))
        if row is None or row["reward_paid"] == paid:
            return _applied(False)
        row["reward_paid"] = paid
        return _applied(True)

    def _claim_reward(self, user_id, achievement_id):
        return self._set_reward_paid(user_id, achievement_id, True)

    def _release_reward(self, user_id, achievement_id):
        return self._set_reward_paid(user_id, achievement_id, False)

    def _select_unlocks(self, user_id):
        return _rows(*(row for (u, _), row in self.unlocks.items() if u == user_id))

    # --------------------------------------------------------------------------
    # certificates
    # --------------------------------------------------------------------------

    def _insert_certificate(self, user_id, course_id, certificate_id, number,
                            completion_date, issue_date):
        key = (user_id, course_id)
        if key in self.certificates:
            return _applied(False)
        self.certificates[key] = {
            "certificate_id": certificate_id,
            "user_id": user_id,
            "course_id": course_id,
            "certificate_number": number,
            "completion_date": completion_date,
            "issue_date": issue_date,
        }
        return _applied(True)

    def _insert_certificate_by_id(self, certificate_id, user_id, course_id, number,
                                  completion_date, issue_date):
        self.certificates_by_id[certificate_id] = {
            "certificate_id": certificate_id,
            "user_id": user_id,
            "course_id": course_id,
            "certificate_number": number,
            "completion_date": completion_date,
            "issue_date": issue_date,
        }
        return FakeResult()

    def _select_certificate(self, user_id, course_id):
        return _rows(self.certificates.get((user_id, course_id)))

    def _select_certificates(self, user_id):
        return _rows(*(c for (u, _), c in self.certificates.items() if u == user_id))

    def _select_certificate_by_id(self, certificate_id):
        return _rows(self.certificates_by_id.get(certificate_id))

    # --------------------------------------------------------------------------
    # study sessions
    # --------------------------------------------------------------------------

    def _insert_session(self, session_id, user_id, course_id, lesson_id, start_time):
        self.study_sessions[session_id] = {
            "session_id": session_id,
            "user_id": user_id,
            "course_id": course_id,
            "lesson_id": lesson_id,
            "start_time": start_time,
            "end_time": None,
            "duration_seconds": 0,
            "points_earned": 0,
            "is_active": True,
        }
        return FakeResult()

    def _insert_session_by_user(self, user_id, start_time, session_id, course_id, lesson_id):
        self.study_sessions_by_user.append(
            {
                "user_id": user_id,
                "start_time": start_time,
                "session_id": session_id,
                "course_id": course_id,
                "lesson_id": lesson_id,
            }
        )
        return FakeResult()

    def _select_session(self, session_id):
        return _rows(self.study_sessions.get(session_id))

    def _select_sessions(self, session_ids):
        return _rows(*(self.study_sessions.get(session_id) for session_id in session_ids))

    def _select_user_session_ids(self, user_id, limit):
        mine = [s for s in self.study_sessions_by_user if s["user_id"] == user_id]
        mine.sort(key=lambda s: s["start_time"], reverse=True)
        return _rows(*({"session_id": s["session_id"]} for s in mine[:limit]))

    def _end_session(self, end_time, duration_seconds, points_earned, session_id):
        row = self.study_sessions.get(session_id)
        if row is None or not row["is_active"]:
            return _applied(False)
        row.update(
            end_time=end_time,
            duration_seconds=duration_seconds,
            points_earned=points_earned,
            is_active=False,
        )
        return _applied(True)


# ==============================================================================
# Fixtures
# ==============================================================================


@pytest.fixture
def store() -> InMemoryLedgerStore:
    """Fresh in-memory Cassandra double."""
    return InMemoryLedgerStore()


@pytest.fixture
def services(store: InMemoryLedgerStore) -> SimpleNamespace:
    """All ledger services wired to the in-memory store, as on ``app.state``."""
    holder = SimpleNamespace(state=SimpleNamespace())
    settings = get_settings().model_copy(update={"cassandra_keyspace": store.keyspace})
    init_services(holder, store, settings)
    return holder.state


@pytest.fixture
def client(store: InMemoryLedgerStore) -> TestClient:
    """Test client with the ledger services wired to the in-memory store."""
    settings = get_settings().model_copy(update={"cassandra_keyspace": store.keyspace})
    init_services(app, store, settings)
    app.state.redis = None
    return TestClient(app)


@pytest.fixture
def make_token() -> Callable[..., str]:
    """Factory for identity provider tokens signed with the configured secret."""
    settings = get_settings()

    def _make_token(
        sub: str = "ext-user-1",
        expires_in: timedelta = timedelta(hours=1),
        **claims: Any,
    ) -> str:
        payload = {"sub": sub, "exp": datetime.now(UTC) + expires_in, **claims}
        return jwt.encode(
            payload,
            settings.identity_jwt_secret,
            algorithm=settings.identity_jwt_algorithm,
        )

    return _make_token


@pytest.fixture
def auth_headers(make_token) -> Callable[..., dict[str, str]]:
    """Factory for Authorization headers."""

    def _auth_headers(sub: str = "ext-user-1", **claims: Any) -> dict[str, str]:
        return {"Authorization": f"Bearer {make_token(sub=sub, **claims)}"}

    return _auth_headers
