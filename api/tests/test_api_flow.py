"""End-to-end flows over the HTTP API with the in-memory store."""

from uuid import uuid4

import pytest
from fastapi.testclient import TestClient


@pytest.fixture
def learner(client: TestClient, auth_headers) -> dict:
    """A synced learner: headers plus the user payload."""
    headers = auth_headers(sub="ext-learner", name="Lia Learner")
    response = client.post("/v1/users/sync", headers=headers)
    assert response.status_code == 200
    return {"headers": headers, "user": response.json()}


@pytest.fixture
def course(store):
    course_id = store.add_course("Intro to Testing")
    lessons = [store.add_lesson(course_id) for _ in range(2)]
    return {"course_id": course_id, "lessons": lessons}


class TestLearningFlow:
    """Enroll, study, pass a quiz and earn a certificate."""

    def test_full_course_flow(self, client: TestClient, store, learner, course):
        headers = learner["headers"]
        course_id = str(course["course_id"])
        first, second = (str(lesson) for lesson in course["lessons"])

        # Enroll
        response = client.post("/v1/enrollments", json={"course_id": course_id}, headers=headers)
        assert response.status_code == 201
        assert response.json()["status"] == "enrolled"

        # Complete the first lesson with 3 minutes of study
        response = client.post(
            f"/v1/progress/lessons/{first}",
            json={"is_completed": True, "time_spent_delta_seconds": 180},
            headers=headers,
        )
        assert response.status_code == 200
        assert response.json()["is_completed"] is True

        response = client.get(f"/v1/progress/courses/{course_id}", headers=headers)
        assert response.json()["percentage"] == 50.0
        assert response.json()["time_spent"] == 3

        # Certificate is gated on full completion
        response = client.post("/v1/certificates", json={"course_id": course_id}, headers=headers)
        assert response.status_code == 400

        client.post(
            f"/v1/progress/lessons/{second}", json={"is_completed": True}, headers=headers
        )
        response = client.post("/v1/certificates", json={"course_id": course_id}, headers=headers)
        assert response.status_code == 200
        number = response.json()["certificate_number"]

        repeat = client.post("/v1/certificates", json={"course_id": course_id}, headers=headers)
        assert repeat.json()["certificate_number"] == number

        response = client.get(f"/v1/enrollments/{course_id}", headers=headers)
        assert response.json()["status"] == "completed"

        # first_lesson (10) + first_course (50)
        response = client.get("/v1/points/me", headers=headers)
        assert response.json()["points"] == 60

        response = client.get("/v1/achievements", headers=headers)
        unlocked = {a["id"] for a in response.json()["unlocked"]}
        assert unlocked == {"first_lesson", "first_course"}

    def test_quiz_flow(self, client: TestClient, store, learner, course):
        headers = learner["headers"]
        lesson_id = str(course["lessons"][0])

        response = client.post(
            f"/v1/lessons/{lesson_id}/quiz",
            json={
                "passing_score": 50,
                "questions": [
                    {"question": "2 + 2?", "options": ["3", "4"], "correct_answer": "4"},
                    {"question": "Capital of France?", "options": ["Paris"], "correct_answer": "Paris"},
                ],
            },
            headers=headers,
        )
        assert response.status_code == 201
        quiz_id = response.json()["quiz_id"]

        response = client.get(f"/v1/quizzes/{quiz_id}", headers=headers)
        assert response.status_code == 200
        questions = response.json()["questions"]
        assert [q["question"] for q in questions] == ["2 + 2?", "Capital of France?"]
        assert all("correct_answer" not in q for q in questions)

        answers = {questions[0]["question_id"]: "4", questions[1]["question_id"]: "Rome"}
        response = client.post(
            f"/v1/quizzes/{quiz_id}/attempts", json={"answers": answers}, headers=headers
        )
        assert response.status_code == 201
        body = response.json()
        assert body["score"] == 50.0
        assert body["is_passed"] is True
        assert body["points_earned"] == 20
        assert [f["correct"] for f in body["feedback"]] == [True, False]

        response = client.get(f"/v1/quizzes/{quiz_id}/attempts", headers=headers)
        assert response.json()["total"] == 1

    def test_study_session_flow(self, client: TestClient, learner):
        headers = learner["headers"]

        response = client.post("/v1/study-sessions/start", json={}, headers=headers)
        assert response.status_code == 201
        session_id = response.json()["session_id"]

        response = client.get("/v1/study-sessions/active", headers=headers)
        assert response.json()["total"] == 1

        response = client.post(
            "/v1/study-sessions/end", json={"session_id": session_id}, headers=headers
        )
        assert response.status_code == 200
        assert response.json()["session"]["is_active"] is False

        response = client.post(
            "/v1/study-sessions/end", json={"session_id": session_id}, headers=headers
        )
        assert response.status_code == 409

    def test_ending_someone_elses_session(self, client: TestClient, auth_headers, learner):
        response = client.post("/v1/study-sessions/start", json={}, headers=learner["headers"])
        session_id = response.json()["session_id"]

        other = auth_headers(sub="ext-other")
        client.post("/v1/users/sync", headers=other)
        response = client.post(
            "/v1/study-sessions/end", json={"session_id": session_id}, headers=other
        )

        assert response.status_code == 403


class TestErrors:
    """Error mapping on the HTTP surface."""

    def test_unknown_lesson_is_404(self, client: TestClient, learner):
        response = client.post(
            f"/v1/progress/lessons/{uuid4()}", json={}, headers=learner["headers"]
        )

        assert response.status_code == 404
        assert response.json()["status_code"] == 404

    def test_negative_delta_is_422(self, client: TestClient, learner, course):
        response = client.post(
            f"/v1/progress/lessons/{course['lessons'][0]}",
            json={"time_spent_delta_seconds": -5},
            headers=learner["headers"],
        )

        assert response.status_code == 422
        assert response.json()["details"]

    def test_duplicate_enrollment_is_409(self, client: TestClient, learner, course):
        payload = {"course_id": str(course["course_id"])}
        client.post("/v1/enrollments", json=payload, headers=learner["headers"])

        response = client.post("/v1/enrollments", json=payload, headers=learner["headers"])

        assert response.status_code == 409


class TestLeaderboard:
    def test_public_ranking(self, client: TestClient, store):
        top = store.add_user(name="Top")
        runner_up = store.add_user(name="Runner Up")
        store.points[top] = 200
        store.points[runner_up] = 100

        response = client.get("/v1/leaderboard", params={"limit": 1})

        assert response.status_code == 200
        board = response.json()["leaderboard"]
        assert len(board) == 1
        assert board[0]["rank"] == 1
        assert board[0]["user"]["name"] == "Top"
        assert board[0]["points"] == 200
