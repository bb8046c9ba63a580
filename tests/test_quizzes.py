"""Tests for blueprints/quizzes.py."""

from datetime import datetime, timedelta

import pytest

QUESTIONS = [
    {"questionText": "Capital of Cameroon?", "questionType": "multiple_choice",
     "options": ["Douala", "Yaoundé", "Buea"], "correctAnswer": "Yaoundé", "points": 2},
    {"questionText": "Mount Cameroon is a volcano.", "questionType": "true_false",
     "correctAnswer": "true", "points": 1},
    {"questionText": "Largest lake in the north?", "questionType": "short_answer",
     "correctAnswer": "Lake Chad", "points": 1},
]


def _quiz_body(ids, **overrides):
    body = {"title": "Geography check", "classId": ids["class"], "status": "active",
            "timeLimitMinutes": 20, "questions": QUESTIONS}
    body.update(overrides)
    return body


@pytest.fixture
def quiz(client, auth, ids):
    resp = client.post("/api/quizzes", json=_quiz_body(ids), headers=auth("teacher"))
    assert resp.status_code == 201
    return resp.get_json()["quiz"]


class TestAuthoring:
    def test_create_with_questions(self, quiz, ids):
        assert quiz["total_points"] == 4
        assert quiz["subject_id"] == ids["subject"]
        assert quiz["school_id"] == ids["school"]
        assert [q["question_order"] for q in quiz["questions"]] == [1, 2, 3]
        assert quiz["questions"][0]["options"] == ["Douala", "Yaoundé", "Buea"]

    def test_invalid_question_rolls_back(self, client, auth, ids, fetch):
        bad = QUESTIONS + [{"questionText": "Pick one", "questionType": "multiple_choice", "options": ["x"]}]
        resp = client.post("/api/quizzes", json=_quiz_body(ids, questions=bad), headers=auth("teacher"))
        assert resp.status_code == 400
        assert fetch("SELECT id FROM quizzes") == []

    def test_time_limit_bounds(self, client, auth, ids):
        resp = client.post("/api/quizzes", json=_quiz_body(ids, timeLimitMinutes=2), headers=auth("teacher"))
        assert resp.status_code == 400

    def test_window_order(self, client, auth, ids):
        resp = client.post("/api/quizzes", json=_quiz_body(
            ids, startDate="2026-05-02T10:00:00", endDate="2026-05-01T10:00:00"), headers=auth("teacher"))
        assert resp.status_code == 400

    def test_add_question_updates_total(self, client, auth, quiz):
        resp = client.post(f"/api/quizzes/{quiz['id']}/questions", json={
            "questionText": "Explain the rainy season.", "questionType": "essay", "points": 5,
        }, headers=auth("teacher"))
        assert resp.status_code == 201
        assert resp.get_json()["totalPoints"] == 9

    def test_only_owner_or_admin_edits(self, client, auth, quiz):
        resp = client.put(f"/api/quizzes/{quiz['id']}", json={"title": "Mine now"}, headers=auth("teacher2"))
        assert resp.status_code == 403
        assert resp.get_json()["error"] == "Access denied. You can only modify your own quizzes."
        resp = client.put(f"/api/quizzes/{quiz['id']}", json={"status": "closed"}, headers=auth("admin"))
        assert resp.get_json()["quiz"]["status"] == "closed"

    def test_delete(self, client, auth, quiz):
        assert client.delete(f"/api/quizzes/{quiz['id']}", headers=auth("teacher")).status_code == 200
        assert client.get(f"/api/quizzes/{quiz['id']}", headers=auth("teacher")).status_code == 404


class TestStudentView:
    def test_students_see_active_only(self, client, auth, ids, quiz):
        client.post("/api/quizzes", json=_quiz_body(ids, title="Draft", status="draft"), headers=auth("teacher"))
        data = client.get("/api/quizzes?status=draft", headers=auth("student")).get_json()
        assert [q["title"] for q in data["quizzes"]] == ["Geography check"]
        teacher_view = client.get("/api/quizzes", headers=auth("teacher")).get_json()
        assert teacher_view["pagination"]["total"] == 2

    def test_answers_hidden_from_students(self, client, auth, quiz):
        questions = client.get(f"/api/quizzes/{quiz['id']}", headers=auth("student")).get_json()["quiz"]["questions"]
        assert all("correct_answer" not in q for q in questions)
        questions = client.get(f"/api/quizzes/{quiz['id']}/questions", headers=auth("teacher")).get_json()["questions"]
        assert questions[0]["correct_answer"] == "Yaoundé"

    def test_draft_quiz_not_found_for_students(self, client, auth, ids):
        draft = client.post("/api/quizzes", json=_quiz_body(ids, status="draft"),
                            headers=auth("teacher")).get_json()["quiz"]
        assert client.get(f"/api/quizzes/{draft['id']}", headers=auth("student")).status_code == 404

    def test_answers_hidden_from_parents(self, client, auth, quiz):
        questions = client.get(f"/api/quizzes/{quiz['id']}", headers=auth("parent")).get_json()["quiz"]["questions"]
        assert all("correct_answer" not in q for q in questions)
        questions = client.get(f"/api/quizzes/{quiz['id']}/questions", headers=auth("parent")).get_json()["questions"]
        assert all("correct_answer" not in q for q in questions)

    def test_parents_see_active_only(self, client, auth, ids, quiz):
        draft = client.post("/api/quizzes", json=_quiz_body(ids, title="Draft", status="draft"),
                            headers=auth("teacher")).get_json()["quiz"]
        data = client.get("/api/quizzes", headers=auth("parent")).get_json()
        assert [q["title"] for q in data["quizzes"]] == ["Geography check"]
        assert client.get(f"/api/quizzes/{draft['id']}", headers=auth("parent")).status_code == 404


class TestSubmission:
    def _submit(self, client, auth, quiz, answers):
        return client.post(f"/api/quizzes/{quiz['id']}/submit", json={"answers": answers},
                           headers=auth("student"))

    def test_auto_scored(self, client, auth, quiz):
        q = [item["id"] for item in quiz["questions"]]
        resp = self._submit(client, auth, quiz, {str(q[0]): "yaoundé", str(q[1]): "false", str(q[2]): "Lake Chad"})
        assert resp.status_code == 201
        data = resp.get_json()
        assert data["results"]["score"] == 3
        assert data["results"]["percentage"] == 75.0
        assert data["submission"]["is_graded"] is True

    def test_list_form_answers(self, client, auth, quiz):
        resp = self._submit(client, auth, quiz, ["Yaoundé", "true", "Lake Chad"])
        assert resp.get_json()["results"]["percentage"] == 100.0

    def test_second_submission_rejected(self, client, auth, quiz):
        self._submit(client, auth, quiz, [])
        resp = self._submit(client, auth, quiz, [])
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "Quiz already submitted"

    def test_closed_window(self, client, auth, ids):
        past = datetime.now() - timedelta(days=2)
        quiz = client.post("/api/quizzes", json=_quiz_body(
            ids, startDate=past.isoformat(), endDate=(past + timedelta(hours=1)).isoformat()),
            headers=auth("teacher")).get_json()["quiz"]
        resp = self._submit(client, auth, quiz, [])
        assert resp.status_code == 404
        assert resp.get_json()["error"] == "Quiz not available"

    def test_not_yet_open(self, client, auth, ids):
        start = datetime.now() + timedelta(days=1)
        quiz = client.post("/api/quizzes", json=_quiz_body(
            ids, startDate=start.isoformat(), endDate=(start + timedelta(hours=1)).isoformat()),
            headers=auth("teacher")).get_json()["quiz"]
        resp = self._submit(client, auth, quiz, [])
        assert resp.status_code == 404
        assert resp.get_json()["error"] == "Quiz not available"

    def test_only_students_submit(self, client, auth, quiz):
        resp = client.post(f"/api/quizzes/{quiz['id']}/submit", json={"answers": []}, headers=auth("teacher"))
        assert resp.status_code == 403

    def test_results(self, client, auth, quiz):
        assert client.get(f"/api/quizzes/{quiz['id']}/results", headers=auth("student")).status_code == 404
        self._submit(client, auth, quiz, ["Yaoundé", "true", "Lake Chad"])
        mine = client.get(f"/api/quizzes/{quiz['id']}/results", headers=auth("student")).get_json()
        assert mine["submission"]["score"] == 4
        summary = client.get(f"/api/quizzes/{quiz['id']}/results", headers=auth("teacher")).get_json()["summary"]
        assert summary == {"submitted": 1, "graded": 1, "average_percentage": 100.0}

    def test_manual_grading(self, client, auth, ids):
        essay = [{"questionText": "Describe Buea.", "questionType": "essay", "points": 10}]
        quiz = client.post("/api/quizzes", json=_quiz_body(ids, questions=essay),
                           headers=auth("teacher")).get_json()["quiz"]
        submission = self._submit(client, auth, quiz, ["It is cold."]).get_json()["submission"]
        assert submission["is_graded"] is False

        resp = client.put(f"/api/quizzes/submissions/{submission['id']}/grade", json={"score": 11},
                          headers=auth("teacher"))
        assert resp.status_code == 400
        resp = client.put(f"/api/quizzes/submissions/{submission['id']}/grade",
                          json={"score": 8, "feedback": "Good"}, headers=auth("teacher"))
        graded = resp.get_json()["submission"]
        assert graded["percentage"] == 80.0
        assert graded["is_graded"] is True
        assert graded["graded_by"] == ids["teacher_user"]
