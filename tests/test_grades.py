"""Tests for grading.py and the gradebook routes."""

import pytest

from grading import answers_match, compute_grade, letter_grade, score_submission


def _grade_body(ids, **overrides):
    body = {"studentId": ids["student"], "classId": ids["class"], "assignmentName": "Fractions test",
            "assignmentType": "test", "pointsEarned": 45, "pointsPossible": 50}
    body.update(overrides)
    return body


class TestLetterGrades:
    @pytest.mark.parametrize("pct,letter", [
        (100, "A"), (90, "A"), (89.99, "B"), (80, "B"), (70, "C"), (60, "D"), (59.5, "F"), (0, "F"),
    ])
    def test_thresholds(self, pct, letter):
        assert letter_grade(pct) == letter

    def test_compute_grade(self):
        assert compute_grade(45, 50) == (90.0, "A")
        assert compute_grade(1, 3) == (33.33, "F")

    def test_zero_possible_rejected(self):
        with pytest.raises(ValueError):
            compute_grade(1, 0)


class TestQuizScoring:
    QUESTIONS = [
        {"id": 1, "question_type": "multiple_choice", "correct_answer": "Yaoundé", "points": 2},
        {"id": 2, "question_type": "true_false", "correct_answer": "true", "points": 1},
        {"id": 3, "question_type": "short_answer", "correct_answer": "Lake Chad", "points": 1},
    ]

    def test_answers_match_ignores_case_and_spacing(self):
        assert answers_match("  yaoundé ", "Yaoundé")
        assert answers_match(True, "true")
        assert not answers_match("", "")

    def test_full_marks(self):
        result = score_submission(self.QUESTIONS, {"1": "Yaoundé", "2": "True", "3": "lake chad"})
        assert result["score"] == 4
        assert result["percentage"] == 100.0
        assert result["is_graded"] is True

    def test_partial(self):
        result = score_submission(self.QUESTIONS, {"1": "Douala", "2": "true"})
        assert result["score"] == 1
        assert result["total_points"] == 4
        assert result["percentage"] == 25.0
        assert [d["correct"] for d in result["details"]] == [False, True, False]

    def test_essay_leaves_submission_ungraded(self):
        questions = self.QUESTIONS + [{"id": 4, "question_type": "essay", "correct_answer": "", "points": 5}]
        result = score_submission(questions, {"1": "Yaoundé"})
        assert result["is_graded"] is False
        assert result["details"][-1]["correct"] is None


class TestCreateGrade:
    def test_percentage_and_letter_computed(self, client, auth, ids):
        resp = client.post("/api/grades", json=_grade_body(ids), headers=auth("teacher"))
        assert resp.status_code == 201
        grade = resp.get_json()["grade"]
        assert grade["grade_percentage"] == 90.0
        assert grade["letter_grade"] == "A"
        assert grade["gradePercentage"] == 90.0
        assert grade["letterGrade"] == "A"
        assert grade["graded_by"] == ids["teacher"]

    def test_client_supplied_letter_ignored(self, client, auth, ids):
        resp = client.post("/api/grades", json=_grade_body(ids, pointsEarned=20, letterGrade="A"),
                           headers=auth("teacher"))
        assert resp.get_json()["grade"]["letter_grade"] == "F"

    def test_earned_above_possible(self, client, auth, ids):
        resp = client.post("/api/grades", json=_grade_body(ids, pointsEarned=60), headers=auth("teacher"))
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "Validation failed"

    def test_teacher_outside_class_forbidden(self, client, auth, ids, fetch):
        resp = client.post("/api/grades", json=_grade_body(ids), headers=auth("teacher2"))
        assert resp.status_code == 403
        assert resp.get_json()["error"] == "Access denied. You can only grade students in your classes."
        assert fetch("SELECT id FROM grades") == []

    def test_admin_may_grade(self, client, auth, ids):
        resp = client.post("/api/grades", json=_grade_body(ids), headers=auth("admin"))
        assert resp.status_code == 201
        assert resp.get_json()["grade"]["graded_by"] is None

    def test_student_of_other_school(self, client, auth, ids):
        resp = client.post("/api/grades", json=_grade_body(ids, studentId=ids["student2"]),
                           headers=auth("teacher"))
        assert resp.status_code == 404

    def test_students_cannot_grade(self, client, auth, ids):
        assert client.post("/api/grades", json=_grade_body(ids), headers=auth("student")).status_code == 403


class TestReadAndUpdateGrades:
    @pytest.fixture
    def grade(self, client, auth, ids):
        return client.post("/api/grades", json=_grade_body(ids), headers=auth("teacher")).get_json()["grade"]

    @pytest.mark.parametrize("viewer", ["student", "parent", "teacher", "admin"])
    def test_student_grades_visible(self, client, auth, ids, grade, viewer):
        resp = client.get(f"/api/grades/student/{ids['student']}", headers=auth(viewer))
        assert resp.status_code == 200
        data = resp.get_json()
        assert [g["id"] for g in data["grades"]] == [grade["id"]]
        assert data["summary"] == {"count": 1, "average_percentage": 90.0}

    def test_other_school_hidden(self, client, auth, ids, grade):
        assert client.get(f"/api/grades/student/{ids['student']}", headers=auth("admin2")).status_code == 404

    def test_class_gradebook(self, client, auth, ids, grade):
        data = client.get(f"/api/grades/class/{ids['class']}", headers=auth("teacher")).get_json()
        assert data["class"]["id"] == ids["class"]
        assert data["grades"][0]["student_name"] == "Stu Dent"

    def test_update_recomputes(self, client, auth, grade):
        resp = client.put(f"/api/grades/{grade['id']}", json={"pointsEarned": 35}, headers=auth("teacher"))
        assert resp.status_code == 200
        updated = resp.get_json()["grade"]
        assert updated["grade_percentage"] == 70.0
        assert updated["letter_grade"] == "C"

    def test_update_checks_stored_possible(self, client, auth, grade):
        resp = client.put(f"/api/grades/{grade['id']}", json={"pointsEarned": 51}, headers=auth("teacher"))
        assert resp.status_code == 400
        assert resp.get_json()["errors"][0]["field"] == "pointsEarned"

    def test_comment_only_update_keeps_letter(self, client, auth, grade):
        resp = client.put(f"/api/grades/{grade['id']}", json={"comments": "Well done"}, headers=auth("teacher"))
        assert resp.get_json()["grade"]["letter_grade"] == "A"

    def test_other_teacher_cannot_delete(self, client, auth, grade):
        assert client.delete(f"/api/grades/{grade['id']}", headers=auth("teacher2")).status_code == 403
        assert client.delete(f"/api/grades/{grade['id']}", headers=auth("teacher")).status_code == 200

    def test_list_search(self, client, auth, grade):
        data = client.get("/api/grades?search=Fractions", headers=auth("admin")).get_json()
        assert data["pagination"]["total"] == 1
