"""Tests for blueprints/classes.py and class_mapping.py."""

import pytest

from class_mapping import get_class_name_by_level, get_class_names, get_level_by_class_name


def _class_body(ids, **overrides):
    body = {"name": "Class 6 Science", "subjectId": ids["subject"], "classLevel": 6,
            "startTime": "10:00", "endTime": "11:30", "semester": "First", "academicYear": "2025/2026"}
    body.update(overrides)
    return body


class TestClassNames:
    def test_public_default_is_anglophone(self, client):
        data = client.get("/api/classes/names").get_json()
        assert data["educationSystem"] == "anglophone"
        assert data["classNames"][0] == {"level": 1, "name": "Class 1"}

    def test_francophone_names(self, client):
        data = client.get("/api/classes/names?educationSystem=francophone").get_json()
        assert [c["name"] for c in data["classNames"]] == ["SIL", "CP", "CE1", "CE2", "CM1", "CM2"]

    def test_unknown_system(self, client):
        resp = client.get("/api/classes/names?educationSystem=klingon")
        assert resp.status_code == 400

    def test_mapping_helpers(self, app):
        with app.app_context():
            assert get_class_name_by_level(5, "francophone") == "CM1"
            assert get_class_name_by_level(9, "anglophone") == "Level 9"
            assert get_level_by_class_name(" ce2 ", "francophone") == 4
            assert get_level_by_class_name("Form 1", "anglophone") is None
            assert len(get_class_names("unknown")) == 6

    def test_override_table_wins(self, app):
        from database import query
        with app.app_context():
            query("UPDATE class_name_mappings SET class_name = 'Primary 1' "
                  "WHERE education_system = 'anglophone' AND level = 1").unwrap()
            assert get_class_name_by_level(1, "anglophone") == "Primary 1"


class TestListAndGet:
    def test_list_includes_joins(self, client, auth):
        cls = client.get("/api/classes", headers=auth("student")).get_json()["classes"][0]
        assert cls["subject_name"] == "Mathematics"
        assert cls["teacher_name"] == "Tom Teach"
        assert cls["enrolled_count"] == 1

    def test_filter_by_teacher(self, client, auth, ids):
        data = client.get(f"/api/classes?teacherId={ids['teacher2']}", headers=auth("admin")).get_json()
        assert data["classes"] == []

    def test_roster(self, client, auth, ids):
        data = client.get(f"/api/classes/{ids['class']}/students", headers=auth("teacher")).get_json()
        assert [s["id"] for s in data["students"]] == [ids["student"]]

    def test_roster_hidden_from_students(self, client, auth, ids):
        assert client.get(f"/api/classes/{ids['class']}/students", headers=auth("student")).status_code == 403

    def test_other_school_not_found(self, client, auth, ids):
        assert client.get(f"/api/classes/{ids['class']}", headers=auth("admin2")).status_code == 404


class TestCreateClass:
    def test_teacher_owns_new_class(self, client, auth, ids):
        resp = client.post("/api/classes", json=_class_body(ids), headers=auth("teacher"))
        assert resp.status_code == 201
        cls = resp.get_json()["class"]
        assert cls["teacher_id"] == ids["teacher"]
        assert cls["school_id"] == ids["school"]
        assert cls["max_students"] == 30

    def test_teacher_cannot_assign_colleague(self, client, auth, ids):
        resp = client.post("/api/classes", json=_class_body(ids, teacherId=ids["teacher2"]),
                           headers=auth("teacher"))
        assert resp.status_code == 403

    def test_admin_assigns_teacher(self, client, auth, ids):
        resp = client.post("/api/classes", json=_class_body(ids, teacherId=ids["teacher2"]),
                           headers=auth("admin"))
        assert resp.get_json()["class"]["teacher_id"] == ids["teacher2"]

    def test_unknown_subject(self, client, auth, ids):
        resp = client.post("/api/classes", json=_class_body(ids, subjectId=9999), headers=auth("admin"))
        assert resp.status_code == 404
        assert resp.get_json()["error"] == "Subject not found"

    def test_unknown_teacher(self, client, auth, ids):
        resp = client.post("/api/classes", json=_class_body(ids, teacherId=9999), headers=auth("admin"))
        assert resp.status_code == 404
        assert resp.get_json()["error"] == "Teacher not found"

    @pytest.mark.parametrize("start,end", [("11:00", "10:00"), ("10:00", "10:00")])
    def test_end_before_start(self, client, auth, ids, start, end):
        resp = client.post("/api/classes", json=_class_body(ids, startTime=start, endTime=end),
                           headers=auth("admin"))
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "Validation failed"

    def test_bad_time_format(self, client, auth, ids):
        resp = client.post("/api/classes", json=_class_body(ids, startTime="25:00"), headers=auth("admin"))
        assert resp.status_code == 400

    def test_students_cannot_create(self, client, auth, ids):
        assert client.post("/api/classes", json=_class_body(ids), headers=auth("student")).status_code == 403


class TestUpdateClass:
    def test_teacher_updates_own_class(self, client, auth, ids):
        resp = client.put(f"/api/classes/{ids['class']}", json={"roomNumber": "A1"}, headers=auth("teacher"))
        assert resp.status_code == 200
        assert resp.get_json()["class"]["room_number"] == "A1"

    def test_other_teacher_forbidden(self, client, auth, ids):
        resp = client.put(f"/api/classes/{ids['class']}", json={"roomNumber": "A1"}, headers=auth("teacher2"))
        assert resp.status_code == 403
        assert resp.get_json()["error"] == "Access denied. You can only update your own classes."

    def test_time_order_checked_against_stored_value(self, client, auth, ids):
        client.put(f"/api/classes/{ids['class']}", json={"startTime": "09:00", "endTime": "10:00"},
                   headers=auth("admin"))
        resp = client.put(f"/api/classes/{ids['class']}", json={"endTime": "8:30"}, headers=auth("admin"))
        assert resp.status_code == 400
        assert resp.get_json()["errors"][0]["field"] == "endTime"

    def test_delete_admin_only(self, client, auth, ids):
        assert client.delete(f"/api/classes/{ids['class']}", headers=auth("teacher")).status_code == 403
        assert client.delete(f"/api/classes/{ids['class']}", headers=auth("admin")).status_code == 200
