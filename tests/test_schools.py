"""Tests for schools and subjects routes."""

from datetime import date


class TestSchools:
    def test_list_scoped_to_own_school(self, client, auth, ids):
        data = client.get("/api/schools", headers=auth("teacher")).get_json()
        assert [s["id"] for s in data["schools"]] == [ids["school"]]
        assert data["schools"][0]["teacher_count"] == 2

    def test_super_admin_lists_all_and_filters(self, client, auth):
        data = client.get("/api/schools?educationSystem=francophone", headers=auth("super_admin")).get_json()
        assert [s["name"] for s in data["schools"]] == ["Other School"]

    def test_get_other_school_not_found(self, client, auth, ids):
        assert client.get(f"/api/schools/{ids['school2']}", headers=auth("admin")).status_code == 404

    def test_stats(self, client, auth, ids):
        data = client.get(f"/api/schools/{ids['school']}/stats", headers=auth("admin")).get_json()
        stats = data["stats"]
        assert stats["students"] == 1
        assert stats["teachers"] == 2
        assert stats["classes"] == 1
        assert stats["users_by_role"]["teacher"] == 2
        assert stats["average_grade"] is None

    def test_only_super_admin_creates(self, client, auth):
        body = {"name": "New Academy", "city": "Bamenda"}
        assert client.post("/api/schools", json=body, headers=auth("admin")).status_code == 403
        resp = client.post("/api/schools", json=body, headers=auth("super_admin"))
        assert resp.status_code == 201
        assert resp.get_json()["school"]["education_system"] == "anglophone"

    def test_established_year_bounds(self, client, auth):
        body = {"name": "Future School", "establishedYear": date.today().year + 1}
        resp = client.post("/api/schools", json=body, headers=auth("super_admin"))
        assert resp.status_code == 400
        assert resp.get_json()["errors"][0]["field"] == "establishedYear"

    def test_create_with_admin(self, client, auth):
        resp = client.post("/api/schools/create-with-admin", json={
            "name": "Lycée Bilingue", "educationSystem": "francophone",
            "adminEmail": "head@lycee.cm", "adminPassword": "secret12",
            "adminFirstName": "Jean", "adminLastName": "Kamga",
        }, headers=auth("super_admin"))
        assert resp.status_code == 201
        data = resp.get_json()
        assert data["admin"]["role"] == "school_admin"
        assert data["admin"]["school_id"] == data["school"]["id"]
        assert data["admin"]["education_system"] == "francophone"
        login = client.post("/api/auth/login", json={"email": "head@lycee.cm", "password": "secret12"})
        assert login.status_code == 200

    def test_create_with_admin_duplicate_email_creates_nothing(self, client, auth, fetch):
        resp = client.post("/api/schools/create-with-admin", json={
            "name": "Ghost School", "adminEmail": "admin@test.cm", "adminPassword": "secret12",
            "adminFirstName": "G", "adminLastName": "H",
        }, headers=auth("super_admin"))
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "User with this email already exists"
        assert fetch("SELECT id FROM schools WHERE name = 'Ghost School'") == []

    def test_school_admin_updates_own_school_only(self, client, auth, ids):
        resp = client.put(f"/api/schools/{ids['school']}", json={"phone": "+237 222"}, headers=auth("admin"))
        assert resp.status_code == 200
        assert resp.get_json()["school"]["phone"] == "+237 222"
        resp = client.put(f"/api/schools/{ids['school2']}", json={"phone": "1"}, headers=auth("admin"))
        assert resp.status_code == 403
        assert resp.get_json()["error"] == "Access denied. You can only update your own school."

    def test_delete_blocked_while_users_exist(self, client, auth, ids):
        resp = client.delete(f"/api/schools/{ids['school']}", headers=auth("super_admin"))
        assert resp.status_code == 400
        assert resp.get_json()["error"] == (
            "Cannot delete school with existing users. Please transfer or remove users first."
        )

    def test_delete_empty_school(self, client, auth):
        school = client.post("/api/schools", json={"name": "Empty School"},
                             headers=auth("super_admin")).get_json()["school"]
        resp = client.delete(f"/api/schools/{school['id']}", headers=auth("super_admin"))
        assert resp.status_code == 200
        assert client.get(f"/api/schools/{school['id']}", headers=auth("super_admin")).status_code == 404


class TestSubjects:
    def test_list_with_class_count(self, client, auth):
        data = client.get("/api/subjects", headers=auth("student")).get_json()
        assert data["subjects"][0]["code"] == "MATH"
        assert data["subjects"][0]["class_count"] == 1

    def test_create_in_own_school(self, client, auth, ids):
        resp = client.post("/api/subjects", json={"name": "French", "code": "FRE", "credits": 2},
                           headers=auth("admin"))
        assert resp.status_code == 201
        assert resp.get_json()["subject"]["school_id"] == ids["school"]

    def test_duplicate_code(self, client, auth):
        resp = client.post("/api/subjects", json={"name": "Maths again", "code": "MATH"}, headers=auth("admin"))
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "Subject code already exists"

    def test_same_code_other_school(self, client, auth):
        resp = client.post("/api/subjects", json={"name": "Mathématiques", "code": "MATH"},
                           headers=auth("admin2"))
        assert resp.status_code == 201

    def test_teacher_cannot_create(self, client, auth):
        assert client.post("/api/subjects", json={"name": "Art"}, headers=auth("teacher")).status_code == 403

    def test_update_and_delete(self, client, auth, ids):
        resp = client.put(f"/api/subjects/{ids['subject']}", json={"description": "Numbers"},
                          headers=auth("admin"))
        assert resp.get_json()["subject"]["description"] == "Numbers"
        assert client.delete(f"/api/subjects/{ids['subject']}", headers=auth("admin")).status_code == 200
        assert client.get(f"/api/subjects/{ids['subject']}", headers=auth("admin")).status_code == 404
