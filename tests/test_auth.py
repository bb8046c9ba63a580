"""Tests for auth.py: register, login, bearer tokens, profile and password."""

from datetime import datetime, timedelta, timezone

import jwt
import pytest

from conftest import PASSWORD


def _register(client, **overrides):
    body = {
        "firstName": "Nadia",
        "lastName": "Fon",
        "email": "nadia@test.cm",
        "password": "secret12",
        "role": "student",
    }
    body.update(overrides)
    return client.post("/api/auth/register", json=body)


class TestRegister:
    def test_register_student_creates_profile(self, client, fetch):
        resp = _register(client, gradeLevel=4)
        assert resp.status_code == 201
        data = resp.get_json()
        assert data["message"] == "User registered successfully"
        assert data["token"]
        assert data["user"]["email"] == "nadia@test.cm"
        assert data["user"]["role"] == "student"
        assert "password_hash" not in data["user"]
        rows = fetch("SELECT grade_level, student_id FROM students WHERE id = ?",
                     (data["user"]["student_profile_id"],))
        assert rows[0]["grade_level"] == 4
        assert rows[0]["student_id"].startswith("STU-")

    def test_register_parent_defaults_to_guardian(self, client, fetch):
        resp = _register(client, role="parent", email="parent.new@test.cm")
        assert resp.status_code == 201
        parent_id = resp.get_json()["user"]["parent_id"]
        assert fetch("SELECT parent_type FROM parents WHERE id = ?", (parent_id,))[0]["parent_type"] == "guardian"

    def test_register_accepts_snake_case(self, client):
        resp = client.post("/api/auth/register", json={
            "first_name": "Snake", "last_name": "Case", "email": "snake@test.cm",
            "password": "secret12", "role": "teacher", "subsystem": "francophone",
        })
        assert resp.status_code == 201
        assert resp.get_json()["user"]["education_system"] == "francophone"

    def test_email_is_lowercased(self, client):
        resp = _register(client, email="Mixed.Case@Test.CM")
        assert resp.get_json()["user"]["email"] == "mixed.case@test.cm"

    def test_duplicate_email(self, client):
        resp = _register(client, email="admin@test.cm")
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "User already exists with this email"

    def test_short_password(self, client):
        resp = _register(client, password="abc")
        assert resp.status_code == 400
        data = resp.get_json()
        assert data["error"] == "Validation failed"
        assert any(e["field"] == "password" for e in data["errors"])

    def test_admin_roles_cannot_self_register(self, client):
        resp = _register(client, role="super_admin")
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "Validation failed"

    def test_unknown_school(self, client):
        resp = _register(client, schoolId=9999)
        assert resp.status_code == 404
        assert resp.get_json()["error"] == "School not found"


class TestLogin:
    def test_login_success(self, client, ids):
        resp = client.post("/api/auth/login", json={"email": "teacher@test.cm", "password": PASSWORD})
        assert resp.status_code == 200
        data = resp.get_json()
        assert data["message"] == "Login successful"
        assert data["user"]["teacher_id"] == ids["teacher"]
        me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {data['token']}"})
        assert me.get_json()["user"]["id"] == ids["teacher_user"]

    def test_login_records_last_login(self, client, fetch):
        client.post("/api/auth/login", json={"email": "parent@test.cm", "password": PASSWORD})
        assert fetch("SELECT last_login FROM users WHERE email = 'parent@test.cm'")[0]["last_login"]

    def test_wrong_password(self, client):
        resp = client.post("/api/auth/login", json={"email": "teacher@test.cm", "password": "nope"})
        assert resp.status_code == 401
        assert resp.get_json()["error"] == "Invalid credentials"

    def test_unknown_email(self, client):
        resp = client.post("/api/auth/login", json={"email": "ghost@test.cm", "password": PASSWORD})
        assert resp.status_code == 401
        assert resp.get_json()["error"] == "Invalid credentials"

    def test_deactivated_account(self, client, app, ids):
        from database import query
        with app.app_context():
            query("UPDATE users SET is_active = 0 WHERE id = ?", (ids["teacher2_user"],)).unwrap()
        resp = client.post("/api/auth/login", json={"email": "teacher2@test.cm", "password": PASSWORD})
        assert resp.status_code == 401
        assert resp.get_json()["error"] == "Account is deactivated."

    def test_missing_fields(self, client):
        resp = client.post("/api/auth/login", json={"email": "teacher@test.cm"})
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "Validation failed"


class TestBearerToken:
    def test_no_token(self, client):
        resp = client.get("/api/auth/me")
        assert resp.status_code == 401
        assert resp.get_json()["error"] == "Access denied. No token provided."

    def test_malformed_header(self, client):
        resp = client.get("/api/auth/me", headers={"Authorization": "Token abc"})
        assert resp.status_code == 401

    def test_bad_signature(self, client, ids):
        token = jwt.encode({"sub": str(ids["admin_user"]), "exp": 4102444800}, "wrong-secret",
                           algorithm="HS256")
        resp = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 401
        assert resp.get_json()["error"] == "Invalid token."

    def test_expired_token(self, client, ids):
        past = datetime.now(timezone.utc) - timedelta(hours=1)
        token = jwt.encode({"sub": str(ids["admin_user"]), "exp": int(past.timestamp())},
                           "test-jwt-secret", algorithm="HS256")
        resp = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 401
        assert resp.get_json()["error"] == "Token expired."

    def test_token_for_deleted_user(self, client, app, auth, ids):
        from database import query
        headers = auth("teacher2")
        with app.app_context():
            query("DELETE FROM users WHERE id = ?", (ids["teacher2_user"],)).unwrap()
        resp = client.get("/api/auth/me", headers=headers)
        assert resp.status_code == 401
        assert resp.get_json()["error"] == "Invalid token. User not found."


class TestProfile:
    def test_update_profile(self, client, auth):
        resp = client.put("/api/auth/profile", json={"phone": "+237 600 000 000", "language": "fr"},
                          headers=auth("student"))
        assert resp.status_code == 200
        user = resp.get_json()["user"]
        assert user["phone"] == "+237 600 000 000"
        assert user["language"] == "fr"

    def test_update_profile_ignores_role(self, client, auth):
        resp = client.put("/api/auth/profile", json={"role": "super_admin", "lastName": "Dent"},
                          headers=auth("student"))
        assert resp.status_code == 200
        assert resp.get_json()["user"]["role"] == "student"

    def test_empty_update(self, client, auth):
        resp = client.put("/api/auth/profile", json={}, headers=auth("student"))
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "No fields to update"


class TestChangePassword:
    def test_change_password(self, client, auth):
        resp = client.put("/api/auth/change-password",
                          json={"currentPassword": PASSWORD, "newPassword": "brandnew1"},
                          headers=auth("parent"))
        assert resp.status_code == 200
        login = client.post("/api/auth/login", json={"email": "parent@test.cm", "password": "brandnew1"})
        assert login.status_code == 200

    def test_wrong_current_password(self, client, auth):
        resp = client.put("/api/auth/change-password",
                          json={"currentPassword": "wrong", "newPassword": "brandnew1"},
                          headers=auth("parent"))
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "Current password is incorrect"


class TestPasswordHashing:
    def test_hash_roundtrip(self):
        from security import hash_password, verify_password
        hashed = hash_password("s3cret!")
        assert hashed != "s3cret!"
        assert verify_password("s3cret!", hashed)
        assert not verify_password("other", hashed)
        assert not verify_password("s3cret!", "")

    @pytest.mark.parametrize("claims", [{"exp": 4102444800}, {"sub": "1"}])
    def test_decode_requires_sub_and_exp(self, app, claims):
        from security import AuthError, decode_token
        token = jwt.encode(claims, "test-jwt-secret", algorithm="HS256")
        with app.app_context():
            with pytest.raises(AuthError):
                decode_token(token)
