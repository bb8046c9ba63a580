"""App-level behaviour: health checks, error envelopes, headers, CORS, SPA shell, dashboard."""

import pytest


class TestHealth:
    def test_health(self, client):
        data = client.get("/health").get_json()
        assert data["status"] == "OK"
        assert data["environment"] == "testing"
        assert data["timestamp"].endswith("Z")

    def test_api_test(self, client):
        data = client.get("/api/test").get_json()
        assert data["message"] == "API is working correctly"
        assert data["version"] == "1.0.0"

    def test_probes(self, client):
        assert client.get("/live").get_json() == {"status": "alive"}
        assert client.get("/ready").status_code == 200


class TestErrors:
    @pytest.mark.parametrize("method,path", [
        ("get", "/api/nothing-here"),
        ("post", "/api/nothing-here"),
        ("get", "/api"),
        ("post", "/students"),
    ])
    def test_unknown_routes(self, client, method, path):
        resp = getattr(client, method)(path)
        assert resp.status_code == 404
        assert resp.get_json() == {"error": "Route not found"}

    def test_missing_token(self, client):
        resp = client.get("/api/dashboard")
        assert resp.status_code == 401
        assert resp.get_json() == {"error": "Access denied. No token provided."}

    def test_malformed_json_body(self, client, auth):
        resp = client.post("/api/subjects", data="{not json", content_type="application/json",
                           headers=auth("admin"))
        assert resp.status_code == 400


class TestHeaders:
    def test_security_headers(self, client):
        resp = client.get("/health")
        assert resp.headers["X-Content-Type-Options"] == "nosniff"
        assert resp.headers["X-Frame-Options"] == "SAMEORIGIN"
        assert "script-src 'self'" in resp.headers["Content-Security-Policy"]

    def test_etag_not_modified(self, client):
        first = client.get("/live")
        etag = first.headers["ETag"]
        second = client.get("/live", headers={"If-None-Match": etag})
        assert second.status_code == 304

    @pytest.mark.parametrize("origin", ["http://localhost:3000", "https://my-school.netlify.app"])
    def test_cors_allowed(self, client, origin):
        resp = client.get("/api/test", headers={"Origin": origin})
        assert resp.headers["Access-Control-Allow-Origin"] == origin

    def test_cors_denied(self, client):
        resp = client.get("/api/test", headers={"Origin": "https://evil.example"})
        assert resp.status_code == 200
        assert "Access-Control-Allow-Origin" not in resp.headers


class TestSpaShell:
    @pytest.mark.parametrize("path", ["/", "/dashboard", "/students/12"])
    def test_index_served(self, client, path):
        resp = client.get(path)
        assert resp.status_code == 200
        assert b"<!DOCTYPE html>" in resp.data or b"<!doctype html>" in resp.data

    def test_static_assets(self, client):
        resp = client.get("/static/js/session.js")
        assert resp.status_code == 200


class TestDashboard:
    def test_admin_counts(self, client, auth):
        data = client.get("/api/dashboard", headers=auth("admin")).get_json()
        assert data["role"] == "school_admin"
        counts = data["summary"]["counts"]
        assert counts["students"] == 1
        assert counts["teachers"] == 2
        assert counts["users"] == 5
        assert counts["schools"] == 1

    def test_super_admin_sees_all_schools(self, client, auth):
        counts = client.get("/api/dashboard", headers=auth("super_admin")).get_json()["summary"]["counts"]
        assert counts["schools"] == 2
        assert counts["students"] == 2

    def test_teacher(self, client, auth, ids):
        summary = client.get("/api/dashboard", headers=auth("teacher")).get_json()["summary"]
        assert summary["teacher_id"] == ids["teacher"]
        assert [c["id"] for c in summary["classes"]] == [ids["class"]]
        assert summary["quizzes"] == 0

    def test_student(self, client, auth, ids):
        client.post("/api/grades", json={"studentId": ids["student"], "classId": ids["class"],
                                         "assignmentName": "Quiz 1", "pointsEarned": 8, "pointsPossible": 10},
                    headers=auth("teacher"))
        summary = client.get("/api/dashboard", headers=auth("student")).get_json()["summary"]
        assert summary["grade_summary"] == {"count": 1, "average_percentage": 80.0}

    def test_parent(self, client, auth, ids):
        client.post("/api/notifications", json={"title": "Hi", "message": "Welcome", "userId": ids["parent_user"]},
                    headers=auth("admin"))
        data = client.get("/api/dashboard", headers=auth("parent")).get_json()
        assert [c["id"] for c in data["summary"]["children"]] == [ids["student"]]
        assert data["unreadNotifications"] == 1


class TestLogging:
    def test_request_id_echoed(self, client):
        assert client.get("/health", headers={"X-Request-ID": "abc123"}).headers["X-Request-ID"] == "abc123"
        assert len(client.get("/health").headers["X-Request-ID"]) == 12

    def test_json_formatter_includes_context(self):
        import json
        import logging

        from logging_config import JSONFormatter
        record = logging.LogRecord("edumanage.access", logging.INFO, __file__, 1, "GET %s", ("/health",), None)
        record.request_id = "abc123"
        record.status = 200
        entry = json.loads(JSONFormatter().format(record))
        assert entry["message"] == "GET /health"
        assert entry["request_id"] == "abc123"
        assert entry["status"] == 200
        assert "user_id" not in entry
