"""Tests for pagination helpers and paginated API endpoints."""

from __future__ import annotations


class TestPaginateArgs:
    def test_defaults(self, app):
        with app.test_request_context("/api/students"):
            from helpers import paginate_args
            assert paginate_args() == (1, 10)

    def test_custom_page_and_limit(self, app):
        with app.test_request_context("/api/students?page=3&limit=25"):
            from helpers import paginate_args
            assert paginate_args() == (3, 25)

    def test_max_limit_enforced(self, app):
        with app.test_request_context("/api/students?limit=500"):
            from helpers import paginate_args
            _, limit = paginate_args(max_limit=100)
            assert limit == 100

    def test_invalid_values_use_defaults(self, app):
        with app.test_request_context("/api/students?page=abc&limit=xyz"):
            from helpers import paginate_args
            assert paginate_args(default_limit=15) == (1, 15)

    def test_negative_page_clamps_to_one(self, app):
        with app.test_request_context("/api/students?page=-5&limit=0"):
            from helpers import paginate_args
            assert paginate_args() == (1, 1)


class TestPaginatedResponse:
    def test_envelope_carries_both_spellings(self):
        from helpers import paginated_response
        result = paginated_response(["a", "b", "c"], total=10, page=2, limit=3, key="students")
        assert result["students"] == ["a", "b", "c"]
        assert result["pagination"] == {
            "page": 2, "limit": 3, "total": 10, "pages": 4,
            "currentPage": 2, "totalPages": 4, "hasNext": True, "hasPrev": True,
        }

    def test_empty_result_has_one_page(self):
        from helpers import paginated_response
        pagination = paginated_response([], total=0, page=1, limit=10)["pagination"]
        assert pagination["pages"] == 1
        assert pagination["hasNext"] is False
        assert pagination["hasPrev"] is False

    def test_last_page(self):
        from helpers import paginated_response
        pagination = paginated_response(["x"], total=21, page=3, limit=10)["pagination"]
        assert pagination["hasNext"] is False
        assert pagination["hasPrev"] is True


class TestPaginatedEndpoints:
    def test_users_list_pages(self, client, auth):
        first = client.get("/api/users?page=1&limit=2", headers=auth("super_admin")).get_json()
        second = client.get("/api/users?page=2&limit=2", headers=auth("super_admin")).get_json()
        assert len(first["users"]) == 2
        assert first["pagination"]["total"] == 8
        assert first["pagination"]["pages"] == 4
        assert {u["id"] for u in first["users"]}.isdisjoint({u["id"] for u in second["users"]})

    def test_page_past_the_end(self, client, auth):
        data = client.get("/api/users?page=9&limit=2", headers=auth("super_admin")).get_json()
        assert data["users"] == []
        assert data["pagination"]["total"] == 8
        assert data["pagination"]["hasNext"] is False
        assert data["pagination"]["hasPrev"] is True

    def test_bad_integer_filter(self, client, auth):
        resp = client.get("/api/students?classId=abc", headers=auth("admin"))
        assert resp.status_code == 400
        assert resp.get_json()["errors"] == [{"field": "classId", "message": "must be an integer"}]
