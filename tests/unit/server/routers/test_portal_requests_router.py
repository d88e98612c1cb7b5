"""Unit tests for the recent-requests endpoint.

Tests cover:
- GET /rest/portal-requests/1.0/recent - success envelope and diagnostics
- Fallback to the default JQL and the 400 when no query is usable
- 401 / 500 error envelopes
"""

import json

API_PREFIX = "/rest/portal-requests/1.0"
RECENT_URL = f"{API_PREFIX}/recent"


class TestRecentRequiresAuth:
    def test_unauthenticated_returns_401_envelope(self, client):
        response = client.get(RECENT_URL, params={"projectKey": "PROJ"})

        assert response.status_code == 401
        body = response.json()
        assert body["error"] == "Authentication required"
        assert body["errorType"] == "Unauthenticated"
        assert body["requestId"] == response.headers["X-Request-ID"]
        assert isinstance(body["duration"], int)

    def test_unknown_token_returns_401(self, client):
        response = client.get(RECENT_URL, headers={"Authorization": "Bearer stolen"})
        assert response.status_code == 401


class TestRecentSuccess:
    def test_returns_mapped_items_with_diagnostics(self, client, user_headers, query_engine, issue_factory):
        query_engine.issues = [
            issue_factory("PROJ-2", summary="VPN down"),
            issue_factory("PROJ-1", reporter=None),
        ]

        response = client.get(RECENT_URL, params={"projectKey": "PROJ"}, headers=user_headers)

        assert response.status_code == 200
        body = response.json()
        assert [item["key"] for item in body["data"]] == ["PROJ-2", "PROJ-1"]
        assert body["data"][0]["summary"] == "VPN down"
        assert body["data"][1]["reporter"] == "Unknown"

        diagnostics = body["diagnostics"]
        assert diagnostics["requestId"] == response.headers["X-Request-ID"]
        assert diagnostics["user"] == "user"
        assert diagnostics["jql"] == "project = PROJ ORDER BY created DESC"
        assert diagnostics["resultCount"] == 2
        assert diagnostics["scope"] == "PROJ"
        assert isinstance(diagnostics["duration"], int)
        assert diagnostics["timestamp"]

    def test_response_headers(self, client, user_headers):
        response = client.get(RECENT_URL, headers=user_headers)

        assert response.headers["Cache-Control"] == "max-age=30"
        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["X-Frame-Options"] == "SAMEORIGIN"

    def test_global_scope_without_project_key(self, client, user_headers, query_engine):
        response = client.get(RECENT_URL, headers=user_headers)

        assert response.json()["diagnostics"]["scope"] == "global"
        assert query_engine.search_calls == [("project = DEMO ORDER BY created DESC", 10)]

    def test_result_count_matches_capped_data(self, client, user_headers, query_engine, issue_factory):
        query_engine.issues = [issue_factory(f"PROJ-{i}") for i in range(25)]

        body = client.get(RECENT_URL, params={"projectKey": "PROJ"}, headers=user_headers).json()

        assert len(body["data"]) == 10
        assert body["diagnostics"]["resultCount"] == 10


class TestRecentQueryFallback:
    def test_invalid_stored_query_falls_back(self, client, user_headers, kv_store, query_engine):
        kv_store.data["portal.settings.PROJ"] = json.dumps(
            {"query": "project = PROJ AND bogus = 1", "useCustomQuery": True}
        )
        query_engine.invalid_queries["project = PROJ AND bogus = 1"] = ["Field 'bogus' does not exist"]

        response = client.get(RECENT_URL, params={"projectKey": "PROJ"}, headers=user_headers)

        assert response.status_code == 200
        assert response.json()["diagnostics"]["jql"] == "project = PROJ ORDER BY created DESC"

    def test_no_usable_query_returns_400_not_500(self, client, user_headers, kv_store, query_engine):
        kv_store.data["portal.settings.PROJ"] = json.dumps(
            {"query": "project = PROJ AND bogus = 1", "useCustomQuery": True}
        )
        query_engine.invalid_queries["project = PROJ AND bogus = 1"] = ["Field 'bogus' does not exist"]
        query_engine.invalid_queries["project = PROJ ORDER BY created DESC"] = [
            "The value 'PROJ' does not exist for the field 'project'."
        ]

        response = client.get(RECENT_URL, params={"projectKey": "PROJ"}, headers=user_headers)

        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "Invalid JQL query"
        assert body["errorType"] == "InvalidQuery"
        assert body["details"] == ["The value 'PROJ' does not exist for the field 'project'."]
        assert "requestId" in body

    def test_store_outage_degrades_to_default(self, client, user_headers, kv_store):
        kv_store.fail_reads = True

        response = client.get(RECENT_URL, params={"projectKey": "PROJ"}, headers=user_headers)

        assert response.status_code == 200
        assert response.json()["diagnostics"]["jql"] == "project = PROJ ORDER BY created DESC"


class TestRecentUnexpectedErrors:
    def test_search_failure_returns_generic_500(self, client, user_headers, query_engine):
        query_engine.search_error = RuntimeError("search backend exploded")

        response = client.get(RECENT_URL, params={"projectKey": "PROJ"}, headers=user_headers)

        assert response.status_code == 500
        body = response.json()
        assert body["error"] == "Internal server error"
        assert body["errorType"] == "RuntimeError"
        assert "exploded" not in json.dumps(body)
        assert isinstance(body["duration"], int)

    def test_service_not_initialized_returns_503(self, app, client, user_headers):
        app.state.portal_requests_service = None

        response = client.get(RECENT_URL, headers=user_headers)

        assert response.status_code == 503
        assert response.json()["error"] == "Portal requests service not initialized"


class TestSaveThenRecent:
    def test_saved_custom_query_is_run_exactly(self, client, admin_headers, query_engine, issue_factory):
        saved_query = "project = X ORDER BY created DESC"
        query_engine.issues = [issue_factory("X-1"), issue_factory("X-2"), issue_factory("X-3")]

        save = client.post(
            f"{API_PREFIX}/settings",
            json={"projectKey": "X", "query": saved_query, "useCustomQuery": True},
            headers=admin_headers,
        )
        assert save.status_code == 200

        body = client.get(RECENT_URL, params={"projectKey": "X"}, headers=admin_headers).json()

        assert body["diagnostics"]["jql"] == saved_query
        assert query_engine.search_calls[-1] == (saved_query, 10)
        assert body["diagnostics"]["resultCount"] == len(body["data"]) == 3
