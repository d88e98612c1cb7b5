"""
Shared fixtures for portal requests server unit tests.

Host capabilities are replaced with in-memory fakes:
- FakeAuthenticator: bearer-token users with per-scope admin rights
- FakeQueryEngine: configurable parser outcomes, canned search results
- MemoryKVStore: dict-backed store with read/write failure switches
"""

from typing import Any, Dict, List, Optional, Set

import pytest
from fastapi.testclient import TestClient

from portal_requests.server.app import create_app
from portal_requests.server.auth.authenticator import ActingUser, Authenticator
from portal_requests.server.models.error_models import StoreReadFailure, StoreWriteFailure
from portal_requests.server.services.query_engine import ParseResult, QueryEngine
from portal_requests.server.storage.kv_store import KVStore
from portal_requests.server.utils.config_manager import PortalServerConfig

ADMIN_HEADERS = {"Authorization": "Bearer admin-token"}
PROJECT_ADMIN_HEADERS = {"Authorization": "Bearer lead-token"}
USER_HEADERS = {"Authorization": "Bearer user-token"}


class FakeAuthenticator(Authenticator):
    """Resolves users from bearer tokens; admin rights are listed per user."""

    def __init__(self):
        self.users: Dict[str, ActingUser] = {
            "admin-token": ActingUser(name="admin", display_name="Jira Admin"),
            "lead-token": ActingUser(name="lead", display_name="Project Lead"),
            "user-token": ActingUser(name="user", display_name="Portal User"),
        }
        self.admin_scopes: Dict[str, Set[str]] = {
            "admin": {"global", "PROJ", "X"},
            "lead": {"PROJ"},
        }

    def authenticate(self, request) -> Optional[ActingUser]:
        header = request.headers.get("Authorization", "")
        if not header.startswith("Bearer "):
            return None
        return self.users.get(header[len("Bearer "):])

    def is_admin(self, user: ActingUser, scope: str) -> bool:
        return scope in self.admin_scopes.get(user.name, set())


class FakeQueryEngine(QueryEngine):
    """Every query parses unless listed in invalid_queries."""

    def __init__(self):
        self.invalid_queries: Dict[str, List[str]] = {}
        self.parse_error: Optional[Exception] = None
        self.search_error: Optional[Exception] = None
        self.issues: List[Any] = []
        self.projects: Dict[str, Dict[str, Any]] = {
            "PROJ": {"key": "PROJ", "name": "Project One"},
        }
        self.parse_calls: List[str] = []
        self.search_calls: List[tuple] = []

    def parse(self, user: ActingUser, query: str) -> ParseResult:
        self.parse_calls.append(query)
        if self.parse_error is not None:
            raise self.parse_error
        if query in self.invalid_queries:
            return ParseResult(valid=False, errors=list(self.invalid_queries[query]))
        return ParseResult(valid=True)

    def search(self, user: ActingUser, query: str, limit: int) -> List[Dict[str, Any]]:
        self.search_calls.append((query, limit))
        if self.search_error is not None:
            raise self.search_error
        # Ignores limit; callers cap results themselves
        return list(self.issues)

    def get_project(self, user: ActingUser, project_key: str) -> Optional[Dict[str, Any]]:
        return self.projects.get(project_key)


class MemoryKVStore(KVStore):
    """Dict-backed KVStore with failure injection."""

    def __init__(self):
        self.data: Dict[str, str] = {}
        self.fail_reads = False
        self.fail_writes = False
        self.put_calls = 0

    def get(self, key: str) -> Optional[str]:
        if self.fail_reads:
            raise StoreReadFailure("store offline")
        return self.data.get(key)

    def put(self, key: str, value: str) -> None:
        self.put_calls += 1
        if self.fail_writes:
            raise StoreWriteFailure("Failed to save settings: store offline")
        self.data[key] = value

    def delete(self, key: str) -> None:
        self.data.pop(key, None)

    def keys(self, prefix: str = "") -> List[str]:
        return sorted(k for k in self.data if k.startswith(prefix))


def make_issue(
    key: str,
    summary: str = "Printer on fire",
    reporter: Optional[str] = "Jane Reporter",
    status: Optional[str] = "Open",
    category: Optional[str] = "new",
    created: Optional[str] = "2024-03-01T10:00:00.000+0000",
) -> Dict[str, Any]:
    """Build an issue shaped like a Jira search result."""
    fields: Dict[str, Any] = {"summary": summary, "created": created}
    if reporter is not None:
        fields["reporter"] = {"displayName": reporter}
    if status is not None:
        fields["status"] = {"name": status}
        if category is not None:
            fields["status"]["statusCategory"] = {"key": category}
    return {"key": key, "fields": fields}


@pytest.fixture
def authenticator() -> FakeAuthenticator:
    return FakeAuthenticator()


@pytest.fixture
def query_engine() -> FakeQueryEngine:
    return FakeQueryEngine()


@pytest.fixture
def kv_store() -> MemoryKVStore:
    return MemoryKVStore()


@pytest.fixture
def server_config(tmp_path) -> PortalServerConfig:
    return PortalServerConfig(server_dir=str(tmp_path))


@pytest.fixture
def app(server_config, authenticator, query_engine, kv_store):
    return create_app(
        server_config,
        authenticator=authenticator,
        query_engine=query_engine,
        kv_store=kv_store,
    )


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app, raise_server_exceptions=False)


@pytest.fixture
def issue_factory():
    return make_issue


@pytest.fixture
def admin_headers() -> Dict[str, str]:
    return dict(ADMIN_HEADERS)


@pytest.fixture
def project_admin_headers() -> Dict[str, str]:
    return dict(PROJECT_ADMIN_HEADERS)


@pytest.fixture
def user_headers() -> Dict[str, str]:
    return dict(USER_HEADERS)
