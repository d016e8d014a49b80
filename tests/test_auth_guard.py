"""
Tests for the session and ownership guard
"""
import pytest

from auth_utils import SessionInfo
from backend.utils.errors import AuthenticationError, ForbiddenError, NotFoundError, ServerError
from utils.auth_guard import (
    Continue,
    Redirect,
    Reject,
    classify_route,
    evaluate_request,
    project_id_from_path,
)

SESSION = SessionInfo(user_id="user-1", email="user@example.com", name="User", token="t")


def owners(mapping):
    """Ownership lookup over a dict, recording every project id asked for."""
    calls = []

    async def lookup(project_id):
        calls.append(project_id)
        return mapping.get(project_id)

    lookup.calls = calls
    return lookup


@pytest.mark.parametrize("path, expected", [
    ("/api/auth/login", "public"),
    ("/health", "public"),
    ("/openapi.json", "public"),
    ("/login", "auth_page"),
    ("/register", "auth_page"),
    ("/api/projects", "api"),
    ("/api/projects/abc/generate-prd", "api"),
    ("/", "other"),
    ("/projects/abc", "other"),
])
def test_classify_route(path, expected):
    assert classify_route(path) == expected


def test_project_id_from_path():
    assert project_id_from_path("/api/projects/abc") == "abc"
    assert project_id_from_path("/api/projects/abc/planning-questions") == "abc"
    assert project_id_from_path("/api/projects/index") is None
    assert project_id_from_path("/api/projects") is None
    assert project_id_from_path("/api/other/abc") is None


@pytest.mark.asyncio
async def test_public_and_page_routes():
    """
    This test verifies:
    - Public paths pass with or without a session
    - Auth pages redirect signed-in users home
    - Other pages redirect anonymous users to /login
    """
    lookup = owners({})

    assert await evaluate_request("/api/auth/login", None, lookup) == Continue(None)
    assert await evaluate_request("/health", SESSION, lookup) == Continue("user-1")
    assert await evaluate_request("/login", SESSION, lookup) == Redirect("/")
    assert await evaluate_request("/login", None, lookup) == Continue(None)
    assert await evaluate_request("/projects", None, lookup) == Redirect("/login")
    assert await evaluate_request("/projects", SESSION, lookup) == Continue("user-1")
    assert lookup.calls == []


@pytest.mark.asyncio
async def test_api_requires_session():
    decision = await evaluate_request("/api/projects", None, owners({}))

    assert decision == Reject(401, {"error": "Unauthorized", "message": "Authentication required"})


@pytest.mark.asyncio
async def test_ownership_decisions():
    """
    This test verifies:
    - The owner reaches the handler
    - Another user's project is forbidden
    - A nonexistent project is not found
    - The listing segment is never looked up
    """
    lookup = owners({"mine": "user-1", "theirs": "user-2"})

    assert await evaluate_request("/api/projects/mine/generate-prd", SESSION, lookup) == Continue("user-1")

    forbidden = await evaluate_request("/api/projects/theirs", SESSION, lookup)
    assert isinstance(forbidden, Reject) and forbidden.status_code == 403
    assert forbidden.body["error"] == "Forbidden"

    missing = await evaluate_request("/api/projects/ghost", SESSION, lookup)
    assert missing == Reject(404, {"error": "Not found", "message": "Project not found"})

    assert await evaluate_request("/api/projects/index", SESSION, lookup) == Continue("user-1")
    assert lookup.calls == ["mine", "theirs", "ghost"]


@pytest.mark.asyncio
async def test_rejections_use_error_envelopes():
    """
    This test verifies:
    - Every rejection carries the status and body of its error class
    """
    async def broken(project_id):
        raise RuntimeError("connection lost")

    lookup = owners({"theirs": "user-2"})
    cases = [
        (await evaluate_request("/api/projects", None, lookup), AuthenticationError("Authentication required")),
        (await evaluate_request("/api/projects/theirs", SESSION, lookup), ForbiddenError("You do not have access to this project")),
        (await evaluate_request("/api/projects/ghost", SESSION, lookup), NotFoundError("Project not found")),
        (await evaluate_request("/api/projects/abc", SESSION, broken), ServerError("Failed to verify project ownership")),
    ]

    for decision, error in cases:
        assert decision == Reject(error.status_code, error.to_dict())


@pytest.mark.asyncio
async def test_ownership_lookup_failure():
    async def broken(project_id):
        raise RuntimeError("connection lost")

    decision = await evaluate_request("/api/projects/abc", SESSION, broken)

    assert decision == Reject(500, {"error": "Server error", "message": "Failed to verify project ownership"})


@pytest.mark.asyncio
async def test_guard_middleware_end_to_end(client, register):
    """
    This test verifies:
    - Anonymous API calls get 401 and anonymous page loads get a redirect
    - A second user cannot read, change or generate for the first user's project
    - An unknown project id is 404
    """
    owner = await register("owner@example.com")
    intruder = await register("intruder@example.com")

    response = await client.get("/api/projects")
    assert response.status_code == 401

    response = await client.get("/dashboard")
    assert response.status_code == 302
    assert response.headers["location"] == "/login"

    response = await client.post("/api/projects", json={"name": "Private"}, headers=owner)
    project_id = response.json()["data"]["id"]

    assert (await client.get(f"/api/projects/{project_id}", headers=owner)).status_code == 200
    assert (await client.get(f"/api/projects/{project_id}", headers=intruder)).status_code == 403
    assert (await client.put(f"/api/projects/{project_id}", json={"name": "Mine"}, headers=intruder)).status_code == 403
    assert (await client.post(f"/api/projects/{project_id}/generate-prd", headers=intruder)).status_code == 403

    response = await client.get("/api/projects/00000000-0000-0000-0000-000000000000", headers=owner)
    assert response.status_code == 404

    response = await client.get("/api/projects", headers=intruder)
    assert response.json()["data"] == []


@pytest.mark.asyncio
async def test_guard_session_lookup_failure_is_500(client, auth_headers, monkeypatch):
    from config.settings import settings

    monkeypatch.setattr(settings, "jwt_secret_key", None)
    response = await client.get("/api/projects", headers=auth_headers)

    assert response.status_code == 500
    assert response.json()["error"] == "Authentication error"
