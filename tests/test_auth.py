"""
Unit tests for UserRepository authentication operations and the /api/auth routes
"""
import pytest
from crud.user import UserRepository
from auth_utils import create_jwt, decode_jwt, hash_password, lookup_session, verify_password
from backend.utils.errors import SessionLookupError
from config.settings import settings


@pytest.mark.asyncio
async def test_create_and_get_user(test_db):
    """
    Test creating a new user and retrieving it by email.

    This test verifies:
    - User creation via UserRepository.create_user
    - User retrieval via UserRepository.get_user_by_email
    - Email matching and user object existence
    """
    user_repo = UserRepository(test_db)

    test_email = "Test@Example.com"
    hashed_pwd = hash_password("test_password_123")

    created_user = await user_repo.create_user({
        "email": test_email,
        "hashed_password": hashed_pwd,
        "name": "Test",
        "is_active": True,
    })

    # Verify user was created with correct attributes
    assert created_user is not None
    assert created_user.email == test_email.lower()  # Email should be lowercased
    assert created_user.hashed_password == hashed_pwd
    assert created_user.is_active is True

    await test_db.commit()

    retrieved_user = await user_repo.get_user_by_email(test_email)

    assert retrieved_user is not None
    assert retrieved_user.id == created_user.id  # Same user
    assert (await user_repo.get_user_by_id(created_user.id)).email == "test@example.com"


@pytest.mark.asyncio
async def test_login_verification(test_db):
    """
    Test password verification for login.

    This test verifies:
    - Password hashing and storage
    - Password verification using verify_password
    - A wrong password is rejected
    """
    user_repo = UserRepository(test_db)
    test_password = "secure_password_456"

    await user_repo.create_user({
        "email": "login_test@example.com",
        "hashed_password": hash_password(test_password),
    })
    await test_db.commit()

    retrieved_user = await user_repo.get_user_by_email("login_test@example.com")

    assert retrieved_user is not None
    assert verify_password(test_password, retrieved_user.hashed_password) is True
    assert verify_password("wrong_password", retrieved_user.hashed_password) is False


def test_jwt_round_trip_and_tampering():
    token, expires_at = create_jwt("user-1")

    payload = decode_jwt(token)
    assert payload["sub"] == "user-1"
    assert payload["exp"] == expires_at
    assert decode_jwt(token + "x") is None


@pytest.mark.asyncio
async def test_lookup_session(session_factory, test_db):
    """
    This test verifies:
    - A token for an active user resolves to a SessionInfo
    - Missing and garbage tokens mean "no session"
    - A token for an inactive user means "no session"
    """
    user_repo = UserRepository(test_db)
    active = await user_repo.create_user({"email": "a@example.com", "hashed_password": "x", "name": "A"})
    inactive = await user_repo.create_user({"email": "b@example.com", "hashed_password": "x", "is_active": False})
    await test_db.commit()

    session = await lookup_session(create_jwt(active.id)[0], session_factory)
    assert session.user_id == active.id
    assert session.email == "a@example.com"
    assert session.name == "A"

    assert await lookup_session(None, session_factory) is None
    assert await lookup_session("not-a-jwt", session_factory) is None
    assert await lookup_session(create_jwt(inactive.id)[0], session_factory) is None


@pytest.mark.asyncio
async def test_lookup_session_failures_are_not_anonymous(session_factory, monkeypatch):
    """
    This test verifies:
    - A missing signing secret raises SessionLookupError
    - A failing user store raises SessionLookupError
    """
    token, _ = create_jwt("user-1")

    def broken_factory():
        raise RuntimeError("database unavailable")

    with pytest.raises(SessionLookupError):
        await lookup_session(token, broken_factory)

    monkeypatch.setattr(settings, "jwt_secret_key", None)
    with pytest.raises(SessionLookupError):
        await lookup_session(token, session_factory)


@pytest.mark.asyncio
async def test_register_login_and_session(client):
    """
    This test verifies:
    - Register returns the user and a session and sets the auth cookie
    - Login with the same credentials succeeds
    - GET /api/auth/session resolves the Bearer token to the user
    """
    response = await client.post(
        "/api/auth/register",
        json={"email": "New@Example.com", "password": "password123", "name": "New User"},
    )
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["user"]["email"] == "new@example.com"
    assert data["user"]["name"] == "New User"
    assert data["session"]["token_type"] == "bearer"
    assert "auth_token=" in response.headers["set-cookie"]
    assert "httponly" in response.headers["set-cookie"].lower()

    response = await client.post(
        "/api/auth/login", json={"email": "new@example.com", "password": "password123"}
    )
    assert response.status_code == 200
    token = response.json()["data"]["session"]["access_token"]

    response = await client.get("/api/auth/session", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 200
    assert response.json() == {
        "data": {"user": {"id": data["user"]["id"], "email": "new@example.com", "name": "New User"}}
    }


@pytest.mark.asyncio
@pytest.mark.parametrize("payload, message", [
    ({"email": "x@example.com", "password": "password123"}, "Email, password, and name are required"),
    ({"email": "not-an-email", "password": "password123", "name": "X"}, "Invalid email format"),
    ({"email": "x@example.com", "password": "short", "name": "X"}, "Password must be at least 8 characters long"),
])
async def test_register_rejects_invalid_input(client, payload, message):
    response = await client.post("/api/auth/register", json=payload)

    assert response.status_code == 400
    assert response.json()["error"] == message


@pytest.mark.asyncio
async def test_register_duplicate_email(client, register):
    await register("dup@example.com")

    response = await client.post(
        "/api/auth/register",
        json={"email": "DUP@example.com", "password": "password123", "name": "Again"},
    )

    assert response.status_code == 400
    assert response.json()["error"] == "Email already registered"


@pytest.mark.asyncio
async def test_login_failures(client, register):
    await register("user@example.com")

    response = await client.post("/api/auth/login", json={"email": "user@example.com"})
    assert response.status_code == 400

    response = await client.post(
        "/api/auth/login", json={"email": "user@example.com", "password": "wrong-password"}
    )
    assert response.status_code == 401
    assert response.json()["error"] == "Invalid email or password"

    response = await client.post(
        "/api/auth/login", json={"email": "nobody@example.com", "password": "password123"}
    )
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_session_without_token_and_logout(client):
    response = await client.get("/api/auth/session")
    assert response.status_code == 401
    assert response.json() == {"error": "Unauthorized", "message": "No active session"}

    response = await client.post("/api/auth/logout")
    assert response.status_code == 200
    assert response.json() == {"success": True}
    assert "auth_token=" in response.headers["set-cookie"]
    assert "max-age=0" in response.headers["set-cookie"].lower()
