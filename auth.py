"""
Authentication routes
"""

import re
import logging
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db, AsyncSessionLocal
from crud.user import UserRepository
from auth_utils import (
    AUTH_COOKIE,
    hash_password,
    verify_password,
    create_jwt,
    extract_token,
    lookup_session,
)
from models.user import LoginRequest, RegisterRequest, UserOut, SessionOut
from backend.utils.responses import error_response
from config.settings import settings

logger = logging.getLogger(__name__)

# Create auth router
auth_router = APIRouter(prefix="/api/auth", tags=["auth"])

MIN_PASSWORD_LENGTH = 8


def validate_email(email: str) -> bool:
    """Validate email format"""
    pattern = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'
    return re.match(pattern, email) is not None


def _session_response(user, status: int = 200) -> JSONResponse:
    """Build the {data: {user, session}} body and set the session cookie."""
    token, expires_at = create_jwt(str(user.id))
    response = JSONResponse(
        status_code=status,
        content={
            "data": {
                "user": UserOut(id=user.id, email=user.email, name=user.name).model_dump(),
                "session": SessionOut(access_token=token, expires_at=expires_at).model_dump(),
            }
        }
    )
    response.set_cookie(
        key=AUTH_COOKIE,
        value=token,
        httponly=True,
        secure=settings.cookie_secure,
        samesite="Lax",
        max_age=settings.jwt_expire_minutes * 60
    )
    return response


@auth_router.post("/register")
async def register(request: RegisterRequest, db: AsyncSession = Depends(get_db)):
    """Create a new user account and open a session"""
    if not request.email or not request.password or not request.name:
        return error_response("Email, password, and name are required", status=400)

    if not validate_email(request.email):
        return error_response("Invalid email format", status=400)

    if len(request.password) < MIN_PASSWORD_LENGTH:
        return error_response(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters long", status=400
        )

    try:
        user_repo = UserRepository(db)

        if await user_repo.email_exists(request.email):
            return error_response("Email already registered", status=400)

        user = await user_repo.create_user({
            "email": request.email,
            "hashed_password": hash_password(request.password),
            "name": request.name,
            "is_active": True,
        })
        logger.info(f"✅ Registered user {user.id}")
        return _session_response(user)
    except Exception as e:
        logger.error(f"Registration error: {e}")
        return error_response("An unexpected error occurred", status=500)


@auth_router.post("/login")
async def login(request: LoginRequest, db: AsyncSession = Depends(get_db)):
    """Login and get a JWT session token"""
    if not request.email or not request.password:
        return error_response("Email and password are required", status=400)

    try:
        user = await UserRepository(db).get_user_by_email(request.email)

        if not user or not verify_password(request.password, user.hashed_password):
            return error_response("Invalid email or password", status=401)

        if not user.is_active:
            return error_response("User account is inactive", status=401)

        return _session_response(user)
    except Exception as e:
        logger.error(f"Login error: {e}")
        return error_response("An unexpected error occurred", status=500)


@auth_router.post("/logout")
async def logout():
    """Logout and clear auth token cookie"""
    response = JSONResponse(content={"success": True})
    # Clear the auth_token cookie by setting max_age=0
    response.set_cookie(
        key=AUTH_COOKIE,
        value="",
        httponly=True,
        secure=settings.cookie_secure,
        samesite="Lax",
        max_age=0
    )
    return response


@auth_router.get("/session")
async def get_session(request: Request):
    """Return the user bound to the current session"""
    session = getattr(request.state, "user", None)
    if session is None:
        # The guard attaches the session when it sees one; resolve it here
        # for requests that bypassed the guard.
        session_factory = getattr(request.app.state, "session_factory", None) or AsyncSessionLocal
        session = await lookup_session(extract_token(request), session_factory)

    if session is None:
        return error_response("Unauthorized", status=401, message="No active session")

    return {
        "data": {
            "user": UserOut(id=session.user_id, email=session.email, name=session.name).model_dump()
        }
    }
