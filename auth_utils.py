"""
Authentication utilities: password hashing, JWT session tokens and session lookup
"""

import logging
import jwt
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from passlib.context import CryptContext
from typing import Optional, Tuple
from starlette.requests import Request
from sqlalchemy.ext.asyncio import async_sessionmaker

from config.settings import settings
from crud.user import UserRepository
from backend.utils.errors import SessionLookupError

logger = logging.getLogger(__name__)

# Password hashing context
pwd_context = CryptContext(
    schemes=["argon2"],
    deprecated="auto"
)

# JWT configuration
ALGORITHM = "HS256"
AUTH_COOKIE = "auth_token"


@dataclass
class SessionInfo:
    """Authenticated session resolved from a token."""
    user_id: str
    email: str
    name: Optional[str]
    token: str


def hash_password(password: str) -> str:
    """Hash a password using argon2"""
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """Verify a password against its hash"""
    return pwd_context.verify(password, password_hash)


def create_jwt(user_id: str) -> Tuple[str, int]:
    """
    Create a JWT session token for a user.

    Returns:
        (token, expiry as epoch seconds)
    """
    if not settings.jwt_secret_key:
        raise ValueError("JWT_SECRET_KEY is not set. Cannot create JWT token.")

    expires = datetime.now(timezone.utc) + timedelta(minutes=settings.jwt_expire_minutes)
    payload = {
        "sub": user_id,
        "exp": expires
    }
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=ALGORITHM), int(expires.timestamp())


def decode_jwt(token: str):
    """Decode a JWT token. Returns None if invalid."""
    if not settings.jwt_secret_key:
        raise ValueError("JWT_SECRET_KEY is not set. Cannot decode JWT token.")

    try:
        payload = jwt.decode(token, settings.jwt_secret_key, algorithms=[ALGORITHM])
        return payload
    except jwt.ExpiredSignatureError:
        return None
    except jwt.InvalidTokenError:
        return None


def extract_token(request: Request) -> Optional[str]:
    """
    Read the session token from a request.

    Priority:
    1. auth_token httpOnly cookie (browser clients)
    2. Authorization: Bearer header (API consumers)
    """
    token = request.cookies.get(AUTH_COOKIE)
    if token:
        return token
    authorization = request.headers.get("authorization")
    if authorization and authorization.startswith("Bearer "):
        return authorization.replace("Bearer ", "").strip() or None
    return None


async def lookup_session(token: Optional[str], session_factory: async_sessionmaker) -> Optional[SessionInfo]:
    """
    Resolve a session token to the authenticated user.

    A missing, invalid or expired token, or one naming an unknown or inactive
    user, means "no session" and returns None.

    Raises:
        SessionLookupError: the lookup itself failed (signing secret missing,
            database unavailable). Callers must not treat this as anonymous.
    """
    if not token:
        return None

    try:
        payload = decode_jwt(token)
    except ValueError as e:
        raise SessionLookupError("Failed to verify authentication") from e

    if not payload or not payload.get("sub"):
        return None

    try:
        async with session_factory() as db:
            user = await UserRepository(db).get_active_user(str(payload["sub"]))
    except Exception as e:
        logger.error(f"Session lookup failed: {e}")
        raise SessionLookupError("Failed to verify authentication") from e

    if user is None:
        return None

    return SessionInfo(user_id=user.id, email=user.email, name=user.name, token=token)
