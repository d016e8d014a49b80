"""
Session and ownership guard.

Runs before every route handler:
1. Resolve the session from the auth_token cookie or Bearer header
2. Classify the route (public, auth page, API, other)
3. Redirect browser navigation / reject API calls without a session
4. For /api/projects/{id}..., verify the caller owns the project

Unauthenticated non-API routes always redirect to /login; only the public
paths below are reachable without a session.
"""
import re
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional, Union

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, RedirectResponse, Response
from sqlalchemy.ext.asyncio import async_sessionmaker

from auth_utils import SessionInfo, extract_token, lookup_session
from backend.utils.errors import (
    AppError,
    AuthenticationError,
    ForbiddenError,
    NotFoundError,
    ServerError,
    SessionLookupError,
)
from crud.project import ProjectRepository

logger = logging.getLogger(__name__)

AUTH_PAGES = ("/login", "/register")
PUBLIC_PREFIXES = ("/api/auth/",)
PUBLIC_PATHS = ("/health", "/docs", "/redoc", "/openapi.json", "/docs/oauth2-redirect")

PROJECT_PATH = re.compile(r"^/api/projects/([^/]+)(/.*)?$")
# Literal path segment reserved for the listing endpoint
LISTING_SEGMENT = "index"

# project_id -> owner user_id, or None when the project does not exist
OwnershipLookup = Callable[[str], Awaitable[Optional[str]]]


@dataclass
class Continue:
    user_id: Optional[str] = None


@dataclass
class Redirect:
    target: str


@dataclass
class Reject:
    status_code: int
    body: dict = field(default_factory=dict)


Decision = Union[Continue, Redirect, Reject]


def reject(error: AppError) -> Reject:
    return Reject(error.status_code, error.to_dict())


def classify_route(path: str) -> str:
    """Return one of: public, auth_page, api, other."""
    if path in PUBLIC_PATHS or path.startswith(PUBLIC_PREFIXES):
        return "public"
    if path in AUTH_PAGES:
        return "auth_page"
    if path.startswith("/api/"):
        return "api"
    return "other"


def project_id_from_path(path: str) -> Optional[str]:
    """Project id of a project-scoped API path, None for any other path."""
    match = PROJECT_PATH.match(path)
    if not match or match.group(1) == LISTING_SEGMENT:
        return None
    return match.group(1)


async def evaluate_request(
    path: str,
    session: Optional[SessionInfo],
    ownership_lookup: OwnershipLookup,
) -> Decision:
    """
    Decide what happens to a request once its session is known.

    Does not touch persisted state; ownership_lookup is read-only.
    """
    route = classify_route(path)
    user_id = session.user_id if session else None

    if route == "public":
        return Continue(user_id)

    if route == "auth_page":
        return Redirect("/") if session else Continue(user_id)

    if route == "other":
        return Continue(user_id) if session else Redirect("/login")

    # API route
    if session is None:
        return reject(AuthenticationError("Authentication required"))

    project_id = project_id_from_path(path)
    if project_id is None:
        return Continue(user_id)

    try:
        owner_id = await ownership_lookup(project_id)
    except Exception as e:
        logger.error(f"Error verifying project ownership for {project_id}: {e}")
        return reject(ServerError("Failed to verify project ownership"))

    if owner_id is None:
        return reject(NotFoundError("Project not found"))
    if owner_id != user_id:
        logger.warning(f"Forbidden: user {user_id} requested project {project_id}")
        return reject(ForbiddenError("You do not have access to this project"))

    return Continue(user_id)


class AuthGuardMiddleware(BaseHTTPMiddleware):
    """
    Applies evaluate_request to every inbound request and attaches
    request.state.user / request.state.user_id for the handlers.
    """

    def __init__(self, app, session_factory: async_sessionmaker):
        super().__init__(app)
        self.session_factory = session_factory

    async def _owner_of(self, project_id: str) -> Optional[str]:
        async with self.session_factory() as db:
            return await ProjectRepository(db).get_owner_id(project_id)

    async def dispatch(self, request: Request, call_next) -> Response:
        try:
            session = await lookup_session(extract_token(request), self.session_factory)
        except SessionLookupError as e:
            logger.error(f"Error retrieving session: {e.__cause__ or e}")
            return JSONResponse(status_code=e.status_code, content=e.to_dict())

        decision = await evaluate_request(request.url.path, session, self._owner_of)

        if isinstance(decision, Redirect):
            return RedirectResponse(decision.target, status_code=302)
        if isinstance(decision, Reject):
            return JSONResponse(status_code=decision.status_code, content=decision.body)

        request.state.user = session
        request.state.user_id = decision.user_id
        return await call_next(request)
