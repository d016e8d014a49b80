"""
Project Planning Backend
Projects, AI planning questions and PRD generation behind session auth
"""

import logging
import traceback

from fastapi import FastAPI
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

from auth import auth_router
from routers.projects_router import projects_router
from utils.auth_guard import AuthGuardMiddleware
from utils.rate_limit import (
    InMemoryRateLimitStore,
    RateLimitConfig,
    RateLimiterMiddleware,
    RedisRateLimitStore,
)
from services.openrouter_service import OpenRouterClient
from backend.utils.errors import AppError
from backend.utils.responses import app_error_response, error_response
from database import AsyncSessionLocal, init_db
from config.settings import settings, LOGS_DIR

# ============================================================================
# LOGGING
# ============================================================================

# Write ALL events to {LOG_DIR}/app.log
LOGS_DIR.mkdir(parents=True, exist_ok=True)
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.FileHandler(LOGS_DIR / "app.log"),
        logging.StreamHandler()
    ]
)
logger = logging.getLogger(__name__)


# Uncaught exception middleware - logs all unhandled exceptions and returns 500
class UncaughtExceptionMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request, call_next):
        try:
            return await call_next(request)
        except Exception as e:
            logger.error(f"Uncaught exception: {e}\n{traceback.format_exc()}")
            return JSONResponse(
                status_code=500,
                content={"error": "Internal Server Error"}
            )


def _default_rate_limit_store():
    if settings.redis_url:
        logger.info("Rate limiter using Redis store")
        return RedisRateLimitStore.from_url(settings.redis_url)
    logger.info("Rate limiter using in-memory store (single instance only)")
    return InMemoryRateLimitStore()


# ============================================================================
# FASTAPI APP SETUP
# ============================================================================

def create_app(
    session_factory=None,
    rate_limit_store=None,
    llm_client=None,
    rate_limit_config=None,
) -> FastAPI:
    """
    Build the application.

    Args:
        session_factory: async_sessionmaker shared by the guard and the handlers
        rate_limit_store: RateLimitStore (Redis when REDIS_URL is set, else in-memory)
        llm_client: Completion client used by the generation endpoints
        rate_limit_config: RateLimitConfig (limits from settings by default)
    """
    session_factory = session_factory or AsyncSessionLocal

    app = FastAPI(title="Project Planning API")
    app.state.session_factory = session_factory
    app.state.llm_client = llm_client or OpenRouterClient()

    # Last added runs first: CORS -> uncaught errors -> auth guard -> rate limiter
    app.add_middleware(
        RateLimiterMiddleware,
        store=rate_limit_store or _default_rate_limit_store(),
        config=rate_limit_config or RateLimitConfig(
            limit=settings.rate_limit_requests,
            window_ms=settings.rate_limit_window_ms,
        ),
    )
    app.add_middleware(AuthGuardMiddleware, session_factory=session_factory)
    app.add_middleware(UncaughtExceptionMiddleware)

    # CORS MUST be near the bottom
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.frontend_url],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(AppError)
    async def handle_app_error(request, exc: AppError):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {type(exc).__name__}: {exc.message}")
        return app_error_response(exc)

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request, exc: RequestValidationError):
        return error_response("Invalid request", status=400, details=jsonable_encoder(exc.errors()))

    @app.on_event("startup")
    async def initialize_database():
        """Create all tables on the configured database."""
        try:
            await init_db(session_factory.kw.get("bind"))
            logger.info("✅ Database initialized successfully")
        except Exception as e:
            logger.error(f"❌ Database initialization failed: {e}")
            raise

    @app.on_event("startup")
    async def check_env_keys_on_startup():
        """Warn about missing configuration (non-fatal)"""
        missing = [
            name for name, value in {
                "JWT_SECRET_KEY": settings.jwt_secret_key,
                "OPENROUTER_API_KEY": settings.openrouter_api_key,
            }.items()
            if not value
        ]
        if missing:
            logger.warning(f"Startup check: Missing environment variables: {', '.join(missing)}")
        else:
            logger.info("Startup check: All critical environment variables are set")

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    # ========================================================================
    # INCLUDE ROUTERS
    # ========================================================================
    app.include_router(auth_router)
    app.include_router(projects_router)

    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
