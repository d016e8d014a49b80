"""
Async database setup: engine, session factories and the request session dependency
"""
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from typing import AsyncGenerator, Optional

from fastapi import Request

from config.settings import settings, IS_PRODUCTION

# Validate production database configuration
if IS_PRODUCTION:
    if not settings.database_url:
        raise RuntimeError("DATABASE_URL must be set in production. SQLite is not allowed in production.")
    if "sqlite" in settings.database_url.lower():
        raise RuntimeError("SQLite is forbidden in production. Use a PostgreSQL DATABASE_URL.")

DATABASE_URL = settings.database_url or "sqlite+aiosqlite:///./sql_app.db"


def to_async_url(url: str) -> str:
    """Route plain postgres URLs through the asyncpg driver."""
    for prefix in ("postgres://", "postgresql://"):
        if url.startswith(prefix):
            return "postgresql+asyncpg://" + url[len(prefix):]
    return url


engine = create_async_engine(to_async_url(DATABASE_URL), echo=False)

Base = declarative_base()


def create_session_factory(bind: AsyncEngine) -> async_sessionmaker:
    """Session factory used by the auth guard and the route handlers."""
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


AsyncSessionLocal = create_session_factory(engine)


async def init_db(bind: Optional[AsyncEngine] = None):
    """
    Create all tables (users, projects, ai_questions).
    Called on application startup.
    """
    async with (bind or engine).begin() as conn:
        # Import models here to ensure they're registered with Base
        import database_models  # noqa: F401
        await conn.run_sync(Base.metadata.create_all)


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency function that yields a database session.

    The session factory comes from ``app.state.session_factory`` so the
    middleware stack and the route handlers share one database. The session
    is committed when the handler returns and rolled back if it raises.
    """
    session_factory = getattr(request.app.state, "session_factory", None) or AsyncSessionLocal
    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
