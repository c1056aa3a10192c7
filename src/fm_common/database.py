"""Async engine and session factory for the settlement services.

Services receive an AsyncSession per call and own commit/rollback; nothing in
here commits on their behalf. Every connection carries a server-side
statement_timeout so a blocked UPDATE or advisory lock wait fails instead of
hanging a request.
"""

from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from config.settings import settings


class Base(DeclarativeBase):
    """Declarative base for the few ORM-mapped tables (users)."""

    pass


def build_engine(url: str | None = None) -> AsyncEngine:
    return create_async_engine(
        url or settings.DATABASE_URL,
        echo=settings.DEBUG,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_pre_ping=True,
        connect_args={
            "server_settings": {
                "application_name": settings.APP_NAME,
                "statement_timeout": str(settings.DB_STATEMENT_TIMEOUT_MS),
            }
        },
    )


engine: AsyncEngine = build_engine()

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency: one session per request, closed afterwards.

    A session left inside an uncommitted transaction is rolled back on close.
    """
    async with async_session_factory() as session:
        yield session
