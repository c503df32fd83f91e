"""Database configuration and session management.

Provides the async SQLAlchemy engine, session factory and model base.
Engines are built explicitly at startup and handed to the repositories.
"""

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import StaticPool

from marketplace.infrastructure.config import Settings


class Base(DeclarativeBase):
    """Base class for models."""

    pass


def create_engine(settings: Settings) -> AsyncEngine:
    """Create the async engine for the configured database.

    Args:
        settings: Application settings.

    Returns:
        AsyncEngine bound to ``settings.database_url``.
    """
    kwargs: dict = {"echo": settings.debug}
    if settings.database_url.startswith("sqlite"):
        # Single shared connection so in-memory databases survive across sessions
        kwargs.update(connect_args={"check_same_thread": False}, poolclass=StaticPool)
    else:
        kwargs["pool_pre_ping"] = True
    return create_async_engine(settings.database_url, **kwargs)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create the session factory used by repositories.

    Args:
        engine: Async engine.

    Returns:
        Session factory producing AsyncSession objects.
    """
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


async def create_schema(engine: AsyncEngine) -> None:
    """Create all tables known to the model base.

    Used for local development and tests; production schemas come from the
    Alembic revisions.
    """
    # Register the mapped classes on the metadata
    import marketplace.catalog.models  # noqa: F401
    import marketplace.infrastructure.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
