"""Shared fixtures.

Storage-backed tests run against an in-memory SQLite database; each test
gets a fresh schema.
"""

from collections.abc import AsyncIterator

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from marketplace.catalog.repository import SqlAlchemyProductRepository
from marketplace.catalog.service import CatalogService
from marketplace.infrastructure.config import Settings
from marketplace.infrastructure.database import (
    create_engine,
    create_schema,
    create_session_factory,
)
from marketplace.infrastructure.repositories import SqlAlchemyOrderRepository

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture
def test_settings() -> Settings:
    """Settings pointing at an in-memory database with no real gateways."""
    return Settings(
        database_url=TEST_DATABASE_URL,
        create_schema=True,
        api_key="test-api-key",
        stripe_api_key="",
        paypal_client_id="",
        paypal_client_secret="",
        order_cache_enabled=True,
        reserve_stock_on_create=False,
    )


@pytest_asyncio.fixture
async def engine(test_settings: Settings) -> AsyncIterator[AsyncEngine]:
    """Fresh in-memory database with the full schema."""
    engine = create_engine(test_settings)
    await create_schema(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return create_session_factory(engine)


@pytest.fixture
def order_repository(session_factory: async_sessionmaker[AsyncSession]) -> SqlAlchemyOrderRepository:
    return SqlAlchemyOrderRepository(session_factory)


@pytest.fixture
def product_repository(session_factory: async_sessionmaker[AsyncSession]) -> SqlAlchemyProductRepository:
    return SqlAlchemyProductRepository(session_factory)


@pytest.fixture
def catalog(product_repository: SqlAlchemyProductRepository) -> CatalogService:
    return CatalogService(product_repository)
