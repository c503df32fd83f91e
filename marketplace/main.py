"""Marketplace order API main application module.

This module builds the FastAPI application: collaborators are constructed
once at startup, stored on ``app.state`` and handed to the services
explicitly.
"""

from collections.abc import Mapping
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from marketplace.api.health import router as health_router
from marketplace.api.middleware import setup_middleware
from marketplace.api.orders import router as orders_router
from marketplace.application.order_service import OrderService
from marketplace.application.payment_service import PaymentService
from marketplace.catalog.repository import SqlAlchemyProductRepository
from marketplace.catalog.service import CatalogService
from marketplace.domain.value_objects import PaymentMethod
from marketplace.infrastructure.cache import InMemoryOrderCache
from marketplace.infrastructure.config import Settings
from marketplace.infrastructure.config import settings as default_settings
from marketplace.infrastructure.database import (
    create_engine,
    create_schema,
    create_session_factory,
)
from marketplace.infrastructure.logging import configure_logging
from marketplace.infrastructure.payment_gateways import PaymentGateway, build_gateways
from marketplace.infrastructure.repositories import SqlAlchemyOrderRepository

logger = structlog.get_logger()


def create_app(
    settings: Settings | None = None,
    gateways: Mapping[PaymentMethod, PaymentGateway] | None = None,
) -> FastAPI:
    """Create the FastAPI application.

    Args:
        settings: Application settings; defaults to the environment.
        gateways: Payment gateway collaborators; built from settings when
            omitted.

    Returns:
        Configured FastAPI application.
    """
    settings = settings or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Handle application startup and shutdown events."""
        configure_logging(settings)
        logger.info("Starting marketplace order API", version=settings.api_version, debug=settings.debug)

        engine = create_engine(settings)
        if settings.create_schema:
            await create_schema(engine)
        session_factory = create_session_factory(engine)

        owned_gateways = gateways is None
        payment_gateways = build_gateways(settings) if owned_gateways else dict(gateways)

        cache = None
        if settings.order_cache_enabled:
            cache = InMemoryOrderCache(ttl_seconds=settings.order_cache_ttl_seconds)

        catalog = CatalogService(SqlAlchemyProductRepository(session_factory))
        orders = SqlAlchemyOrderRepository(session_factory)

        app.state.settings = settings
        app.state.engine = engine
        app.state.catalog_service = catalog
        app.state.order_service = OrderService(
            orders=orders,
            catalog=catalog,
            cache=cache,
            currency=settings.currency,
            reserve_stock=settings.reserve_stock_on_create,
        )
        app.state.payment_service = PaymentService(
            orders=orders,
            gateways=payment_gateways,
            cache=cache,
        )
        logger.info(
            "Payment gateways ready",
            methods=[method.value for method in payment_gateways],
        )

        yield

        logger.info("Shutting down marketplace order API")
        if owned_gateways:
            for gateway in payment_gateways.values():
                await gateway.close()
        await engine.dispose()

    app = FastAPI(
        title="Marketplace Order API",
        description="Order lifecycle and payment settlement for the artisan marketplace",
        version=settings.api_version,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # CORS middleware (must be added before custom middleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Request ID, API key auth, error handlers
    setup_middleware(app, api_key=settings.api_key)

    app.include_router(health_router, tags=["Health"])
    app.include_router(orders_router)

    return app


app = create_app()
