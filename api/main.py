"""
Lead Order Platform API - Main Application.

FastAPI application factory. The lifecycle controller (and through it the
database engine and guard ledger client) is built explicitly and stored on
`app.state`; nothing connects at import time.

Run with:
    uvicorn api.main:create_app --factory
"""

import logging
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api import __version__
from repositories.client import (
    create_db_engine,
    create_session_factory,
    create_supabase_client,
    load_settings,
)
from repositories.guard_ledger_repository import SupabaseGuardLedger
from services.order_lifecycle_service import OrderLifecycleController

logger = logging.getLogger(__name__)


def build_order_controller() -> OrderLifecycleController:
    """Wire the lifecycle controller from environment settings."""

    settings = load_settings()
    logging.basicConfig(level=settings.log_level)

    engine = create_db_engine(settings.database_url)
    guard_ledger = SupabaseGuardLedger(create_supabase_client(settings))
    logger.info("Order store and guard ledger configured")

    return OrderLifecycleController(
        session_factory=create_session_factory(engine),
        guard_ledger=guard_ledger,
    )


def create_app(controller: Optional[OrderLifecycleController] = None) -> FastAPI:
    """
    Create the FastAPI application.

    Args:
        controller: lifecycle controller to serve; built from the environment
            when omitted
    """
    app = FastAPI(
        title="Lead Order Platform API",
        description="REST API for allocating state-tagged leads to customer orders",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Configure CORS - Allow all origins (storefront webhooks call in directly)
    # TODO: Restrict origins once the storefront domains are fixed
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.order_controller = controller or build_order_controller()

    @app.get("/health", tags=["Health"])
    def health_check():
        """
        Health check endpoint.

        Returns the API status and version.
        """
        return {
            "status": "healthy",
            "version": __version__,
            "service": "lead-order-platform-api"
        }

    @app.get("/", tags=["Root"])
    def root():
        """
        Root endpoint with API information.
        """
        return {
            "message": "Lead Order Platform API",
            "version": __version__,
            "docs": "/docs",
            "health": "/health"
        }

    from api.routers import leads, orders

    app.include_router(orders.router, prefix="/api/v1", tags=["Orders"])
    app.include_router(leads.router, prefix="/api/v1", tags=["Leads"])

    return app
