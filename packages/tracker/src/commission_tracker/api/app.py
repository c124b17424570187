"""Application factory for the web surface."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

from commission_tracker import __version__
from commission_tracker.api import (
    catalog,
    health,
    maintenance,
    notifications,
    payroll,
    policies,
    profile,
    reconciliation,
)
from commission_tracker.api.errors import register_error_handlers
from commission_tracker.api.middleware import RequestContextMiddleware
from commission_tracker.chat import ChatNotifier
from commission_tracker.clients.supabase import SupabaseClient
from commission_tracker.config import configure_logging

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    app.state.db = SupabaseClient()
    app.state.notifier = ChatNotifier()
    logger.info("app_started", version=__version__)
    try:
        yield
    finally:
        await app.state.db.close()
        await app.state.notifier.close()
        logger.info("app_stopped")


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(title="Commission Tracker", version=__version__, lifespan=lifespan)
    app.add_middleware(RequestContextMiddleware)
    register_error_handlers(app)

    app.include_router(health.router)
    app.include_router(policies.router)
    app.include_router(notifications.router)
    app.include_router(payroll.router)
    app.include_router(reconciliation.router)
    app.include_router(profile.router)
    app.include_router(maintenance.router)
    app.include_router(catalog.router)
    return app
