"""FastAPI entrypoint for the Studio Agenda backend.

Wiring only; the behaviour lives in the package:
- `studio_agenda/routes/` for public and admin endpoints
- `studio_agenda/services/` for availability, lifecycle and outbox logic
- `studio_agenda/db/` for SQLAlchemy models and session management
- `studio_agenda/scheduler/` for the APScheduler outbox worker
"""

import logging
from contextlib import asynccontextmanager
from collections.abc import AsyncIterator

from fastapi import FastAPI
from fastapi.exceptions import HTTPException, RequestValidationError

from studio_agenda.core.config import settings
from studio_agenda.core.domain_exceptions import DomainException
from studio_agenda.core.exceptions import (
    domain_exception_handler,
    http_exception_handler,
    request_validation_handler,
)
from studio_agenda.core.middleware import RequestContextMiddleware
from studio_agenda.db.init_db import init_db
from studio_agenda.scheduler.outbox_scheduler import start_scheduler
from studio_agenda.routes import admin_bookings, admin_catalog, public

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    """Initialize app resources before serving traffic."""
    # Ensure SQL tables exist at app startup.
    init_db()
    logger.info("Database tables initialized.")

    # Start the background outbox scheduler (non-blocking).
    scheduler = None
    if settings.start_scheduler:
        try:
            scheduler = start_scheduler(interval_seconds=settings.outbox_poll_seconds)
        except Exception:
            logger.exception("Failed to start scheduler.")

    yield

    # Graceful shutdown.
    if scheduler:
        scheduler.shutdown(wait=False)
        logger.info("Outbox scheduler shut down.")

app = FastAPI(
    title="Studio Agenda API",
    version="0.1.0",
    description="Appointment booking engine for a photography studio.",
    lifespan=lifespan,
)

app.add_middleware(RequestContextMiddleware)
app.add_exception_handler(DomainException, domain_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, request_validation_handler)

app.include_router(public.router)
app.include_router(admin_bookings.router)
app.include_router(admin_catalog.router)

@app.get("/", tags=["health"])
def root() -> dict[str, str]:
    """Simple status endpoint for uptime checks."""
    return {"status": "Studio Agenda Running"}
