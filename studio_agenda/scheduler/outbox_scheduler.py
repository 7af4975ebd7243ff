"""Background worker that drains the side-effect outbox.

Uses APScheduler BackgroundScheduler to retry calendar sync and notification
entries that were not delivered inline (timeouts, provider outages, or
DISPATCH_INLINE=false).
"""

import logging
from collections.abc import Callable

from apscheduler.schedulers.background import BackgroundScheduler
from sqlalchemy.orm import Session

from studio_agenda.db.session import SessionLocal
from studio_agenda.services.outbox import SideEffectHandlers, drain_outbox, get_side_effect_handlers

logger = logging.getLogger(__name__)


def _drain_pending_side_effects(
    session_factory: Callable[[], Session],
    handlers: SideEffectHandlers,
) -> None:
    try:
        stats = drain_outbox(session_factory, handlers)
    except Exception:
        logger.exception("Unhandled error in outbox job.")
        return

    if stats["candidates"]:
        logger.info(
            "Outbox job complete: %d processed, %d failed out of %d entries.",
            stats["processed"],
            stats["failed"],
            stats["candidates"],
        )


def start_scheduler(
    interval_seconds: int,
    session_factory: Callable[[], Session] = SessionLocal,
    handlers: SideEffectHandlers | None = None,
) -> BackgroundScheduler:
    """Create, configure, and start the background outbox scheduler.

    Returns the scheduler instance so the caller can shut it down if needed.
    """
    scheduler = BackgroundScheduler(daemon=True)

    scheduler.add_job(
        _drain_pending_side_effects,
        trigger="interval",
        seconds=interval_seconds,
        id="drain_side_effect_outbox",
        name="Deliver pending calendar syncs and notifications",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
        kwargs={
            "session_factory": session_factory,
            "handlers": handlers or get_side_effect_handlers(),
        },
    )

    scheduler.start()
    logger.info("Outbox scheduler started (every %d seconds).", interval_seconds)
    return scheduler
