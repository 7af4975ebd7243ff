"""Bootstrap helpers for the weekly working-hours template."""

import logging
from datetime import time

from sqlalchemy import select
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from studio_agenda.db.models import WorkingHours

logger = logging.getLogger(__name__)

DEFAULT_OPEN_TIME = time(9, 0)
DEFAULT_CLOSE_TIME = time(18, 0)
# Monday to Friday, Sunday = 0.
DEFAULT_WORKING_DAYS = frozenset({1, 2, 3, 4, 5})


def _default_row(day: int) -> WorkingHours:
    is_working_day = day in DEFAULT_WORKING_DAYS
    return WorkingHours(
        day_of_week=day,
        is_working_day=is_working_day,
        open_time=DEFAULT_OPEN_TIME if is_working_day else None,
        close_time=DEFAULT_CLOSE_TIME if is_working_day else None,
    )


def ensure_weekly_template(engine: Engine) -> None:
    """Insert a row for each missing day of week; existing rows are left alone."""
    with Session(engine) as db:
        existing_days = set(db.scalars(select(WorkingHours.day_of_week)).all())
        missing = [day for day in range(7) if day not in existing_days]
        if not missing:
            return

        db.add_all(_default_row(day) for day in missing)
        db.commit()
        logger.info("Seeded working hours for days %s", missing)
