"""Schema creation plus the additive migrations older databases need."""

import logging

from sqlalchemy import inspect, text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError

from studio_agenda.db import models  # noqa: F401 - ensure model metadata is registered
from studio_agenda.db.bootstrap import ensure_weekly_template
from studio_agenda.db.session import Base, engine as default_engine

logger = logging.getLogger(__name__)

# (table, column, type) added after the first schema revision.
ADDED_COLUMNS = (
    ("bookings", "calendar_event_id", "VARCHAR(255)"),
    ("bookings", "cancelled_at", "DATETIME"),
    ("bookings", "updated_at", "DATETIME"),
    ("service_types", "description", "TEXT"),
    ("service_types", "booking_revision", "INTEGER NOT NULL DEFAULT 0"),
    ("side_effects", "claimed_at", "DATETIME"),
)

ACTIVE_SLOT_INDEX = "uq_bookings_active_slot"
ACTIVE_SLOT_COLUMNS = ("service_type_id", "booking_date", "start_time")
ACTIVE_SLOT_WHERE = "status IN ('pending', 'confirmed')"


def _add_missing_columns(connection: Connection) -> None:
    inspector = inspect(connection)
    tables = set(inspector.get_table_names())

    for table_name, column_name, column_type in ADDED_COLUMNS:
        if table_name not in tables:
            continue
        if column_name in {column["name"] for column in inspector.get_columns(table_name)}:
            continue
        connection.execute(text(f"ALTER TABLE {table_name} ADD COLUMN {column_name} {column_type}"))
        logger.info("Added column %s.%s", table_name, column_name)


def _count_double_booked_slots(connection: Connection) -> int:
    columns_sql = ", ".join(ACTIVE_SLOT_COLUMNS)
    return connection.execute(
        text(
            "SELECT COUNT(*) FROM ("
            f"SELECT 1 FROM bookings WHERE {ACTIVE_SLOT_WHERE} "
            f"GROUP BY {columns_sql} HAVING COUNT(*) > 1"
            ") AS double_booked"
        )
    ).scalar_one()


def _ensure_active_slot_index(connection: Connection) -> None:
    """Create the partial unique index unless existing rows already violate it."""
    double_booked = _count_double_booked_slots(connection)
    if double_booked:
        logger.warning(
            "Skipping unique index %s: %d slots hold more than one active booking.",
            ACTIVE_SLOT_INDEX,
            double_booked,
        )
        return

    connection.execute(
        text(
            f"CREATE UNIQUE INDEX IF NOT EXISTS {ACTIVE_SLOT_INDEX} "
            f"ON bookings ({', '.join(ACTIVE_SLOT_COLUMNS)}) WHERE {ACTIVE_SLOT_WHERE}"
        )
    )


def init_db(engine: Engine | None = None) -> None:
    """Create tables, apply additive migrations and seed the weekly template."""
    engine = engine or default_engine
    try:
        Base.metadata.create_all(bind=engine)

        with engine.begin() as connection:
            _add_missing_columns(connection)
            _ensure_active_slot_index(connection)

        ensure_weekly_template(engine)
    except SQLAlchemyError:
        logger.exception("Database initialization failed.")
        raise
