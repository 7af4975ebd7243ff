from datetime import time

from sqlalchemy import inspect, select, text
from sqlalchemy.orm import Session

from studio_agenda.db.init_db import init_db
from studio_agenda.db.models import WorkingHours
from studio_agenda.db.session import build_engine
from studio_agenda.services import catalog_service


def test_fresh_database_gets_weekday_template(db):
    rows = catalog_service.list_working_hours(db)

    assert [row.day_of_week for row in rows] == list(range(7))
    assert [row.day_of_week for row in rows if row.is_working_day] == [1, 2, 3, 4, 5]
    monday = rows[1]
    assert (monday.open_time, monday.close_time) == (time(9, 0), time(18, 0))
    assert rows[0].open_time is None


def test_rerunning_init_keeps_admin_edits(engine, db):
    catalog_service.upsert_working_hours(db, 6, is_working_day=True, open_time=time(10, 0), close_time=time(13, 0))

    init_db(engine)

    with Session(engine) as fresh:
        saturday = fresh.scalar(select(WorkingHours).where(WorkingHours.day_of_week == 6))
        assert saturday.is_working_day is True
        assert len(fresh.scalars(select(WorkingHours)).all()) == 7


def test_active_slot_index_is_created(engine):
    index_names = {index["name"] for index in inspect(engine).get_indexes("bookings")}

    assert "uq_bookings_active_slot" in index_names


def test_older_schema_gets_missing_columns(tmp_path):
    legacy = build_engine(f"sqlite:///{tmp_path / 'legacy.db'}")
    with legacy.begin() as connection:
        connection.execute(
            text(
                "CREATE TABLE service_types ("
                "id INTEGER PRIMARY KEY, "
                "name VARCHAR(255) NOT NULL, "
                "slug VARCHAR(255) NOT NULL UNIQUE, "
                "duration_minutes INTEGER NOT NULL, "
                "color VARCHAR(32), "
                "is_active BOOLEAN NOT NULL DEFAULT 1, "
                "display_order INTEGER NOT NULL DEFAULT 0, "
                "created_at DATETIME NOT NULL DEFAULT CURRENT_TIMESTAMP)"
            )
        )

    try:
        init_db(legacy)

        columns = {column["name"] for column in inspect(legacy).get_columns("service_types")}
        assert {"description", "booking_revision"} <= columns
    finally:
        legacy.dispose()


def test_double_booked_legacy_data_skips_the_unique_index(tmp_path):
    legacy = build_engine(f"sqlite:///{tmp_path / 'legacy.db'}")
    with legacy.begin() as connection:
        connection.execute(
            text(
                "CREATE TABLE bookings ("
                "id INTEGER PRIMARY KEY, "
                "service_type_id INTEGER NOT NULL, "
                "client_name VARCHAR(255) NOT NULL, "
                "booking_date DATE NOT NULL, "
                "start_time TIME NOT NULL, "
                "end_time TIME NOT NULL, "
                "status VARCHAR(16) NOT NULL DEFAULT 'pending')"
            )
        )
        for name in ("Ana", "Bruno"):
            connection.execute(
                text(
                    "INSERT INTO bookings (service_type_id, client_name, booking_date, start_time, end_time, status) "
                    "VALUES (1, :name, '2025-06-09', '10:00:00.000000', '11:00:00.000000', 'confirmed')"
                ),
                {"name": name},
            )

    try:
        init_db(legacy)

        inspector = inspect(legacy)
        assert "uq_bookings_active_slot" not in {index["name"] for index in inspector.get_indexes("bookings")}
        assert {"calendar_event_id", "cancelled_at"} <= {column["name"] for column in inspector.get_columns("bookings")}
    finally:
        legacy.dispose()
