import pytest
from sqlalchemy import create_engine, inspect, text
from sqlalchemy.exc import IntegrityError

from backend import database


@pytest.fixture
def legacy_engine(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr('backend.database._appointment_schema_checked', False)
    engine = create_engine('sqlite:///:memory:')
    with engine.begin() as connection:
        connection.execute(
            text(
                'CREATE TABLE appointments ('
                'id INTEGER PRIMARY KEY, client_id INTEGER, counselor_id INTEGER, '
                'date DATE, time_slot TIME, status VARCHAR, issue TEXT)'
            )
        )
    try:
        yield engine
    finally:
        engine.dispose()


def test_ensure_appointment_schema_adds_active_slot_index(legacy_engine) -> None:
    database.ensure_appointment_schema(bind=legacy_engine)

    with legacy_engine.connect() as connection:
        index_names = set(
            connection.execute(
                text("SELECT name FROM sqlite_master WHERE type = 'index' AND tbl_name = 'appointments'")
            ).scalars()
        )
    assert database.ACTIVE_SLOT_INDEX_NAME in index_names


def test_active_slot_index_only_constrains_active_rows(legacy_engine) -> None:
    database.ensure_appointment_schema(bind=legacy_engine)
    insert = text(
        'INSERT INTO appointments (client_id, counselor_id, date, time_slot, status) '
        "VALUES (:client_id, 1, '2030-06-03', '10:00:00.000000', :status)"
    )

    with legacy_engine.begin() as connection:
        connection.execute(insert, {'client_id': 1, 'status': 'cancelled'})
        connection.execute(insert, {'client_id': 2, 'status': 'cancelled'})
        connection.execute(insert, {'client_id': 3, 'status': 'scheduled'})

    with pytest.raises(IntegrityError):
        with legacy_engine.begin() as connection:
            connection.execute(insert, {'client_id': 4, 'status': 'pending'})


def test_ensure_appointment_schema_skips_missing_table(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr('backend.database._appointment_schema_checked', False)
    engine = create_engine('sqlite:///:memory:')

    database.ensure_appointment_schema(bind=engine)

    assert database._appointment_schema_checked is True
    assert inspect(engine).get_table_names() == []
