from threading import Lock

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.orm import declarative_base, sessionmaker

from backend.core import config


connect_args = {'check_same_thread': False} if config.DATABASE_URL.startswith('sqlite') else {}

engine = create_engine(config.DATABASE_URL, echo=config.SQL_ECHO, connect_args=connect_args)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

ACTIVE_SLOT_INDEX_NAME = 'uq_appointments_active_slot'
ACTIVE_SLOT_PREDICATE = "status IN ('pending', 'scheduled', 'completed')"

_schema_lock = Lock()
_appointment_schema_checked = False


def ensure_appointment_schema(bind=None) -> None:
    """Add the booking indexes to a pre-existing appointments table.

    Older databases were created before the active-slot unique index existed;
    ``create_all`` never adds indexes to tables that are already there.
    """
    global _appointment_schema_checked

    if _appointment_schema_checked:
        return

    with _schema_lock:
        if _appointment_schema_checked:
            return

        bind = bind or engine
        inspector = inspect(bind)

        if 'appointments' not in inspector.get_table_names():
            _appointment_schema_checked = True
            return

        with bind.begin() as connection:
            connection.execute(
                text(
                    f'CREATE UNIQUE INDEX IF NOT EXISTS {ACTIVE_SLOT_INDEX_NAME} '
                    f'ON appointments(counselor_id, date, time_slot) WHERE {ACTIVE_SLOT_PREDICATE}'
                )
            )
            connection.execute(
                text('CREATE INDEX IF NOT EXISTS idx_appointments_client_date ON appointments(client_id, date)')
            )

        _appointment_schema_checked = True
