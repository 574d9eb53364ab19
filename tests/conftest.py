import os
from datetime import date, time, timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

os.environ.setdefault('DATABASE_URL', 'sqlite:///./test.db')

from backend.database import Base  # noqa: E402
from backend.models.appointment import PAYMENT_PAID, STATUS_SCHEDULED, Appointment  # noqa: E402
from backend.models.availability import AvailabilitySlot  # noqa: E402
from backend.models.user import ROLE_COUNSELOR, ROLE_USER, User  # noqa: E402


@pytest.fixture
def session_factory():
    engine = create_engine('sqlite:///:memory:')
    tables = [User.__table__, AvailabilitySlot.__table__, Appointment.__table__]
    Base.metadata.create_all(bind=engine, tables=tables)
    try:
        yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    finally:
        Base.metadata.drop_all(bind=engine, tables=list(reversed(tables)))
        engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def add_user(db):
    def _add_user(email: str, role: str = ROLE_USER, **fields) -> User:
        user = User(email=email, name=fields.pop('name', email.split('@')[0]), role=role, **fields)
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _add_user


@pytest.fixture
def counselor(add_user) -> User:
    return add_user(
        'counselor@example.com',
        role=ROLE_COUNSELOR,
        is_approved=True,
        specialization='Anxiety',
        experience=6,
    )


@pytest.fixture
def client_user(add_user) -> User:
    return add_user('client@example.com')


@pytest.fixture
def session_date() -> date:
    return date.today() + timedelta(days=14)


@pytest.fixture
def add_appointment(db):
    def _add_appointment(
        counselor_id: int,
        client_id: int,
        slot_date: date,
        slot_time: time,
        status: str = STATUS_SCHEDULED,
        **fields,
    ) -> Appointment:
        appointment = Appointment(
            counselor_id=counselor_id,
            client_id=client_id,
            date=slot_date,
            time_slot=slot_time,
            status=status,
            payment_status=fields.pop('payment_status', PAYMENT_PAID),
            **fields,
        )
        db.add(appointment)
        db.commit()
        db.refresh(appointment)
        return appointment

    return _add_appointment
