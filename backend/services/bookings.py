"""Booking ledger: appointment creation, status transitions and listings."""

import logging
from datetime import date, time, timedelta

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from backend.core import config
from backend.core.errors import (
    AlreadyPaid,
    AlreadyTerminal,
    Forbidden,
    InvalidTransition,
    NotFound,
    SchedulingError,
    SlotConflict,
    SlotNotOffered,
)
from backend.models.appointment import (
    ACTIVE_STATUSES,
    PAYMENT_PAID,
    STATUS_CANCELLED,
    STATUS_COMPLETED,
    STATUS_PENDING,
    STATUS_SCHEDULED,
    Appointment,
)
from backend.services.availability import get_slots_for_date
from backend.services.counselors import get_counselor

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS = {
    STATUS_PENDING: frozenset({STATUS_SCHEDULED, STATUS_CANCELLED}),
    STATUS_SCHEDULED: frozenset({STATUS_COMPLETED, STATUS_CANCELLED}),
    STATUS_COMPLETED: frozenset(),
    STATUS_CANCELLED: frozenset(),
}

DASHBOARD_CHART_DAYS = 7
DASHBOARD_RECENT_LIMIT = 5


def can_transition(current: str, requested: str) -> bool:
    return requested in ALLOWED_TRANSITIONS.get(current, frozenset())


def find_active_booking(db: Session, counselor_id: int, slot_date: date, slot_time: time) -> Appointment | None:
    return db.query(Appointment).filter(
        Appointment.counselor_id == counselor_id,
        Appointment.date == slot_date,
        Appointment.time_slot == slot_time,
        Appointment.status.in_(ACTIVE_STATUSES),
    ).first()


def create_booking(
    db: Session,
    counselor_id: int,
    client_id: int,
    slot_date: date,
    slot_time: time,
    issue: str | None = None,
) -> Appointment:
    """Book a counselor's slot for a client.

    Payment is simulated, so the appointment starts out ``scheduled`` and ``paid``.
    The lookup for an existing booking only gives an early, friendly error: the
    partial unique index on active appointments is what rejects a concurrent
    duplicate, surfacing here as ``IntegrityError``.
    """
    try:
        get_counselor(db, counselor_id, lock=True)

        if slot_time not in get_slots_for_date(db, counselor_id, slot_date):
            raise SlotNotOffered()

        if find_active_booking(db, counselor_id, slot_date, slot_time) is not None:
            raise SlotConflict()

        appointment = Appointment(
            counselor_id=counselor_id,
            client_id=client_id,
            date=slot_date,
            time_slot=slot_time,
            issue=issue,
            status=STATUS_SCHEDULED,
            payment_status=PAYMENT_PAID,
        )
        db.add(appointment)
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        logger.warning(
            'Concurrent booking rejected for counselor %s at %s %s',
            counselor_id,
            slot_date,
            slot_time,
        )
        raise SlotConflict() from exc
    except (SchedulingError, SQLAlchemyError):
        db.rollback()
        raise

    db.refresh(appointment)
    logger.info(
        'Appointment %s booked: client %s with counselor %s at %s %s',
        appointment.id,
        client_id,
        counselor_id,
        slot_date,
        slot_time,
    )
    return appointment


def set_status(
    db: Session,
    appointment_id: int,
    counselor_id: int,
    new_status: str | None = None,
    notes: str | None = None,
    meeting_link: str | None = None,
) -> Appointment:
    appointment = db.query(Appointment).filter(
        Appointment.id == appointment_id,
        Appointment.counselor_id == counselor_id,
    ).first()
    if appointment is None:
        raise NotFound()

    current = appointment.status
    if new_status is not None and new_status != current and not can_transition(current, new_status):
        raise InvalidTransition(current, new_status)

    if current == STATUS_CANCELLED and (notes or meeting_link):
        raise AlreadyTerminal(current)

    if new_status is not None:
        appointment.status = new_status
    if notes:
        appointment.notes = notes
    if meeting_link:
        appointment.meeting_link = meeting_link

    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise

    db.refresh(appointment)
    if new_status is not None and new_status != current:
        logger.info('Appointment %s moved from %s to %s', appointment.id, current, new_status)
    return appointment


def complete(db: Session, appointment_id: int, counselor_id: int, session_notes: str | None = None) -> Appointment:
    return set_status(db, appointment_id, counselor_id, new_status=STATUS_COMPLETED, notes=session_notes)


def cancel(db: Session, appointment_id: int, client_id: int) -> Appointment:
    appointment = db.query(Appointment).filter(
        Appointment.id == appointment_id,
        Appointment.client_id == client_id,
    ).first()
    if appointment is None:
        raise NotFound()

    if appointment.status == STATUS_COMPLETED:
        raise AlreadyTerminal(STATUS_COMPLETED, 'Cannot cancel completed appointment.')

    if appointment.status == STATUS_CANCELLED:
        return appointment

    appointment.status = STATUS_CANCELLED
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise

    db.refresh(appointment)
    logger.info('Appointment %s cancelled by client %s', appointment.id, client_id)
    return appointment


def pay(db: Session, appointment_id: int, client_id: int) -> Appointment:
    appointment = db.query(Appointment).filter(Appointment.id == appointment_id).first()
    if appointment is None:
        raise NotFound()

    if appointment.client_id != client_id:
        raise Forbidden()

    if appointment.payment_status == PAYMENT_PAID:
        raise AlreadyPaid()

    appointment.payment_status = PAYMENT_PAID
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise

    db.refresh(appointment)
    return appointment


def list_by_counselor(db: Session, counselor_id: int) -> list[Appointment]:
    return db.query(Appointment).filter(
        Appointment.counselor_id == counselor_id,
    ).order_by(Appointment.date.asc(), Appointment.time_slot.asc(), Appointment.id.asc()).all()


def list_by_client(db: Session, client_id: int, status: str | None = None) -> list[Appointment]:
    query = db.query(Appointment).filter(Appointment.client_id == client_id)
    if status:
        query = query.filter(Appointment.status == status)
    return query.order_by(Appointment.date.asc(), Appointment.time_slot.asc(), Appointment.id.asc()).all()


def list_by_payment_status(db: Session, user_id: int, payment_status: str) -> list[Appointment]:
    return db.query(Appointment).filter(
        Appointment.payment_status == payment_status,
        or_(Appointment.client_id == user_id, Appointment.counselor_id == user_id),
    ).order_by(Appointment.date.desc(), Appointment.time_slot.desc()).all()


def list_all(db: Session) -> list[Appointment]:
    return db.query(Appointment).order_by(Appointment.created_at.desc(), Appointment.id.desc()).all()


def counselor_dashboard_stats(db: Session, counselor_id: int, today: date | None = None) -> dict:
    today = today or date.today()
    appointments = db.query(Appointment).filter(
        Appointment.counselor_id == counselor_id,
        Appointment.status != STATUS_CANCELLED,
    ).order_by(Appointment.created_at.desc(), Appointment.id.desc()).all()

    completed = [a for a in appointments if a.status == STATUS_COMPLETED]
    stats = {
        'total_clients': len({a.client_id for a in appointments}),
        'total_scheduled': sum(1 for a in appointments if a.status == STATUS_SCHEDULED),
        'total_completed': len(completed),
        'total_revenue': len(completed) * config.SESSION_FEE,
    }

    chart_data = []
    for offset in range(DASHBOARD_CHART_DAYS - 1, -1, -1):
        day = today - timedelta(days=offset)
        day_appointments = [a for a in appointments if a.date == day]
        chart_data.append(
            {
                'name': day.strftime('%a'),
                'date': day,
                'sessions': len(day_appointments),
                'revenue': sum(1 for a in day_appointments if a.status == STATUS_COMPLETED) * config.SESSION_FEE,
            }
        )

    return {
        'stats': stats,
        'chart_data': chart_data,
        'recent_activity': appointments[:DASHBOARD_RECENT_LIMIT],
    }
