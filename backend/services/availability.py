"""Counselor availability: the slot store, the resolver and the mutation guard."""

import logging
from datetime import date, time
from typing import NamedTuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.core.errors import NotFound, SchedulingError, ValidationRejected
from backend.models.appointment import ACTIVE_STATUSES, UPCOMING_STATUSES, Appointment
from backend.models.availability import AvailabilitySlot
from backend.services.counselors import get_counselor

logger = logging.getLogger(__name__)

AvailabilityMapping = dict[date, list[time]]


class ResolvedSlot(NamedTuple):
    time: time
    is_booked: bool


def get_availability(db: Session, counselor_id: int) -> AvailabilityMapping:
    rows = db.query(AvailabilitySlot.date, AvailabilitySlot.time).filter(
        AvailabilitySlot.counselor_id == counselor_id,
    ).order_by(AvailabilitySlot.date.asc(), AvailabilitySlot.position.asc()).all()

    mapping: AvailabilityMapping = {}
    for slot_date, slot_time in rows:
        mapping.setdefault(slot_date, []).append(slot_time)
    return mapping


def get_slots_for_date(db: Session, counselor_id: int, slot_date: date) -> list[time]:
    rows = db.query(AvailabilitySlot.time).filter(
        AvailabilitySlot.counselor_id == counselor_id,
        AvailabilitySlot.date == slot_date,
    ).order_by(AvailabilitySlot.position.asc()).all()
    return [slot_time for (slot_time,) in rows]


def replace_availability(db: Session, counselor_id: int, new_mapping: AvailabilityMapping) -> None:
    """Overwrite the counselor's whole calendar. Dates missing from ``new_mapping`` are cleared.

    Only flushes; the caller owns the transaction.
    """
    db.query(AvailabilitySlot).filter(
        AvailabilitySlot.counselor_id == counselor_id,
    ).delete(synchronize_session=False)
    db.flush()

    for slot_date, slot_times in new_mapping.items():
        for position, slot_time in enumerate(slot_times):
            db.add(
                AvailabilitySlot(
                    counselor_id=counselor_id,
                    date=slot_date,
                    time=slot_time,
                    position=position,
                )
            )
    db.flush()


def get_booked_times(db: Session, counselor_id: int, slot_date: date) -> set[time]:
    rows = db.query(Appointment.time_slot).filter(
        Appointment.counselor_id == counselor_id,
        Appointment.date == slot_date,
        Appointment.status.in_(ACTIVE_STATUSES),
    ).all()
    return {slot_time for (slot_time,) in rows}


def resolve(db: Session, counselor_id: int, slot_date: date) -> list[ResolvedSlot]:
    get_counselor(db, counselor_id)

    offered = get_slots_for_date(db, counselor_id, slot_date)
    if not offered:
        return []

    booked = get_booked_times(db, counselor_id, slot_date)
    return [ResolvedSlot(time=slot_time, is_booked=slot_time in booked) for slot_time in offered]


def find_orphaned_booking(
    db: Session,
    counselor_id: int,
    proposed_mapping: AvailabilityMapping,
    today: date,
) -> Appointment | None:
    upcoming = db.query(Appointment).filter(
        Appointment.counselor_id == counselor_id,
        Appointment.status.in_(UPCOMING_STATUSES),
        Appointment.date >= today,
    ).order_by(Appointment.date.asc(), Appointment.time_slot.asc()).all()

    for appointment in upcoming:
        if appointment.time_slot not in proposed_mapping.get(appointment.date, ()):
            return appointment
    return None


def _guard_and_replace(
    db: Session,
    counselor_id: int,
    proposed_mapping: AvailabilityMapping,
    today: date,
) -> None:
    orphaned = find_orphaned_booking(db, counselor_id, proposed_mapping, today)
    if orphaned is not None:
        logger.info(
            'Rejected availability update for counselor %s: appointment %s at %s %s is still active',
            counselor_id,
            orphaned.id,
            orphaned.date,
            orphaned.time_slot,
        )
        raise ValidationRejected(orphaned.date, orphaned.time_slot)

    replace_availability(db, counselor_id, proposed_mapping)


def validate_and_apply(
    db: Session,
    counselor_id: int,
    proposed_mapping: AvailabilityMapping,
    today: date | None = None,
) -> AvailabilityMapping:
    today = today or date.today()

    try:
        get_counselor(db, counselor_id, lock=True)
        _guard_and_replace(db, counselor_id, proposed_mapping, today)
        db.commit()
    except (SchedulingError, SQLAlchemyError):
        db.rollback()
        raise

    logger.info('Counselor %s published availability for %d dates', counselor_id, len(proposed_mapping))
    return get_availability(db, counselor_id)


def clear_date(
    db: Session,
    counselor_id: int,
    slot_date: date,
    today: date | None = None,
) -> AvailabilityMapping:
    today = today or date.today()

    try:
        get_counselor(db, counselor_id, lock=True)
        remaining = get_availability(db, counselor_id)
        if slot_date not in remaining:
            raise NotFound('No slots found for this date.')

        del remaining[slot_date]
        _guard_and_replace(db, counselor_id, remaining, today)
        db.commit()
    except (SchedulingError, SQLAlchemyError):
        db.rollback()
        raise

    logger.info('Counselor %s cleared availability for %s', counselor_id, slot_date)
    return remaining
