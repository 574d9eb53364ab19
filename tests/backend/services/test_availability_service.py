from datetime import date, time, timedelta

import pytest

from backend.core.errors import NotFound, ValidationRejected
from backend.models.appointment import STATUS_CANCELLED, STATUS_COMPLETED, STATUS_PENDING
from backend.services import availability
from backend.services.availability import ResolvedSlot

TEN = time(10, 0)
ELEVEN = time(11, 0)
NOON = time(12, 0)


def test_get_availability_is_empty_for_new_counselor(db, counselor) -> None:
    assert availability.get_availability(db, counselor.id) == {}


def test_replace_availability_overwrites_and_keeps_submitted_order(db, counselor, session_date: date) -> None:
    other_date = session_date + timedelta(days=1)
    availability.replace_availability(db, counselor.id, {session_date: [TEN, ELEVEN], other_date: [NOON]})
    db.commit()

    availability.replace_availability(db, counselor.id, {session_date: [ELEVEN, TEN]})
    db.commit()

    assert availability.get_availability(db, counselor.id) == {session_date: [ELEVEN, TEN]}


def test_replace_availability_drops_dates_with_no_times(db, counselor, session_date: date) -> None:
    availability.replace_availability(db, counselor.id, {session_date: []})
    db.commit()

    assert availability.get_availability(db, counselor.id) == {}


def test_resolve_marks_booked_slot_after_booking(db, counselor, client_user, session_date, add_appointment) -> None:
    availability.validate_and_apply(db, counselor.id, {session_date: [TEN, ELEVEN]})
    add_appointment(counselor.id, client_user.id, session_date, TEN)

    assert availability.resolve(db, counselor.id, session_date) == [
        ResolvedSlot(time=TEN, is_booked=True),
        ResolvedSlot(time=ELEVEN, is_booked=False),
    ]


def test_resolve_is_idempotent(db, counselor, client_user, session_date, add_appointment) -> None:
    availability.validate_and_apply(db, counselor.id, {session_date: [TEN, ELEVEN]})
    add_appointment(counselor.id, client_user.id, session_date, ELEVEN)

    first = availability.resolve(db, counselor.id, session_date)
    second = availability.resolve(db, counselor.id, session_date)

    assert first == second


@pytest.mark.parametrize(
    ('status', 'is_booked'),
    [
        (STATUS_PENDING, True),
        (STATUS_COMPLETED, True),
        (STATUS_CANCELLED, False),
    ],
)
def test_resolve_counts_only_active_bookings(
    db, counselor, client_user, session_date, add_appointment, status: str, is_booked: bool
) -> None:
    availability.validate_and_apply(db, counselor.id, {session_date: [TEN]})
    add_appointment(counselor.id, client_user.id, session_date, TEN, status=status)

    assert availability.resolve(db, counselor.id, session_date) == [ResolvedSlot(time=TEN, is_booked=is_booked)]


def test_resolve_ignores_bookings_of_other_counselors(
    db, counselor, client_user, session_date, add_user, add_appointment
) -> None:
    other = add_user('other@example.com', role='counselor', is_approved=True)
    availability.validate_and_apply(db, counselor.id, {session_date: [TEN]})
    availability.validate_and_apply(db, other.id, {session_date: [TEN]})
    add_appointment(other.id, client_user.id, session_date, TEN)

    assert availability.resolve(db, counselor.id, session_date) == [ResolvedSlot(time=TEN, is_booked=False)]


def test_resolve_returns_empty_for_date_without_slots(db, counselor, session_date) -> None:
    assert availability.resolve(db, counselor.id, session_date) == []


def test_resolve_rejects_unknown_counselor(db, client_user, session_date) -> None:
    with pytest.raises(NotFound) as exception_info:
        availability.resolve(db, client_user.id, session_date)

    assert exception_info.value.status_code == 404
    assert exception_info.value.detail == 'Counselor not found.'


def test_guard_rejects_removing_booked_slot_and_leaves_store_unchanged(
    db, counselor, client_user, session_date, add_appointment
) -> None:
    availability.validate_and_apply(db, counselor.id, {session_date: [TEN, ELEVEN]})
    add_appointment(counselor.id, client_user.id, session_date, TEN)

    with pytest.raises(ValidationRejected) as exception_info:
        availability.validate_and_apply(db, counselor.id, {session_date: [ELEVEN]})

    rejection = exception_info.value
    assert rejection.status_code == 400
    assert rejection.date == session_date
    assert rejection.time == TEN
    assert rejection.extra == {'date': session_date.isoformat(), 'time': '10:00 AM'}
    assert rejection.detail == f'Cannot remove 10:00 AM on {session_date.isoformat()}. It is currently booked by a client.'
    assert availability.get_availability(db, counselor.id) == {session_date: [TEN, ELEVEN]}


def test_guard_rejects_dropping_the_whole_date(db, counselor, client_user, session_date, add_appointment) -> None:
    other_date = session_date + timedelta(days=3)
    availability.validate_and_apply(db, counselor.id, {session_date: [TEN]})
    add_appointment(counselor.id, client_user.id, session_date, TEN, status=STATUS_PENDING)

    with pytest.raises(ValidationRejected):
        availability.validate_and_apply(db, counselor.id, {other_date: [TEN]})

    assert availability.get_availability(db, counselor.id) == {session_date: [TEN]}


def test_guard_reports_earliest_orphaned_booking(db, counselor, client_user, session_date, add_appointment) -> None:
    later_date = session_date + timedelta(days=2)
    availability.validate_and_apply(db, counselor.id, {session_date: [TEN, ELEVEN], later_date: [TEN]})
    add_appointment(counselor.id, client_user.id, later_date, TEN)
    add_appointment(counselor.id, client_user.id, session_date, ELEVEN)

    with pytest.raises(ValidationRejected) as exception_info:
        availability.validate_and_apply(db, counselor.id, {})

    assert (exception_info.value.date, exception_info.value.time) == (session_date, ELEVEN)


def test_guard_allows_edits_that_keep_booked_slots(db, counselor, client_user, session_date, add_appointment) -> None:
    availability.validate_and_apply(db, counselor.id, {session_date: [TEN, ELEVEN]})
    add_appointment(counselor.id, client_user.id, session_date, TEN)

    published = availability.validate_and_apply(db, counselor.id, {session_date: [TEN, NOON]})

    assert published == {session_date: [TEN, NOON]}


@pytest.mark.parametrize('status', [STATUS_COMPLETED, STATUS_CANCELLED])
def test_guard_ignores_finished_bookings(
    db, counselor, client_user, session_date, add_appointment, status: str
) -> None:
    availability.validate_and_apply(db, counselor.id, {session_date: [TEN]})
    add_appointment(counselor.id, client_user.id, session_date, TEN, status=status)

    assert availability.validate_and_apply(db, counselor.id, {}) == {}


def test_guard_ignores_past_bookings(db, counselor, client_user, add_appointment) -> None:
    past_date = date.today() - timedelta(days=2)
    availability.replace_availability(db, counselor.id, {past_date: [TEN]})
    db.commit()
    add_appointment(counselor.id, client_user.id, past_date, TEN)

    assert availability.validate_and_apply(db, counselor.id, {}) == {}


def test_guard_rejects_non_counselor(db, client_user, session_date) -> None:
    with pytest.raises(NotFound):
        availability.validate_and_apply(db, client_user.id, {session_date: [TEN]})


def test_clear_date_removes_only_that_date(db, counselor, session_date) -> None:
    other_date = session_date + timedelta(days=1)
    availability.validate_and_apply(db, counselor.id, {session_date: [TEN], other_date: [ELEVEN]})

    remaining = availability.clear_date(db, counselor.id, session_date)

    assert remaining == {other_date: [ELEVEN]}
    assert availability.get_availability(db, counselor.id) == {other_date: [ELEVEN]}


def test_clear_date_applies_the_booking_guard(db, counselor, client_user, session_date, add_appointment) -> None:
    availability.validate_and_apply(db, counselor.id, {session_date: [TEN, ELEVEN]})
    add_appointment(counselor.id, client_user.id, session_date, ELEVEN)

    with pytest.raises(ValidationRejected):
        availability.clear_date(db, counselor.id, session_date)

    assert availability.get_availability(db, counselor.id) == {session_date: [TEN, ELEVEN]}


def test_clear_date_without_slots_is_not_found(db, counselor, session_date) -> None:
    with pytest.raises(NotFound) as exception_info:
        availability.clear_date(db, counselor.id, session_date)

    assert exception_info.value.detail == 'No slots found for this date.'
