from datetime import date, datetime, time

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.auth.dependencies import get_current_user, require_admin, require_counselor
from backend.core.errors import SlotConflict
from backend.core.time_labels import format_time_label, parse_time_label
from backend.database import SessionLocal, ensure_appointment_schema
from backend.models.appointment import PAYMENT_PAID, PAYMENT_UNPAID, STATUSES, Appointment
from backend.models.user import User
from backend.services import availability, bookings, counselors

router = APIRouter(tags=['appointments'])

MAX_ISSUE_LENGTH = 600
MAX_NOTES_LENGTH = 2000
DATABASE_UNAVAILABLE_DETAIL = 'Database unavailable. Verify DATABASE_URL and database credentials.'


class CamelModel(BaseModel):
    class Config:
        populate_by_name = True
        from_attributes = True


class SlotResponse(CamelModel):
    time: str
    is_booked: bool = Field(alias='isBooked')


class AvailabilityResponse(CamelModel):
    success: bool = True
    slots: list[SlotResponse]


class CounselorResponse(CamelModel):
    id: int
    name: str
    email: str
    specialization: str | None = None
    experience: int | None = None


class CounselorListResponse(CamelModel):
    success: bool = True
    count: int
    data: list[CounselorResponse]


class AppointmentResponse(CamelModel):
    id: int
    counselor_id: int = Field(alias='counselorId')
    client_id: int = Field(alias='clientId')
    date: date
    time_slot: str = Field(alias='timeSlot')
    issue: str | None = None
    status: str
    payment_status: str = Field(alias='paymentStatus')
    notes: str | None = None
    meeting_link: str = Field(default='', alias='meetingLink')
    created_at: datetime | None = Field(default=None, alias='createdAt')


class AppointmentEnvelope(CamelModel):
    success: bool = True
    message: str | None = None
    data: AppointmentResponse


class AppointmentListResponse(CamelModel):
    success: bool = True
    count: int
    data: list[AppointmentResponse]


class BookAppointmentRequest(CamelModel):
    counselor_id: int = Field(alias='counselorId')
    date: date
    time_slot: time = Field(alias='timeSlot')
    issue: str | None = None

    @field_validator('time_slot', mode='before')
    @classmethod
    def parse_time_slot(cls, value):
        if isinstance(value, str):
            return parse_time_label(value)
        return value

    @field_validator('date')
    @classmethod
    def validate_date(cls, value: date) -> date:
        if value < date.today():
            raise ValueError('Appointments must be scheduled for today or later.')
        return value

    @field_validator('issue')
    @classmethod
    def validate_issue(cls, value: str | None) -> str | None:
        if value is None:
            return None

        normalized = value.strip()
        if not normalized:
            return None

        if len(normalized) > MAX_ISSUE_LENGTH:
            raise ValueError(f'Issue must be {MAX_ISSUE_LENGTH} characters or fewer.')

        return normalized


class UpdateStatusRequest(CamelModel):
    status: str | None = None
    notes: str | None = Field(default=None, max_length=MAX_NOTES_LENGTH)
    meeting_link: str | None = Field(default=None, alias='meetingLink')

    @field_validator('status')
    @classmethod
    def validate_status(cls, value: str | None) -> str | None:
        if value is None:
            return None

        normalized = value.strip().lower()
        if normalized not in STATUSES:
            raise ValueError('Invalid appointment status.')
        return normalized


class CompleteAppointmentRequest(CamelModel):
    session_notes: str | None = Field(default=None, alias='sessionNotes', max_length=MAX_NOTES_LENGTH)


class SetSlotsRequest(CamelModel):
    availability_array: dict[date, list[time]] = Field(alias='availabilityArray')

    @field_validator('availability_array', mode='before')
    @classmethod
    def parse_labels(cls, value):
        if not isinstance(value, dict):
            raise ValueError('availabilityArray must map dates to lists of time slots.')

        parsed = {}
        for date_key, labels in value.items():
            if not isinstance(labels, list):
                raise ValueError(f'Time slots for {date_key} must be a list.')

            if not all(isinstance(label, str) for label in labels):
                raise ValueError(f'Time slots for {date_key} must be labels such as "10:00 AM".')

            slot_times = [parse_time_label(label) for label in labels]
            if len(set(slot_times)) != len(slot_times):
                raise ValueError(f'Duplicate time slot on {date_key}.')

            parsed[date_key] = slot_times
        return parsed


class AvailabilityMapResponse(CamelModel):
    success: bool = True
    message: str
    data: dict[str, list[str]]


class DashboardStats(CamelModel):
    total_clients: int = Field(alias='totalClients')
    total_scheduled: int = Field(alias='totalScheduled')
    total_completed: int = Field(alias='totalCompleted')
    total_revenue: int = Field(alias='totalRevenue')


class DashboardChartPoint(CamelModel):
    name: str
    date: date
    sessions: int
    revenue: int


class DashboardResponse(CamelModel):
    success: bool = True
    stats: DashboardStats
    chart_data: list[DashboardChartPoint] = Field(alias='chartData')
    recent_activity: list[AppointmentResponse] = Field(alias='recentActivity')


def ensure_database_ready() -> None:
    try:
        ensure_appointment_schema()
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


def database_unavailable() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=DATABASE_UNAVAILABLE_DETAIL,
    )


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def serialize_appointment(appointment: Appointment) -> AppointmentResponse:
    return AppointmentResponse(
        id=appointment.id,
        counselor_id=appointment.counselor_id,
        client_id=appointment.client_id,
        date=appointment.date,
        time_slot=format_time_label(appointment.time_slot),
        issue=appointment.issue,
        status=appointment.status,
        payment_status=appointment.payment_status,
        notes=appointment.notes,
        meeting_link=appointment.meeting_link or '',
        created_at=appointment.created_at,
    )


def serialize_appointments(appointments: list[Appointment]) -> AppointmentListResponse:
    return AppointmentListResponse(
        count=len(appointments),
        data=[serialize_appointment(appointment) for appointment in appointments],
    )


def serialize_availability(mapping: availability.AvailabilityMapping) -> dict[str, list[str]]:
    return {
        slot_date.isoformat(): [format_time_label(slot_time) for slot_time in slot_times]
        for slot_date, slot_times in mapping.items()
    }


def resolve_slots(db: Session, counselor_id: int, slot_date: date) -> list[SlotResponse]:
    return [
        SlotResponse(time=format_time_label(slot.time), is_booked=slot.is_booked)
        for slot in availability.resolve(db, counselor_id, slot_date)
    ]


# --- Public ---

@router.get('/counselors', response_model=CounselorListResponse)
def list_counselors(
    specialization: str | None = Query(default=None),
    min_experience: int | None = Query(default=None, alias='minExperience', ge=0),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        found = counselors.list_counselors(db, specialization=specialization, min_experience=min_experience)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    return CounselorListResponse(
        count=len(found),
        data=[CounselorResponse.model_validate(counselor) for counselor in found],
    )


@router.get('/availability/{counselor_id}', response_model=AvailabilityResponse)
def get_counselor_availability(
    counselor_id: int,
    slot_date: date = Query(..., alias='date'),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        slots = resolve_slots(db, counselor_id, slot_date)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    return AvailabilityResponse(slots=slots)


# --- Client ---

@router.post('/book', response_model=AppointmentEnvelope, status_code=status.HTTP_201_CREATED)
def book_appointment(
    data: BookAppointmentRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        appointment = bookings.create_booking(
            db,
            counselor_id=data.counselor_id,
            client_id=current_user.id,
            slot_date=data.date,
            slot_time=data.time_slot,
            issue=data.issue,
        )
    except SlotConflict as exc:
        # Hand back the current state of the day so the client can re-render it.
        try:
            slots = resolve_slots(db, data.counselor_id, data.date)
        except SQLAlchemyError as lookup_exc:
            raise database_unavailable() from lookup_exc
        exc.extra['slots'] = [slot.model_dump(by_alias=True) for slot in slots]
        raise
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    return AppointmentEnvelope(message='Appointment booked.', data=serialize_appointment(appointment))


@router.get('/my-bookings', response_model=AppointmentListResponse)
def list_my_appointments(
    status_filter: str | None = Query(default=None, alias='status'),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    if status_filter is not None and status_filter not in STATUSES:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail='Invalid appointment status.')

    ensure_database_ready()

    try:
        appointments = bookings.list_by_client(db, current_user.id, status=status_filter)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    return serialize_appointments(appointments)


@router.post('/pay/{appointment_id}', response_model=AppointmentEnvelope)
def pay_for_appointment(
    appointment_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        appointment = bookings.pay(db, appointment_id, current_user.id)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    return AppointmentEnvelope(message='Payment successful', data=serialize_appointment(appointment))


@router.get('/billing/paid', response_model=AppointmentListResponse)
def list_paid_appointments(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        appointments = bookings.list_by_payment_status(db, current_user.id, PAYMENT_PAID)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    return serialize_appointments(appointments)


@router.get('/billing/unpaid', response_model=AppointmentListResponse)
def list_unpaid_appointments(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        appointments = bookings.list_by_payment_status(db, current_user.id, PAYMENT_UNPAID)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    return serialize_appointments(appointments)


@router.patch('/cancel/{appointment_id}', response_model=AppointmentEnvelope)
def cancel_appointment(
    appointment_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        appointment = bookings.cancel(db, appointment_id, current_user.id)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    return AppointmentEnvelope(message='Appointment cancelled', data=serialize_appointment(appointment))


# --- Counselor ---

@router.get('/schedule', response_model=AppointmentListResponse)
def get_counselor_schedule(
    current_user: User = Depends(require_counselor),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        appointments = bookings.list_by_counselor(db, current_user.id)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    return serialize_appointments(appointments)


@router.put('/status/{appointment_id}', response_model=AppointmentEnvelope)
def update_appointment_status(
    appointment_id: int,
    data: UpdateStatusRequest,
    current_user: User = Depends(require_counselor),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        appointment = bookings.set_status(
            db,
            appointment_id,
            current_user.id,
            new_status=data.status,
            notes=data.notes,
            meeting_link=data.meeting_link,
        )
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    return AppointmentEnvelope(message=f'Appointment {appointment.status}', data=serialize_appointment(appointment))


@router.patch('/complete/{appointment_id}', response_model=AppointmentEnvelope)
def complete_appointment(
    appointment_id: int,
    data: CompleteAppointmentRequest | None = None,
    current_user: User = Depends(require_counselor),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    session_notes = data.session_notes if data else None
    try:
        appointment = bookings.complete(db, appointment_id, current_user.id, session_notes=session_notes)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    return AppointmentEnvelope(message='Session completed', data=serialize_appointment(appointment))


@router.post('/set-slots', response_model=AvailabilityMapResponse)
def set_availability(
    data: SetSlotsRequest,
    current_user: User = Depends(require_counselor),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        published = availability.validate_and_apply(db, current_user.id, data.availability_array)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    return AvailabilityMapResponse(
        message='Availability updated successfully',
        data=serialize_availability(published),
    )


@router.delete('/availability/{slot_date}', response_model=AvailabilityMapResponse)
def delete_day_availability(
    slot_date: date,
    current_user: User = Depends(require_counselor),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        remaining = availability.clear_date(db, current_user.id, slot_date)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    return AvailabilityMapResponse(
        message=f'Availability for {slot_date.isoformat()} cleared successfully',
        data=serialize_availability(remaining),
    )


@router.get('/counselor/dashboard-stats', response_model=DashboardResponse)
def get_counselor_dashboard_stats(
    current_user: User = Depends(require_counselor),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        summary = bookings.counselor_dashboard_stats(db, current_user.id)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    return DashboardResponse(
        stats=DashboardStats(**summary['stats']),
        chart_data=[DashboardChartPoint(**point) for point in summary['chart_data']],
        recent_activity=[serialize_appointment(appointment) for appointment in summary['recent_activity']],
    )


# --- Admin ---

@router.get('/admin/all', response_model=AppointmentListResponse)
def list_all_appointments(
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    del current_user
    ensure_database_ready()

    try:
        appointments = bookings.list_all(db)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    return serialize_appointments(appointments)
