"""Domain errors raised by the scheduling services.

Each error is an ``HTTPException`` so routes can let it propagate; the
application handler in ``backend.main`` renders ``detail`` plus ``extra``.
"""

from datetime import date, time

from fastapi import HTTPException, status

from backend.core.time_labels import format_time_label


class SchedulingError(HTTPException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Request could not be completed.'

    def __init__(self, detail: str | None = None, **extra) -> None:
        super().__init__(status_code=self.status_code, detail=detail or self.default_detail)
        self.extra = extra


class NotFound(SchedulingError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = 'Appointment not found.'


class Forbidden(SchedulingError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = 'Not authorized.'


class SlotConflict(SchedulingError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'This slot has already been booked. Please choose another time.'


class SlotNotOffered(SchedulingError):
    default_detail = 'This counselor is not available at the selected time.'


class InvalidTransition(SchedulingError):
    def __init__(self, current: str, requested: str) -> None:
        super().__init__(f'Cannot change appointment status from {current} to {requested}.')
        self.current = current
        self.requested = requested


class AlreadyTerminal(SchedulingError):
    def __init__(self, current: str, detail: str | None = None) -> None:
        super().__init__(detail or f'Appointment is already {current}.')
        self.current = current


class AlreadyPaid(SchedulingError):
    default_detail = 'Appointment already paid.'


class ValidationRejected(SchedulingError):
    def __init__(self, slot_date: date, slot_time: time) -> None:
        label = format_time_label(slot_time)
        date_key = slot_date.isoformat()
        super().__init__(
            f'Cannot remove {label} on {date_key}. It is currently booked by a client.',
            date=date_key,
            time=label,
        )
        self.date = slot_date
        self.time = slot_time
