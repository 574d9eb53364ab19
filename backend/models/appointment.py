"""Appointment model definitions."""

from sqlalchemy import Column, Date, DateTime, ForeignKey, Index, Integer, String, Text, Time, func, text

from backend.database import ACTIVE_SLOT_INDEX_NAME, ACTIVE_SLOT_PREDICATE, Base

STATUS_PENDING = "pending"
STATUS_SCHEDULED = "scheduled"
STATUS_COMPLETED = "completed"
STATUS_CANCELLED = "cancelled"

STATUSES = (STATUS_PENDING, STATUS_SCHEDULED, STATUS_COMPLETED, STATUS_CANCELLED)
TERMINAL_STATUSES = frozenset({STATUS_COMPLETED, STATUS_CANCELLED})

# Statuses that occupy a slot for the no-double-booking rule.
ACTIVE_STATUSES = (STATUS_PENDING, STATUS_SCHEDULED, STATUS_COMPLETED)
# Statuses the availability guard protects; completed sessions are history.
UPCOMING_STATUSES = (STATUS_PENDING, STATUS_SCHEDULED)

PAYMENT_UNPAID = "unpaid"
PAYMENT_PAID = "paid"
PAYMENT_STATUSES = (PAYMENT_UNPAID, PAYMENT_PAID)


class Appointment(Base):
    """Represents a counseling session booked by a client."""
    __tablename__ = "appointments"
    __table_args__ = (
        Index(
            ACTIVE_SLOT_INDEX_NAME,
            "counselor_id",
            "date",
            "time_slot",
            unique=True,
            postgresql_where=text(ACTIVE_SLOT_PREDICATE),
            sqlite_where=text(ACTIVE_SLOT_PREDICATE),
        ),
        Index("idx_appointments_client_date", "client_id", "date"),
    )

    id = Column(Integer, primary_key=True)
    client_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    counselor_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    date = Column(Date, nullable=False)
    time_slot = Column(Time, nullable=False)
    issue = Column(Text)
    status = Column(String, nullable=False, default=STATUS_PENDING)
    payment_status = Column(String, nullable=False, default=PAYMENT_UNPAID)
    notes = Column(Text)
    meeting_link = Column(String, default="")
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
