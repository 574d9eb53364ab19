"""Availability model definitions."""

from sqlalchemy import Column, Date, ForeignKey, Integer, Time, UniqueConstraint

from backend.database import Base


class AvailabilitySlot(Base):
    """One bookable start time a counselor has declared for a calendar date."""
    __tablename__ = "availability"
    __table_args__ = (
        UniqueConstraint("counselor_id", "date", "time", name="uq_availability_counselor_date_time"),
    )

    id = Column(Integer, primary_key=True)
    counselor_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    date = Column(Date, nullable=False)
    time = Column(Time, nullable=False)
    # display order within the date, as submitted by the counselor
    position = Column(Integer, nullable=False, default=0)
