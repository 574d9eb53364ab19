"""User model definitions."""

from sqlalchemy import Boolean, Column, DateTime, Integer, String, func
from backend.database import Base

ROLE_USER = "user"
ROLE_COUNSELOR = "counselor"
ROLE_ADMIN = "admin"


class User(Base):
    """Represents an application user. Counselors also own an availability calendar."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False, default="")
    email = Column(String, unique=True, index=True)
    hashed_password = Column(String)
    role = Column(String, nullable=False, default=ROLE_USER)  # user/counselor/admin
    is_approved = Column(Boolean, nullable=False, default=False)
    specialization = Column(String)
    experience = Column(Integer)
    created_at = Column(DateTime, server_default=func.now())

    @property
    def is_counselor(self) -> bool:
        return self.role == ROLE_COUNSELOR
