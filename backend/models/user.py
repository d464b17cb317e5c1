"""User model definitions."""

from datetime import datetime

from sqlalchemy import Column, Integer, String, DateTime
from backend.database import Base

ROLE_USER = "user"
ROLE_HOD = "hod"


class User(Base):
    """Represents an application user."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String, unique=True, index=True, nullable=False)  # also the mail recipient
    hashed_password = Column(String, nullable=False)
    role = Column(String, nullable=False, default=ROLE_USER)  # user/hod
    created_at = Column(DateTime, default=datetime.now)

    @property
    def is_hod(self) -> bool:
        return (self.role or "").strip().lower() == ROLE_HOD
