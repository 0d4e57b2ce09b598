"""User model definitions."""

from datetime import datetime
from enum import Enum

from sqlalchemy import Column, DateTime, Integer, String
from scholarship_portal.database import Base


class Role(str, Enum):
    APPLICANT = 'Applicant'
    MODERATOR = 'Moderator'
    ADMIN = 'Admin'


class User(Base):
    """Represents a platform user, keyed by email."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    name = Column(String)
    photo_url = Column(String)
    role = Column(String, default=Role.APPLICANT.value, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
