"""Application model definitions."""

from datetime import datetime

from sqlalchemy import Column, DateTime, Integer, String, Text, UniqueConstraint
from scholarship_portal.database import Base


class Application(Base):
    """Represents one applicant's application to one scholarship."""
    __tablename__ = "applications"
    __table_args__ = (
        UniqueConstraint('email', 'scholarship_id', name='uq_applications_email_scholarship'),
    )

    id = Column(Integer, primary_key=True)
    email = Column(String, index=True, nullable=False)
    # No foreign key: applications outlive a deleted scholarship.
    scholarship_id = Column(Integer, index=True, nullable=False)
    status = Column(String, default='pending', nullable=False)
    feedback = Column(Text)
    applicant_name = Column(String)
    phone_number = Column(String)
    photo_url = Column(String)
    address = Column(String)
    gender = Column(String)
    applying_degree = Column(String)
    ssc_result = Column(String)
    hsc_result = Column(String)
    study_gap = Column(String)
    payment_intent_id = Column(String)
    applied_at = Column(DateTime, default=datetime.utcnow)
