"""Scholarship model definitions."""

from datetime import datetime

from sqlalchemy import Column, DateTime, Float, Integer, String, Text
from scholarship_portal.database import Base


class Scholarship(Base):
    """Represents a scholarship listing and its review aggregate.

    ``rating_sum`` and ``review_count`` are the source of the aggregate;
    ``rating`` is their mean, kept in the same row for sorting and reads.
    """
    __tablename__ = "scholarships"

    id = Column(Integer, primary_key=True, index=True)
    scholarship_name = Column(String, nullable=False)
    university_name = Column(String, nullable=False)
    university_image = Column(String)
    university_country = Column(String)
    university_city = Column(String)
    university_world_rank = Column(Integer)
    subject_category = Column(String)
    scholarship_category = Column(String)
    degree = Column(String)
    tuition_fees = Column(Float)
    application_fees = Column(Float, nullable=False, default=0)
    service_charge = Column(Float)
    application_deadline = Column(String)
    scholarship_description = Column(Text)
    posted_by_email = Column(String)
    post_date = Column(DateTime, default=datetime.utcnow)

    rating_sum = Column(Float, nullable=False, default=0)
    review_count = Column(Integer, nullable=False, default=0)
    rating = Column(Float, nullable=False, default=0)
