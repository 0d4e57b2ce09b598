"""Review model definitions."""

from datetime import datetime

from sqlalchemy import Column, DateTime, Integer, String, Text
from scholarship_portal.database import Base


class Review(Base):
    """Represents a review left on a scholarship."""
    __tablename__ = "reviews"

    id = Column(Integer, primary_key=True)
    email = Column(String, index=True, nullable=False)
    scholarship_id = Column(Integer, index=True, nullable=False)
    rating = Column(Integer, nullable=False)
    comment = Column(Text)
    reviewer_name = Column(String)
    reviewer_image = Column(String)
    review_date = Column(DateTime, default=datetime.utcnow)
