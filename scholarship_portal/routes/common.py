from fastapi import HTTPException, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from scholarship_portal.models.scholarship import Scholarship


class ScholarshipSnapshot(BaseModel):
    id: int
    scholarship_name: str
    university_name: str
    application_fees: float
    rating: float
    review_count: int

    class Config:
        from_attributes = True


def not_found(document: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f'{document} not found.')


def load_scholarship_snapshots(db: Session, scholarship_ids) -> dict[int, ScholarshipSnapshot]:
    ids = {scholarship_id for scholarship_id in scholarship_ids if scholarship_id is not None}
    if not ids:
        return {}

    scholarships = db.query(Scholarship).filter(Scholarship.id.in_(ids)).all()
    return {scholarship.id: ScholarshipSnapshot.model_validate(scholarship) for scholarship in scholarships}
