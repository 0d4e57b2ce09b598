from datetime import datetime

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field, field_validator
from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from scholarship_portal.auth.access import (
    AUTHENTICATED,
    PUBLIC,
    STAFF,
    Caller,
    normalize_email,
    require_access,
)
from scholarship_portal.core import config
from scholarship_portal.database import database_unavailable, get_db
from scholarship_portal.models.scholarship import Scholarship
from scholarship_portal.routes.common import not_found

router = APIRouter(tags=['scholarships'])

SEARCH_FIELDS = (Scholarship.scholarship_name, Scholarship.university_name, Scholarship.degree)
REQUIRED_FIELDS = {'scholarship_name', 'university_name', 'application_fees'}


class ScholarshipFields(BaseModel):
    university_image: str | None = None
    university_country: str | None = None
    university_city: str | None = None
    university_world_rank: int | None = Field(default=None, ge=1)
    subject_category: str | None = None
    scholarship_category: str | None = None
    degree: str | None = None
    tuition_fees: float | None = Field(default=None, ge=0)
    service_charge: float | None = Field(default=None, ge=0)
    application_deadline: str | None = None
    scholarship_description: str | None = None


class CreateScholarshipRequest(ScholarshipFields):
    scholarship_name: str
    university_name: str
    application_fees: float = Field(ge=0)
    posted_by_email: str | None = None

    @field_validator('scholarship_name', 'university_name')
    @classmethod
    def validate_required_text(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Value is required.')
        return normalized


class UpdateScholarshipRequest(ScholarshipFields):
    scholarship_name: str | None = None
    university_name: str | None = None
    application_fees: float | None = Field(default=None, ge=0)

    @field_validator('scholarship_name', 'university_name')
    @classmethod
    def validate_optional_text(cls, value: str | None) -> str | None:
        if value is None:
            return None
        normalized = value.strip()
        if not normalized:
            raise ValueError('Value cannot be blank.')
        return normalized


class ScholarshipResponse(ScholarshipFields):
    id: int
    scholarship_name: str
    university_name: str
    application_fees: float
    posted_by_email: str | None = None
    post_date: datetime | None = None
    rating: float
    review_count: int

    class Config:
        from_attributes = True


def build_search_filter(search: str):
    escaped = search.replace('\\', '\\\\').replace('%', '\\%').replace('_', '\\_')
    pattern = f'%{escaped}%'
    return or_(*(column.ilike(pattern, escape='\\') for column in SEARCH_FIELDS))


def get_scholarship_or_404(db: Session, scholarship_id: int) -> Scholarship:
    scholarship = db.query(Scholarship).filter(Scholarship.id == scholarship_id).first()
    if scholarship is None:
        raise not_found('Scholarship')
    return scholarship


@router.get(
    '/scholarship',
    response_model=list[ScholarshipResponse],
    dependencies=[Depends(require_access(PUBLIC))],
)
def list_scholarships(
    page: int = Query(default=1, ge=1),
    search: str | None = Query(default=None),
    db: Session = Depends(get_db),
):
    try:
        query = db.query(Scholarship)
        if search and search.strip():
            query = query.filter(build_search_filter(search.strip()))

        page_size = config.SCHOLARSHIP_PAGE_SIZE
        return query.order_by(Scholarship.id.asc()).offset((page - 1) * page_size).limit(page_size).all()
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.get(
    '/scholarship/topScholarship',
    response_model=list[ScholarshipResponse],
    dependencies=[Depends(require_access(PUBLIC))],
)
def list_top_scholarships(db: Session = Depends(get_db)):
    try:
        return db.query(Scholarship).order_by(
            Scholarship.application_fees.asc(),
            Scholarship.post_date.desc(),
        ).limit(config.TOP_SCHOLARSHIP_LIMIT).all()
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.get('/scholarship/manage', response_model=list[ScholarshipResponse])
def list_managed_scholarships(
    caller: Caller = Depends(require_access(STAFF)),
    db: Session = Depends(get_db),
):
    try:
        return db.query(Scholarship).order_by(Scholarship.post_date.desc(), Scholarship.id.desc()).all()
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.get('/scholarship/details/{scholarship_id}', response_model=ScholarshipResponse)
def get_scholarship_details(
    scholarship_id: int,
    caller: Caller = Depends(require_access(AUTHENTICATED)),
    db: Session = Depends(get_db),
):
    try:
        return get_scholarship_or_404(db, scholarship_id)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.post('/scholarships', response_model=ScholarshipResponse, status_code=status.HTTP_201_CREATED)
def create_scholarship(
    data: CreateScholarshipRequest,
    caller: Caller = Depends(require_access(STAFF)),
    db: Session = Depends(get_db),
):
    try:
        values = data.model_dump()
        values['posted_by_email'] = normalize_email(data.posted_by_email) or caller.email
        scholarship = Scholarship(**values, rating_sum=0.0, review_count=0, rating=0.0)

        db.add(scholarship)
        db.commit()
        db.refresh(scholarship)

        return scholarship
    except SQLAlchemyError as exc:
        raise database_unavailable(db) from exc


@router.patch('/scholarship/{scholarship_id}', response_model=ScholarshipResponse)
def update_scholarship(
    scholarship_id: int,
    data: UpdateScholarshipRequest,
    caller: Caller = Depends(require_access(STAFF)),
    db: Session = Depends(get_db),
):
    try:
        scholarship = get_scholarship_or_404(db, scholarship_id)
        for field_name, value in data.model_dump(exclude_unset=True).items():
            if value is None and field_name in REQUIRED_FIELDS:
                continue
            setattr(scholarship, field_name, value)

        db.commit()
        db.refresh(scholarship)

        return scholarship
    except SQLAlchemyError as exc:
        raise database_unavailable(db) from exc


@router.delete('/scholarship/{scholarship_id}', status_code=status.HTTP_204_NO_CONTENT)
def delete_scholarship(
    scholarship_id: int,
    caller: Caller = Depends(require_access(STAFF)),
    db: Session = Depends(get_db),
):
    # Reviews and applications that point here are left in place.
    try:
        scholarship = get_scholarship_or_404(db, scholarship_id)
        db.delete(scholarship)
        db.commit()
    except SQLAlchemyError as exc:
        raise database_unavailable(db) from exc
