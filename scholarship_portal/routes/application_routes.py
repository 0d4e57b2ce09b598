from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from scholarship_portal.auth.access import (
    AUTHENTICATED,
    STAFF,
    Caller,
    ensure_owner,
    ensure_owner_or_staff,
    normalize_email,
    require_access,
)
from scholarship_portal.database import database_unavailable, get_db
from scholarship_portal.models.application import Application
from scholarship_portal.routes.common import (
    ScholarshipSnapshot,
    load_scholarship_snapshots,
    not_found,
)
from scholarship_portal.routes.scholarship_routes import get_scholarship_or_404

router = APIRouter(tags=['applications'])

APPLICATION_STATUSES = ('pending', 'processing', 'completed', 'rejected')
ALREADY_APPLIED_DETAIL = 'Already applied.'


class ApplicationFields(BaseModel):
    applicant_name: str | None = None
    phone_number: str | None = None
    photo_url: str | None = None
    address: str | None = None
    gender: str | None = None
    applying_degree: str | None = None
    ssc_result: str | None = None
    hsc_result: str | None = None
    study_gap: str | None = None
    payment_intent_id: str | None = None


class CreateApplicationRequest(ApplicationFields):
    email: str
    scholarship_id: int

    @field_validator('email')
    @classmethod
    def validate_email(cls, value: str) -> str:
        normalized = normalize_email(value)
        if not normalized:
            raise ValueError('Applicant email is required.')
        return normalized


class UpdateApplicationRequest(ApplicationFields):
    pass


class UpdateStatusRequest(BaseModel):
    status: str | None = None
    feedback: str | None = None

    @field_validator('status')
    @classmethod
    def validate_status(cls, value: str | None) -> str | None:
        if value is None:
            return None
        normalized = value.strip().lower()
        if normalized not in APPLICATION_STATUSES:
            raise ValueError('Invalid application status.')
        return normalized


class ApplicationResponse(ApplicationFields):
    id: int
    email: str
    scholarship_id: int
    status: str
    feedback: str | None = None
    applied_at: datetime | None = None
    scholarship: ScholarshipSnapshot | None = None

    class Config:
        from_attributes = True


def already_applied() -> HTTPException:
    return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=ALREADY_APPLIED_DETAIL)


def get_application_or_404(db: Session, application_id: int) -> Application:
    application = db.query(Application).filter(Application.id == application_id).first()
    if application is None:
        raise not_found('Application')
    return application


def to_responses(db: Session, applications: list[Application]) -> list[ApplicationResponse]:
    snapshots = load_scholarship_snapshots(db, (application.scholarship_id for application in applications))
    responses = []
    for application in applications:
        response = ApplicationResponse.model_validate(application)
        response.scholarship = snapshots.get(application.scholarship_id)
        responses.append(response)
    return responses


@router.post('/applyed', response_model=ApplicationResponse, status_code=status.HTTP_201_CREATED)
def create_application(
    data: CreateApplicationRequest,
    caller: Caller = Depends(require_access(AUTHENTICATED)),
    db: Session = Depends(get_db),
):
    ensure_owner(caller, data.email)

    try:
        get_scholarship_or_404(db, data.scholarship_id)

        existing = db.query(Application.id).filter(
            Application.email == data.email,
            Application.scholarship_id == data.scholarship_id,
        ).first()
        if existing:
            raise already_applied()

        application = Application(**data.model_dump(), status='pending')
        db.add(application)
        db.commit()
        db.refresh(application)

        return to_responses(db, [application])[0]
    except IntegrityError as exc:
        # Lost the race to a concurrent submission; the unique constraint decides.
        db.rollback()
        raise already_applied() from exc
    except SQLAlchemyError as exc:
        raise database_unavailable(db) from exc


@router.put('/applyed', response_model=ApplicationResponse)
def upsert_application(
    data: CreateApplicationRequest,
    caller: Caller = Depends(require_access(AUTHENTICATED)),
    db: Session = Depends(get_db),
):
    ensure_owner(caller, data.email)

    try:
        application = db.query(Application).filter(
            Application.email == data.email,
            Application.scholarship_id == data.scholarship_id,
        ).first()
        if application is None:
            get_scholarship_or_404(db, data.scholarship_id)
            application = Application(email=data.email, scholarship_id=data.scholarship_id, status='pending')
            db.add(application)

        for field_name, value in data.model_dump(exclude_unset=True, exclude={'email', 'scholarship_id'}).items():
            setattr(application, field_name, value)

        db.commit()
        db.refresh(application)

        return to_responses(db, [application])[0]
    except IntegrityError as exc:
        db.rollback()
        raise already_applied() from exc
    except SQLAlchemyError as exc:
        raise database_unavailable(db) from exc


@router.patch('/applyed/status/{application_id}', response_model=ApplicationResponse)
def update_application_status(
    application_id: int,
    data: UpdateStatusRequest,
    caller: Caller = Depends(require_access(STAFF)),
    db: Session = Depends(get_db),
):
    changes = data.model_dump(exclude_unset=True, exclude_none=True)
    if not changes:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='Provide a status or feedback.',
        )

    try:
        application = get_application_or_404(db, application_id)
        for field_name, value in changes.items():
            setattr(application, field_name, value)

        db.commit()
        db.refresh(application)

        return to_responses(db, [application])[0]
    except SQLAlchemyError as exc:
        raise database_unavailable(db) from exc


@router.patch('/applyed/{application_id}', response_model=ApplicationResponse)
def update_application(
    application_id: int,
    data: UpdateApplicationRequest,
    caller: Caller = Depends(require_access(AUTHENTICATED)),
    db: Session = Depends(get_db),
):
    try:
        application = get_application_or_404(db, application_id)
        ensure_owner(caller, application.email)

        for field_name, value in data.model_dump(exclude_unset=True).items():
            setattr(application, field_name, value)

        db.commit()
        db.refresh(application)

        return to_responses(db, [application])[0]
    except SQLAlchemyError as exc:
        raise database_unavailable(db) from exc


@router.get('/applyed/allApply/add', response_model=list[ApplicationResponse])
def list_all_applications(
    caller: Caller = Depends(require_access(STAFF)),
    db: Session = Depends(get_db),
):
    try:
        applications = db.query(Application).order_by(Application.applied_at.desc(), Application.id.desc()).all()
        return to_responses(db, applications)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.get('/applyed/{applicant_email}', response_model=list[ApplicationResponse])
def list_applications_for_applicant(
    applicant_email: str,
    caller: Caller = Depends(require_access(AUTHENTICATED)),
    db: Session = Depends(get_db),
):
    try:
        ensure_owner_or_staff(caller, applicant_email, db)

        applications = db.query(Application).filter(
            Application.email == normalize_email(applicant_email),
        ).order_by(Application.applied_at.desc(), Application.id.desc()).all()
        return to_responses(db, applications)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.delete('/applyed/{application_id}', status_code=status.HTTP_204_NO_CONTENT)
def delete_application(
    application_id: int,
    caller: Caller = Depends(require_access(AUTHENTICATED)),
    db: Session = Depends(get_db),
):
    try:
        application = get_application_or_404(db, application_id)
        ensure_owner_or_staff(caller, application.email, db)

        db.delete(application)
        db.commit()
    except SQLAlchemyError as exc:
        raise database_unavailable(db) from exc
