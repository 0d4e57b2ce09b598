from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from scholarship_portal.auth.access import (
    ADMIN_ONLY,
    AUTHENTICATED,
    PUBLIC,
    Caller,
    ensure_owner_or_staff,
    normalize_email,
    require_access,
)
from scholarship_portal.database import database_unavailable, get_db
from scholarship_portal.models.user import Role, User
from scholarship_portal.routes.common import not_found

router = APIRouter(tags=['users'])


class UserRequest(BaseModel):
    email: str
    name: str | None = None
    photo_url: str | None = None

    @field_validator('email')
    @classmethod
    def validate_email(cls, value: str) -> str:
        normalized = normalize_email(value)
        if not normalized:
            raise ValueError('Email is required.')
        return normalized


class UpdateRoleRequest(BaseModel):
    role: Role


class UserResponse(BaseModel):
    id: int
    email: str
    name: str | None = None
    photo_url: str | None = None
    role: Role
    created_at: datetime | None = None

    class Config:
        from_attributes = True


def get_user_or_404(db: Session, email: str) -> User:
    user = db.query(User).filter(User.email == normalize_email(email)).first()
    if user is None:
        raise not_found('User')
    return user


@router.post('/users', dependencies=[Depends(require_access(PUBLIC))])
def create_user_if_absent(data: UserRequest, db: Session = Depends(get_db)):
    try:
        if db.query(User).filter(User.email == data.email).first() is not None:
            return {'success': True, 'created': False}

        db.add(User(**data.model_dump(), role=Role.APPLICANT.value))
        db.commit()
        return {'success': True, 'created': True}
    except IntegrityError:
        # Another sign-in created the same email first.
        db.rollback()
        return {'success': True, 'created': False}
    except SQLAlchemyError as exc:
        raise database_unavailable(db) from exc


@router.put('/users', response_model=UserResponse, dependencies=[Depends(require_access(PUBLIC))])
def upsert_user(data: UserRequest, db: Session = Depends(get_db)):
    try:
        user = db.query(User).filter(User.email == data.email).first()
        if user is None:
            user = User(email=data.email, role=Role.APPLICANT.value)
            db.add(user)

        # Roles only change through the admin endpoint.
        for field_name, value in data.model_dump(exclude_unset=True, exclude={'email'}).items():
            setattr(user, field_name, value)

        db.commit()
        db.refresh(user)
        return user
    except SQLAlchemyError as exc:
        raise database_unavailable(db) from exc


@router.get('/users/all/admin', response_model=list[UserResponse])
def list_users(
    role_filter: str | None = Query(default=None, alias='filter'),
    caller: Caller = Depends(require_access(ADMIN_ONLY)),
    db: Session = Depends(get_db),
):
    query = db.query(User)
    if role_filter and role_filter.strip():
        try:
            role = Role(role_filter.strip().capitalize())
        except ValueError as exc:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail='Invalid role filter.',
            ) from exc
        query = query.filter(User.role == role.value)

    try:
        return query.order_by(User.created_at.asc(), User.id.asc()).all()
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.get('/users/{user_email}', response_model=UserResponse)
def get_user(
    user_email: str,
    caller: Caller = Depends(require_access(AUTHENTICATED)),
    db: Session = Depends(get_db),
):
    try:
        ensure_owner_or_staff(caller, user_email, db)
        return get_user_or_404(db, user_email)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.patch('/users/admin/role/{user_email}', response_model=UserResponse)
def change_user_role(
    user_email: str,
    data: UpdateRoleRequest,
    caller: Caller = Depends(require_access(ADMIN_ONLY)),
    db: Session = Depends(get_db),
):
    try:
        user = get_user_or_404(db, user_email)
        user.role = data.role.value
        db.commit()
        db.refresh(user)
        return user
    except SQLAlchemyError as exc:
        raise database_unavailable(db) from exc


@router.delete('/users/admin/delete/{user_email}', status_code=status.HTTP_204_NO_CONTENT)
def delete_user(
    user_email: str,
    caller: Caller = Depends(require_access(ADMIN_ONLY)),
    db: Session = Depends(get_db),
):
    try:
        user = get_user_or_404(db, user_email)
        db.delete(user)
        db.commit()
    except SQLAlchemyError as exc:
        raise database_unavailable(db) from exc
