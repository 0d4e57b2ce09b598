from datetime import datetime

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.exc import SQLAlchemyError
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
from scholarship_portal.models.review import Review
from scholarship_portal.routes.common import (
    ScholarshipSnapshot,
    load_scholarship_snapshots,
    not_found,
)
from scholarship_portal.routes.scholarship_routes import get_scholarship_or_404
from scholarship_portal.services import rating_aggregator

router = APIRouter(tags=['reviews'])

MIN_RATING = 1
MAX_RATING = 5
MAX_COMMENT_LENGTH = 2000


class ReviewFields(BaseModel):
    comment: str | None = None
    reviewer_name: str | None = None
    reviewer_image: str | None = None

    @field_validator('comment')
    @classmethod
    def validate_comment(cls, value: str | None) -> str | None:
        if value is None:
            return None

        normalized = value.strip()
        if len(normalized) > MAX_COMMENT_LENGTH:
            raise ValueError(f'Comment must be {MAX_COMMENT_LENGTH} characters or fewer.')

        return normalized or None


class CreateReviewRequest(ReviewFields):
    email: str
    scholarship_id: int
    rating: int = Field(ge=MIN_RATING, le=MAX_RATING)

    @field_validator('email')
    @classmethod
    def validate_email(cls, value: str) -> str:
        normalized = normalize_email(value)
        if not normalized:
            raise ValueError('Reviewer email is required.')
        return normalized


class UpdateReviewRequest(ReviewFields):
    rating: int | None = Field(default=None, ge=MIN_RATING, le=MAX_RATING)


class ReviewResponse(ReviewFields):
    id: int
    email: str
    scholarship_id: int
    rating: int
    review_date: datetime | None = None
    scholarship: ScholarshipSnapshot | None = None

    class Config:
        from_attributes = True


def get_review_or_404(db: Session, review_id: int) -> Review:
    review = db.query(Review).filter(Review.id == review_id).first()
    if review is None:
        raise not_found('Review')
    return review


def to_responses(db: Session, reviews: list[Review]) -> list[ReviewResponse]:
    snapshots = load_scholarship_snapshots(db, (review.scholarship_id for review in reviews))
    responses = []
    for review in reviews:
        response = ReviewResponse.model_validate(review)
        response.scholarship = snapshots.get(review.scholarship_id)
        responses.append(response)
    return responses


@router.post('/reviews', response_model=ReviewResponse, status_code=status.HTTP_201_CREATED)
def create_review(
    data: CreateReviewRequest,
    caller: Caller = Depends(require_access(AUTHENTICATED)),
    db: Session = Depends(get_db),
):
    ensure_owner(caller, data.email)

    try:
        get_scholarship_or_404(db, data.scholarship_id)

        review = Review(**data.model_dump())
        db.add(review)
        db.flush()
        rating_aggregator.on_review_created(db, review.scholarship_id, review.rating)
        db.commit()
        db.refresh(review)

        return to_responses(db, [review])[0]
    except SQLAlchemyError as exc:
        raise database_unavailable(db) from exc


@router.get('/reviews', response_model=list[ReviewResponse])
def list_my_reviews(
    caller: Caller = Depends(require_access(AUTHENTICATED)),
    db: Session = Depends(get_db),
):
    try:
        reviews = db.query(Review).filter(
            Review.email == caller.email,
        ).order_by(Review.review_date.desc(), Review.id.desc()).all()
        return to_responses(db, reviews)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.get('/reviews/all', response_model=list[ReviewResponse])
def list_all_reviews(
    caller: Caller = Depends(require_access(STAFF)),
    db: Session = Depends(get_db),
):
    try:
        reviews = db.query(Review).order_by(Review.review_date.desc(), Review.id.desc()).all()
        return to_responses(db, reviews)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.get('/reviews/details/{scholarship_id}', response_model=list[ReviewResponse])
def list_reviews_for_scholarship(
    scholarship_id: int,
    caller: Caller = Depends(require_access(AUTHENTICATED)),
    db: Session = Depends(get_db),
):
    try:
        reviews = db.query(Review).filter(
            Review.scholarship_id == scholarship_id,
        ).order_by(Review.review_date.desc(), Review.id.desc()).all()
        return to_responses(db, reviews)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.patch('/reviews/{review_id}', response_model=ReviewResponse)
def update_review(
    review_id: int,
    data: UpdateReviewRequest,
    caller: Caller = Depends(require_access(AUTHENTICATED)),
    db: Session = Depends(get_db),
):
    try:
        review = get_review_or_404(db, review_id)
        ensure_owner(caller, review.email)

        changes = data.model_dump(exclude_unset=True)
        if changes.get('rating') is None:
            changes.pop('rating', None)

        previous_rating = review.rating
        for field_name, value in changes.items():
            setattr(review, field_name, value)
        db.flush()

        if 'rating' in changes and changes['rating'] != previous_rating:
            rating_aggregator.on_review_rating_changed(db, review.scholarship_id, previous_rating, review.rating)

        db.commit()
        db.refresh(review)

        return to_responses(db, [review])[0]
    except SQLAlchemyError as exc:
        raise database_unavailable(db) from exc


@router.delete('/reviews/{review_id}', status_code=status.HTTP_204_NO_CONTENT)
def delete_review(
    review_id: int,
    caller: Caller = Depends(require_access(AUTHENTICATED)),
    db: Session = Depends(get_db),
):
    try:
        review = get_review_or_404(db, review_id)
        ensure_owner_or_staff(caller, review.email, db)

        scholarship_id, removed_rating = review.scholarship_id, review.rating
        db.delete(review)
        db.flush()
        rating_aggregator.on_review_deleted(db, scholarship_id, removed_rating)
        db.commit()
    except SQLAlchemyError as exc:
        raise database_unavailable(db) from exc
