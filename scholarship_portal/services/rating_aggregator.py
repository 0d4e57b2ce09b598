"""Incremental review-rating aggregate for scholarships.

The aggregate lives on the scholarship row as ``rating_sum`` and
``review_count`` with the mean stored alongside in ``rating``. Every change
is one ``UPDATE`` whose right-hand sides read the pre-update row, so two
reviews landing at the same time cannot overwrite each other's increment.

None of these functions commit; callers commit the review write and the
aggregate change together.
"""

import logging
from dataclasses import dataclass

from sqlalchemy import case, select, update
from sqlalchemy.orm import Session

from scholarship_portal.models.scholarship import Scholarship

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RatingSnapshot:
    rating: float
    review_count: int


def _apply(db: Session, scholarship_id: int, values: dict, action: str) -> RatingSnapshot | None:
    statement = (
        update(Scholarship)
        .where(Scholarship.id == scholarship_id)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    result = db.execute(statement)

    if result.rowcount == 0:
        logger.warning(
            'Skipping rating %s for missing scholarship %s (orphaned review).',
            action,
            scholarship_id,
        )
        return None

    return read_rating(db, scholarship_id)


def read_rating(db: Session, scholarship_id: int) -> RatingSnapshot | None:
    row = db.execute(
        select(Scholarship.rating, Scholarship.review_count).where(Scholarship.id == scholarship_id)
    ).first()
    if row is None:
        return None
    return RatingSnapshot(rating=float(row.rating or 0), review_count=int(row.review_count or 0))


def on_review_created(db: Session, scholarship_id: int, new_rating: float) -> RatingSnapshot | None:
    new_rating = float(new_rating)
    return _apply(
        db,
        scholarship_id,
        {
            'rating_sum': Scholarship.rating_sum + new_rating,
            'review_count': Scholarship.review_count + 1,
            'rating': (Scholarship.rating_sum + new_rating) / (Scholarship.review_count + 1),
        },
        'insert',
    )


def on_review_deleted(db: Session, scholarship_id: int, removed_rating: float) -> RatingSnapshot | None:
    """Remove one rating; the last review removed resets the aggregate to zero."""
    removed_rating = float(removed_rating)
    has_remaining = Scholarship.review_count > 1
    return _apply(
        db,
        scholarship_id,
        {
            'rating_sum': case((has_remaining, Scholarship.rating_sum - removed_rating), else_=0.0),
            'review_count': case((has_remaining, Scholarship.review_count - 1), else_=0),
            'rating': case(
                (has_remaining, (Scholarship.rating_sum - removed_rating) / (Scholarship.review_count - 1)),
                else_=0.0,
            ),
        },
        'delete',
    )


def on_review_rating_changed(
    db: Session,
    scholarship_id: int,
    old_rating: float,
    new_rating: float,
) -> RatingSnapshot | None:
    delta = float(new_rating) - float(old_rating)
    if delta == 0:
        return read_rating(db, scholarship_id)

    has_reviews = Scholarship.review_count > 0
    return _apply(
        db,
        scholarship_id,
        {
            'rating_sum': case((has_reviews, Scholarship.rating_sum + delta), else_=0.0),
            'rating': case(
                (has_reviews, (Scholarship.rating_sum + delta) / Scholarship.review_count),
                else_=0.0,
            ),
        },
        'update',
    )
