from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from scholarship_portal.auth.access import AUTHENTICATED, Caller, require_access
from scholarship_portal.core import config
from scholarship_portal.database import database_unavailable, get_db
from scholarship_portal.routes.scholarship_routes import get_scholarship_or_404
from scholarship_portal.services import payments

router = APIRouter(tags=['payments'])


class PaymentIntentRequest(BaseModel):
    scholarship_id: int


class PaymentIntentResponse(BaseModel):
    client_secret: str
    amount: int
    currency: str


@router.post('/create-payment-intent', response_model=PaymentIntentResponse)
def create_payment_intent(
    data: PaymentIntentRequest,
    caller: Caller = Depends(require_access(AUTHENTICATED)),
    db: Session = Depends(get_db),
):
    try:
        scholarship = get_scholarship_or_404(db, data.scholarship_id)
        fees = scholarship.application_fees or 0
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    amount = payments.to_minor_units(fees)
    if amount <= 0:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='This scholarship has no application fee.',
        )

    try:
        client_secret = payments.create_payment_intent(
            amount,
            metadata={'scholarship_id': str(scholarship.id), 'email': caller.email},
        )
    except payments.PaymentError as exc:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail='Payment processor unavailable.',
        ) from exc

    return PaymentIntentResponse(
        client_secret=client_secret,
        amount=amount,
        currency=config.PAYMENT_CURRENCY,
    )
