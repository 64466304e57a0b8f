"""
Payment lookups: a single payment by id and a member's payment history.
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from gympay.db.session import get_db
from gympay.schemas.admin import envelope
from gympay.schemas.payments import PaymentOut
from gympay.services.payments.service import PaymentService

router = APIRouter(prefix="/api/v1/payments", tags=["payments"])


def _out(payment) -> dict:
    return PaymentOut.model_validate(payment).model_dump(mode="json")


@router.get("/user/{user_id}")
def user_payments(user_id: str, limit: int = Query(50, ge=1, le=200), db: Session = Depends(get_db)):
    rows = PaymentService(db).get_user_payments(user_id, limit=limit)
    return envelope([_out(p) for p in rows])


@router.get("/{payment_id}")
def get_payment(payment_id: str, db: Session = Depends(get_db)):
    return envelope(_out(PaymentService(db).get_or_404(payment_id)))
