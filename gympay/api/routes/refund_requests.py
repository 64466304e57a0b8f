"""
Refund requests: members file them against completed payments, admins decide.
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from gympay.db.session import get_db
from gympay.schemas.admin import DecisionIn, envelope
from gympay.schemas.refunds import RefundRequestIn, RefundRequestOut, RefundRequestUpdate
from gympay.services.auth.admin import get_admin_id, require_admin
from gympay.services.refunds.service import RefundService

router = APIRouter(prefix="/api/v1/refund-requests", tags=["refund-requests"])


def _out(request) -> dict:
    return RefundRequestOut.model_validate(request).model_dump(mode="json")


@router.post("", status_code=201)
def create_refund_request(body: RefundRequestIn, db: Session = Depends(get_db)):
    request = RefundService(db).create(
        user_id=body.user_id,
        payment_id=body.payment_id,
        requested_amount=body.requested_amount,
        notes=body.notes,
        reason=body.reason,
    )
    return envelope(_out(request), "Refund request submitted successfully")


@router.get("", dependencies=[Depends(require_admin)])
def list_refund_requests(status: str | None = Query(None), db: Session = Depends(get_db)):
    rows = RefundService(db).list_requests(status=status)
    return envelope([_out(r) for r in rows])


@router.get("/count", dependencies=[Depends(require_admin)])
def pending_refund_requests_count(db: Session = Depends(get_db)):
    return envelope({"count": RefundService(db).count_pending()})


@router.get("/user/{user_id}")
def user_refund_requests(user_id: str, db: Session = Depends(get_db)):
    rows = RefundService(db).list_for_user(user_id)
    return envelope([_out(r) for r in rows])


@router.get("/{request_pk}")
def get_refund_request(request_pk: str, db: Session = Depends(get_db)):
    return envelope(_out(RefundService(db).get_or_404(request_pk)))


@router.put("/{request_pk}")
def update_refund_request(request_pk: str, body: RefundRequestUpdate, db: Session = Depends(get_db)):
    request = RefundService(db).update(request_pk, body.model_dump(exclude_unset=True))
    return envelope(_out(request), "Refund request updated successfully")


@router.delete("/{request_pk}", dependencies=[Depends(require_admin)])
def delete_refund_request(request_pk: str, db: Session = Depends(get_db), admin_id: str = Depends(get_admin_id)):
    RefundService(db).delete(request_pk, admin_id)
    return envelope(message="Refund request deleted successfully")


@router.put("/{request_pk}/approve", dependencies=[Depends(require_admin)])
def approve_refund_request(
    request_pk: str,
    body: DecisionIn | None = None,
    db: Session = Depends(get_db),
    admin_id: str = Depends(get_admin_id),
):
    request = RefundService(db).approve(request_pk, admin_id, body.admin_notes if body else None)
    return envelope(_out(request), "Refund request approved successfully")


@router.put("/{request_pk}/decline", dependencies=[Depends(require_admin)])
def decline_refund_request(
    request_pk: str,
    body: DecisionIn | None = None,
    db: Session = Depends(get_db),
    admin_id: str = Depends(get_admin_id),
):
    request = RefundService(db).decline(request_pk, admin_id, body.admin_notes if body else None)
    return envelope(_out(request), "Refund request declined")
