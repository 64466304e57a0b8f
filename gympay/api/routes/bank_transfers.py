"""
Bank transfer payments: receipt upload and submission (members), review (admins).
"""
import logging
import math
from decimal import Decimal

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from sqlalchemy.orm import Session

from gympay.core.errors import ValidationError
from gympay.db.session import get_db
from gympay.schemas.admin import DecisionIn, envelope
from gympay.schemas.bank_transfers import BankTransferOut, BankTransferSettingsUpdate
from gympay.services.auth.admin import get_admin_id, require_admin
from gympay.services.bank_transfer.service import BankTransferService
from gympay.services.bank_transfer.settings_service import BankTransferSettingsService
from gympay.storage.base import Storage
from gympay.storage.local import LocalStorage

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/payments/bank-transfer", tags=["bank-transfer"])


def get_storage() -> Storage:
    return LocalStorage()


def _out(transfer) -> dict:
    return BankTransferOut.model_validate(transfer).model_dump(mode="json")


def _read_receipt(receipt: UploadFile | None) -> tuple[str, str | None, bytes]:
    if receipt is None or not receipt.filename:
        raise ValidationError("No file uploaded")
    return receipt.filename, receipt.content_type, receipt.file.read()


@router.post("/upload")
def upload_receipt(
    receipt: UploadFile | None = File(default=None),
    user_id: str = Form(default="anonymous"),
    storage: Storage = Depends(get_storage),
):
    filename, content_type, content = _read_receipt(receipt)
    url = storage.save_receipt(user_id, filename, content_type, content)
    return envelope({"receipt_url": url, "filename": url.rsplit("/", 1)[-1]}, "Receipt uploaded successfully")


@router.post("", status_code=201)
def submit_bank_transfer(
    user_id: str = Form(..., min_length=1),
    membership_id: str = Form(..., min_length=1),
    amount: Decimal = Form(..., gt=0),
    currency: str | None = Form(default=None),
    notes: str | None = Form(default=None),
    receipt: UploadFile | None = File(default=None),
    db: Session = Depends(get_db),
    storage: Storage = Depends(get_storage),
):
    filename, content_type, content = _read_receipt(receipt)
    url = storage.save_receipt(user_id, filename, content_type, content)
    try:
        transfer = BankTransferService(db).submit(
            user_id=user_id,
            membership_id=membership_id,
            amount=amount,
            receipt_image_url=url,
            currency=currency,
            notes=notes,
        )
    except Exception:
        storage.delete(url)
        raise
    return envelope(_out(transfer), "Bank transfer payment submitted successfully")


@router.get("/my-payments")
def my_bank_transfers(user_id: str = Query(..., min_length=1), db: Session = Depends(get_db)):
    rows = BankTransferService(db).list_for_user(user_id)
    return envelope([_out(t) for t in rows])


@router.get("/settings")
def get_bank_settings(db: Session = Depends(get_db)):
    """Receiving account shown to members before they transfer."""
    return envelope(BankTransferSettingsService(db).as_dict())


# ----------------------------------------------------------------------
# Admin
# ----------------------------------------------------------------------


@router.get("/pending", dependencies=[Depends(require_admin)])
def pending_bank_transfers(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
):
    rows, total = BankTransferService(db).list_pending(page=page, limit=limit)
    return envelope(
        {
            "items": [_out(t) for t in rows],
            "total": total,
            "page": page,
            "limit": limit,
            "pages": math.ceil(total / limit) if total else 0,
        }
    )


@router.put("/settings", dependencies=[Depends(require_admin)])
def update_bank_settings(
    body: BankTransferSettingsUpdate,
    db: Session = Depends(get_db),
    admin_id: str = Depends(get_admin_id),
):
    data = BankTransferSettingsService(db).update(body.model_dump(exclude_unset=True))
    db.commit()
    logger.info("bank_transfer_settings_updated", extra={"admin_id": admin_id})
    return envelope(data, "Bank transfer settings updated")


@router.put("/{transfer_pk}/approve", dependencies=[Depends(require_admin)])
def approve_bank_transfer(
    transfer_pk: str,
    body: DecisionIn | None = None,
    db: Session = Depends(get_db),
    admin_id: str = Depends(get_admin_id),
):
    transfer = BankTransferService(db).approve(transfer_pk, admin_id, body.admin_notes if body else None)
    return envelope(_out(transfer), "Bank transfer payment approved successfully")


@router.put("/{transfer_pk}/decline", dependencies=[Depends(require_admin)])
def decline_bank_transfer(
    transfer_pk: str,
    body: DecisionIn | None = None,
    db: Session = Depends(get_db),
    admin_id: str = Depends(get_admin_id),
):
    transfer = BankTransferService(db).decline(transfer_pk, admin_id, body.admin_notes if body else None)
    return envelope(_out(transfer), "Bank transfer payment declined")


@router.delete("/{transfer_pk}", dependencies=[Depends(require_admin)])
def delete_bank_transfer(
    transfer_pk: str,
    db: Session = Depends(get_db),
    admin_id: str = Depends(get_admin_id),
    storage: Storage = Depends(get_storage),
):
    receipt_url = BankTransferService(db).delete(transfer_pk, admin_id)
    storage.delete(receipt_url)
    return envelope(message="Bank transfer payment deleted successfully")
