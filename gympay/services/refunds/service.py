"""
RefundService: member refund requests against completed payments.

Rules:
- a request needs a completed payment and requested_amount <= amount - refunded_amount
- at most one pending request per payment (row lock + partial unique index)
- approval re-checks both conditions under the payment row lock, then adds the
  amount to payment.refunded_amount; a fully refunded payment becomes "refunded"
- a request leaves pending exactly once (conditional UPDATE on status='pending')
"""
import logging
import secrets
import time
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from gympay.core.errors import ConflictError, NotFoundError, ValidationError
from gympay.models.payment import Payment
from gympay.models.refund_request import REFUND_REASONS, REFUND_REQUEST_STATUSES, RefundRequest
from gympay.services.audit.service import AuditService
from gympay.services.payments.service import PaymentService
from gympay.utils.metrics import refund_amount, refund_requests_total

logger = logging.getLogger(__name__)


def generate_request_id() -> str:
    """RR-<year>-<epoch ms>-<3 digits>."""
    year = datetime.now(timezone.utc).year
    return f"RR-{year}-{int(time.time() * 1000)}-{secrets.randbelow(1000):03d}"


class RefundService:
    def __init__(self, db: Session):
        self.db = db
        self.payments = PaymentService(db)
        self.audit = AuditService(db)

    # ------------------------------------------------------------------
    # Validation helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _check_amount(requested_amount: Decimal, payment: Payment) -> None:
        if requested_amount <= 0:
            raise ValidationError("Requested amount must be greater than 0")
        remaining = payment.refundable_amount
        if requested_amount > remaining:
            raise ValidationError(
                f"Requested amount exceeds refundable amount ({remaining:.2f} {payment.currency})"
            )

    @staticmethod
    def _check_reason(reason: str) -> None:
        if reason not in REFUND_REASONS:
            raise ValidationError("Invalid refund reason")

    def _pending_for_payment(self, payment_id: str, exclude_id: str | None = None) -> RefundRequest | None:
        q = self.db.query(RefundRequest).filter(
            RefundRequest.payment_id == payment_id,
            RefundRequest.status == "pending",
        )
        if exclude_id:
            q = q.filter(RefundRequest.id != exclude_id)
        return q.first()

    # ------------------------------------------------------------------
    # Member side
    # ------------------------------------------------------------------

    def create(
        self,
        user_id: str,
        payment_id: str,
        requested_amount: Decimal,
        notes: str,
        reason: str = "other",
    ) -> RefundRequest:
        if not (notes or "").strip():
            raise ValidationError("Notes are required")
        self._check_reason(reason)

        payment = self.payments.lock(payment_id)
        if not payment:
            raise NotFoundError("Payment not found")
        if payment.status != "completed":
            self.db.rollback()
            raise ConflictError(f"Only completed payments can be refunded (current: {payment.status})")
        try:
            self._check_amount(requested_amount, payment)
        except ValidationError:
            self.db.rollback()
            raise
        if self._pending_for_payment(payment.id):
            self.db.rollback()
            raise ConflictError("A pending refund request already exists for this payment")

        request = RefundRequest(
            request_id=generate_request_id(),
            user_id=user_id,
            payment_id=payment.id,
            requested_amount=requested_amount,
            reason=reason,
            notes=notes.strip(),
            status="pending",
        )
        self.db.add(request)
        try:
            self.db.flush()
        except IntegrityError:
            self.db.rollback()
            logger.warning("refund_request_duplicate_pending", extra={"payment_id": payment_id})
            raise ConflictError("A pending refund request already exists for this payment")
        self.audit.log(
            actor_type="member",
            actor_id=user_id,
            action="refund_request_created",
            entity_type="refund_request",
            entity_id=request.id,
            payload={"payment_id": payment.id, "requested_amount": str(requested_amount), "reason": reason},
        )
        self.db.commit()
        self.db.refresh(request)
        refund_requests_total.labels(status="pending").inc()
        logger.info(
            "refund_request_created",
            extra={
                "refund_request_id": request.id,
                "payment_id": payment.id,
                "user_id": user_id,
                "amount": requested_amount,
            },
        )
        return request

    def update(self, request_pk: str, data: dict[str, Any]) -> RefundRequest:
        """Edit a pending request (amount, reason, notes). Amount is re-validated."""
        request = self.get_or_404(request_pk)
        if request.status != "pending":
            raise ConflictError(f"Only pending refund requests can be updated (current: {request.status})")

        if data.get("reason") is not None:
            self._check_reason(data["reason"])
            request.reason = data["reason"]
        if data.get("notes") is not None:
            if not str(data["notes"]).strip():
                raise ValidationError("Notes are required")
            request.notes = str(data["notes"]).strip()
        if data.get("requested_amount") is not None:
            payment = self.payments.lock(request.payment_id)
            if not payment:
                raise NotFoundError("Payment not found")
            self._check_amount(Decimal(data["requested_amount"]), payment)
            request.requested_amount = Decimal(data["requested_amount"])

        self.db.add(request)
        self.db.commit()
        self.db.refresh(request)
        logger.info("refund_request_updated", extra={"refund_request_id": request.id})
        return request

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get(self, request_pk: str) -> RefundRequest | None:
        return self.db.query(RefundRequest).filter(RefundRequest.id == request_pk).one_or_none()

    def get_or_404(self, request_pk: str) -> RefundRequest:
        request = self.get(request_pk)
        if not request:
            raise NotFoundError("Refund request not found")
        return request

    def list_requests(self, status: str | None = None) -> list[RefundRequest]:
        q = self.db.query(RefundRequest)
        if status:
            if status not in REFUND_REQUEST_STATUSES:
                raise ValidationError("Invalid status filter")
            q = q.filter(RefundRequest.status == status)
        return q.order_by(RefundRequest.created_at.desc()).all()

    def list_for_user(self, user_id: str) -> list[RefundRequest]:
        return (
            self.db.query(RefundRequest)
            .filter(RefundRequest.user_id == user_id)
            .order_by(RefundRequest.created_at.desc())
            .all()
        )

    def count_pending(self) -> int:
        return self.db.query(RefundRequest).filter(RefundRequest.status == "pending").count()

    # ------------------------------------------------------------------
    # Admin decisions
    # ------------------------------------------------------------------

    def _claim(self, request_pk: str, new_status: str, admin_id: str, admin_notes: str | None) -> RefundRequest:
        result = self.db.execute(
            update(RefundRequest)
            .where(RefundRequest.id == request_pk, RefundRequest.status == "pending")
            .values(
                status=new_status,
                admin_notes=admin_notes,
                processed_by=admin_id,
                processed_at=datetime.now(timezone.utc),
            )
        )
        if result.rowcount == 0:
            self.db.rollback()
            existing = self.get(request_pk)
            if not existing:
                raise NotFoundError("Refund request not found")
            raise ConflictError(f"Refund request has already been processed (current: {existing.status})")
        return (
            self.db.query(RefundRequest)
            .filter(RefundRequest.id == request_pk)
            .populate_existing()
            .one()
        )

    def approve(self, request_pk: str, admin_id: str, admin_notes: str | None = None) -> RefundRequest:
        request = self.get_or_404(request_pk)
        payment = self.payments.lock(request.payment_id)
        if not payment:
            self.db.rollback()
            raise NotFoundError("Payment not found")

        request = self._claim(request_pk, "approved", admin_id, admin_notes)
        amount = Decimal(request.requested_amount)
        if payment.status != "completed":
            self.db.rollback()
            raise ConflictError(f"Payment is no longer refundable (current: {payment.status})")
        if amount > payment.refundable_amount:
            self.db.rollback()
            raise ConflictError("Requested amount exceeds the remaining refundable amount")

        old_status = payment.status
        payment.refunded_amount = Decimal(payment.refunded_amount or 0) + amount
        payment.refund_reason = request.notes
        if payment.refunded_amount >= Decimal(payment.amount):
            payment.status = "refunded"
        self.db.add(payment)
        self.audit.log(
            actor_type="admin",
            actor_id=admin_id,
            action="refund_request_approved",
            entity_type="refund_request",
            entity_id=request.id,
            payload={
                "payment_id": payment.id,
                "amount": str(amount),
                "refunded_amount": str(payment.refunded_amount),
                "old_status": old_status,
                "new_status": payment.status,
            },
        )
        self.db.commit()
        self.db.refresh(request)
        refund_requests_total.labels(status="approved").inc()
        refund_amount.observe(float(amount))
        logger.info(
            "refund_request_approved",
            extra={
                "refund_request_id": request.id,
                "payment_id": payment.id,
                "admin_id": admin_id,
                "amount": amount,
                "refunded_amount": payment.refunded_amount,
                "new_status": payment.status,
            },
        )
        return request

    def decline(self, request_pk: str, admin_id: str, admin_notes: str | None = None) -> RefundRequest:
        request = self._claim(request_pk, "declined", admin_id, admin_notes)
        self.audit.log(
            actor_type="admin",
            actor_id=admin_id,
            action="refund_request_declined",
            entity_type="refund_request",
            entity_id=request.id,
            payload={"admin_notes": admin_notes},
        )
        self.db.commit()
        self.db.refresh(request)
        refund_requests_total.labels(status="declined").inc()
        logger.info("refund_request_declined", extra={"refund_request_id": request.id, "admin_id": admin_id})
        return request

    def delete(self, request_pk: str, admin_id: str) -> None:
        request = self.get_or_404(request_pk)
        self.audit.log(
            actor_type="admin",
            actor_id=admin_id,
            action="refund_request_deleted",
            entity_type="refund_request",
            entity_id=request.id,
            payload={"status": request.status, "payment_id": request.payment_id},
        )
        self.db.delete(request)
        self.db.commit()
        logger.info("refund_request_deleted", extra={"refund_request_id": request_pk, "admin_id": admin_id})
