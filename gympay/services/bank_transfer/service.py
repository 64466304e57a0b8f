"""
BankTransferService: membership payments by bank transfer.

Flow: member uploads a receipt and submits (pending) -> admin approves or declines.
Approval records a completed Payment and activates the membership in the same
transaction. The status switch is a conditional UPDATE on status='pending', so
of two admins deciding the same transfer exactly one wins; the other gets 409.
Decision emails are enqueued after commit and never undo the decision.
"""
import logging
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import update
from sqlalchemy.orm import Session

from gympay.core.config import settings
from gympay.core.errors import ConflictError, NotFoundError, ValidationError
from gympay.models.bank_transfer import BankTransferPayment
from gympay.services.audit.service import AuditService
from gympay.services.bank_transfer.settings_service import BankTransferSettingsService
from gympay.services.memberships.service import MembershipService
from gympay.services.payments.service import PaymentService
from gympay.utils.metrics import bank_transfers_total

logger = logging.getLogger(__name__)


class BankTransferService:
    def __init__(self, db: Session):
        self.db = db
        self.audit = AuditService(db)

    # ------------------------------------------------------------------
    # Member side
    # ------------------------------------------------------------------

    def submit(
        self,
        user_id: str,
        membership_id: str,
        amount: Decimal,
        receipt_image_url: str,
        currency: str | None = None,
        notes: str | None = None,
    ) -> BankTransferPayment:
        if amount <= 0:
            raise ValidationError("Amount must be greater than 0")
        if not receipt_image_url:
            raise ValidationError("No file uploaded")

        duplicate = (
            self.db.query(BankTransferPayment.id)
            .filter(
                BankTransferPayment.user_id == user_id,
                BankTransferPayment.membership_id == membership_id,
                BankTransferPayment.status == "pending",
            )
            .first()
        )
        if duplicate:
            raise ConflictError("You already have a pending bank transfer for this membership")

        bank = BankTransferSettingsService(self.db).get_effective()
        transfer = BankTransferPayment(
            user_id=user_id,
            membership_id=membership_id,
            amount=amount,
            currency=currency or settings.default_currency,
            receipt_image_url=receipt_image_url,
            status="pending",
            bank_account_number=bank["account_number"],
            bank_name=bank["bank_name"],
            bank_account_holder=bank["account_holder"],
            notes=notes,
        )
        self.db.add(transfer)
        self.db.commit()
        self.db.refresh(transfer)
        bank_transfers_total.labels(status="pending").inc()
        logger.info(
            "bank_transfer_submitted",
            extra={"transfer_id": transfer.id, "user_id": user_id, "membership_id": membership_id, "amount": amount},
        )
        return transfer

    def list_for_user(self, user_id: str) -> list[BankTransferPayment]:
        return (
            self.db.query(BankTransferPayment)
            .filter(BankTransferPayment.user_id == user_id)
            .order_by(BankTransferPayment.created_at.desc())
            .all()
        )

    # ------------------------------------------------------------------
    # Admin side
    # ------------------------------------------------------------------

    def get(self, transfer_pk: str) -> BankTransferPayment | None:
        return self.db.query(BankTransferPayment).filter(BankTransferPayment.id == transfer_pk).one_or_none()

    def get_or_404(self, transfer_pk: str) -> BankTransferPayment:
        transfer = self.get(transfer_pk)
        if not transfer:
            raise NotFoundError("Bank transfer payment not found")
        return transfer

    def list_pending(self, page: int = 1, limit: int = 10) -> tuple[list[BankTransferPayment], int]:
        q = self.db.query(BankTransferPayment).filter(BankTransferPayment.status == "pending")
        total = q.count()
        rows = (
            q.order_by(BankTransferPayment.created_at.asc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return rows, total

    def _claim(self, transfer_pk: str, new_status: str, admin_id: str, admin_notes: str | None) -> BankTransferPayment:
        """pending -> new_status, or raise 404/409. Exactly one concurrent caller succeeds."""
        result = self.db.execute(
            update(BankTransferPayment)
            .where(BankTransferPayment.id == transfer_pk, BankTransferPayment.status == "pending")
            .values(
                status=new_status,
                processed_by=admin_id,
                processed_at=datetime.now(timezone.utc),
                admin_notes=admin_notes,
            )
        )
        if result.rowcount == 0:
            self.db.rollback()
            existing = self.get(transfer_pk)
            if not existing:
                raise NotFoundError("Bank transfer payment not found")
            raise ConflictError(f"Bank transfer payment is not in pending status (current: {existing.status})")
        return (
            self.db.query(BankTransferPayment)
            .filter(BankTransferPayment.id == transfer_pk)
            .populate_existing()
            .one()
        )

    def approve(self, transfer_pk: str, admin_id: str, admin_notes: str | None = None) -> BankTransferPayment:
        transfer = self._claim(transfer_pk, "approved", admin_id, admin_notes)
        try:
            payment = PaymentService(self.db).create_completed(
                transaction_id=transfer.transfer_id,
                user_id=transfer.user_id,
                amount=transfer.amount,
                currency=transfer.currency,
                type="membership",
                method="bank-transfer",
                related_id=transfer.membership_id,
                description=f"Membership payment by bank transfer {transfer.transfer_id}",
            )
            transfer.payment_id = payment.id
            self.db.add(transfer)
            MembershipService(self.db).activate(transfer.membership_id, payment.transaction_id)
            self.audit.log(
                actor_type="admin",
                actor_id=admin_id,
                action="bank_transfer_approved",
                entity_type="bank_transfer",
                entity_id=transfer.id,
                payload={"payment_id": payment.id, "amount": str(transfer.amount), "admin_notes": admin_notes},
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(transfer)
        bank_transfers_total.labels(status="approved").inc()
        logger.info(
            "bank_transfer_approved",
            extra={"transfer_id": transfer.id, "payment_id": transfer.payment_id, "admin_id": admin_id},
        )
        self._enqueue_decision_email(transfer.id, "approved")
        return transfer

    def decline(self, transfer_pk: str, admin_id: str, admin_notes: str | None = None) -> BankTransferPayment:
        transfer = self._claim(transfer_pk, "declined", admin_id, admin_notes)
        self.audit.log(
            actor_type="admin",
            actor_id=admin_id,
            action="bank_transfer_declined",
            entity_type="bank_transfer",
            entity_id=transfer.id,
            payload={"admin_notes": admin_notes},
        )
        self.db.commit()
        self.db.refresh(transfer)
        bank_transfers_total.labels(status="declined").inc()
        logger.info("bank_transfer_declined", extra={"transfer_id": transfer.id, "admin_id": admin_id})
        self._enqueue_decision_email(transfer.id, "declined")
        return transfer

    def delete(self, transfer_pk: str, admin_id: str) -> str:
        """Remove the record; returns its receipt URL so the caller can drop the file."""
        transfer = self.get_or_404(transfer_pk)
        receipt_url = transfer.receipt_image_url
        self.audit.log(
            actor_type="admin",
            actor_id=admin_id,
            action="bank_transfer_deleted",
            entity_type="bank_transfer",
            entity_id=transfer.id,
            payload={"status": transfer.status, "receipt_image_url": transfer.receipt_image_url},
        )
        self.db.delete(transfer)
        self.db.commit()
        logger.info("bank_transfer_deleted", extra={"transfer_id": transfer_pk, "admin_id": admin_id})
        return receipt_url

    def _enqueue_decision_email(self, transfer_pk: str, decision: str) -> None:
        try:
            from gympay.workers.tasks.notifications import send_bank_transfer_decision_email

            send_bank_transfer_decision_email.delay(transfer_pk, decision)
        except Exception:
            logger.exception("bank_transfer_email_enqueue_failed", extra={"transfer_id": transfer_pk, "status": decision})
