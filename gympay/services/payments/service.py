"""
PaymentService: the payment record store.

Responsibilities:
- Create pending card payments at checkout initiation
- Create completed payments for approved bank transfers
- Lookups by id / transaction id, payment history per user
- Row-locked reads for callers that mutate status or refunded_amount
"""
import logging
from decimal import Decimal

from sqlalchemy.orm import Session

from gympay.core.config import settings
from gympay.core.errors import NotFoundError, ValidationError
from gympay.models.payment import PAYMENT_TYPES, Payment

logger = logging.getLogger(__name__)


class PaymentService:
    def __init__(self, db: Session):
        self.db = db

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def create_pending(
        self,
        transaction_id: str,
        user_id: str,
        amount: Decimal,
        type: str,
        related_id: str | None,
        description: str,
        currency: str | None = None,
        method: str = "card",
    ) -> Payment:
        if amount <= 0:
            raise ValidationError("Amount must be greater than 0")
        if type not in PAYMENT_TYPES:
            raise ValidationError("Invalid payment type")
        if not related_id and type != "other":
            raise ValidationError("related_id is required for this payment type")

        payment = Payment(
            transaction_id=transaction_id,
            user_id=user_id,
            amount=amount,
            currency=currency or settings.default_currency,
            type=type,
            method=method,
            status="pending",
            refunded_amount=Decimal("0"),
            related_id=related_id or None,
            description=description,
        )
        self.db.add(payment)
        self.db.flush()
        logger.info(
            "payment_created",
            extra={
                "payment_id": payment.id,
                "transaction_id": transaction_id,
                "user_id": user_id,
                "amount": amount,
                "status": "pending",
            },
        )
        return payment

    def create_completed(
        self,
        transaction_id: str,
        user_id: str,
        amount: Decimal,
        currency: str,
        type: str,
        method: str,
        related_id: str | None,
        description: str,
    ) -> Payment:
        """Record money that was already received (bank transfer approved by an admin)."""
        payment = Payment(
            transaction_id=transaction_id,
            user_id=user_id,
            amount=amount,
            currency=currency,
            type=type,
            method=method,
            status="completed",
            refunded_amount=Decimal("0"),
            related_id=related_id,
            description=description,
        )
        self.db.add(payment)
        self.db.flush()
        logger.info(
            "payment_completed",
            extra={
                "payment_id": payment.id,
                "transaction_id": transaction_id,
                "user_id": user_id,
                "amount": amount,
            },
        )
        return payment

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get(self, payment_id: str) -> Payment | None:
        return self.db.query(Payment).filter(Payment.id == payment_id).one_or_none()

    def get_or_404(self, payment_id: str) -> Payment:
        payment = self.get(payment_id)
        if not payment:
            raise NotFoundError("Payment not found")
        return payment

    def get_by_transaction_id(self, transaction_id: str) -> Payment | None:
        return (
            self.db.query(Payment)
            .filter(Payment.transaction_id == transaction_id)
            .one_or_none()
        )

    def lock(self, payment_id: str) -> Payment | None:
        """SELECT ... FOR UPDATE on the payment row (no-op lock on SQLite)."""
        return (
            self.db.query(Payment)
            .filter(Payment.id == payment_id)
            .with_for_update()
            .populate_existing()
            .one_or_none()
        )

    def lock_by_transaction_id(self, transaction_id: str) -> Payment | None:
        return (
            self.db.query(Payment)
            .filter(Payment.transaction_id == transaction_id)
            .with_for_update()
            .populate_existing()
            .one_or_none()
        )

    def get_user_payments(self, user_id: str, limit: int = 50) -> list[Payment]:
        return (
            self.db.query(Payment)
            .filter(Payment.user_id == user_id)
            .order_by(Payment.created_at.desc())
            .limit(limit)
            .all()
        )
