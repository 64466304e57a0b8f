"""
GatewayService: PayHere checkout initiation and notification handling.

A notification moves a payment out of pending at most once. The payment row is
locked while the status is checked and changed, so concurrent redeliveries
serialize and the loser sees a terminal status and becomes a no-op.
"""
import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any

from sqlalchemy.orm import Session

from gympay.core.config import settings
from gympay.core.errors import ForbiddenError, NotFoundError, ValidationError
from gympay.models.membership import Membership
from gympay.models.payment import Payment
from gympay.services.audit.service import AuditService
from gympay.services.idempotency import IdempotencyStore
from gympay.services.memberships.service import MembershipService
from gympay.services.payhere import client
from gympay.services.payments.service import PaymentService
from gympay.utils.metrics import (
    gateway_notifications_total,
    payment_transitions_total,
    payments_initiated_total,
)

logger = logging.getLogger(__name__)


@dataclass
class CheckoutSession:
    payment: Payment
    order_id: str
    checkout_url: str
    payment_data: dict[str, str]
    payment_form: str


@dataclass
class NotificationResult:
    payment: Payment
    already_processed: bool = False
    membership: Membership | None = None


class GatewayService:
    def __init__(self, db: Session, idempotency: IdempotencyStore | None = None):
        self.db = db
        self.payments = PaymentService(db)
        self.memberships = MembershipService(db)
        self.audit = AuditService(db)
        self._idempotency = idempotency

    @property
    def idempotency(self) -> IdempotencyStore:
        if self._idempotency is None:
            self._idempotency = IdempotencyStore()
        return self._idempotency

    # ------------------------------------------------------------------
    # Initiation
    # ------------------------------------------------------------------

    def initiate_checkout(
        self,
        user_id: str,
        amount: Decimal,
        type: str,
        related_id: str | None,
        description: str,
        customer_first_name: str,
        customer_last_name: str,
        customer_email: str,
        customer_phone: str,
        customer_address: str,
        customer_city: str,
        currency: str | None = None,
    ) -> CheckoutSession:
        currency = currency or settings.default_currency
        order_id = client.generate_order_id("PAY")
        payment = self.payments.create_pending(
            transaction_id=order_id,
            user_id=user_id,
            amount=amount,
            type=type,
            related_id=related_id,
            description=description,
            currency=currency,
            method="card",
        )
        fields = client.build_checkout_fields(
            order_id=order_id,
            amount=amount,
            currency=currency,
            items=description,
            first_name=customer_first_name,
            last_name=customer_last_name,
            email=customer_email,
            phone=customer_phone,
            address=customer_address,
            city=customer_city,
        )
        url = client.checkout_url()
        self.db.commit()
        self.db.refresh(payment)
        payments_initiated_total.labels(type=type).inc()
        logger.info(
            "checkout_initiated",
            extra={"payment_id": payment.id, "transaction_id": order_id, "user_id": user_id, "amount": amount},
        )
        return CheckoutSession(
            payment=payment,
            order_id=order_id,
            checkout_url=url,
            payment_data=fields,
            payment_form=client.render_checkout_form(fields, url),
        )

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    def handle_notification(self, data: dict[str, Any]) -> NotificationResult:
        missing = client.missing_notification_fields(data)
        if missing:
            gateway_notifications_total.labels(result="rejected").inc()
            raise ValidationError(
                "Invalid webhook data",
                errors=[{"field": f, "message": "Field required"} for f in missing],
            )
        if not client.verify_notification(data):
            gateway_notifications_total.labels(result="rejected").inc()
            logger.warning("webhook_invalid_signature", extra={"transaction_id": data.get("order_id")})
            raise ValidationError("Invalid webhook signature")

        order_id = str(data["order_id"])
        status_code = str(data["status_code"])
        dedup_key = f"payhere:{order_id}:{status_code}:{str(data['md5sig']).upper()}"
        if not self.idempotency.check_and_set(dedup_key):
            payment = self.payments.get_by_transaction_id(order_id)
            if not payment:
                raise NotFoundError("Payment not found")
            gateway_notifications_total.labels(result="duplicate").inc()
            logger.info("webhook_duplicate_delivery", extra={"transaction_id": order_id, "status": payment.status})
            return NotificationResult(payment=payment, already_processed=True)

        try:
            result = self._apply_notification(order_id, status_code, data)
        except Exception:
            self.db.rollback()
            self.idempotency.release(dedup_key)
            raise
        return result

    def _apply_notification(self, order_id: str, status_code: str, data: dict[str, Any]) -> NotificationResult:
        payment = self.payments.lock_by_transaction_id(order_id)
        if not payment:
            gateway_notifications_total.labels(result="not_found").inc()
            logger.warning("webhook_payment_not_found", extra={"transaction_id": order_id})
            raise NotFoundError("Payment not found")

        if payment.is_terminal():
            self.db.rollback()
            gateway_notifications_total.labels(result="duplicate").inc()
            logger.info(
                "webhook_already_processed",
                extra={"payment_id": payment.id, "transaction_id": order_id, "status": payment.status},
            )
            return NotificationResult(payment=payment, already_processed=True)

        try:
            notified_amount = Decimal(str(data["payhere_amount"]))
        except InvalidOperation:
            raise ValidationError("Invalid payhere_amount")
        notified_currency = str(data["payhere_currency"]).upper()
        if notified_amount != Decimal(payment.amount) or notified_currency != (payment.currency or "").upper():
            gateway_notifications_total.labels(result="rejected").inc()
            logger.warning(
                "webhook_amount_mismatch",
                extra={
                    "payment_id": payment.id,
                    "transaction_id": order_id,
                    "amount": str(notified_amount),
                    "error": f"expected {payment.amount} {payment.currency}, got {notified_amount} {notified_currency}",
                },
            )
            raise ValidationError("Payment amount or currency mismatch")

        new_status = client.parse_status_code(status_code)
        if new_status == "pending":
            self.db.rollback()
            gateway_notifications_total.labels(result="applied").inc()
            logger.info("webhook_payment_still_pending", extra={"payment_id": payment.id, "transaction_id": order_id})
            return NotificationResult(payment=payment)

        old_status = payment.status
        payment.status = new_status
        payment.gateway_payment_id = str(data.get("payment_id") or "") or None
        payment.gateway_response = {k: str(v) for k, v in data.items()}
        if new_status == "failed":
            payment.failure_reason = str(data.get("status_message") or f"status_code {status_code}")
        self.db.add(payment)

        membership = None
        if new_status == "completed" and payment.type == "membership" and payment.related_id:
            membership = self.memberships.activate(payment.related_id, payment.transaction_id)

        self.audit.log(
            actor_type="gateway",
            actor_id="payhere",
            action="payment_status_changed",
            entity_type="payment",
            entity_id=payment.id,
            payload={"old_status": old_status, "new_status": new_status, "status_code": status_code},
        )
        self.db.commit()
        self.db.refresh(payment)

        gateway_notifications_total.labels(result="applied").inc()
        payment_transitions_total.labels(status=new_status).inc()
        logger.info(
            "payment_completed" if new_status == "completed" else "payment_failed",
            extra={
                "payment_id": payment.id,
                "transaction_id": order_id,
                "old_status": old_status,
                "new_status": new_status,
                "membership_id": membership.id if membership else None,
            },
        )
        return NotificationResult(payment=payment, membership=membership)

    def complete_for_development(self, transaction_id: str) -> NotificationResult:
        """Simulate a successful gateway notification. Refused in production."""
        if settings.is_production:
            raise ForbiddenError("Development endpoint is not available in production")
        payment = self.payments.get_by_transaction_id(transaction_id)
        if not payment:
            raise NotFoundError("Payment not found")
        data = client.build_success_notification(
            order_id=payment.transaction_id,
            amount=payment.amount,
            currency=payment.currency,
        )
        logger.info("dev_payment_completion", extra={"payment_id": payment.id, "transaction_id": transaction_id})
        return self.handle_notification(data)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_status(self, transaction_id: str) -> Payment:
        payment = self.payments.get_by_transaction_id(transaction_id)
        if not payment:
            raise NotFoundError("Payment not found")
        return payment

    @staticmethod
    def config_status() -> dict[str, str]:
        return {
            "merchant_id": "***configured***" if settings.payhere_merchant_id else "not configured",
            "merchant_secret": "***configured***" if settings.payhere_merchant_secret else "not configured",
            "environment": "production" if "sandbox" not in settings.payhere_base_url else "sandbox",
            "checkout_url": client.checkout_url(),
        }
