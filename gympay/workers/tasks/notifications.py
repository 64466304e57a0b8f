"""
Decision emails for bank transfer payments.
Delivery is best-effort: failures are retried a few times, then logged and dropped.
"""
import logging
from datetime import datetime, timezone

from sqlalchemy.orm import Session

from gympay.core.celery_app import celery_app
from gympay.db.session import SessionLocal
from gympay.models.bank_transfer import BankTransferPayment
from gympay.models.membership import Membership
from gympay.models.user import User
from gympay.services.notifications import templates
from gympay.services.notifications.email import EmailClient, EmailDeliveryError

logger = logging.getLogger("notifications")

MAX_RETRIES = 3
RETRY_DELAY_SECONDS = 60


@celery_app.task(
    bind=True,
    name="gympay.workers.tasks.notifications.send_bank_transfer_decision_email",
    max_retries=MAX_RETRIES,
)
def send_bank_transfer_decision_email(self, transfer_id: str, decision: str) -> dict:
    """decision: "approved" | "declined"."""
    db: Session = SessionLocal()
    try:
        transfer = db.query(BankTransferPayment).filter(BankTransferPayment.id == transfer_id).one_or_none()
        if not transfer:
            logger.warning("email_transfer_not_found", extra={"transfer_id": transfer_id})
            return {"sent": False, "error": "transfer_not_found"}
        user = db.query(User).filter(User.id == transfer.user_id).one_or_none()
        if not user or not user.email:
            logger.info("email_skipped_no_address", extra={"transfer_id": transfer_id, "user_id": transfer.user_id})
            return {"sent": False, "error": "no_email"}
        membership = db.query(Membership).filter(Membership.id == transfer.membership_id).one_or_none()

        render = templates.bank_transfer_approved if decision == "approved" else templates.bank_transfer_declined
        message = render(
            user_name=user.name or "Customer",
            membership_name=membership.plan_name if membership else "Membership",
            amount=transfer.amount,
            currency=transfer.currency,
            reference=transfer.transfer_id,
            decided_at=transfer.processed_at or datetime.now(timezone.utc),
            admin_notes=transfer.admin_notes,
        )
        try:
            with EmailClient() as email:
                email.send(
                    to=user.email,
                    subject=message.subject,
                    html=message.html,
                    text=message.text,
                    template=f"bank_transfer_{decision}",
                )
        except EmailDeliveryError as e:
            if self.request.retries < MAX_RETRIES:
                raise self.retry(exc=e, countdown=RETRY_DELAY_SECONDS)
            logger.error(
                "email_delivery_gave_up",
                extra={"transfer_id": transfer_id, "user_id": user.id, "error": str(e)},
            )
            return {"sent": False, "error": str(e)}

        logger.info("bank_transfer_email_sent", extra={"transfer_id": transfer_id, "status": decision})
        return {"sent": True}
    finally:
        db.close()
