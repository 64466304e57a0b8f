"""
PayHere gateway routes: checkout initiation, payment notifications, status lookup.
"""
import json
import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import PlainTextResponse
from sqlalchemy.orm import Session

from gympay.core.errors import ValidationError
from gympay.db.session import get_db
from gympay.schemas.admin import envelope
from gympay.schemas.payments import CheckoutOut, PayHereCheckoutIn, PaymentStatusOut, notification_out
from gympay.services.payhere.service import GatewayService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/gateways", tags=["gateways"])


@router.post("/payhere/process")
def payhere_process(body: PayHereCheckoutIn, db: Session = Depends(get_db)):
    session = GatewayService(db).initiate_checkout(
        user_id=body.user_id,
        amount=body.amount,
        type=body.type,
        related_id=body.related_id,
        description=body.description,
        customer_first_name=body.customer_first_name,
        customer_last_name=body.customer_last_name,
        customer_email=body.customer_email,
        customer_phone=body.customer_phone,
        customer_address=body.customer_address,
        customer_city=body.customer_city,
        currency=body.currency,
    )
    data = CheckoutOut(
        payment_id=session.payment.id,
        order_id=session.order_id,
        checkout_url=session.checkout_url,
        payment_data=session.payment_data,
        payment_form=session.payment_form,
    )
    return envelope(data.model_dump(), "PayHere payment initiated successfully")


async def _notification_payload(request: Request) -> dict:
    """PayHere posts form-encoded data; JSON is accepted for manual replays."""
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("application/json"):
        try:
            data = await request.json()
        except json.JSONDecodeError:
            raise ValidationError("Invalid webhook data")
        if not isinstance(data, dict):
            raise ValidationError("Invalid webhook data")
        return data
    form = await request.form()
    return {k: v for k, v in form.items() if isinstance(v, str)}


@router.post("/webhook/payhere", response_class=PlainTextResponse)
def payhere_webhook(data: dict = Depends(_notification_payload), db: Session = Depends(get_db)):
    logger.info("webhook_received", extra={"transaction_id": data.get("order_id"), "status": data.get("status_code")})
    GatewayService(db).handle_notification(data)
    return PlainTextResponse("OK")


@router.post("/dev/complete-payment/{transaction_id}")
def dev_complete_payment(transaction_id: str, db: Session = Depends(get_db)):
    result = GatewayService(db).complete_for_development(transaction_id)
    message = "Payment already processed" if result.already_processed else "Payment completed successfully"
    return envelope(notification_out(result.payment, result.already_processed, result.membership), message)


@router.get("/status/{transaction_id}")
def payment_status(transaction_id: str, db: Session = Depends(get_db)):
    payment = GatewayService(db).get_status(transaction_id)
    return envelope(PaymentStatusOut.model_validate(payment).model_dump(mode="json"))


@router.get("/payhere/test")
def payhere_test():
    return envelope({"config": GatewayService.config_status()}, "PayHere gateway is configured and ready")
