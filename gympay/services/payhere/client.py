"""
PayHere hosted checkout: request signing, notification verification, form rendering.

Hash formats:
  checkout:     UPPER(MD5(merchant_id + order_id + amount + currency + UPPER(MD5(secret))))
  notification: UPPER(MD5(merchant_id + order_id + payhere_amount + payhere_currency
                          + status_code + UPPER(MD5(secret))))
"""
import hashlib
import hmac
import html
import secrets
import time
from decimal import Decimal
from typing import Any

from gympay.core.config import settings
from gympay.utils.currency import format_amount

CHECKOUT_PATH = "/pay/checkout"

STATUS_SUCCESS = "2"
STATUS_PENDING = "0"
STATUS_CANCELED = "-1"
STATUS_FAILED = "-2"
STATUS_CHARGEDBACK = "-3"

_STATUS_MAP = {
    STATUS_SUCCESS: "completed",
    STATUS_PENDING: "pending",
    STATUS_CANCELED: "failed",
    STATUS_FAILED: "failed",
    STATUS_CHARGEDBACK: "failed",
}

NOTIFICATION_REQUIRED_FIELDS = (
    "merchant_id",
    "order_id",
    "payhere_amount",
    "payhere_currency",
    "status_code",
    "md5sig",
)


def _md5_upper(value: str) -> str:
    return hashlib.md5(value.encode("utf-8")).hexdigest().upper()


def _secret_hash(merchant_secret: str) -> str:
    return _md5_upper(merchant_secret)


def checkout_hash(
    merchant_id: str,
    order_id: str,
    amount: Decimal | str,
    currency: str,
    merchant_secret: str,
) -> str:
    return _md5_upper(
        f"{merchant_id}{order_id}{format_amount(amount)}{currency}{_secret_hash(merchant_secret)}"
    )


def notification_hash(
    merchant_id: str,
    order_id: str,
    payhere_amount: str,
    payhere_currency: str,
    status_code: str,
    merchant_secret: str,
) -> str:
    """Signature PayHere puts in md5sig. Amount is hashed exactly as received."""
    return _md5_upper(
        f"{merchant_id}{order_id}{payhere_amount}{payhere_currency}{status_code}"
        f"{_secret_hash(merchant_secret)}"
    )


def verify_notification(data: dict[str, Any], merchant_secret: str | None = None) -> bool:
    secret = merchant_secret if merchant_secret is not None else settings.payhere_merchant_secret
    expected = notification_hash(
        merchant_id=str(data.get("merchant_id", "")),
        order_id=str(data.get("order_id", "")),
        payhere_amount=str(data.get("payhere_amount", "")),
        payhere_currency=str(data.get("payhere_currency", "")),
        status_code=str(data.get("status_code", "")),
        merchant_secret=secret,
    )
    received = str(data.get("md5sig", "")).upper()
    return hmac.compare_digest(expected.encode("utf-8"), received.encode("utf-8"))


def missing_notification_fields(data: dict[str, Any]) -> list[str]:
    return [f for f in NOTIFICATION_REQUIRED_FIELDS if not str(data.get(f, "") or "").strip()]


def parse_status_code(status_code: str | int) -> str:
    """Map a PayHere status_code to a payment status; unknown codes are failures."""
    return _STATUS_MAP.get(str(status_code).strip(), "failed")


def generate_order_id(prefix: str = "PAY") -> str:
    """PREFIX_<epoch ms>_<random 0-9999>."""
    return f"{prefix}_{int(time.time() * 1000)}_{secrets.randbelow(10000)}"


def checkout_url() -> str:
    return settings.payhere_base_url.rstrip("/") + CHECKOUT_PATH


def build_checkout_fields(
    order_id: str,
    amount: Decimal,
    currency: str,
    items: str,
    first_name: str,
    last_name: str,
    email: str,
    phone: str,
    address: str,
    city: str,
) -> dict[str, str]:
    """Hidden fields for the hosted checkout form, in the order PayHere documents them."""
    return {
        "merchant_id": settings.payhere_merchant_id,
        "return_url": settings.effective_return_url,
        "cancel_url": settings.effective_cancel_url,
        "notify_url": settings.effective_notify_url,
        "order_id": order_id,
        "items": items,
        "currency": currency,
        "amount": format_amount(amount),
        "first_name": first_name,
        "last_name": last_name,
        "email": email,
        "phone": phone,
        "address": address,
        "city": city,
        "country": settings.payhere_country,
        "hash": checkout_hash(
            settings.payhere_merchant_id,
            order_id,
            amount,
            currency,
            settings.payhere_merchant_secret,
        ),
    }


def render_checkout_form(fields: dict[str, str], action_url: str) -> str:
    """Auto-submitting HTML form; the browser posts it to the gateway."""
    inputs = "\n    ".join(
        f'<input type="hidden" name="{html.escape(k, quote=True)}" value="{html.escape(str(v), quote=True)}">'
        for k, v in fields.items()
    )
    return (
        f'<form method="post" action="{html.escape(action_url, quote=True)}" id="payhere-form">\n'
        f"    {inputs}\n"
        "</form>\n"
        "<script>\n"
        "    document.getElementById('payhere-form').submit();\n"
        "</script>"
    )


def build_success_notification(
    order_id: str,
    amount: Decimal,
    currency: str,
    payment_id: str | None = None,
) -> dict[str, str]:
    """Correctly signed success notification, used by the development completion endpoint."""
    payhere_amount = format_amount(amount)
    data = {
        "merchant_id": settings.payhere_merchant_id,
        "order_id": order_id,
        "payment_id": payment_id or f"DEV_{int(time.time() * 1000)}",
        "payhere_amount": payhere_amount,
        "payhere_currency": currency,
        "status_code": STATUS_SUCCESS,
        "status_message": "Successfully completed the payment (development)",
        "method": "TEST",
    }
    data["md5sig"] = notification_hash(
        data["merchant_id"],
        order_id,
        payhere_amount,
        currency,
        STATUS_SUCCESS,
        settings.payhere_merchant_secret,
    )
    return data
