from datetime import datetime
from decimal import Decimal
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

EMAIL_PATTERN = r"^[^\s@]+@[^\s@]+\.[^\s@]+$"


class PayHereCheckoutIn(BaseModel):
    user_id: str = Field(min_length=1)
    amount: Decimal = Field(gt=0, max_digits=12, decimal_places=2)
    currency: str = Field(default="LKR", min_length=3, max_length=3)
    type: Literal["membership", "inventory", "booking", "other"]
    related_id: str | None = None
    description: str = Field(min_length=1)
    customer_first_name: str = Field(min_length=1)
    customer_last_name: str = Field(min_length=1)
    customer_email: str = Field(pattern=EMAIL_PATTERN)
    customer_phone: str = Field(min_length=1)
    customer_address: str = Field(min_length=1)
    customer_city: str = Field(min_length=1)

    @model_validator(mode="after")
    def related_id_required(self) -> "PayHereCheckoutIn":
        if not self.related_id and self.type != "other":
            raise ValueError("related_id is required for this payment type")
        return self


class PaymentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    transaction_id: str
    user_id: str
    amount: float
    currency: str
    type: str
    method: str
    status: str
    refunded_amount: float
    refundable_amount: float
    related_id: str | None = None
    description: str | None = None
    gateway_payment_id: str | None = None
    failure_reason: str | None = None
    date: datetime
    created_at: datetime
    updated_at: datetime


class PaymentStatusOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    transaction_id: str
    status: str
    amount: float
    currency: str
    refunded_amount: float
    updated_at: datetime


class CheckoutOut(BaseModel):
    payment_id: str
    order_id: str
    checkout_url: str
    payment_data: dict[str, str]
    payment_form: str


class MembershipOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    plan_name: str
    status: str
    start_date: datetime | None = None
    end_date: datetime | None = None
    transaction_id: str | None = None


def notification_out(payment: Any, already_processed: bool, membership: Any = None) -> dict[str, Any]:
    data: dict[str, Any] = {
        "payment": PaymentOut.model_validate(payment).model_dump(mode="json"),
        "already_processed": already_processed,
    }
    if membership is not None:
        data["membership"] = MembershipOut.model_validate(membership).model_dump(mode="json")
    return data
