from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

RefundReason = Literal[
    "unsatisfied_service",
    "wrong_item",
    "duplicate_charge",
    "cancelled_membership",
    "technical_issues",
    "other",
]


class RefundRequestIn(BaseModel):
    user_id: str = Field(min_length=1)
    payment_id: str = Field(min_length=1)
    requested_amount: Decimal = Field(gt=0, max_digits=12, decimal_places=2)
    reason: RefundReason = "other"
    notes: str = Field(min_length=1, max_length=2000)


class RefundRequestUpdate(BaseModel):
    requested_amount: Decimal | None = Field(default=None, gt=0, max_digits=12, decimal_places=2)
    reason: RefundReason | None = None
    notes: str | None = Field(default=None, min_length=1, max_length=2000)


class RefundRequestOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    request_id: str
    user_id: str
    payment_id: str
    requested_amount: float
    reason: str
    notes: str
    status: str
    admin_notes: str | None = None
    processed_by: str | None = None
    processed_at: datetime | None = None
    created_at: datetime
    updated_at: datetime
