from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class BankTransferOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    transfer_id: str
    user_id: str
    membership_id: str
    amount: float
    currency: str
    receipt_image_url: str
    status: str
    bank_account_number: str
    bank_name: str
    bank_account_holder: str
    notes: str | None = None
    admin_notes: str | None = None
    processed_by: str | None = None
    processed_at: datetime | None = None
    payment_id: str | None = None
    created_at: datetime
    updated_at: datetime


class BankTransferSettingsUpdate(BaseModel):
    enabled: bool | None = None
    account_number: str | None = Field(default=None, max_length=32)
    bank_name: str | None = None
    account_holder: str | None = None
    instructions: str | None = None
