"""Membership payment made by bank transfer: uploaded receipt awaiting admin review."""
import secrets
import string
from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Column, DateTime, Index, Numeric, String, Text

from gympay.db.base import Base

BANK_TRANSFER_STATUSES = ("pending", "approved", "declined")

_TRANSFER_ALPHABET = string.ascii_letters + string.digits


def generate_transfer_id() -> str:
    return "BT-" + "".join(secrets.choice(_TRANSFER_ALPHABET) for _ in range(16))


class BankTransferPayment(Base):
    __tablename__ = "bank_transfer_payments"
    __table_args__ = (
        Index("ix_bank_transfer_status_created", "status", "created_at"),
        Index("ix_bank_transfer_user_status", "user_id", "status"),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    transfer_id = Column(String, unique=True, nullable=False, default=generate_transfer_id)
    user_id = Column(String, nullable=False, index=True)
    membership_id = Column(String, nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="LKR")
    receipt_image_url = Column(Text, nullable=False)
    status = Column(String, nullable=False, default="pending", index=True)

    # Receiving account at submission time (settings may change later)
    bank_account_number = Column(String(32), nullable=False, default="")
    bank_name = Column(String, nullable=False, default="")
    bank_account_holder = Column(String, nullable=False, default="")

    notes = Column(Text, nullable=True)          # member notes
    admin_notes = Column(Text, nullable=True)
    processed_by = Column(String, nullable=True)
    processed_at = Column(DateTime(timezone=True), nullable=True)
    payment_id = Column(String, nullable=True)   # Payment created on approval

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
