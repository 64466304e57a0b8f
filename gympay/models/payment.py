"""
Payment model: every monetary transaction (membership, inventory, booking, other).
transaction_id is unique and is the order_id the gateway echoes back in notifications.
"""
from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

from sqlalchemy import CheckConstraint, Column, DateTime, Index, Numeric, String, Text

from gympay.db.base import Base, JSONType

PAYMENT_TYPES = ("membership", "inventory", "booking", "other")
PAYMENT_METHODS = ("card", "bank-transfer", "cash")
PAYMENT_STATUSES = ("pending", "completed", "failed", "refunded")
TERMINAL_STATUSES = frozenset({"completed", "failed", "refunded"})


class Payment(Base):
    __tablename__ = "payments"
    __table_args__ = (
        CheckConstraint("refunded_amount >= 0", name="ck_payments_refunded_non_negative"),
        CheckConstraint("refunded_amount <= amount", name="ck_payments_refunded_le_amount"),
        Index("ix_payments_user_status", "user_id", "status"),
        Index("ix_payments_date_type", "date", "type"),
        Index("ix_payments_status_date", "status", "date"),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    transaction_id = Column(String, unique=True, nullable=False, index=True)
    user_id = Column(String, nullable=False, index=True)
    amount = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="LKR")
    type = Column(String, nullable=False)                     # membership / inventory / booking / other
    method = Column(String, nullable=False)                   # card / bank-transfer / cash
    status = Column(String, nullable=False, default="pending")
    refunded_amount = Column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    related_id = Column(String, nullable=True)                # purchased entity, optional for "other"
    description = Column(Text, nullable=True)

    gateway_payment_id = Column(String, nullable=True)
    gateway_response = Column(JSONType, nullable=False, default=dict)
    failure_reason = Column(Text, nullable=True)
    refund_reason = Column(Text, nullable=True)

    date = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    @property
    def refundable_amount(self) -> Decimal:
        return Decimal(self.amount) - Decimal(self.refunded_amount or 0)

    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES
