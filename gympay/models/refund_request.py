from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Column, DateTime, ForeignKey, Index, Numeric, String, Text, text

from gympay.db.base import Base

REFUND_REASONS = (
    "unsatisfied_service",
    "wrong_item",
    "duplicate_charge",
    "cancelled_membership",
    "technical_issues",
    "other",
)
REFUND_REQUEST_STATUSES = ("pending", "approved", "declined")


class RefundRequest(Base):
    """Member request to refund part or all of a completed payment."""

    __tablename__ = "refund_requests"
    __table_args__ = (
        # one outstanding request per payment
        Index(
            "uq_refund_requests_pending_payment",
            "payment_id",
            unique=True,
            postgresql_where=text("status = 'pending'"),
            sqlite_where=text("status = 'pending'"),
        ),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    request_id = Column(String, unique=True, nullable=False)   # RR-2026-<ms>-<nnn>, shown to members
    user_id = Column(String, nullable=False, index=True)
    payment_id = Column(String, ForeignKey("payments.id"), nullable=False, index=True)
    requested_amount = Column(Numeric(12, 2), nullable=False)
    reason = Column(String, nullable=False, default="other")
    notes = Column(Text, nullable=False)
    status = Column(String, nullable=False, default="pending", index=True)
    admin_notes = Column(Text, nullable=True)
    processed_by = Column(String, nullable=True)
    processed_at = Column(DateTime(timezone=True), nullable=True)
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
