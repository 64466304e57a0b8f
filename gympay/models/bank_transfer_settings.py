"""Receiving bank account for transfer payments."""
from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, Integer, String, Text

from gympay.db.base import Base


class BankTransferSettings(Base):
    """Single row (id=1). Empty columns fall back to the environment defaults."""

    __tablename__ = "bank_transfer_settings"

    id = Column(Integer, primary_key=True, default=1)
    enabled = Column(Boolean, nullable=False, default=True)
    account_number = Column(String(32), nullable=False, default="")
    bank_name = Column(String, nullable=False, default="")
    account_holder = Column(String, nullable=False, default="")
    instructions = Column(Text, nullable=False, default="")

    updated_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
