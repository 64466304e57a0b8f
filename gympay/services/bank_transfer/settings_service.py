"""Receiving bank account for transfer payments (details shown to members, instructions)."""
from datetime import datetime, timezone
from typing import Any

from sqlalchemy.orm import Session

from gympay.core.config import settings
from gympay.models.bank_transfer_settings import BankTransferSettings


DEFAULT_INSTRUCTIONS = (
    "Transfer the membership fee to the account below, then upload a clear photo "
    "or screenshot of the receipt. Your membership is activated once an admin "
    "verifies the transfer."
)


class BankTransferSettingsService:
    def __init__(self, db: Session) -> None:
        self.db = db

    def get(self) -> BankTransferSettings | None:
        return self.db.query(BankTransferSettings).filter(BankTransferSettings.id == 1).first()

    def get_or_create(self) -> BankTransferSettings:
        row = self.get()
        if row:
            return row
        row = BankTransferSettings(id=1)
        self.db.add(row)
        self.db.flush()
        return row

    def get_effective(self) -> dict[str, Any]:
        """Values in use: database row first, environment defaults for blank columns."""
        row = self.get()
        account_number = ((row.account_number if row else "") or "").strip() or settings.bank_account_number
        bank_name = ((row.bank_name if row else "") or "").strip() or settings.bank_name
        account_holder = ((row.account_holder if row else "") or "").strip() or settings.bank_account_holder
        return {
            "enabled": (row.enabled if row else True) and bool(account_number),
            "account_number": account_number,
            "bank_name": bank_name,
            "account_holder": account_holder,
            "instructions": ((row.instructions if row else "") or "").strip() or DEFAULT_INSTRUCTIONS,
        }

    def is_enabled(self) -> bool:
        return self.get_effective()["enabled"]

    def as_dict(self) -> dict[str, Any]:
        data = self.get_effective()
        row = self.get()
        data["updated_at"] = row.updated_at.isoformat() if row and row.updated_at else None
        return data

    def update(self, data: dict[str, Any]) -> dict[str, Any]:
        """Update from the admin API."""
        row = self.get_or_create()
        if "enabled" in data and data["enabled"] is not None:
            row.enabled = bool(data["enabled"])
        if "account_number" in data and data["account_number"] is not None:
            row.account_number = str(data["account_number"]).strip()[:32]
        if "bank_name" in data and data["bank_name"] is not None:
            row.bank_name = str(data["bank_name"]).strip()
        if "account_holder" in data and data["account_holder"] is not None:
            row.account_holder = str(data["account_holder"]).strip()
        if "instructions" in data and data["instructions"] is not None:
            row.instructions = str(data["instructions"])
        row.updated_at = datetime.now(timezone.utc)
        self.db.add(row)
        self.db.flush()
        return self.as_dict()
