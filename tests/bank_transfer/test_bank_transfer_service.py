"""Tests for BankTransferService, its settings and receipt storage."""
from decimal import Decimal
from unittest.mock import patch

import pytest

from gympay.core.config import settings
from gympay.core.errors import ConflictError, NotFoundError, ValidationError
from gympay.models.audit_log import AuditLog
from gympay.models.bank_transfer import BankTransferPayment
from gympay.models.membership import Membership
from gympay.models.payment import Payment
from gympay.services.bank_transfer.service import BankTransferService
from gympay.services.bank_transfer.settings_service import BankTransferSettingsService
from gympay.storage.local import LocalStorage
from tests.factories import make_membership, make_user

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


def _submit(db, user_id="member-1", membership_id="membership-1", amount="4500.00"):
    return BankTransferService(db).submit(
        user_id=user_id,
        membership_id=membership_id,
        amount=Decimal(amount),
        receipt_image_url="/uploads/bank-receipts/receipt.png",
        notes="Paid from Sampath Bank",
    )


class TestSubmit:
    def test_snapshots_bank_details(self, db):
        transfer = _submit(db)

        assert transfer.status == "pending"
        assert transfer.transfer_id.startswith("BT-")
        assert transfer.bank_account_number == settings.bank_account_number
        assert transfer.bank_name == settings.bank_name
        assert transfer.payment_id is None

    def test_settings_row_overrides_environment(self, db):
        BankTransferSettingsService(db).update({"account_number": "999888777", "bank_name": "HNB"})
        db.commit()

        transfer = _submit(db)

        assert transfer.bank_account_number == "999888777"
        assert transfer.bank_name == "HNB"
        assert transfer.bank_account_holder == settings.bank_account_holder

    def test_duplicate_pending_conflicts(self, db):
        _submit(db)
        with pytest.raises(ConflictError, match="already have a pending bank transfer"):
            _submit(db)
        # another membership is fine
        assert _submit(db, membership_id="membership-2").status == "pending"

    def test_rejects_missing_receipt(self, db):
        with pytest.raises(ValidationError, match="No file uploaded"):
            BankTransferService(db).submit(
                user_id="member-1", membership_id="m", amount=Decimal("10"), receipt_image_url=""
            )
        assert db.query(BankTransferPayment).count() == 0


class TestDecisions:
    def test_approve_records_payment_and_activates_membership(self, db, email_task):
        user = make_user(db)
        membership = make_membership(db, user.id)
        transfer = _submit(db, user_id=user.id, membership_id=membership.id)

        approved = BankTransferService(db).approve(transfer.id, admin_id="admin-1", admin_notes="Verified")

        assert approved.status == "approved"
        assert approved.processed_by == "admin-1"
        assert approved.admin_notes == "Verified"
        payment = db.query(Payment).one()
        assert approved.payment_id == payment.id
        assert payment.transaction_id == transfer.transfer_id
        assert payment.method == "bank-transfer"
        assert payment.type == "membership"
        assert payment.status == "completed"
        assert payment.amount == Decimal("4500.00")
        db.expire_all()
        assert db.get(Membership, membership.id).status == "active"
        assert db.query(AuditLog).filter(AuditLog.action == "bank_transfer_approved").count() == 1
        email_task.delay.assert_called_once_with(transfer.id, "approved")

    def test_second_decision_rejected(self, db, email_task):
        transfer = _submit(db)
        svc = BankTransferService(db)
        svc.approve(transfer.id, admin_id="admin-1")

        with pytest.raises(ConflictError, match="not in pending status"):
            svc.approve(transfer.id, admin_id="admin-2")
        with pytest.raises(ConflictError):
            svc.decline(transfer.id, admin_id="admin-2")

        assert db.query(Payment).count() == 1
        assert email_task.delay.call_count == 1

    def test_decline(self, db, email_task):
        transfer = _submit(db)

        declined = BankTransferService(db).decline(transfer.id, admin_id="admin-1", admin_notes="Receipt unreadable")

        assert declined.status == "declined"
        assert declined.admin_notes == "Receipt unreadable"
        assert db.query(Payment).count() == 0
        email_task.delay.assert_called_once_with(transfer.id, "declined")

    def test_unknown_transfer(self, db, email_task):
        with pytest.raises(NotFoundError):
            BankTransferService(db).approve("missing", admin_id="admin-1")

    def test_enqueue_failure_does_not_undo_decision(self, db, email_task):
        email_task.delay.side_effect = ConnectionError("broker down")
        transfer = _submit(db)

        declined = BankTransferService(db).decline(transfer.id, admin_id="admin-1")

        assert declined.status == "declined"
        db.expire_all()
        assert db.get(BankTransferPayment, transfer.id).status == "declined"

    def test_list_pending_paginates(self, db, email_task):
        first = _submit(db, membership_id="m-1")
        _submit(db, membership_id="m-2")
        _submit(db, membership_id="m-3")
        svc = BankTransferService(db)
        svc.decline(first.id, admin_id="admin-1")

        rows, total = svc.list_pending(page=1, limit=1)

        assert total == 2
        assert len(rows) == 1
        assert rows[0].status == "pending"

    def test_delete_returns_receipt_url(self, db):
        transfer = _submit(db)
        svc = BankTransferService(db)

        assert svc.delete(transfer.id, admin_id="admin-1") == "/uploads/bank-receipts/receipt.png"
        assert svc.get(transfer.id) is None


class TestSettings:
    def test_environment_defaults(self, db):
        effective = BankTransferSettingsService(db).get_effective()
        assert effective["enabled"] is True
        assert effective["account_number"] == settings.bank_account_number
        assert effective["instructions"]

    def test_disabled_without_account_number(self, db):
        svc = BankTransferSettingsService(db)
        with patch.object(settings, "bank_account_number", ""):
            assert svc.is_enabled() is False

    def test_update_disables(self, db):
        data = BankTransferSettingsService(db).update({"enabled": False})
        assert data["enabled"] is False
        assert data["updated_at"] is not None


class TestLocalStorage:
    def test_saves_and_deletes_receipt(self, tmp_path):
        storage = LocalStorage(root=str(tmp_path), url_prefix="/uploads")

        url = storage.save_receipt("member-1", "receipt.PNG", "image/png", PNG)

        assert url.startswith("/uploads/bank-receipts/member-1_")
        assert url.endswith(".png")
        saved = tmp_path / "bank-receipts" / url.rsplit("/", 1)[1]
        assert saved.read_bytes() == PNG
        storage.delete(url)
        assert not saved.exists()

    def test_rejects_non_images(self, tmp_path):
        storage = LocalStorage(root=str(tmp_path))
        with pytest.raises(ValidationError, match="Only image files"):
            storage.save_receipt("member-1", "receipt.pdf", "application/pdf", b"%PDF")
        with pytest.raises(ValidationError, match="Only image files"):
            storage.save_receipt("member-1", "receipt.png", "text/html", PNG)

    def test_rejects_empty_and_oversized(self, tmp_path):
        storage = LocalStorage(root=str(tmp_path))
        with pytest.raises(ValidationError, match="empty"):
            storage.save_receipt("member-1", "receipt.png", "image/png", b"")
        with patch.object(settings, "receipt_max_file_size_mb", 0):
            with pytest.raises(ValidationError, match="too large"):
                storage.save_receipt("member-1", "receipt.png", "image/png", PNG)

    def test_delete_ignores_foreign_urls(self, tmp_path):
        LocalStorage(root=str(tmp_path)).delete("https://elsewhere.example/x.png")

    def test_user_id_is_reduced_to_a_safe_file_name(self, tmp_path):
        root = tmp_path / "uploads"
        storage = LocalStorage(root=str(root), url_prefix="/uploads")

        url = storage.save_receipt("../../escaped", "receipt.png", "image/png", PNG)

        name = url.rsplit("/", 1)[1]
        assert name.startswith("escaped_")
        assert (root / "bank-receipts" / name).read_bytes() == PNG
        assert sorted(p.name for p in tmp_path.iterdir()) == ["uploads"]

    def test_user_id_without_safe_characters_falls_back(self, tmp_path):
        url = LocalStorage(root=str(tmp_path)).save_receipt("/../", "receipt.png", "image/png", PNG)
        assert url.rsplit("/", 1)[1].startswith("anonymous_")
