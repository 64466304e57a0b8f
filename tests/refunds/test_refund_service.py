"""Tests for RefundService: submission limits, one pending request per payment, single decision."""
import re
from decimal import Decimal
from unittest.mock import patch

import pytest

from gympay.core.errors import ConflictError, NotFoundError, ValidationError
from gympay.models.payment import Payment
from gympay.models.refund_request import RefundRequest
from gympay.services.refunds.service import RefundService, generate_request_id
from tests.factories import make_payment


def _request(svc: RefundService, payment: Payment, amount: str = "400.00", **kwargs) -> RefundRequest:
    return svc.create(
        user_id=kwargs.get("user_id", payment.user_id),
        payment_id=payment.id,
        requested_amount=Decimal(amount),
        notes=kwargs.get("notes", "Trainer cancelled the sessions"),
        reason=kwargs.get("reason", "unsatisfied_service"),
    )


def test_request_id_format():
    assert re.match(r"^RR-\d{4}-\d{13}-\d{3}$", generate_request_id())


class TestCreate:
    def test_creates_pending_request(self, db):
        payment = make_payment(db, amount="1000.00")
        request = _request(RefundService(db), payment)

        assert request.status == "pending"
        assert request.requested_amount == Decimal("400.00")
        assert request.request_id.startswith("RR-")

    def test_rejects_amount_above_payment(self, db):
        payment = make_payment(db, amount="1000.00")
        with pytest.raises(ValidationError, match="exceeds refundable amount"):
            _request(RefundService(db), payment, amount="1000.01")
        assert db.query(RefundRequest).count() == 0

    def test_rejects_non_positive_amount(self, db):
        payment = make_payment(db)
        with pytest.raises(ValidationError):
            _request(RefundService(db), payment, amount="0")

    def test_requires_notes(self, db):
        payment = make_payment(db)
        with pytest.raises(ValidationError, match="Notes are required"):
            _request(RefundService(db), payment, notes="   ")

    def test_rejects_unknown_reason(self, db):
        payment = make_payment(db)
        with pytest.raises(ValidationError, match="Invalid refund reason"):
            _request(RefundService(db), payment, reason="changed_my_mind")

    def test_rejects_non_completed_payment(self, db):
        payment = make_payment(db, status="pending")
        with pytest.raises(ConflictError):
            _request(RefundService(db), payment)

    def test_unknown_payment(self, db):
        with pytest.raises(NotFoundError):
            RefundService(db).create(
                user_id="u", payment_id="missing", requested_amount=Decimal("1"), notes="n"
            )

    def test_second_pending_request_conflicts(self, db):
        payment = make_payment(db, amount="1000.00")
        svc = RefundService(db)
        _request(svc, payment, amount="100.00")

        with pytest.raises(ConflictError, match="pending refund request already exists"):
            _request(svc, payment, amount="50.00")
        assert db.query(RefundRequest).count() == 1

    def test_unique_pending_index_maps_to_conflict(self, db):
        payment = make_payment(db, amount="1000.00")
        svc = RefundService(db)
        first = _request(svc, payment, amount="100.00")

        # concurrent submission: the application-level check sees nothing pending
        with patch.object(RefundService, "_pending_for_payment", return_value=None):
            with pytest.raises(ConflictError, match="pending refund request already exists"):
                _request(svc, payment, amount="50.00")

        assert db.query(RefundRequest).count() == 1
        assert db.get(RefundRequest, first.id).status == "pending"
        # the session is usable again after the rollback
        assert svc.count_pending() == 1


class TestApprove:
    def test_partial_refund_then_over_limit_rejected(self, db):
        payment = make_payment(db, amount="1000.00")
        svc = RefundService(db)
        first = _request(svc, payment, amount="400.00")

        approved = svc.approve(first.id, admin_id="admin-1", admin_notes="ok")

        assert approved.status == "approved"
        assert approved.processed_by == "admin-1"
        assert approved.processed_at is not None
        db.expire_all()
        refreshed = db.get(Payment, payment.id)
        assert refreshed.refunded_amount == Decimal("400.00")
        assert refreshed.status == "completed"
        assert refreshed.refund_reason == "Trainer cancelled the sessions"

        with pytest.raises(ValidationError):
            _request(svc, payment, amount="700.00")
        second = _request(svc, payment, amount="600.00")
        assert second.status == "pending"

    def test_full_refund_marks_payment_refunded(self, db):
        payment = make_payment(db, amount="1000.00")
        svc = RefundService(db)
        request = _request(svc, payment, amount="1000.00")

        svc.approve(request.id, admin_id="admin-1")

        db.expire_all()
        refreshed = db.get(Payment, payment.id)
        assert refreshed.status == "refunded"
        assert refreshed.refunded_amount == Decimal("1000.00")

    def test_payment_failed_after_submission_blocks_approval(self, db):
        payment = make_payment(db, amount="1000.00")
        svc = RefundService(db)
        request = _request(svc, payment)

        db.get(Payment, payment.id).status = "failed"
        db.commit()

        with pytest.raises(ConflictError, match="no longer refundable"):
            svc.approve(request.id, admin_id="admin-1")

        db.expire_all()
        assert db.get(RefundRequest, request.id).status == "pending"
        assert db.get(Payment, payment.id).refunded_amount == Decimal("0")

    def test_amount_rechecked_against_refunds_made_after_submission(self, db):
        payment = make_payment(db, amount="1000.00")
        svc = RefundService(db)
        request = _request(svc, payment, amount="400.00")

        db.get(Payment, payment.id).refunded_amount = Decimal("800.00")
        db.commit()

        with pytest.raises(ConflictError, match="remaining refundable amount"):
            svc.approve(request.id, admin_id="admin-1")

        db.expire_all()
        assert db.get(RefundRequest, request.id).status == "pending"
        assert db.get(RefundRequest, request.id).processed_by is None
        refreshed = db.get(Payment, payment.id)
        assert refreshed.refunded_amount == Decimal("800.00")
        assert refreshed.status == "completed"

    def test_second_decision_rejected(self, db):
        payment = make_payment(db)
        svc = RefundService(db)
        request = _request(svc, payment)
        svc.approve(request.id, admin_id="admin-1")

        with pytest.raises(ConflictError, match="already been processed"):
            svc.approve(request.id, admin_id="admin-2")
        with pytest.raises(ConflictError, match="already been processed"):
            svc.decline(request.id, admin_id="admin-2")

        db.expire_all()
        assert db.get(Payment, payment.id).refunded_amount == Decimal("400.00")

    def test_unknown_request(self, db):
        with pytest.raises(NotFoundError):
            RefundService(db).approve("missing", admin_id="admin-1")


class TestDecline:
    def test_decline_leaves_payment_untouched(self, db):
        payment = make_payment(db)
        svc = RefundService(db)
        request = _request(svc, payment)

        declined = svc.decline(request.id, admin_id="admin-1", admin_notes="Outside refund window")

        assert declined.status == "declined"
        assert declined.admin_notes == "Outside refund window"
        db.expire_all()
        assert db.get(Payment, payment.id).refunded_amount == Decimal("0")
        # a declined request no longer blocks a new one
        assert _request(svc, payment, amount="100.00").status == "pending"

    def test_decline_twice(self, db):
        payment = make_payment(db)
        svc = RefundService(db)
        request = _request(svc, payment)
        svc.decline(request.id, admin_id="admin-1")
        with pytest.raises(ConflictError):
            svc.decline(request.id, admin_id="admin-1")


class TestUpdateAndQueries:
    def test_update_pending_revalidates_amount(self, db):
        payment = make_payment(db, amount="1000.00")
        svc = RefundService(db)
        request = _request(svc, payment)

        updated = svc.update(request.id, {"requested_amount": "250.00", "reason": "other"})
        assert updated.requested_amount == Decimal("250.00")
        assert updated.reason == "other"

        with pytest.raises(ValidationError):
            svc.update(request.id, {"requested_amount": "1500.00"})

    def test_update_after_decision_conflicts(self, db):
        payment = make_payment(db)
        svc = RefundService(db)
        request = _request(svc, payment)
        svc.decline(request.id, admin_id="admin-1")

        with pytest.raises(ConflictError):
            svc.update(request.id, {"notes": "please reconsider"})

    def test_list_count_and_filters(self, db):
        svc = RefundService(db)
        p1 = make_payment(db, user_id="member-1")
        p2 = make_payment(db, user_id="member-2")
        r1 = _request(svc, p1)
        _request(svc, p2)
        svc.decline(r1.id, admin_id="admin-1")

        assert svc.count_pending() == 1
        assert [r.status for r in svc.list_requests("declined")] == ["declined"]
        assert len(svc.list_requests()) == 2
        assert [r.user_id for r in svc.list_for_user("member-2")] == ["member-2"]
        with pytest.raises(ValidationError):
            svc.list_requests("refunded")

    def test_delete(self, db):
        payment = make_payment(db)
        svc = RefundService(db)
        request = _request(svc, payment)

        svc.delete(request.id, admin_id="admin-1")

        assert svc.get(request.id) is None
        with pytest.raises(NotFoundError):
            svc.delete(request.id, admin_id="admin-1")
