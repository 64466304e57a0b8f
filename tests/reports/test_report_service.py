"""Tests for ReportService aggregations over a small fixed dataset in March 2026."""
from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import patch

import pytest
from sqlalchemy import event
from sqlalchemy.exc import OperationalError

from gympay.core.errors import ReportingError, ValidationError
from gympay.services.refunds.service import RefundService
from gympay.services.reports.service import ReportService, bucket_key, resolve_range
from tests.factories import make_payment

RANGE = {"start_date": "2026-03-01", "end_date": "2026-03-31"}


def _at(day: int, hour: int = 10) -> datetime:
    return datetime(2026, 3, day, hour, 0, tzinfo=timezone.utc)


@pytest.fixture
def dataset(db):
    make_payment(db, amount="3000.00", type="membership", method="card", date=_at(2))
    make_payment(db, amount="1000.00", type="membership", method="bank-transfer", date=_at(2, 15))
    make_payment(db, amount="500.00", type="inventory", method="cash", date=_at(10))
    make_payment(db, amount="500.00", type="booking", method="card", date=_at(20))
    make_payment(db, amount="800.00", type="booking", status="failed", date=_at(20))
    make_payment(db, amount="200.00", type="other", status="pending", related_id=None, date=_at(21))
    refunded = make_payment(
        db, amount="600.00", type="inventory", status="refunded", refunded_amount="600.00", date=_at(12)
    )
    # outside the range
    make_payment(db, amount="9999.00", date=datetime(2026, 4, 2, tzinfo=timezone.utc))
    return refunded


class TestHelpers:
    def test_bucket_keys(self):
        value = datetime(2026, 3, 4, tzinfo=timezone.utc)
        assert bucket_key(value, "day") == "2026-03-04"
        assert bucket_key(value, "week") == "2026-W10"
        assert bucket_key(value, "month") == "2026-03"
        assert bucket_key(value, "year") == "2026"

    def test_range_is_inclusive_and_validated(self):
        start, end = resolve_range("2026-03-01", "2026-03-01")
        assert start.hour == 0 and end.hour == 23
        with pytest.raises(ValidationError):
            resolve_range("2026-03-02", "2026-03-01")
        with pytest.raises(ValidationError):
            resolve_range("03/01/2026", None)

    def test_default_range_is_thirty_days(self):
        start, end = resolve_range(None, None)
        assert (end.date() - start.date()).days == 30


class TestRevenue:
    def test_totals(self, db, dataset):
        report = ReportService(db).revenue(**RANGE)

        assert report["period"] == "2026-03-01 to 2026-03-31"
        assert report["total_revenue"] == Decimal("5000.00")
        assert report["payment_count"] == 7
        assert report["by_module"]["membership"] == Decimal("4000.00")
        assert report["by_module"]["inventory"] == Decimal("500.00")
        assert report["by_module"]["other"] == Decimal("0.00")
        assert report["by_status"] == {"pending": 1, "completed": 4, "failed": 1, "refunded": 1}
        assert report["total_refunded"] == Decimal("600.00")

    def test_empty_range(self, db):
        report = ReportService(db).revenue(start_date="2020-01-01", end_date="2020-01-31")
        assert report["total_revenue"] == Decimal("0.00")
        assert report["payment_count"] == 0

    def test_database_failure_becomes_reporting_error(self, db):
        svc = ReportService(db)
        with patch.object(svc, "_payments_query", side_effect=OperationalError("SELECT", {}, Exception("gone"))):
            with pytest.raises(ReportingError, match="Failed to generate report"):
                svc.revenue(**RANGE)


class TestBreakdowns:
    def test_by_module_sorted_with_percentages(self, db, dataset):
        rows = ReportService(db).revenue_by_module(**RANGE)

        assert {r["module"] for r in rows} == {"membership", "inventory", "booking"}
        assert [r["revenue"] for r in rows] == sorted((r["revenue"] for r in rows), reverse=True)
        top = rows[0]
        assert top["module"] == "membership"
        assert top["revenue"] == Decimal("4000.00")
        assert top["transaction_count"] == 2
        assert top["avg_transaction_value"] == Decimal("2000.00")
        assert top["percentage"] == 80.0
        assert sum(r["percentage"] for r in rows) == pytest.approx(100.0)

    def test_by_method(self, db, dataset):
        rows = {r["method"]: r for r in ReportService(db).revenue_by_method(**RANGE)}

        assert rows["card"]["revenue"] == Decimal("3500.00")
        assert rows["card"]["transaction_count"] == 2
        assert rows["bank-transfer"]["percentage"] == 20.0
        assert rows["cash"]["revenue"] == Decimal("500.00")


class TestTrends:
    def test_daily(self, db, dataset):
        rows = ReportService(db).trends(**RANGE)

        assert rows[0] == {"date": "2026-03-02", "module": "membership", "amount": Decimal("4000.00"), "count": 2}
        assert [r["date"] for r in rows] == sorted(r["date"] for r in rows)
        assert all(r["module"] != "other" for r in rows)

    def test_monthly(self, db, dataset):
        rows = ReportService(db).trends(group_by="month", **RANGE)
        assert {r["date"] for r in rows} == {"2026-03"}
        assert sum(r["amount"] for r in rows) == Decimal("5000.00")

    def test_weekly_rolls_up_days(self, db, dataset):
        rows = ReportService(db).trends(group_by="week", **RANGE)

        assert {"date": "2026-W10", "module": "membership", "amount": Decimal("4000.00"), "count": 2} in rows
        assert {"date": "2026-W11", "module": "inventory", "amount": Decimal("500.00"), "count": 1} in rows
        assert {"date": "2026-W12", "module": "booking", "amount": Decimal("500.00"), "count": 1} in rows
        assert len(rows) == 3

    def test_invalid_group_by(self, db):
        with pytest.raises(ValidationError, match="group_by"):
            ReportService(db).trends(group_by="hour")


class TestRefundStatistics:
    def test_counts_by_status_and_reason(self, db):
        svc = RefundService(db)
        p1 = make_payment(db, amount="1000.00")
        p2 = make_payment(db, amount="1000.00")
        r1 = svc.create(p1.user_id, p1.id, Decimal("300.00"), "Gym closed for a week", reason="unsatisfied_service")
        svc.create(p2.user_id, p2.id, Decimal("100.00"), "Charged twice", reason="duplicate_charge")
        svc.approve(r1.id, admin_id="admin-1")

        stats = ReportService(db).refund_statistics()

        assert stats["refund_count"] == 2
        assert stats["total_requested"] == Decimal("400.00")
        assert stats["total_approved"] == Decimal("300.00")
        assert stats["avg_requested_amount"] == Decimal("200.00")
        assert stats["by_status"]["pending"] == {"count": 1, "amount": Decimal("100.00")}
        assert stats["by_reason"]["duplicate_charge"]["count"] == 1
        assert stats["by_reason"]["wrong_item"] == {"count": 0, "amount": Decimal("0.00")}


class TestPaymentHistory:
    def test_filters_and_pagination(self, db, dataset):
        svc = ReportService(db)

        page = svc.payment_history(type="booking", limit=1, page=1, **RANGE)
        assert page["total"] == 2
        assert page["pages"] == 2
        assert len(page["items"]) == 1

        cards = svc.payment_history(method="card", status="completed", **RANGE)
        assert cards["total"] == 2
        assert cards["items"][0].date >= cards["items"][1].date

    def test_invalid_filters(self, db):
        svc = ReportService(db)
        with pytest.raises(ValidationError):
            svc.payment_history(status="settled")
        with pytest.raises(ValidationError):
            svc.payment_history(method="cheque")


def test_daily_summary(db, dataset):
    summary = ReportService(db).daily_summary("2026-03-20")

    assert summary["date"] == "2026-03-20"
    assert summary["completed"] == {"amount": Decimal("500.00"), "count": 1}
    assert summary["failed"] == {"amount": Decimal("800.00"), "count": 1}
    assert summary["total"] == {"amount": Decimal("1300.00"), "count": 2}


def test_aggregates_are_computed_by_the_database(db, dataset):
    statements = []

    def capture(conn, cursor, statement, parameters, context, executemany):
        statements.append(statement.lower())

    bind = db.get_bind()
    event.listen(bind, "before_cursor_execute", capture)
    try:
        svc = ReportService(db)
        svc.revenue(**RANGE)
        svc.revenue_by_module(**RANGE)
        svc.trends(**RANGE)
        svc.daily_summary("2026-03-20")
        svc.refund_statistics(**RANGE)
    finally:
        event.remove(bind, "before_cursor_execute", capture)

    selects = [s for s in statements if s.lstrip().startswith("select")]
    assert len(selects) == 6
    assert all("group by" in s and "sum(" in s for s in selects)
