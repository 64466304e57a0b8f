"""
ReportService: read-only aggregations over payments and refund requests.

Sums and counts come from GROUP BY queries; Python only fills in empty
buckets and derives averages and percentages. Trends group by calendar day
in SQL and roll days up into weeks, months or years. Database failures
surface as ReportingError.
"""
import functools
import logging
import math
from collections import defaultdict
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from typing import Any, Callable

from sqlalchemy import Date, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from gympay.core.errors import ReportingError, ValidationError
from gympay.models.payment import PAYMENT_METHODS, PAYMENT_STATUSES, PAYMENT_TYPES, Payment
from gympay.models.refund_request import REFUND_REASONS, REFUND_REQUEST_STATUSES, RefundRequest
from gympay.utils.currency import to_money

logger = logging.getLogger(__name__)

DEFAULT_RANGE_DAYS = 30
GROUP_BY_CHOICES = ("day", "week", "month", "year")
ZERO = Decimal("0.00")


def _money(value) -> Decimal:
    """SUM over no rows is NULL."""
    return to_money(value) if value is not None else ZERO


def parse_date(value: str | None, field: str) -> date | None:
    if not value:
        return None
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError:
        raise ValidationError(f"Invalid {field}, expected YYYY-MM-DD")


def resolve_range(start_date: str | None, end_date: str | None) -> tuple[datetime, datetime]:
    """[start 00:00, end 23:59:59.999999] in UTC; defaults to the last 30 days."""
    end = parse_date(end_date, "end_date") or datetime.now(timezone.utc).date()
    start = parse_date(start_date, "start_date") or end - timedelta(days=DEFAULT_RANGE_DAYS)
    if start > end:
        raise ValidationError("start_date must not be after end_date")
    return (
        datetime.combine(start, time.min, tzinfo=timezone.utc),
        datetime.combine(end, time.max, tzinfo=timezone.utc),
    )


def bucket_key(value: date, group_by: str) -> str:
    if group_by == "year":
        return f"{value.year:04d}"
    if group_by == "month":
        return f"{value.year:04d}-{value.month:02d}"
    if group_by == "week":
        iso = value.isocalendar()
        return f"{iso[0]:04d}-W{iso[1]:02d}"
    return value.strftime("%Y-%m-%d")


def _period(start: datetime, end: datetime) -> str:
    return f"{start.date().isoformat()} to {end.date().isoformat()}"


def reporting_query(name: str) -> Callable:
    """Log database failures and turn them into ReportingError."""

    def decorator(fn: Callable) -> Callable:
        @functools.wraps(fn)
        def wrapper(*args, **kwargs):
            try:
                return fn(*args, **kwargs)
            except SQLAlchemyError as e:
                logger.exception("report_query_failed", extra={"path": name, "error": str(e)})
                raise ReportingError("Failed to generate report") from e

        return wrapper

    return decorator


class ReportService:
    def __init__(self, db: Session):
        self.db = db

    def _payments_query(self, start: datetime, end: datetime, *columns):
        return self.db.query(*columns).filter(Payment.date >= start, Payment.date <= end)

    @reporting_query("revenue")
    def revenue(self, start_date: str | None = None, end_date: str | None = None) -> dict[str, Any]:
        start, end = resolve_range(start_date, end_date)
        status_rows = (
            self._payments_query(
                start, end, Payment.status, func.count(Payment.id), func.sum(Payment.refunded_amount)
            )
            .group_by(Payment.status)
            .all()
        )
        type_rows = (
            self._payments_query(start, end, Payment.type, func.sum(Payment.amount))
            .filter(Payment.status == "completed")
            .group_by(Payment.type)
            .all()
        )
        by_status = {s: 0 for s in PAYMENT_STATUSES}
        total_refunded = ZERO
        for status, count, refunded in status_rows:
            by_status[status] = count
            total_refunded += _money(refunded)
        by_type = {t: ZERO for t in PAYMENT_TYPES}
        for type_, amount in type_rows:
            by_type[type_] = _money(amount)
        return {
            "period": _period(start, end),
            "total_revenue": sum(by_type.values(), ZERO),
            "payment_count": sum(by_status.values()),
            "by_module": by_type,
            "by_status": by_status,
            "total_refunded": total_refunded,
        }

    @reporting_query("payments")
    def payment_history(
        self,
        user_id: str | None = None,
        type: str | None = None,
        status: str | None = None,
        method: str | None = None,
        start_date: str | None = None,
        end_date: str | None = None,
        page: int = 1,
        limit: int = 50,
    ) -> dict[str, Any]:
        if type and type not in PAYMENT_TYPES:
            raise ValidationError("Invalid payment type")
        if status and status not in PAYMENT_STATUSES:
            raise ValidationError("Invalid payment status")
        if method and method not in PAYMENT_METHODS:
            raise ValidationError("Invalid payment method")
        start = parse_date(start_date, "start_date")
        end = parse_date(end_date, "end_date")
        if start and end and start > end:
            raise ValidationError("start_date must not be after end_date")

        q = self.db.query(Payment)
        if user_id:
            q = q.filter(Payment.user_id == user_id)
        if type:
            q = q.filter(Payment.type == type)
        if status:
            q = q.filter(Payment.status == status)
        if method:
            q = q.filter(Payment.method == method)
        if start:
            q = q.filter(Payment.date >= datetime.combine(start, time.min, tzinfo=timezone.utc))
        if end:
            q = q.filter(Payment.date <= datetime.combine(end, time.max, tzinfo=timezone.utc))
        total = q.count()
        rows = q.order_by(Payment.date.desc()).offset((page - 1) * limit).limit(limit).all()
        return {
            "items": rows,
            "total": total,
            "page": page,
            "limit": limit,
            "pages": math.ceil(total / limit) if limit else 0,
        }

    @reporting_query("refunds")
    def refund_statistics(self, start_date: str | None = None, end_date: str | None = None) -> dict[str, Any]:
        start, end = resolve_range(start_date, end_date)
        rows = (
            self.db.query(
                RefundRequest.status,
                RefundRequest.reason,
                func.count(RefundRequest.id),
                func.sum(RefundRequest.requested_amount),
            )
            .filter(RefundRequest.created_at >= start, RefundRequest.created_at <= end)
            .group_by(RefundRequest.status, RefundRequest.reason)
            .all()
        )
        by_status = {s: {"count": 0, "amount": ZERO} for s in REFUND_REQUEST_STATUSES}
        by_reason = {r: {"count": 0, "amount": ZERO} for r in REFUND_REASONS}
        total_requested = ZERO
        count = 0
        for status, reason, n, amount in rows:
            amount = _money(amount)
            total_requested += amount
            count += n
            for bucket in (
                by_status.setdefault(status, {"count": 0, "amount": ZERO}),
                by_reason.setdefault(reason, {"count": 0, "amount": ZERO}),
            ):
                bucket["count"] += n
                bucket["amount"] += amount
        return {
            "period": _period(start, end),
            "refund_count": count,
            "total_requested": total_requested,
            "total_approved": by_status["approved"]["amount"],
            "avg_requested_amount": to_money(total_requested / count) if count else ZERO,
            "by_status": by_status,
            "by_reason": by_reason,
        }

    def _breakdown(self, start_date: str | None, end_date: str | None, attr: str) -> list[dict[str, Any]]:
        start, end = resolve_range(start_date, end_date)
        column = getattr(Payment, attr)
        revenue = func.sum(Payment.amount)
        rows = (
            self._payments_query(start, end, column, revenue, func.count(Payment.id))
            .filter(Payment.status == "completed")
            .group_by(column)
            .order_by(revenue.desc())
            .all()
        )
        totals = [(key, _money(amount), count) for key, amount, count in rows]
        total = sum((amount for _, amount, _ in totals), ZERO)
        return [
            {
                attr if attr != "type" else "module": key,
                "revenue": amount,
                "transaction_count": count,
                "avg_transaction_value": to_money(amount / count),
                "percentage": float(round(amount / total * 100, 2)) if total > 0 else 0.0,
            }
            for key, amount, count in totals
        ]

    @reporting_query("revenue-by-module")
    def revenue_by_module(self, start_date: str | None = None, end_date: str | None = None) -> list[dict[str, Any]]:
        return self._breakdown(start_date, end_date, "type")

    @reporting_query("revenue-by-method")
    def revenue_by_method(self, start_date: str | None = None, end_date: str | None = None) -> list[dict[str, Any]]:
        return self._breakdown(start_date, end_date, "method")

    @reporting_query("trends")
    def trends(
        self,
        start_date: str | None = None,
        end_date: str | None = None,
        group_by: str = "day",
    ) -> list[dict[str, Any]]:
        """Completed revenue per module, summed per day in SQL and rolled up to the requested bucket."""
        if group_by not in GROUP_BY_CHOICES:
            raise ValidationError("group_by must be one of: day, week, month, year")
        start, end = resolve_range(start_date, end_date)
        day = func.date(Payment.date, type_=Date)
        rows = (
            self._payments_query(
                start, end, day.label("day"), Payment.type, func.sum(Payment.amount), func.count(Payment.id)
            )
            .filter(Payment.status == "completed")
            .group_by(day, Payment.type)
            .all()
        )
        amounts: dict[tuple[str, str], Decimal] = defaultdict(lambda: ZERO)
        counts: dict[tuple[str, str], int] = defaultdict(int)
        for value, module, amount, count in rows:
            key = (bucket_key(value, group_by), module)
            amounts[key] += _money(amount)
            counts[key] += count
        return [
            {"date": bucket, "module": module, "amount": amounts[(bucket, module)], "count": counts[(bucket, module)]}
            for bucket, module in sorted(amounts)
        ]

    @reporting_query("daily-summary")
    def daily_summary(self, day: str | None = None) -> dict[str, Any]:
        target = parse_date(day, "date") or datetime.now(timezone.utc).date()
        start = datetime.combine(target, time.min, tzinfo=timezone.utc)
        end = datetime.combine(target, time.max, tzinfo=timezone.utc)
        rows = (
            self._payments_query(start, end, Payment.status, func.sum(Payment.amount), func.count(Payment.id))
            .group_by(Payment.status)
            .all()
        )
        summary: dict[str, Any] = {s: {"amount": ZERO, "count": 0} for s in PAYMENT_STATUSES}
        total = {"amount": ZERO, "count": 0}
        for status, amount, count in rows:
            amount = _money(amount)
            summary[status] = {"amount": amount, "count": count}
            total["amount"] += amount
            total["count"] += count
        summary["date"] = target.isoformat()
        summary["total"] = total
        return summary
