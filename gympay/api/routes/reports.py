"""
Read-only payment and refund reports for the admin dashboard.
"""
from fastapi import APIRouter, Depends, Query
from fastapi.encoders import jsonable_encoder
from sqlalchemy.orm import Session

from gympay.db.session import get_db
from gympay.schemas.admin import envelope
from gympay.schemas.payments import PaymentOut
from gympay.services.auth.admin import require_admin
from gympay.services.reports.service import ReportService

router = APIRouter(prefix="/api/v1/reports", tags=["reports"], dependencies=[Depends(require_admin)])


@router.get("/revenue")
def revenue_report(
    start_date: str | None = Query(None),
    end_date: str | None = Query(None),
    db: Session = Depends(get_db),
):
    return envelope(jsonable_encoder(ReportService(db).revenue(start_date, end_date)))


@router.get("/payments")
def payment_history(
    user_id: str | None = Query(None),
    type: str | None = Query(None),
    status: str | None = Query(None),
    method: str | None = Query(None),
    start_date: str | None = Query(None),
    end_date: str | None = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
):
    result = ReportService(db).payment_history(
        user_id=user_id,
        type=type,
        status=status,
        method=method,
        start_date=start_date,
        end_date=end_date,
        page=page,
        limit=limit,
    )
    result["items"] = [PaymentOut.model_validate(p).model_dump(mode="json") for p in result["items"]]
    return envelope(result)


@router.get("/refunds")
def refund_statistics(
    start_date: str | None = Query(None),
    end_date: str | None = Query(None),
    db: Session = Depends(get_db),
):
    return envelope(jsonable_encoder(ReportService(db).refund_statistics(start_date, end_date)))


@router.get("/revenue-by-module")
def revenue_by_module(
    start_date: str | None = Query(None),
    end_date: str | None = Query(None),
    db: Session = Depends(get_db),
):
    return envelope(jsonable_encoder(ReportService(db).revenue_by_module(start_date, end_date)))


@router.get("/revenue-by-method")
def revenue_by_method(
    start_date: str | None = Query(None),
    end_date: str | None = Query(None),
    db: Session = Depends(get_db),
):
    return envelope(jsonable_encoder(ReportService(db).revenue_by_method(start_date, end_date)))


@router.get("/trends")
def payment_trends(
    start_date: str | None = Query(None),
    end_date: str | None = Query(None),
    group_by: str = Query("day"),
    db: Session = Depends(get_db),
):
    return envelope(jsonable_encoder(ReportService(db).trends(start_date, end_date, group_by)))


@router.get("/daily-summary")
def daily_summary(date: str | None = Query(None), db: Session = Depends(get_db)):
    return envelope(jsonable_encoder(ReportService(db).daily_summary(date)))
