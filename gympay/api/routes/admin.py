"""
Admin utilities: audit trail of payment, refund and bank transfer decisions.
"""
import math

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from gympay.db.session import get_db
from gympay.schemas.admin import AuditLogOut, PaginatedResponse, envelope
from gympay.services.audit.service import AuditService
from gympay.services.auth.admin import require_admin

router = APIRouter(prefix="/api/v1/admin", tags=["admin"], dependencies=[Depends(require_admin)])


@router.get("/audit")
def audit_list(
    action: str | None = Query(None),
    entity_type: str | None = Query(None),
    entity_id: str | None = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
):
    rows, total = AuditService(db).list(
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        page=page,
        page_size=limit,
    )
    data = PaginatedResponse(
        items=[AuditLogOut.model_validate(r).model_dump(mode="json") for r in rows],
        total=total,
        page=page,
        limit=limit,
        pages=math.ceil(total / limit) if total else 0,
    )
    return envelope(data.model_dump())
