"""
Admin API schemas shared by the review and reporting routes.
"""
from datetime import datetime
from typing import Any
from pydantic import BaseModel, ConfigDict, Field


class PaginatedResponse(BaseModel):
    """Paginated response wrapper."""
    items: list[Any]
    total: int
    page: int
    limit: int
    pages: int


class DecisionIn(BaseModel):
    """Body of approve/decline actions."""
    admin_notes: str | None = Field(default=None, max_length=1000)


class AuditLogOut(BaseModel):
    """Audit log entry."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    actor_type: str
    actor_id: str | None
    action: str
    entity_type: str
    entity_id: str | None
    payload: dict[str, Any]
    created_at: datetime


def envelope(data: Any = None, message: str | None = None) -> dict[str, Any]:
    """Standard success body: {"success": true, "message": ..., "data": ...}."""
    body: dict[str, Any] = {"success": True}
    if message:
        body["message"] = message
    if data is not None:
        body["data"] = data
    return body
