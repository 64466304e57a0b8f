"""
Admin access for review and reporting routes.

X-Admin-Key must match ADMIN_API_KEY. Without a configured key the admin
routes are open in local/development and closed in production.
"""
import hmac
import logging

from fastapi import Header, HTTPException, status

from gympay.core.config import settings

logger = logging.getLogger(__name__)


def require_admin(x_admin_key: str | None = Header(default=None, alias="X-Admin-Key")) -> None:
    if not settings.admin_api_key:
        if settings.is_production:
            logger.error("admin_api_key_missing")
            raise HTTPException(status.HTTP_403_FORBIDDEN, "Admin access is not configured")
        return
    if not x_admin_key or not hmac.compare_digest(
        x_admin_key.encode("utf-8"), settings.admin_api_key.encode("utf-8")
    ):
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Invalid admin credentials")


def get_admin_id(x_admin_id: str | None = Header(default=None, alias="X-Admin-Id")) -> str:
    """Acting admin recorded in processed_by and the audit log."""
    return (x_admin_id or "").strip() or settings.admin_default_actor_id
