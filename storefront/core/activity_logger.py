import logging
from typing import Optional
from fastapi import Request
from ..config import settings
from ..database import get_supabase_admin
from ..models.activity import ActivityLog

logger = logging.getLogger("storefront.activity")

async def log_activity(
    user: dict,
    action: str,
    resource: str,
    resource_id: Optional[str] = None,
    details: Optional[dict] = None,
    request: Optional[Request] = None
):
    """Log user activity"""
    activity = ActivityLog(
        user_id=user["id"],
        user_email=user.get("email"),
        user_role=user.get("role", ""),
        action=action,
        resource=resource,
        resource_id=resource_id,
        details=details,
        ip_address=request.client.host if request and request.client else None
    )

    logger.info("%s %s %s/%s %s", activity.user_id, action, resource, resource_id, details or "")

    if settings.uses_supabase:
        try:
            get_supabase_admin().table("activity_logs").insert(
                activity.model_dump(mode="json", exclude_none=True)
            ).execute()
        except Exception:
            # audit write failures do not fail the order operation
            logger.exception("Could not persist activity log for %s %s", action, resource_id)
