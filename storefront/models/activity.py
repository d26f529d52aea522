from datetime import datetime
from typing import Optional
from pydantic import BaseModel

class ActivityLog(BaseModel):
    id: Optional[str] = None
    user_id: str
    user_email: Optional[str] = None
    user_role: str
    action: str  # "confirm", "cancel", "set_status", "delete"
    resource: str  # "order"
    resource_id: Optional[str] = None
    details: Optional[dict] = None
    ip_address: Optional[str] = None
    created_at: Optional[datetime] = None
