# fingoals/schemas/notification.py
from pydantic import BaseModel
from typing import Optional, Literal
from datetime import datetime
import uuid

Severity = Literal["info", "success", "warning", "error"]

class NotificationBase(BaseModel):
    title: str
    message: str
    severity: Severity
    action_url: Optional[str] = None

class NotificationCreate(NotificationBase):
    user_id: uuid.UUID

class NotificationRead(NotificationBase):
    id: uuid.UUID
    user_id: uuid.UUID
    is_read: bool
    created_at: datetime

    class Config:
        from_attributes = True
