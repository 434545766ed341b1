from pydantic import BaseModel
from datetime import datetime
from typing import Optional


class NotificationResponse(BaseModel):
    id: int
    recipient_email: str
    type: str
    content: str
    link: Optional[str] = None
    metadata: dict = {}
    read: bool
    created_at: Optional[datetime] = None
