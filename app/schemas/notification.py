from pydantic import BaseModel, ConfigDict
from typing import List, Optional
from datetime import datetime

from app.schemas.common import PageMeta


class NotificationOut(BaseModel):
    id: int
    event: str
    title: str
    message: str
    link: Optional[str] = None
    is_read: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class NotificationPage(PageMeta):
    items: List[NotificationOut]
    unread_count: int
