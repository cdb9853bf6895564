from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict


class AuditLogOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    entity: str
    entity_id: str
    action: str
    actor_id: str
    details: Optional[Any] = None
    at: datetime


class AuditLogPage(BaseModel):
    items: list[AuditLogOut]
    page: int
    limit: int
    total: int
    has_next: bool
