from datetime import datetime
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from database import get_session
from schemas.audit import AuditLogPage
from services import audit

router = APIRouter(prefix="/api/audit", tags=["audit"])


@router.get("/logs", response_model=AuditLogPage)
def list_audit_logs(entity: Optional[str] = None, entity_id: Optional[str] = None,
                          actor_id: Optional[str] = None, action: Optional[str] = None,
                          date_from: Optional[datetime] = None, date_to: Optional[datetime] = None,
                          page: int = 1, limit: int = 25, sort: Literal["asc", "desc"] = "desc",
                          db: Session = Depends(get_session)):
    """List audit logs with filters and pagination"""
    return audit.list_logs(db, entity, entity_id, actor_id, action, date_from, date_to,
                           page=page, limit=limit, sort=sort)


@router.get("/logs/export")
def export_audit_logs(entity: Optional[str] = None, entity_id: Optional[str] = None,
                            actor_id: Optional[str] = None, action: Optional[str] = None,
                            date_from: Optional[datetime] = None, date_to: Optional[datetime] = None,
                            db: Session = Depends(get_session)):
    """Export audit logs to CSV"""
    return Response(
        content=audit.export_csv(db, entity, entity_id, actor_id, action, date_from, date_to),
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="audit-logs.csv"'},
    )
