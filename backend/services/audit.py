import csv
import io
import json
from datetime import datetime
from typing import Any, Optional

from sqlalchemy.orm import Session

from models import AuditLog
from schemas.common import naive_utc

SYSTEM_ACTOR = "SYSTEM"
MAX_PAGE_SIZE = 200


def record(db: Session, entity: str, entity_id, action: str, actor_id: str,
           details: Optional[dict[str, Any]] = None, at: Optional[datetime] = None) -> AuditLog:
    """Append an audit entry to the caller's transaction (committed with it)"""
    entry = AuditLog(
        entity=entity,
        entity_id=str(entity_id),
        action=action,
        actor_id=actor_id,
        details=details,
        at=at or datetime.utcnow(),
    )
    db.add(entry)
    return entry


def _filtered(db: Session, entity=None, entity_id=None, actor_id=None, action=None,
              date_from: Optional[datetime] = None, date_to: Optional[datetime] = None):
    query = db.query(AuditLog)
    if entity:
        query = query.filter(AuditLog.entity == entity)
    if entity_id:
        query = query.filter(AuditLog.entity_id == str(entity_id))
    if actor_id:
        query = query.filter(AuditLog.actor_id == actor_id)
    if action:
        query = query.filter(AuditLog.action == action)
    if date_from:
        query = query.filter(AuditLog.at >= naive_utc(date_from))
    if date_to:
        query = query.filter(AuditLog.at <= naive_utc(date_to))
    return query


def list_logs(db: Session, entity=None, entity_id=None, actor_id=None, action=None,
              date_from=None, date_to=None, page: int = 1, limit: int = 25, sort: str = "desc") -> dict:
    """Filtered, paginated audit listing"""
    page = max(page or 1, 1)
    limit = min(max(limit or 25, 1), MAX_PAGE_SIZE)
    query = _filtered(db, entity, entity_id, actor_id, action, date_from, date_to)
    total = query.count()

    order = AuditLog.at.asc() if sort == "asc" else AuditLog.at.desc()
    id_order = AuditLog.id.asc() if sort == "asc" else AuditLog.id.desc()
    items = query.order_by(order, id_order).offset((page - 1) * limit).limit(limit).all()
    return {
        "items": items,
        "page": page,
        "limit": limit,
        "total": total,
        "has_next": page * limit < total,
    }


def export_csv(db: Session, entity=None, entity_id=None, actor_id=None, action=None,
               date_from=None, date_to=None) -> str:
    items = _filtered(db, entity, entity_id, actor_id, action, date_from, date_to) \
        .order_by(AuditLog.at.desc(), AuditLog.id.desc()).all()

    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(["id", "entity", "entity_id", "action", "actor_id", "details", "at"])
    for item in items:
        writer.writerow([
            item.id,
            item.entity,
            item.entity_id,
            item.action,
            item.actor_id,
            _details_text(item.details),
            item.at.isoformat() if item.at else "",
        ])
    return buffer.getvalue()


def _details_text(details) -> str:
    return json.dumps(details or "", sort_keys=True).replace("\n", " ")
