import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from errors import NoActiveRequirement, NotFound
from models import Building, RequirementTemplate
from schemas.requirements import RequirementFields
from services import audit

logger = logging.getLogger(__name__)


def resolve(db: Session, building_id: int) -> RequirementTemplate:
    """Return the building's single active template. No template is never a pass."""
    template = db.query(RequirementTemplate).filter(
        RequirementTemplate.building_id == building_id,
        RequirementTemplate.active.is_(True),
    ).one_or_none()
    if template is None:
        raise NoActiveRequirement(building_id)
    return template


def list_templates(db: Session, building_id: int, include_inactive: bool = True) -> list[RequirementTemplate]:
    query = db.query(RequirementTemplate).filter(RequirementTemplate.building_id == building_id)
    if not include_inactive:
        query = query.filter(RequirementTemplate.active.is_(True))
    return query.order_by(RequirementTemplate.created_at.desc(), RequirementTemplate.id.desc()).all()


def activate_template(db: Session, building_id: int, fields: RequirementFields,
                      actor_id: Optional[str] = None, now: Optional[datetime] = None) -> RequirementTemplate:
    """Replace the building's active template with a new one in a single transaction.

    The building row is locked first so concurrent activations for the same
    building serialize; the superseded template is deactivated, never deleted.
    """
    now = now or datetime.utcnow()
    building = db.query(Building).filter(Building.id == building_id).with_for_update().one_or_none()
    if building is None:
        raise NotFound("Building", building_id)

    try:
        superseded = db.query(RequirementTemplate).filter(
            RequirementTemplate.building_id == building_id,
            RequirementTemplate.active.is_(True),
        ).all()
        for old in superseded:
            old.active = False
            old.deactivated_at = now
        superseded_ids = [old.id for old in superseded]
        # Deactivations must hit the table before the new active row does
        db.flush()

        template = RequirementTemplate(
            building_id=building_id,
            created_by=actor_id,
            created_at=now,
            active=True,
            **fields.model_dump(include=set(RequirementFields.model_fields)),
        )
        db.add(template)
        db.flush()

        audit.record(
            db, "REQUIREMENT_TEMPLATE", template.id, "REQUIREMENT.ACTIVATED",
            actor_id or audit.SYSTEM_ACTOR,
            {"building_id": building_id, "superseded": superseded_ids},
            at=now,
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(template)
    logger.info("Activated requirement template %s for building %s (superseded %s)",
                template.id, building_id, superseded_ids or "none")
    return template
