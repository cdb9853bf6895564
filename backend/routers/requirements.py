from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from database import get_session
from schemas.requirements import RequirementTemplateInput, RequirementTemplateOut
from services.requirements import activate_template, list_templates, resolve

router = APIRouter(prefix="/api", tags=["requirements"])


@router.get("/buildings/{building_id}/requirements/active", response_model=RequirementTemplateOut)
def get_active_requirement(building_id: int, db: Session = Depends(get_session)):
    """Get the requirement template currently in force for a building"""
    return resolve(db, building_id)


@router.get("/buildings/{building_id}/requirements", response_model=list[RequirementTemplateOut])
def get_requirement_history(building_id: int, include_inactive: bool = True,
                                  db: Session = Depends(get_session)):
    """All templates for a building, newest first; inactive ones are kept for audit"""
    return list_templates(db, building_id, include_inactive=include_inactive)


@router.post("/buildings/{building_id}/requirements", response_model=RequirementTemplateOut, status_code=201)
def create_requirement(building_id: int, input: RequirementTemplateInput,
                             db: Session = Depends(get_session)):
    """Create a new active template, superseding the current one"""
    return activate_template(db, building_id, input, actor_id=input.created_by)
