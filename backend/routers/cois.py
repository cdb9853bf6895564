from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from database import get_session
from errors import BadRequest
from schemas.coi import (COIOut, COISubmitInput, EvaluateInput, ReviewDecision, ReviewInput,
                         ReviewNotesInput, ReviewResult, SubmitResult)
from schemas.common import COIStatus, Evaluation, owner_from_columns
from services import lifecycle
from services.db_ops import export_cois_csv, list_cois
from services.evaluator import evaluate
from services.requirements import resolve

router = APIRouter(prefix="/api", tags=["cois"])


@router.post("/cois", response_model=SubmitResult, status_code=201)
def submit_coi(input: COISubmitInput, db: Session = Depends(get_session)):
    """Create a COI from ingested coverage data and evaluate it"""
    coi, evaluation, auto_applied = lifecycle.submit(
        db, input.building_id, input.owner, input.snapshot, datetime.utcnow(), files=input.files,
    )
    return SubmitResult(coi=COIOut.model_validate(coi), evaluation=evaluation, auto_applied=auto_applied)


@router.get("/cois", response_model=list[COIOut])
def get_cois(building_id: Optional[int] = None, status: Optional[COIStatus] = None,
                   owner_type: Optional[str] = None, owner_id: Optional[int] = None,
                   db: Session = Depends(get_session)):
    """List COIs filtered by building, status and owner"""
    owner = None
    if owner_type and owner_id is not None:
        try:
            owner = owner_from_columns(owner_type.upper(), owner_id)
        except ValueError as e:
            raise BadRequest(str(e), {"owner_type": owner_type}) from e
    return [COIOut.model_validate(coi) for coi in list_cois(db, building_id, status, owner)]


@router.get("/cois/export")
def export_cois(building_id: Optional[int] = None, status: Optional[COIStatus] = None,
                      db: Session = Depends(get_session)):
    """Export COIs to CSV"""
    return Response(
        content=export_cois_csv(db, building_id, status),
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="cois-export.csv"'},
    )


@router.get("/cois/{coi_id}", response_model=COIOut)
def get_coi(coi_id: int, db: Session = Depends(get_session)):
    return COIOut.model_validate(lifecycle.get_coi(db, coi_id))


@router.patch("/cois/{coi_id}/review", response_model=ReviewResult)
def review_coi(coi_id: int, input: ReviewInput, db: Session = Depends(get_session)):
    """Approve or reject a pending COI"""
    return _review(db, coi_id, input.decision, input.reviewer_id, input.notes)


@router.patch("/cois/{coi_id}/approve", response_model=ReviewResult)
def approve_coi(coi_id: int, input: ReviewNotesInput, db: Session = Depends(get_session)):
    return _review(db, coi_id, ReviewDecision.APPROVE, input.reviewer_id, input.notes)


@router.patch("/cois/{coi_id}/reject", response_model=ReviewResult)
def reject_coi(coi_id: int, input: ReviewNotesInput, db: Session = Depends(get_session)):
    return _review(db, coi_id, ReviewDecision.REJECT, input.reviewer_id, input.notes)


@router.post("/evaluate", response_model=Evaluation)
def evaluate_snapshot(input: EvaluateInput, db: Session = Depends(get_session)):
    """Evaluate coverage data without creating a COI"""
    if input.requirement is not None:
        requirement = input.requirement
    elif input.building_id is not None:
        requirement = resolve(db, input.building_id)
    else:
        raise BadRequest("Provide either building_id or requirement", {"fields": ["building_id", "requirement"]})
    return evaluate(input.snapshot, requirement, input.now or datetime.utcnow())


def _review(db: Session, coi_id: int, decision: ReviewDecision, reviewer_id: str, notes: Optional[str]):
    coi, evaluation = lifecycle.review(db, coi_id, decision, reviewer_id, notes, datetime.utcnow())
    return ReviewResult(coi=COIOut.model_validate(coi), evaluation=evaluation)
