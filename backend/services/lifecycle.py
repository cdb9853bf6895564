"""COI lifecycle state machine.

    PENDING  -> APPROVED | REJECTED | EXPIRED
    APPROVED -> EXPIRED

REJECTED and EXPIRED are terminal: renewal means submitting a new COI.
Every status change goes through a conditional UPDATE on the current
status, so two concurrent callers can never both move the same COI; the
loser observes the new status and gets InvalidTransition.
"""

import logging
from datetime import datetime
from typing import Optional, Union

from sqlalchemy.orm import Session

import config
from errors import InvalidSnapshot, InvalidTransition, NotFound, OverrideReasonRequired
from models import COI, COIFile
from schemas.coi import COIFileInput, ReviewDecision
from schemas.common import COIStatus, CoverageSnapshot, Evaluation, TenantOwner, VendorOwner
from services import audit, parties
from services.evaluator import evaluate, snapshot_problems
from services.requirements import resolve

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS = {
    COIStatus.PENDING: {COIStatus.APPROVED, COIStatus.REJECTED, COIStatus.EXPIRED},
    COIStatus.APPROVED: {COIStatus.EXPIRED},
    COIStatus.REJECTED: set(),
    COIStatus.EXPIRED: set(),
}

EXPIRABLE_STATUSES = (COIStatus.PENDING.value, COIStatus.APPROVED.value)


def can_transition(current: COIStatus, target: COIStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[COIStatus(current)]


def ensure_transition(coi_id: Optional[int], current, target) -> None:
    current, target = COIStatus(current), COIStatus(target)
    if not can_transition(current, target):
        raise InvalidTransition(coi_id, current.value, target.value)


def get_coi(db: Session, coi_id: int) -> COI:
    coi = db.query(COI).filter(COI.id == coi_id).one_or_none()
    if coi is None:
        raise NotFound("COI", coi_id)
    return coi


def _apply_transition(db: Session, coi: COI, target: COIStatus, now: datetime, **values) -> bool:
    """Conditionally move `coi` from its loaded status to `target`.

    Returns False when another writer changed the status first.
    """
    current = COIStatus(coi.status)
    ensure_transition(coi.id, current, target)
    changed = db.query(COI).filter(
        COI.id == coi.id,
        COI.status == current.value,
    ).update({"status": target.value, "updated_at": now, **values}, synchronize_session=False)
    return changed == 1


def _evaluation_columns(evaluation: Evaluation, template_id: int) -> dict:
    return {
        "verdict": evaluation.verdict.value,
        "reasons": evaluation.reasons_payload(),
        "template_id": template_id,
    }


def submit(db: Session, building_id: int, owner: Union[VendorOwner, TenantOwner],
           snapshot: CoverageSnapshot, now: datetime, files: Optional[list[COIFileInput]] = None,
           policy: Optional[str] = None) -> tuple[COI, Evaluation, bool]:
    """Create a PENDING COI and evaluate it right away.

    The evaluation is always returned. Under the default advisory policy it
    is only attached to the COI; `auto_approve` approves a PASS and
    `auto_decide` additionally rejects a FAIL, both with SYSTEM as actor.
    Returns (coi, evaluation, auto_applied).
    """
    policy = policy or config.APPROVAL_POLICY
    problems = snapshot_problems(snapshot)
    if problems:
        raise InvalidSnapshot(problems)

    parties.get_building(db, building_id)
    parties.get_owner(db, owner)
    template = resolve(db, building_id)
    evaluation = evaluate(snapshot, template, now)

    try:
        coi = COI(
            building_id=building_id,
            owner_type=owner.type,
            owner_id=owner.id,
            status=COIStatus.PENDING.value,
            insured_name=snapshot.insured_name,
            snapshot=snapshot.model_dump(mode="json"),
            effective_date=snapshot.effective_date,
            expiration_date=snapshot.expiration_date,
            verdict=evaluation.verdict.value,
            reasons=evaluation.reasons_payload(),
            template_id=template.id,
            created_at=now,
            updated_at=now,
        )
        for f in files or []:
            coi.files.append(COIFile(url=f.url, kind=f.kind.value, created_at=now))
        db.add(coi)
        db.flush()

        audit.record(db, "COI", coi.id, "COI.SUBMITTED", audit.SYSTEM_ACTOR, {
            "building_id": building_id,
            "owner": owner.model_dump(),
            "verdict": evaluation.verdict.value,
            "reasons": evaluation.reasons_payload(),
            "template_id": template.id,
        }, at=now)

        target = None
        if policy in (config.APPROVAL_AUTO_APPROVE, config.APPROVAL_AUTO_DECIDE) and evaluation.passed:
            target = COIStatus.APPROVED
        elif policy == config.APPROVAL_AUTO_DECIDE:
            target = COIStatus.REJECTED

        if target is not None:
            _apply_transition(db, coi, target, now, reviewer_id=audit.SYSTEM_ACTOR, reviewed_at=now)
            audit.record(db, "COI", coi.id, f"AUTO.{target.value}", audit.SYSTEM_ACTOR, {
                "policy": policy,
                "verdict": evaluation.verdict.value,
                "reasons": evaluation.reasons_payload(),
            }, at=now)
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(coi)
    logger.info("COI %s submitted for building %s: %s (%d reason(s)), status %s",
                coi.id, building_id, evaluation.verdict.value, len(evaluation.reasons), coi.status)
    return coi, evaluation, target is not None


def review(db: Session, coi_id: int, decision: ReviewDecision, reviewer_id: str,
           notes: Optional[str], now: datetime) -> tuple[COI, Evaluation]:
    """Apply a reviewer's decision to a PENDING COI.

    The COI is re-evaluated against the building's current template. Approving
    a failing COI counts as an override and needs a non-blank note.
    """
    decision = ReviewDecision(decision)
    target = COIStatus.APPROVED if decision == ReviewDecision.APPROVE else COIStatus.REJECTED
    coi = get_coi(db, coi_id)
    ensure_transition(coi.id, coi.status, target)

    snapshot = CoverageSnapshot.model_validate(coi.snapshot)
    template = resolve(db, coi.building_id)
    evaluation = evaluate(snapshot, template, now)

    notes = notes.strip() if notes else None
    override = target == COIStatus.APPROVED and not evaluation.passed
    if override and not notes:
        raise OverrideReasonRequired(coi.id, evaluation.reasons_payload())

    try:
        changed = _apply_transition(
            db, coi, target, now,
            reviewer_id=reviewer_id,
            reviewed_at=now,
            review_notes=notes,
            override=override,
            **_evaluation_columns(evaluation, template.id),
        )
        if not changed:
            db.rollback()
            current = db.query(COI.status).filter(COI.id == coi_id).scalar()
            raise InvalidTransition(coi_id, current, target.value)

        audit.record(db, "COI", coi.id, f"REVIEW.{target.value}", reviewer_id, {
            "verdict": evaluation.verdict.value,
            "reasons": evaluation.reasons_payload(),
            "override": override,
            "notes": notes,
            "template_id": template.id,
        }, at=now)
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(coi)
    logger.info("COI %s %s by %s%s", coi.id, target.value.lower(), reviewer_id,
                " (override)" if override else "")
    return coi, evaluation


def sweep_expirations(db: Session, now: datetime) -> list[int]:
    """Move every PENDING/APPROVED COI whose expiration_date <= now to EXPIRED.

    Idempotent: rows already EXPIRED or REJECTED are never touched, and an
    audit entry is written only for rows this call actually changed.
    Returns the ids that were expired.
    """
    candidates = db.query(COI.id, COI.status).filter(
        COI.status.in_(EXPIRABLE_STATUSES),
        COI.expiration_date <= now,
    ).order_by(COI.id).all()

    expired = []
    try:
        for coi_id, status in candidates:
            changed = db.query(COI).filter(
                COI.id == coi_id,
                COI.status == status,
            ).update({"status": COIStatus.EXPIRED.value, "updated_at": now}, synchronize_session=False)
            if changed != 1:
                # Reviewed or expired by someone else since the candidate query
                continue
            audit.record(db, "COI", coi_id, "STATUS.EXPIRED", audit.SYSTEM_ACTOR,
                         {"from": status, "swept_at": now.isoformat()}, at=now)
            expired.append(coi_id)
        db.commit()
    except Exception:
        db.rollback()
        raise

    if expired:
        logger.info("Expired %d COI(s): %s", len(expired), expired)
    return expired
