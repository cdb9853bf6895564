import csv
import io
from typing import Optional, Union

from sqlalchemy.orm import Session, selectinload

from models import COI
from schemas.common import COIStatus, TenantOwner, VendorOwner

EXPORT_FIELDS = [
    "id", "owner_type", "owner_id", "building_id", "insured_name", "status", "verdict",
    "effective_date", "expiration_date", "additional_insured", "waiver_of_subrogation",
]


def list_cois(db: Session, building_id: Optional[int] = None, status: Optional[COIStatus] = None,
              owner: Optional[Union[VendorOwner, TenantOwner]] = None) -> list[COI]:
    """List COIs, newest first, optionally filtered by building, status and owner"""
    query = db.query(COI).options(selectinload(COI.files))
    if building_id is not None:
        query = query.filter(COI.building_id == building_id)
    if status is not None:
        query = query.filter(COI.status == COIStatus(status).value)
    if owner is not None:
        query = query.filter(COI.owner_type == owner.type, COI.owner_id == owner.id)
    return query.order_by(COI.created_at.desc(), COI.id.desc()).all()


def export_cois_csv(db: Session, building_id: Optional[int] = None, status: Optional[COIStatus] = None) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(EXPORT_FIELDS)
    for coi in list_cois(db, building_id=building_id, status=status):
        snapshot = coi.snapshot or {}
        writer.writerow([
            coi.id,
            coi.owner_type,
            coi.owner_id,
            coi.building_id,
            (coi.insured_name or "").replace("\n", " "),
            coi.status,
            coi.verdict or "",
            coi.effective_date.isoformat() if coi.effective_date else "",
            coi.expiration_date.isoformat() if coi.expiration_date else "",
            "true" if snapshot.get("additional_insured") else "false",
            "true" if snapshot.get("waiver_of_subrogation") else "false",
        ])
    return buffer.getvalue()
