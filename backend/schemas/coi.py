from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, computed_field, field_validator

from schemas.common import (COIStatus, CoverageSnapshot, Evaluation, Owner, Reason, naive_utc,
                            owner_from_columns)
from schemas.requirements import RequirementFields


class FileKind(str, Enum):
    CERTIFICATE = "CERTIFICATE"
    ENDORSEMENT = "ENDORSEMENT"
    OTHER = "OTHER"


class ReviewDecision(str, Enum):
    APPROVE = "APPROVE"
    REJECT = "REJECT"


class COIFileInput(BaseModel):
    url: str
    kind: FileKind = FileKind.CERTIFICATE


class COIFileOut(COIFileInput):
    model_config = ConfigDict(from_attributes=True)

    id: int


class COISubmitInput(BaseModel):
    building_id: int
    owner: Owner
    snapshot: CoverageSnapshot
    files: list[COIFileInput] = []


class ReviewInput(BaseModel):
    decision: ReviewDecision
    reviewer_id: str
    notes: Optional[str] = None


class ReviewNotesInput(BaseModel):
    reviewer_id: str
    notes: Optional[str] = None


class EvaluateInput(BaseModel):
    """Ad-hoc evaluation against a building's active template or explicit requirements"""
    snapshot: CoverageSnapshot
    building_id: Optional[int] = None
    requirement: Optional[RequirementFields] = None
    now: Optional[datetime] = None

    @field_validator("now")
    @classmethod
    def _now_as_naive_utc(cls, value):
        return naive_utc(value) if value is not None else None


class COIOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    building_id: int
    owner_type: str
    owner_id: int
    status: COIStatus
    insured_name: Optional[str] = None
    effective_date: datetime
    expiration_date: datetime
    snapshot: CoverageSnapshot
    verdict: Optional[str] = None
    reasons: list[Reason] = []
    template_id: Optional[int] = None
    reviewer_id: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    review_notes: Optional[str] = None
    override: bool = False
    files: list[COIFileOut] = []
    created_at: datetime
    updated_at: Optional[datetime] = None

    @computed_field
    @property
    def owner(self) -> dict:
        return owner_from_columns(self.owner_type, self.owner_id).model_dump()

    @field_validator("reasons", mode="before")
    @classmethod
    def _reasons_default(cls, value):
        return value or []


class SubmitResult(BaseModel):
    coi: COIOut
    evaluation: Evaluation
    auto_applied: bool = False


class ReviewResult(BaseModel):
    coi: COIOut
    evaluation: Evaluation
