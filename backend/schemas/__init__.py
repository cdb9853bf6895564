from schemas.common import (
    COIStatus, Verdict, CoverageLine, PolicyFlag, ReasonCode,
    VendorOwner, TenantOwner, Owner, owner_from_columns,
    CoverageSnapshot, Reason, Evaluation
)
from schemas.requirements import RequirementFields, RequirementTemplateInput, RequirementTemplateOut
from schemas.coi import (
    FileKind, ReviewDecision, COIFileInput, COIFileOut, COISubmitInput, ReviewInput,
    ReviewNotesInput, EvaluateInput, COIOut, SubmitResult, ReviewResult
)
from schemas.audit import AuditLogOut, AuditLogPage
from schemas.parties import BuildingInput, BuildingOut, VendorInput, VendorOut, TenantInput, TenantOut
