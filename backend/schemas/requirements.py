from datetime import datetime
from typing import Annotated, Optional

from pydantic import BaseModel, ConfigDict, Field

from schemas.common import Limit


class RequirementFields(BaseModel):
    """Minimum insurance thresholds. A limit left as None is not required."""
    gl_occurrence_min: Limit = None
    gl_aggregate_min: Limit = None
    auto_combined_min: Limit = None
    umbrella_min: Limit = None
    workers_comp_min: Limit = None
    workers_comp_required: bool = False

    additional_insured_required: bool = False
    waiver_of_subrogation_required: bool = False
    primary_non_contributory_required: bool = False
    notice_of_cancellation_min_days: Optional[Annotated[int, Field(ge=0)]] = None

    certificate_holder_text: Optional[str] = None
    additional_insured_text: Optional[str] = None


class RequirementTemplateInput(RequirementFields):
    created_by: Optional[str] = None


class RequirementTemplateOut(RequirementFields):
    model_config = ConfigDict(from_attributes=True)

    id: int
    building_id: int
    active: bool
    created_at: datetime
    created_by: Optional[str] = None
    deactivated_at: Optional[datetime] = None
