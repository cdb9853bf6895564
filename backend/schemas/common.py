from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator


class COIStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    EXPIRED = "EXPIRED"


class Verdict(str, Enum):
    PASS = "PASS"
    FAIL = "FAIL"


class CoverageLine(str, Enum):
    GL_OCCURRENCE = "GL_OCCURRENCE"
    GL_AGGREGATE = "GL_AGGREGATE"
    AUTO_COMBINED = "AUTO_COMBINED"
    UMBRELLA = "UMBRELLA"
    WORKERS_COMP = "WORKERS_COMP"


class PolicyFlag(str, Enum):
    ADDITIONAL_INSURED = "ADDITIONAL_INSURED"
    WAIVER_OF_SUBROGATION = "WAIVER_OF_SUBROGATION"
    PRIMARY_NON_CONTRIBUTORY = "PRIMARY_NON_CONTRIBUTORY"


class ReasonCode(str, Enum):
    INVALID_SNAPSHOT = "INVALID_SNAPSHOT"
    EXPIRED_OR_NOT_YET_EFFECTIVE = "EXPIRED_OR_NOT_YET_EFFECTIVE"
    LIMIT_BELOW_MINIMUM = "LIMIT_BELOW_MINIMUM"
    MISSING_FLAG = "MISSING_FLAG"
    NOTICE_TOO_SHORT = "NOTICE_TOO_SHORT"


# Whole currency units; None means "not provided", which is not the same as 0
Limit = Optional[Annotated[int, Field(ge=0)]]


def naive_utc(value: datetime) -> datetime:
    """Timestamps are stored and compared as naive UTC"""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


class VendorOwner(BaseModel):
    type: Literal["VENDOR"] = "VENDOR"
    id: int


class TenantOwner(BaseModel):
    type: Literal["TENANT"] = "TENANT"
    id: int


Owner = Annotated[Union[VendorOwner, TenantOwner], Field(discriminator="type")]


def owner_from_columns(owner_type: str, owner_id: int) -> Union[VendorOwner, TenantOwner]:
    if owner_type == "VENDOR":
        return VendorOwner(id=owner_id)
    if owner_type == "TENANT":
        return TenantOwner(id=owner_id)
    raise ValueError(f"Unknown owner type: {owner_type}")


class CoverageSnapshot(BaseModel):
    """Structured coverage data extracted from a submitted certificate"""
    insured_name: Optional[str] = None

    # General liability
    gl_each_occurrence: Limit = None
    gl_aggregate: Limit = None
    gl_products_completed_ops: Limit = None
    gl_personal_adv_injury: Limit = None
    gl_medical_expense: Limit = None
    gl_damage_to_rented: Limit = None

    # Auto liability
    auto_bodily_injury: Limit = None
    auto_property_damage: Limit = None
    auto_combined_single: Limit = None

    # Umbrella / excess
    umbrella_limit: Limit = None
    umbrella_retention: Limit = None

    # Workers' compensation
    wc_each_accident: Limit = None
    wc_each_employee: Limit = None
    wc_policy_limit: Limit = None

    additional_insured: bool = False
    waiver_of_subrogation: bool = False
    primary_non_contributory: bool = False
    notice_of_cancellation_days: Optional[Annotated[int, Field(ge=0)]] = None

    effective_date: datetime
    expiration_date: datetime
    coverage_types: list[str] = []

    @field_validator("effective_date", "expiration_date")
    @classmethod
    def _dates_as_naive_utc(cls, value: datetime) -> datetime:
        return naive_utc(value)


class Reason(BaseModel):
    """One unmet requirement. `tag` is the stable code tests and clients match on."""
    model_config = ConfigDict(frozen=True)

    code: ReasonCode
    line: Optional[CoverageLine] = None
    flag: Optional[PolicyFlag] = None
    required: Optional[int] = None
    provided: Optional[int] = None
    message: str = ""

    @computed_field
    @property
    def tag(self) -> str:
        qualifier = self.line or self.flag
        if qualifier is not None:
            return f"{self.code.value}:{qualifier.value}"
        return self.code.value


class Evaluation(BaseModel):
    verdict: Verdict
    reasons: list[Reason] = []
    evaluated_at: datetime

    @property
    def passed(self) -> bool:
        return self.verdict == Verdict.PASS

    @property
    def tags(self) -> list[str]:
        return [reason.tag for reason in self.reasons]

    def reasons_payload(self) -> list[dict]:
        return [reason.model_dump(mode="json") for reason in self.reasons]
