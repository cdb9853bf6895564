from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class BuildingInput(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    address: Optional[str] = Field(default=None, max_length=500)


class BuildingOut(BuildingInput):
    model_config = ConfigDict(from_attributes=True)

    id: int
    created_at: datetime


class VendorInput(BaseModel):
    legal_name: str = Field(min_length=1, max_length=255)
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None


class VendorOut(VendorInput):
    model_config = ConfigDict(from_attributes=True)

    id: int
    created_at: datetime


class TenantInput(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None


class TenantOut(TenantInput):
    model_config = ConfigDict(from_attributes=True)

    id: int
    created_at: datetime
