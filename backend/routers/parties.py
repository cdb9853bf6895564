from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from database import get_session
from schemas.parties import BuildingInput, BuildingOut, TenantInput, TenantOut, VendorInput, VendorOut
from services import parties

router = APIRouter(prefix="/api", tags=["parties"])


# ============== BUILDINGS ==============

@router.post("/buildings", response_model=BuildingOut, status_code=201)
def create_building(input: BuildingInput, db: Session = Depends(get_session)):
    return parties.create_building(db, input)


@router.get("/buildings", response_model=list[BuildingOut])
def list_buildings(db: Session = Depends(get_session)):
    return parties.list_buildings(db)


@router.get("/buildings/{building_id}", response_model=BuildingOut)
def get_building(building_id: int, db: Session = Depends(get_session)):
    return parties.get_building(db, building_id)


# ============== VENDORS ==============

@router.post("/vendors", response_model=VendorOut, status_code=201)
def create_vendor(input: VendorInput, db: Session = Depends(get_session)):
    return parties.create_vendor(db, input)


@router.get("/vendors", response_model=list[VendorOut])
def list_vendors(db: Session = Depends(get_session)):
    return parties.list_vendors(db)


@router.get("/vendors/{vendor_id}", response_model=VendorOut)
def get_vendor(vendor_id: int, db: Session = Depends(get_session)):
    return parties.get_vendor(db, vendor_id)


# ============== TENANTS ==============

@router.post("/tenants", response_model=TenantOut, status_code=201)
def create_tenant(input: TenantInput, db: Session = Depends(get_session)):
    return parties.create_tenant(db, input)


@router.get("/tenants", response_model=list[TenantOut])
def list_tenants(db: Session = Depends(get_session)):
    return parties.list_tenants(db)


@router.get("/tenants/{tenant_id}", response_model=TenantOut)
def get_tenant(tenant_id: int, db: Session = Depends(get_session)):
    return parties.get_tenant(db, tenant_id)
