"""Buildings and the vendors and tenants that hold COIs for them."""

import logging
from typing import Union

from sqlalchemy.orm import Session

from errors import NotFound
from models import Building, Tenant, Vendor
from schemas.common import TenantOwner, VendorOwner
from schemas.parties import BuildingInput, TenantInput, VendorInput

logger = logging.getLogger(__name__)


def _create(db: Session, row):
    db.add(row)
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(row)
    return row


def _get(db: Session, model, label: str, row_id: int):
    row = db.query(model).filter(model.id == row_id).one_or_none()
    if row is None:
        raise NotFound(label, row_id)
    return row


def create_building(db: Session, data: BuildingInput) -> Building:
    building = _create(db, Building(**data.model_dump()))
    logger.info("Created building %s (%s)", building.id, building.name)
    return building


def get_building(db: Session, building_id: int) -> Building:
    return _get(db, Building, "Building", building_id)


def list_buildings(db: Session) -> list[Building]:
    return db.query(Building).order_by(Building.name, Building.id).all()


def create_vendor(db: Session, data: VendorInput) -> Vendor:
    vendor = _create(db, Vendor(**data.model_dump()))
    logger.info("Created vendor %s (%s)", vendor.id, vendor.legal_name)
    return vendor


def get_vendor(db: Session, vendor_id: int) -> Vendor:
    return _get(db, Vendor, "Vendor", vendor_id)


def list_vendors(db: Session) -> list[Vendor]:
    return db.query(Vendor).order_by(Vendor.legal_name, Vendor.id).all()


def create_tenant(db: Session, data: TenantInput) -> Tenant:
    tenant = _create(db, Tenant(**data.model_dump()))
    logger.info("Created tenant %s (%s)", tenant.id, tenant.name)
    return tenant


def get_tenant(db: Session, tenant_id: int) -> Tenant:
    return _get(db, Tenant, "Tenant", tenant_id)


def list_tenants(db: Session) -> list[Tenant]:
    return db.query(Tenant).order_by(Tenant.name, Tenant.id).all()


def get_owner(db: Session, owner: Union[VendorOwner, TenantOwner]) -> Union[Vendor, Tenant]:
    """Load the vendor or tenant a COI belongs to; NotFound when it does not exist"""
    if owner.type == "VENDOR":
        return get_vendor(db, owner.id)
    return get_tenant(db, owner.id)
