from datetime import datetime
from sqlalchemy import (Column, Integer, String, Text, DateTime, JSON, Boolean, ForeignKey,
                        Index, UniqueConstraint, CheckConstraint, text)
from sqlalchemy.orm import relationship
from database import Base


class RequirementTemplate(Base):
    __tablename__ = "requirement_templates"
    __table_args__ = (
        # At most one active template per building
        Index(
            "uq_requirement_templates_active_building",
            "building_id",
            unique=True,
            sqlite_where=text("active = 1"),
            postgresql_where=text("active"),
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    created_by = Column(String(100), nullable=True)
    building_id = Column(Integer, ForeignKey("buildings.id"), nullable=False, index=True)

    gl_occurrence_min = Column(Integer, nullable=True)
    gl_aggregate_min = Column(Integer, nullable=True)
    auto_combined_min = Column(Integer, nullable=True)
    umbrella_min = Column(Integer, nullable=True)
    workers_comp_min = Column(Integer, nullable=True)
    workers_comp_required = Column(Boolean, default=False, nullable=False)

    additional_insured_required = Column(Boolean, default=False, nullable=False)
    waiver_of_subrogation_required = Column(Boolean, default=False, nullable=False)
    primary_non_contributory_required = Column(Boolean, default=False, nullable=False)
    notice_of_cancellation_min_days = Column(Integer, nullable=True)

    certificate_holder_text = Column(Text, nullable=True)
    additional_insured_text = Column(Text, nullable=True)

    active = Column(Boolean, default=True, nullable=False)
    deactivated_at = Column(DateTime, nullable=True)

    building = relationship("Building", back_populates="templates")


class COI(Base):
    __tablename__ = "cois"
    __table_args__ = (
        CheckConstraint("owner_type IN ('VENDOR', 'TENANT')", name="ck_cois_owner_type"),
        Index("ix_cois_status_expiration", "status", "expiration_date"),
    )

    id = Column(Integer, primary_key=True, index=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    building_id = Column(Integer, ForeignKey("buildings.id"), nullable=False, index=True)
    owner_type = Column(String(10), nullable=False)
    owner_id = Column(Integer, nullable=False, index=True)

    status = Column(String(20), nullable=False, default="PENDING", index=True)
    insured_name = Column(String(255), nullable=True)
    snapshot = Column(JSON, nullable=False)
    effective_date = Column(DateTime, nullable=False)
    expiration_date = Column(DateTime, nullable=False)

    # Evaluator output at the last submit/review
    verdict = Column(String(10), nullable=True)
    reasons = Column(JSON, nullable=True)
    template_id = Column(Integer, ForeignKey("requirement_templates.id"), nullable=True)

    reviewer_id = Column(String(100), nullable=True)
    reviewed_at = Column(DateTime, nullable=True)
    review_notes = Column(Text, nullable=True)
    override = Column(Boolean, default=False, nullable=False)

    building = relationship("Building", back_populates="cois")
    files = relationship("COIFile", back_populates="coi", cascade="all, delete-orphan")


class COIFile(Base):
    __tablename__ = "coi_files"

    id = Column(Integer, primary_key=True, index=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    coi_id = Column(Integer, ForeignKey("cois.id"), nullable=False, index=True)
    url = Column(String(1000), nullable=False)
    kind = Column(String(20), default="CERTIFICATE", nullable=False)

    coi = relationship("COI", back_populates="files")


class NotificationLog(Base):
    __tablename__ = "notification_logs"
    __table_args__ = (
        UniqueConstraint("coi_id", "kind", "tag", name="uq_notification_logs_coi_kind_tag"),
    )

    id = Column(Integer, primary_key=True, index=True)
    sent_at = Column(DateTime, default=datetime.utcnow)
    coi_id = Column(Integer, ForeignKey("cois.id"), nullable=False)
    kind = Column(String(50), nullable=False)
    tag = Column(String(20), nullable=False)


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)
    at = Column(DateTime, default=datetime.utcnow, index=True)
    entity = Column(String(50), nullable=False, index=True)
    entity_id = Column(String(100), nullable=False, index=True)
    action = Column(String(100), nullable=False)
    actor_id = Column(String(100), nullable=False)
    details = Column(JSON, nullable=True)
