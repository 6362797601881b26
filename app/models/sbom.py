"""Sbom and VulnerabilityFinding SQLAlchemy models"""
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.core.database import Base


class Sbom(Base):
    """Persistent record for one ingested SBOM.

    Counts are snapshots taken at ingestion time and are never recomputed.
    """

    __tablename__ = "sboms"

    id = Column(String(36), primary_key=True, nullable=False)
    project_id = Column(String(36), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    storage_url = Column(String(1024), nullable=False)
    storage_type = Column(String(16), nullable=False, default="local")
    format = Column(String(32), nullable=False, default="Unknown")
    spec_version = Column(String(32), nullable=True)
    tool = Column(String(255), nullable=False)
    commit_hash = Column(String(64), nullable=False, default="unknown")
    components_count = Column(Integer, nullable=False, default=0)
    vulnerabilities_found = Column(Integer, nullable=False, default=0)
    generated_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    project = relationship("Project", back_populates="sboms")
    findings = relationship(
        "VulnerabilityFinding",
        back_populates="sbom",
        cascade="all, delete-orphan",
    )


class VulnerabilityFinding(Base):
    """One vulnerability reported by the correlator for one package in an SBOM."""

    __tablename__ = "vulnerability_findings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    sbom_id = Column(String(36), ForeignKey("sboms.id", ondelete="CASCADE"), nullable=False, index=True)
    package_name = Column(String(512), nullable=False)
    package_version = Column(String(128), nullable=True)
    ecosystem = Column(String(64), nullable=True)
    vulnerability_id = Column(String(128), nullable=False)
    severity = Column(String(32), nullable=True)
    affected_ranges = Column(Text, nullable=True)
    fixed_version = Column(String(128), nullable=True)

    sbom = relationship("Sbom", back_populates="findings")
