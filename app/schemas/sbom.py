"""Pydantic schemas for SBOM sync and retrieval"""
from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime
from typing import Any, Optional


class SyncMetadata(BaseModel):
    """Optional descriptive metadata sent by CI alongside the document."""

    source: Optional[str] = None
    commitHash: Optional[str] = None
    format: Optional[str] = None

    model_config = ConfigDict(extra="allow")


class SbomSyncRequest(BaseModel):
    """
    Body of ``POST /sbom/sync``.

    Both ``project`` and ``sbom`` are optional at the schema level so the
    pipeline can reject them with ``InvalidRequest`` (400).
    """

    project: Optional[str] = None
    sbom: Optional[Any] = None
    metadata: Optional[SyncMetadata] = None


class SyncReceipt(BaseModel):
    id: str
    status: str = "success"
    message: str = "SBOM synced successfully"
    project: str
    projectId: str
    sbomId: str
    componentsCount: int
    vulnerabilitiesFound: int
    storageUrl: str
    storageType: str
    degraded: list[str] = Field(default_factory=list)
    syncedAt: datetime


class FindingResponse(BaseModel):
    package_name: str
    package_version: Optional[str] = None
    ecosystem: Optional[str] = None
    vulnerability_id: str
    severity: Optional[str] = None
    fixed_version: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class SbomResponse(BaseModel):
    id: str
    project_id: str
    storage_url: str
    storage_type: str
    format: str
    spec_version: Optional[str] = None
    tool: str
    commit_hash: str
    components_count: int
    vulnerabilities_found: int
    generated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class SbomDetailResponse(SbomResponse):
    findings: list[FindingResponse] = Field(default_factory=list)
