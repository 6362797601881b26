"""Pydantic schemas for request/response"""
from app.schemas.token import TokenCreate, TokenResponse, TokenCreatedResponse, AccessTokenResponse
from app.schemas.project import ProjectCreate, ProjectResponse
from app.schemas.sbom import SbomSyncRequest, SyncMetadata, SyncReceipt, SbomResponse, SbomDetailResponse

__all__ = [
    "TokenCreate",
    "TokenResponse",
    "TokenCreatedResponse",
    "AccessTokenResponse",
    "ProjectCreate",
    "ProjectResponse",
    "SbomSyncRequest",
    "SyncMetadata",
    "SyncReceipt",
    "SbomResponse",
    "SbomDetailResponse",
]
