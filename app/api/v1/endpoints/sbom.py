"""SBOM sync and retrieval endpoints"""
from fastapi import APIRouter, Depends, Path, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.dependencies.auth import get_current_user
from app.dependencies.rate_limit import ENDPOINT_SBOM_SYNC, user_rate_limit
from app.models.user import User
from app.schemas.sbom import SbomDetailResponse, SbomSyncRequest, SyncReceipt
from app.services.sbom_service import SbomIngestionPipeline, SbomService
from app.services.storage_service import ArtifactStore, get_artifact_store
from app.services.vulnerability_service import VulnerabilityCorrelator, get_correlator

router = APIRouter(tags=["sbom"])


@router.post(
    "/sbom/sync",
    response_model=SyncReceipt,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(user_rate_limit(ENDPOINT_SBOM_SYNC, "RATE_LIMIT_SBOM_SYNC"))],
)
async def sync_sbom(
    request: SbomSyncRequest,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
    correlator: VulnerabilityCorrelator = Depends(get_correlator),
    artifact_store: ArtifactStore = Depends(get_artifact_store),
) -> SyncReceipt:
    """
    Ingest an SBOM pushed from CI.

    The project is created on first sync. Vulnerability correlation and
    artifact storage may degrade without failing the request; the receipt
    lists any degraded steps.
    """
    pipeline = SbomIngestionPipeline(session, correlator, artifact_store)
    metadata = request.metadata.model_dump(exclude_none=True) if request.metadata else None
    return await pipeline.sync(current_user, request.project, request.sbom, metadata)


@router.get("/sboms/{sbom_id}", response_model=SbomDetailResponse)
async def get_sbom(
    sbom_id: str = Path(..., description="SBOM ID"),
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
) -> SbomDetailResponse:
    return await SbomService.get_detail(session, current_user, sbom_id)


@router.delete("/sboms/{sbom_id}")
async def delete_sbom(
    sbom_id: str = Path(..., description="SBOM ID"),
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
    artifact_store: ArtifactStore = Depends(get_artifact_store),
) -> dict:
    await SbomService.delete_sbom(session, current_user, sbom_id, artifact_store)
    return {"message": "SBOM deleted successfully"}
