"""SBOM ingestion pipeline and SBOM record management.

``SbomIngestionPipeline.sync`` runs parse -> correlate -> store -> persist.
Correlation and artifact storage are non-fatal steps: a failure or timeout is
logged as a degraded dependency and the pipeline continues with an empty
finding list or a local storage reference. Only persistence is fatal.
"""
import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar
from uuid import uuid4

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.orm import selectinload

from app.core.config import settings
from app.core.errors import InternalError, InvalidRequest, NotFound
from app.models.project import Project
from app.models.sbom import Sbom, VulnerabilityFinding
from app.models.user import User
from app.schemas.sbom import SbomDetailResponse, SbomResponse, SyncReceipt
from app.services import sbom_parser
from app.services.project_service import ProjectService
from app.services.storage_service import ArtifactStore
from app.services.vulnerability_service import Finding, VulnerabilityCorrelator


logger = logging.getLogger(__name__)

T = TypeVar("T")

STORAGE_S3 = "s3"
STORAGE_LOCAL = "local"


@dataclass(frozen=True)
class StepResult(Generic[T]):
    """Outcome of one pipeline step: its value and whether it ran degraded."""

    step: str
    value: T
    degraded: bool = False
    error: Optional[str] = None


@dataclass(frozen=True)
class StoredArtifact:
    url: str
    storage_type: str


async def run_optional_step(
    step: str,
    call: Callable[[], Awaitable[T]],
    fallback: Callable[[], T],
    timeout: float,
) -> StepResult[T]:
    """
    Run a non-fatal step with a timeout.

    Any exception or timeout is logged as ``dependency_degraded`` and the
    fallback value is used instead.
    """
    try:
        value = await asyncio.wait_for(call(), timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning("dependency_degraded step=%s error=timeout timeout_s=%s", step, timeout)
        return StepResult(step, fallback(), degraded=True, error="timeout")
    except Exception as exc:  # noqa: BLE001 - any collaborator failure degrades the step
        logger.warning("dependency_degraded step=%s error=%s detail=%s", step, exc.__class__.__name__, exc)
        return StepResult(step, fallback(), degraded=True, error=exc.__class__.__name__)
    return StepResult(step, value)


def local_reference(project_id: str) -> str:
    """Placeholder locator recorded when the artifact store is unavailable."""
    return f"sbom_{project_id}_{int(time.time() * 1000)}.json"


class SbomIngestionPipeline:
    """
    Turns an uploaded SBOM into a stored record with a vulnerability count.

    Args:
        session: Database session for project lookup and persistence
        correlator: Vulnerability lookup collaborator
        artifact_store: Raw document storage collaborator
    """

    def __init__(
        self,
        session: AsyncSession,
        correlator: VulnerabilityCorrelator,
        artifact_store: ArtifactStore,
    ) -> None:
        self._session = session
        self._correlator = correlator
        self._artifact_store = artifact_store

    async def sync(
        self,
        owner: User,
        project_name: Optional[str],
        sbom_document: Any,
        metadata: Optional[dict[str, Any]] = None,
    ) -> SyncReceipt:
        """
        Ingest one SBOM for the owner.

        Raises:
            InvalidRequest: If the project name or document is missing
            InternalError: If the SBOM record cannot be persisted
        """
        name = project_name.strip() if isinstance(project_name, str) else ""
        if not name or not isinstance(sbom_document, dict):
            raise InvalidRequest("Project name and SBOM data are required")

        owner_id = owner.id
        try:
            project, created = await ProjectService.get_or_create(self._session, owner_id, name)
            # No transaction stays open across the correlator and store calls.
            await self._session.commit()
        except SQLAlchemyError as exc:
            logger.exception("sbom_sync_project_failed user_id=%s project=%s", owner_id, name)
            raise InternalError("Failed to resolve project") from exc
        project_id = project.id

        description = sbom_parser.describe(sbom_document, metadata)
        components_count = sbom_parser.count_components(sbom_document)
        packages = sbom_parser.extract_packages(sbom_document)
        sbom_id = str(uuid4())

        correlation = await run_optional_step(
            "correlate",
            lambda: self._correlator.correlate(packages),
            fallback=list,
            timeout=settings.VULN_CORRELATOR_TIMEOUT_SECONDS,
        )
        storage = await self._store(sbom_document, project_id, sbom_id)

        sbom = await self._persist(
            project=project,
            sbom_id=sbom_id,
            description=description,
            components_count=components_count,
            findings=correlation.value,
            artifact=storage.value,
        )

        degraded = [step.step for step in (correlation, storage) if step.degraded]
        logger.info(
            "sbom_synced user_id=%s project_id=%s sbom_id=%s components=%s findings=%s storage=%s degraded=%s created_project=%s",
            owner_id,
            project_id,
            sbom.id,
            components_count,
            len(correlation.value),
            storage.value.storage_type,
            ",".join(degraded) or "-",
            created,
        )
        return SyncReceipt(
            id=sbom.id,
            project=name,
            projectId=project_id,
            sbomId=sbom.id,
            componentsCount=components_count,
            vulnerabilitiesFound=len(correlation.value),
            storageUrl=storage.value.url,
            storageType=storage.value.storage_type,
            degraded=degraded,
            syncedAt=datetime.now(timezone.utc),
        )

    async def _store(self, document: dict[str, Any], project_id: str, sbom_id: str) -> StepResult[StoredArtifact]:
        def fallback() -> StoredArtifact:
            return StoredArtifact(local_reference(project_id), STORAGE_LOCAL)

        if not self._artifact_store.is_configured():
            # Unconfigured storage is an expected deployment mode, not a failure.
            return StepResult("store", fallback())

        async def upload() -> StoredArtifact:
            url = await self._artifact_store.put_sbom(document, project_id, sbom_id)
            return StoredArtifact(url, STORAGE_S3)

        return await run_optional_step(
            "store",
            upload,
            fallback=fallback,
            timeout=settings.ARTIFACT_STORE_TIMEOUT_SECONDS,
        )

    async def _persist(
        self,
        project: Project,
        sbom_id: str,
        description: sbom_parser.SbomDescription,
        components_count: int,
        findings: list[Finding],
        artifact: StoredArtifact,
    ) -> Sbom:
        sbom = Sbom(
            id=sbom_id,
            project_id=project.id,
            storage_url=artifact.url,
            storage_type=artifact.storage_type,
            format=description.format,
            spec_version=description.spec_version,
            tool=description.tool,
            commit_hash=description.commit_hash,
            components_count=components_count,
            vulnerabilities_found=len(findings),
            generated_at=datetime.now(timezone.utc),
        )
        self._session.add(sbom)
        for finding in findings:
            self._session.add(
                VulnerabilityFinding(
                    sbom_id=sbom_id,
                    package_name=finding.package_name,
                    package_version=finding.package_version,
                    ecosystem=finding.ecosystem,
                    vulnerability_id=finding.vulnerability_id,
                    severity=finding.severity,
                    affected_ranges=finding.affected_ranges,
                    fixed_version=finding.fixed_version,
                )
            )
        project.latest_sbom_id = sbom_id
        try:
            await self._session.commit()
        except SQLAlchemyError as exc:
            await self._session.rollback()
            logger.exception("sbom_persist_failed project_id=%s sbom_id=%s", project.id, sbom_id)
            raise InternalError("Failed to persist SBOM") from exc
        return sbom


class SbomService:
    """Read and delete operations on stored SBOMs"""

    @staticmethod
    async def list_for_project(session: AsyncSession, user: User, project_id: str) -> list[SbomResponse]:
        await ProjectService.get_owned(session, user, project_id)
        stmt = select(Sbom).where(Sbom.project_id == project_id).order_by(Sbom.generated_at.desc())
        result = await session.execute(stmt)
        return [SbomResponse.model_validate(sbom) for sbom in result.scalars().all()]

    @staticmethod
    async def get_owned(session: AsyncSession, user: User, sbom_id: str) -> Sbom:
        stmt = (
            select(Sbom)
            .join(Project, Sbom.project_id == Project.id)
            .where(Sbom.id == sbom_id, Project.user_id == user.id)
            .options(selectinload(Sbom.findings))
        )
        sbom = (await session.execute(stmt)).scalars().first()
        if sbom is None:
            raise NotFound("SBOM not found")
        return sbom

    @staticmethod
    async def get_detail(session: AsyncSession, user: User, sbom_id: str) -> SbomDetailResponse:
        sbom = await SbomService.get_owned(session, user, sbom_id)
        return SbomDetailResponse.model_validate(sbom)

    @staticmethod
    async def delete_sbom(
        session: AsyncSession,
        user: User,
        sbom_id: str,
        artifact_store: ArtifactStore,
    ) -> None:
        """
        Delete an SBOM record, best-effort deleting the stored artifact first.

        If it was the project's latest SBOM, the pointer moves to the next newest one.
        """
        sbom = await SbomService.get_owned(session, user, sbom_id)
        project_id = sbom.project_id
        if sbom.storage_type == STORAGE_S3 and artifact_store.is_configured():
            try:
                await asyncio.wait_for(
                    artifact_store.delete_sbom(project_id, sbom_id),
                    timeout=settings.ARTIFACT_STORE_TIMEOUT_SECONDS,
                )
            except Exception as exc:  # noqa: BLE001 - record deletion proceeds regardless
                logger.warning("artifact_delete_failed sbom_id=%s error=%s", sbom_id, exc.__class__.__name__)

        await session.delete(sbom)
        await session.flush()

        project = await session.get(Project, project_id)
        if project is not None and project.latest_sbom_id == sbom_id:
            stmt = (
                select(Sbom.id)
                .where(Sbom.project_id == project_id)
                .order_by(Sbom.generated_at.desc())
                .limit(1)
            )
            project.latest_sbom_id = (await session.execute(stmt)).scalars().first()
        await session.commit()
        logger.info("sbom_deleted sbom_id=%s project_id=%s", sbom_id, project_id)

