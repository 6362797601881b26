"""Project management endpoints"""
from fastapi import APIRouter, Depends, Path, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.dependencies.auth import get_current_user
from app.models.user import User
from app.schemas.project import ProjectCreate, ProjectResponse
from app.schemas.sbom import SbomResponse
from app.services.project_service import ProjectService
from app.services.sbom_service import SbomService

router = APIRouter(prefix="/projects", tags=["projects"])


@router.get("", response_model=list[ProjectResponse])
async def list_projects(
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
) -> list[ProjectResponse]:
    """
    List the caller's projects, newest first, with their SBOM counts.
    """
    return await ProjectService.get_projects_for_user(session, current_user)


@router.post("", response_model=ProjectResponse, status_code=status.HTTP_201_CREATED)
async def create_project(
    data: ProjectCreate,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
) -> ProjectResponse:
    return await ProjectService.create_project(session, current_user, data)


@router.put("/{project_id}", response_model=ProjectResponse)
async def update_project(
    data: ProjectCreate,
    project_id: str = Path(..., description="Project ID"),
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
) -> ProjectResponse:
    """
    Update name, repository URL, description and tags of a project.
    """
    return await ProjectService.update_project(session, current_user, project_id, data)


@router.delete("/{project_id}")
async def delete_project(
    project_id: str = Path(..., description="Project ID"),
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
) -> dict:
    """
    Delete a project together with its SBOMs and findings.
    """
    await ProjectService.delete_project(session, current_user, project_id)
    return {"message": "Project deleted successfully"}


@router.get("/{project_id}/sboms", response_model=list[SbomResponse])
async def list_project_sboms(
    project_id: str = Path(..., description="Project ID"),
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
) -> list[SbomResponse]:
    return await SbomService.list_for_project(session, current_user, project_id)
