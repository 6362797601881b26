"""Project service for managing user projects"""
import logging
from uuid import uuid4

from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.exc import IntegrityError

from app.core.config import settings
from app.core.errors import Conflict, InvalidRequest, NotFound
from app.models.project import Project
from app.models.sbom import Sbom
from app.models.user import User
from app.schemas.project import ProjectCreate, ProjectResponse


logger = logging.getLogger(__name__)


class ProjectService:
    @staticmethod
    async def get_by_name(session: AsyncSession, user_id: int, name: str) -> Project | None:
        stmt = select(Project).where(Project.user_id == user_id, Project.name == name)
        result = await session.execute(stmt)
        return result.scalars().first()

    @staticmethod
    async def get_or_create(session: AsyncSession, user_id: int, name: str) -> tuple[Project, bool]:
        """
        Resolve a project by (owner, name), creating it on first sync.

        Args:
            session: Database session
            user_id: Owner id
            name: Project name as sent by the client

        Returns:
            tuple: (project, created)
        """
        project = await ProjectService.get_by_name(session, user_id, name)
        if project is not None:
            return project, False

        project = Project(
            id=str(uuid4()),
            user_id=user_id,
            name=name,
            repo_url=settings.DEFAULT_REPO_URL_TEMPLATE.format(name=name),
            description=f"Project {name}",
            tags=[],
        )
        session.add(project)
        try:
            await session.commit()
        except IntegrityError:
            # A concurrent sync created the same project; use that row.
            await session.rollback()
            existing = await ProjectService.get_by_name(session, user_id, name)
            if existing is None:
                raise
            return existing, False
        await session.refresh(project)
        logger.info("project_auto_created user_id=%s project_id=%s name=%s", user_id, project.id, name)
        return project, True

    @staticmethod
    async def create_project(session: AsyncSession, user: User, data: ProjectCreate) -> ProjectResponse:
        name = (data.projectName or "").strip()
        repo_url = (data.repoUrl or "").strip()
        if not name or not repo_url:
            raise InvalidRequest("Project name and repository URL are required")

        new_project = Project(
            id=str(uuid4()),
            user_id=user.id,
            name=name,
            repo_url=repo_url,
            description=data.description or "",
            tags=list(data.tags or []),
        )
        session.add(new_project)
        try:
            await session.commit()
            await session.refresh(new_project)
            return ProjectResponse.model_validate(new_project)
        except IntegrityError as e:
            await session.rollback()
            raise Conflict("Project with this name already exists") from e

    @staticmethod
    async def get_projects_for_user(session: AsyncSession, user: User) -> list[ProjectResponse]:
        counts = (
            select(Sbom.project_id, func.count(Sbom.id).label("sbom_count"))
            .group_by(Sbom.project_id)
            .subquery()
        )
        stmt = (
            select(Project, func.coalesce(counts.c.sbom_count, 0))
            .outerjoin(counts, counts.c.project_id == Project.id)
            .where(Project.user_id == user.id)
            .order_by(Project.created_at.desc())
        )
        result = await session.execute(stmt)
        projects = []
        for project, sbom_count in result.all():
            response = ProjectResponse.model_validate(project)
            response.sbom_count = int(sbom_count)
            projects.append(response)
        return projects

    @staticmethod
    async def get_owned(session: AsyncSession, user: User, project_id: str) -> Project:
        stmt = select(Project).where(Project.id == project_id, Project.user_id == user.id)
        project = (await session.execute(stmt)).scalars().first()
        if project is None:
            raise NotFound("Project not found")
        return project

    @staticmethod
    async def delete_project(session: AsyncSession, user: User, project_id: str) -> None:
        """Delete a project owned by the user; its SBOMs and findings go with it."""
        project = await ProjectService.get_owned(session, user, project_id)
        await session.delete(project)
        await session.commit()
        logger.info("project_deleted user_id=%s project_id=%s", user.id, project_id)

    @staticmethod
    async def update_project(
        session: AsyncSession,
        user: User,
        project_id: str,
        data: ProjectCreate,
    ) -> ProjectResponse:
        """
        Rename or re-describe a project owned by the user.

        Raises:
            InvalidRequest: If the name or repository URL is blank
            NotFound: If the project does not exist or belongs to someone else
            Conflict: If another of the user's projects already has the name
        """
        name = (data.projectName or "").strip()
        repo_url = (data.repoUrl or "").strip()
        if not name or not repo_url:
            raise InvalidRequest("Project name and repository URL are required")

        project = await ProjectService.get_owned(session, user, project_id)
        duplicate = await ProjectService.get_by_name(session, user.id, name)
        if duplicate is not None and duplicate.id != project.id:
            raise Conflict("Project with this name already exists")

        project.name = name
        project.repo_url = repo_url
        project.description = data.description or ""
        project.tags = list(data.tags or [])
        try:
            await session.commit()
        except IntegrityError as e:
            await session.rollback()
            raise Conflict("Project with this name already exists") from e

        sbom_count = await session.scalar(select(func.count(Sbom.id)).where(Sbom.project_id == project_id))
        response = ProjectResponse.model_validate(project)
        response.sbom_count = int(sbom_count or 0)
        logger.info("project_updated user_id=%s project_id=%s", user.id, project_id)
        return response
