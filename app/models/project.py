"""Project SQLAlchemy model"""
from sqlalchemy import Column, String, Integer, ForeignKey, DateTime, JSON, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.core.database import Base


class Project(Base):
    """
    Project model representing a tracked software project.
    Attributes:
        id: Primary key (UUID string)
        user_id: Foreign key to User
        name: Project name, unique per owner
        repo_url: Repository URL
        description: Free text description
        tags: List of tag strings
        latest_sbom_id: Most recently ingested SBOM
        created_at: Timestamp
    """
    __tablename__ = "projects"
    __table_args__ = (UniqueConstraint("user_id", "name", name="uq_projects_user_name"),)

    # String UUID ids avoid leaking sequential ids
    id = Column(String(36), primary_key=True, nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    repo_url = Column(String(1024), nullable=False)
    description = Column(String(2048), nullable=False, default="")
    tags = Column(JSON, nullable=False, default=list)
    latest_sbom_id = Column(String(36), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    user = relationship("User", back_populates="projects")
    sboms = relationship(
        "Sbom",
        back_populates="project",
        cascade="all, delete-orphan",
        order_by="Sbom.generated_at.desc()",
    )
