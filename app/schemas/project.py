"""Pydantic schemas for Project"""
from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime
from typing import Optional


class ProjectCreate(BaseModel):
    projectName: Optional[str] = None
    repoUrl: Optional[str] = None
    description: Optional[str] = None
    tags: list[str] = Field(default_factory=list)


class ProjectResponse(BaseModel):
    id: str
    user_id: int
    name: str
    repo_url: str
    description: str
    tags: list[str]
    latest_sbom_id: Optional[str] = None
    created_at: datetime
    sbom_count: int = 0

    # Pydantic v2 configuration for ORM conversion from SQLAlchemy objects
    model_config = ConfigDict(from_attributes=True)
