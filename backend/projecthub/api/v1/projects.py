"""Project endpoints. A project is the scope for tasks and custom properties."""

from datetime import datetime
from uuid import UUID

import structlog
from fastapi import APIRouter, status
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import select

from projecthub.db.session import DBSession
from projecthub.exceptions import NotFoundError
from projecthub.models.project import Project

router = APIRouter()
logger = structlog.get_logger()


class ProjectCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    status: str = Field(default="active", pattern="^(active|completed|archived|on_hold)$")
    created_by_id: UUID | None = None


class ProjectResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    description: str | None
    status: str
    created_by_id: UUID | None
    created_at: datetime
    updated_at: datetime


@router.post("", response_model=ProjectResponse, status_code=status.HTTP_201_CREATED)
async def create_project(body: ProjectCreate, db: DBSession) -> Project:
    """Create a project."""
    project = Project(
        name=body.name.strip(),
        description=body.description,
        status=body.status,
        created_by_id=body.created_by_id,
    )
    db.add(project)
    await db.commit()
    await db.refresh(project)

    logger.info("project_created", project_id=str(project.id))
    return project


@router.get("", response_model=list[ProjectResponse])
async def list_projects(db: DBSession) -> list[Project]:
    result = await db.execute(select(Project).order_by(Project.created_at, Project.name))
    return list(result.scalars().all())


@router.get("/{project_id}", response_model=ProjectResponse)
async def get_project(project_id: UUID, db: DBSession) -> Project:
    project = await db.get(Project, project_id)
    if project is None:
        raise NotFoundError("Project", project_id)
    return project
