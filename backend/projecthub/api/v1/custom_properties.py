"""Custom property definition endpoints."""

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Query, status
from pydantic import BaseModel, ConfigDict, Field

from projecthub.db.session import DBSession
from projecthub.models.project import CustomProperty
from projecthub.services.custom_property import CustomPropertyService

router = APIRouter()


class PropertyCreate(BaseModel):
    """Create a property definition. ``project_id`` of null means the global task space."""

    project_id: UUID | None = None
    name: str = Field(..., max_length=100)
    property_type: str
    options: list[str] = Field(default_factory=list)
    is_required: bool = False
    display_order: int | None = None


class PropertyUpdate(BaseModel):
    name: str | None = Field(None, max_length=100)
    property_type: str | None = None
    options: list[str] | None = None
    is_required: bool | None = None
    display_order: int | None = None


class PropertyReorder(BaseModel):
    project_id: UUID | None = None
    property_ids: list[UUID]


class PropertyResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    project_id: UUID | None
    name: str
    property_type: str
    options: list[str]
    is_required: bool
    display_order: int
    created_at: datetime
    updated_at: datetime


class PropertyDeleteResponse(BaseModel):
    id: UUID
    values_removed: int


@router.post("", response_model=PropertyResponse, status_code=status.HTTP_201_CREATED)
async def create_property(body: PropertyCreate, db: DBSession) -> CustomProperty:
    service = CustomPropertyService(db)
    return await service.create_property(**body.model_dump())


@router.get("", response_model=list[PropertyResponse])
async def list_properties(
    db: DBSession,
    project_id: UUID | None = Query(None, description="Omit for global task properties"),
) -> list[CustomProperty]:
    service = CustomPropertyService(db)
    return list(await service.list_properties(project_id))


@router.post("/reorder", response_model=list[PropertyResponse])
async def reorder_properties(body: PropertyReorder, db: DBSession) -> list[CustomProperty]:
    """Set display order to the position in ``property_ids``."""
    service = CustomPropertyService(db)
    return list(await service.reorder_properties(body.project_id, body.property_ids))


@router.get("/{property_id}", response_model=PropertyResponse)
async def get_property(property_id: UUID, db: DBSession) -> CustomProperty:
    return await CustomPropertyService(db).get_property(property_id)


@router.patch("/{property_id}", response_model=PropertyResponse)
async def update_property(
    property_id: UUID,
    body: PropertyUpdate,
    db: DBSession,
) -> CustomProperty:
    service = CustomPropertyService(db)
    return await service.update_property(property_id, **body.model_dump(exclude_unset=True))


@router.delete("/{property_id}", response_model=PropertyDeleteResponse)
async def delete_property(property_id: UUID, db: DBSession) -> PropertyDeleteResponse:
    """Delete a definition and all of its values."""
    removed = await CustomPropertyService(db).delete_property(property_id)
    return PropertyDeleteResponse(id=property_id, values_removed=removed)
