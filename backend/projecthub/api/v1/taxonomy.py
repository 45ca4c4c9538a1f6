"""Global task categories and tags."""

from uuid import UUID

from fastapi import APIRouter, Response, status
from pydantic import BaseModel, ConfigDict, Field

from projecthub.db.session import DBSession
from projecthub.models.project import TaskCategory, TaskTag
from projecthub.services.taxonomy import TaxonomyService

router = APIRouter()

HEX_COLOR = r"^#[0-9a-fA-F]{6}$"


class CategoryCreate(BaseModel):
    name: str = Field(..., max_length=100)
    description: str | None = None
    color: str | None = Field(None, pattern=HEX_COLOR)
    icon: str | None = Field(None, max_length=50)
    created_by_id: UUID | None = None


class CategoryUpdate(BaseModel):
    name: str | None = Field(None, max_length=100)
    description: str | None = None
    color: str | None = Field(None, pattern=HEX_COLOR)
    icon: str | None = Field(None, max_length=50)


class CategoryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    description: str | None
    color: str
    icon: str


class TagCreate(BaseModel):
    name: str = Field(..., max_length=100)
    color: str | None = Field(None, pattern=HEX_COLOR)
    created_by_id: UUID | None = None


class TagUpdate(BaseModel):
    name: str | None = Field(None, max_length=100)
    color: str | None = Field(None, pattern=HEX_COLOR)


class TagResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    color: str


@router.post("/categories", response_model=CategoryResponse, status_code=status.HTTP_201_CREATED)
async def create_category(body: CategoryCreate, db: DBSession) -> TaskCategory:
    return await TaxonomyService(db).create_category(**body.model_dump())


@router.get("/categories", response_model=list[CategoryResponse])
async def list_categories(db: DBSession) -> list[TaskCategory]:
    return list(await TaxonomyService(db).list_categories())


@router.patch("/categories/{category_id}", response_model=CategoryResponse)
async def update_category(category_id: UUID, body: CategoryUpdate, db: DBSession) -> TaskCategory:
    return await TaxonomyService(db).update_category(category_id, **body.model_dump(exclude_none=True))


@router.delete("/categories/{category_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_category(category_id: UUID, db: DBSession) -> Response:
    """Delete a category; its tasks become uncategorized."""
    await TaxonomyService(db).delete_category(category_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/tags", response_model=TagResponse, status_code=status.HTTP_201_CREATED)
async def create_tag(body: TagCreate, db: DBSession) -> TaskTag:
    return await TaxonomyService(db).create_tag(**body.model_dump())


@router.get("/tags", response_model=list[TagResponse])
async def list_tags(db: DBSession) -> list[TaskTag]:
    return list(await TaxonomyService(db).list_tags())


@router.patch("/tags/{tag_id}", response_model=TagResponse)
async def update_tag(tag_id: UUID, body: TagUpdate, db: DBSession) -> TaskTag:
    return await TaxonomyService(db).update_tag(tag_id, **body.model_dump(exclude_none=True))


@router.delete("/tags/{tag_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_tag(tag_id: UUID, db: DBSession) -> Response:
    await TaxonomyService(db).delete_tag(tag_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
