"""Member endpoints: the people tasks can be assigned to."""

from uuid import UUID

import structlog
from fastapi import APIRouter, status
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import select

from projecthub.db.session import DBSession
from projecthub.exceptions import FieldError, ValidationError
from projecthub.models.user import User

router = APIRouter()
logger = structlog.get_logger()


class UserCreate(BaseModel):
    email: str = Field(..., min_length=3, max_length=255, pattern=r"^[^@\s]+@[^@\s]+$")
    display_name: str = Field(..., min_length=1, max_length=255)
    avatar_url: str | None = None


class UserResponse(BaseModel):
    """Member as shown in assignee pickers."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    email: str
    display_name: str
    avatar_url: str | None
    is_active: bool


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(body: UserCreate, db: DBSession) -> User:
    """Register a member."""
    email = body.email.strip().lower()
    existing = await db.execute(select(User.id).where(User.email == email))
    if existing.first() is not None:
        raise ValidationError([FieldError("email", "A user with this email already exists", "duplicate")])

    user = User(email=email, display_name=body.display_name.strip(), avatar_url=body.avatar_url)
    db.add(user)
    await db.commit()
    await db.refresh(user)

    logger.info("user_created", user_id=str(user.id))
    return user


@router.get("", response_model=list[UserResponse])
async def list_users(db: DBSession) -> list[User]:
    """Active members by display name."""
    result = await db.execute(
        select(User).where(User.is_active.is_(True)).order_by(User.display_name)
    )
    return list(result.scalars().all())
