"""Database package."""

from projecthub.db.base import Base, BaseModel, utcnow
from projecthub.db.session import DBSession, get_db_session

__all__ = ["Base", "BaseModel", "DBSession", "get_db_session", "utcnow"]
