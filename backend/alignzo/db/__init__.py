"""Database package."""

from alignzo.db.base import Base, BaseModel, JSONType
from alignzo.db.session import DBSession, get_db_session

__all__ = ["Base", "BaseModel", "DBSession", "JSONType", "get_db_session"]
