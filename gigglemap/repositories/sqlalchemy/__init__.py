"""SQLAlchemy/PostGIS implementations of repository interfaces."""

from .places import SqlAlchemyPlaceRepository
from .users import SqlAlchemyUserRepository

__all__ = [
    "SqlAlchemyPlaceRepository",
    "SqlAlchemyUserRepository",
]
