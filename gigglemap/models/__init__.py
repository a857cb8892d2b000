# Alembic needs every model imported to see the full metadata
# gigglemap/models/__init__.py
from .base import Base
from .place import Place
from .user import User

__all__ = [
    "Base",
    "Place",
    "User",
]
