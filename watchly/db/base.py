# watchly/db/base.py
"""
Watchly — SQLAlchemy Base registry
==================================

Import all ORM models so their tables are registered on `Base.metadata`
(Alembic autogeneration reads it from here). Import-only; no runtime logic.
"""

from watchly.db.base_class import Base
from watchly.db.models.movie import Movie

__all__ = ["Base", "Movie"]
