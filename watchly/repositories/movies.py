from __future__ import annotations

"""Movie catalog repository.

Provides an interface plus two implementations:

- `SqlMovieRepository`: the `movies` table through an `AsyncSession`.
- `MemoryMovieRepository`: a process-local dict, used for local runs without a
  database and in tests.

Both return `MovieRecord` instances; `id` and `created_at` are never changed by
`update`.
"""

import logging
import os
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from uuid import UUID, uuid4

from sqlalchemy import delete as sa_delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from watchly.core.exceptions import DatabaseException
from watchly.db.models.movie import Movie
from watchly.schemas.movie import EDITABLE_FIELDS, MovieCreate, MovieRecord

logger = logging.getLogger(__name__)


class MovieRepositoryProtocol:
    async def create(self, data: MovieCreate) -> MovieRecord:
        raise NotImplementedError

    async def list_all(self) -> List[MovieRecord]:
        raise NotImplementedError

    async def get(self, movie_id: UUID) -> Optional[MovieRecord]:
        raise NotImplementedError

    async def update(self, movie_id: UUID, changes: Dict[str, Any]) -> Optional[MovieRecord]:
        raise NotImplementedError

    async def delete(self, movie_id: UUID) -> bool:
        raise NotImplementedError


def _editable(changes: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in changes.items() if k in EDITABLE_FIELDS}


# ──────────────────────────────────────────────────────────────
# 🗄️ SQLAlchemy implementation
# ──────────────────────────────────────────────────────────────
class SqlMovieRepository(MovieRepositoryProtocol):
    """Async SQLAlchemy repository; wraps driver errors as `DatabaseException`."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, data: MovieCreate) -> MovieRecord:
        movie = Movie(id=uuid4(), **data.model_dump())
        try:
            self.session.add(movie)
            await self.session.commit()
            await self.session.refresh(movie)
        except SQLAlchemyError as exc:
            await self.session.rollback()
            logger.exception("Failed to insert movie")
            raise DatabaseException(details={"operation": "create"}) from exc
        return MovieRecord.model_validate(movie)

    async def list_all(self) -> List[MovieRecord]:
        try:
            result = await self.session.execute(select(Movie).order_by(Movie.created_at.desc()))
        except SQLAlchemyError as exc:
            logger.exception("Failed to list movies")
            raise DatabaseException(details={"operation": "list"}) from exc
        return [MovieRecord.model_validate(m) for m in result.scalars().all()]

    async def get(self, movie_id: UUID) -> Optional[MovieRecord]:
        movie = await self._load(movie_id)
        return MovieRecord.model_validate(movie) if movie is not None else None

    async def update(self, movie_id: UUID, changes: Dict[str, Any]) -> Optional[MovieRecord]:
        movie = await self._load(movie_id)
        if movie is None:
            return None
        for key, value in _editable(changes).items():
            setattr(movie, key, value)
        try:
            await self.session.commit()
            await self.session.refresh(movie)
        except SQLAlchemyError as exc:
            await self.session.rollback()
            logger.exception("Failed to update movie %s", movie_id)
            raise DatabaseException(details={"operation": "update"}) from exc
        return MovieRecord.model_validate(movie)

    async def delete(self, movie_id: UUID) -> bool:
        try:
            result = await self.session.execute(sa_delete(Movie).where(Movie.id == movie_id))
            await self.session.commit()
        except SQLAlchemyError as exc:
            await self.session.rollback()
            logger.exception("Failed to delete movie %s", movie_id)
            raise DatabaseException(details={"operation": "delete"}) from exc
        return (result.rowcount or 0) > 0

    async def _load(self, movie_id: UUID) -> Optional[Movie]:
        try:
            return await self.session.get(Movie, movie_id)
        except SQLAlchemyError as exc:
            logger.exception("Failed to load movie %s", movie_id)
            raise DatabaseException(details={"operation": "get"}) from exc


# ──────────────────────────────────────────────────────────────
# 🧪 In-memory implementation
# ──────────────────────────────────────────────────────────────
class MemoryMovieRepository(MovieRepositoryProtocol):
    """Dict-backed repository (no persistence across restarts)."""

    def __init__(self) -> None:
        self._items: Dict[UUID, MovieRecord] = {}

    async def create(self, data: MovieCreate) -> MovieRecord:
        payload = data.model_dump()
        if payload.get("created_at") is None:
            payload["created_at"] = datetime.now(timezone.utc)
        record = MovieRecord(id=uuid4(), **payload)
        self._items[record.id] = record
        return record

    async def list_all(self) -> List[MovieRecord]:
        return sorted(self._items.values(), key=lambda r: r.created_at, reverse=True)

    async def get(self, movie_id: UUID) -> Optional[MovieRecord]:
        return self._items.get(movie_id)

    async def update(self, movie_id: UUID, changes: Dict[str, Any]) -> Optional[MovieRecord]:
        current = self._items.get(movie_id)
        if current is None:
            return None
        updated = current.model_copy(update=_editable(changes))
        self._items[movie_id] = updated
        return updated

    async def delete(self, movie_id: UUID) -> bool:
        return self._items.pop(movie_id, None) is not None


_memory_repo: Optional[MemoryMovieRepository] = None


def use_memory_repository() -> bool:
    """`MOVIES_REPOSITORY=memory` serves the catalog from process memory."""
    return os.environ.get("MOVIES_REPOSITORY", "sql").strip().lower() == "memory"


def get_memory_repository() -> MemoryMovieRepository:
    """Process-wide in-memory repository (created on first use)."""
    global _memory_repo
    if _memory_repo is None:
        _memory_repo = MemoryMovieRepository()
    return _memory_repo


__all__ = [
    "MovieRepositoryProtocol",
    "SqlMovieRepository",
    "MemoryMovieRepository",
    "use_memory_repository",
    "get_memory_repository",
]
