from __future__ import annotations

"""
Movie service providers
-----------------------
FastAPI dependencies wiring the movie service to its collaborators. Tests
replace `get_movie_service` through `app.dependency_overrides`.

- `MOVIES_REPOSITORY=memory` serves the catalog from process memory (no DB).
  The request session is still opened but never connects.
"""

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from watchly.db.session import get_async_db
from watchly.repositories.movies import (
    MovieRepositoryProtocol,
    SqlMovieRepository,
    get_memory_repository,
    use_memory_repository,
)
from watchly.services.media_host import get_media_host
from watchly.services.movie_service import MovieService
from watchly.services.staging import get_staging_area


def get_movie_repository(session: AsyncSession = Depends(get_async_db)) -> MovieRepositoryProtocol:
    if use_memory_repository():
        return get_memory_repository()
    return SqlMovieRepository(session)


def get_movie_service(repo: MovieRepositoryProtocol = Depends(get_movie_repository)) -> MovieService:
    return MovieService(repo, get_media_host(), get_staging_area())


__all__ = ["get_movie_repository", "get_movie_service"]
