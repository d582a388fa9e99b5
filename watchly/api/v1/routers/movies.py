# watchly/api/v1/routers/movies.py
# ╔══════════════════════════════════════════════════════════════════════════╗
# ║ 🎬 Watchly · Movies API                                                  ║
# ║                                                                          ║
# ║  - POST   /movies/upload       → multipart video + thumbnail → record    ║
# ║  - GET    /movies              → all records (newest first)              ║
# ║  - GET    /movies/{movie_id}   → single record                           ║
# ║  - PUT    /movies/{movie_id}   → partial metadata update                 ║
# ║  - DELETE /movies/{movie_id}   → remove record + remote assets           ║
# ╚══════════════════════════════════════════════════════════════════════════╝

from __future__ import annotations

import logging
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.datastructures import FormData, UploadFile

from watchly.core.exceptions import NotFoundException, ValidationException
from watchly.dependencies.movies import get_movie_service
from watchly.schemas.movie import EDITABLE_FIELDS, DeleteResult, MovieFields, MovieRecord, MovieUpdate
from watchly.services.movie_service import MovieService

log = logging.getLogger(__name__)

router = APIRouter(
    prefix="/movies",
    tags=["Movies"],
    responses={
        400: {"description": "Bad Request"},
        404: {"description": "Not Found"},
        500: {"description": "Internal Server Error"},
    },
)


def _parse_id(movie_id: str) -> UUID:
    try:
        return UUID(movie_id)
    except ValueError:
        raise NotFoundException("Movie not found", details={"id": movie_id}) from None


def _form_fields(form: FormData) -> MovieFields:
    data = {
        key: value
        for key, value in form.multi_items()
        if key in EDITABLE_FIELDS and not isinstance(value, UploadFile)
    }
    try:
        return MovieFields(**data)
    except ValidationError as exc:
        errors = [{"loc": list(e["loc"]), "msg": e["msg"], "type": e["type"]} for e in exc.errors()]
        raise ValidationException("Validation error", details=errors) from None


def _record(record: MovieRecord, status_code: int = status.HTTP_200_OK) -> JSONResponse:
    return JSONResponse(record.model_dump(mode="json"), status_code=status_code)


# ─────────────────────────────────────────────────────────────────────────────
# ⬆️ Upload
# ─────────────────────────────────────────────────────────────────────────────
@router.post(
    "/upload",
    status_code=status.HTTP_201_CREATED,
    response_model=MovieRecord,
    summary="Upload a movie (video + thumbnail)",
)
async def upload_movie(request: Request, service: MovieService = Depends(get_movie_service)) -> JSONResponse:
    form = await request.form()
    try:
        uploads = service.staging.collect(form)
        fields = _form_fields(form)
        record = await service.ingest(fields, uploads)
    finally:
        await form.close()
    return _record(record, status.HTTP_201_CREATED)


# ─────────────────────────────────────────────────────────────────────────────
# 📚 Catalog
# ─────────────────────────────────────────────────────────────────────────────
@router.get("", response_model=List[MovieRecord], summary="List movies")
async def list_movies(service: MovieService = Depends(get_movie_service)) -> JSONResponse:
    records = await service.list_movies()
    return JSONResponse([r.model_dump(mode="json") for r in records])


@router.get("/{movie_id}", response_model=MovieRecord, summary="Get a movie")
async def get_movie(movie_id: str, service: MovieService = Depends(get_movie_service)) -> JSONResponse:
    return _record(await service.get_movie(_parse_id(movie_id)))


@router.put("/{movie_id}", response_model=MovieRecord, summary="Update movie metadata")
async def update_movie(
    movie_id: str,
    payload: MovieUpdate,
    service: MovieService = Depends(get_movie_service),
) -> JSONResponse:
    return _record(await service.update_movie(_parse_id(movie_id), payload.changes()))


@router.delete("/{movie_id}", response_model=DeleteResult, summary="Delete a movie")
async def delete_movie(movie_id: str, service: MovieService = Depends(get_movie_service)) -> JSONResponse:
    await service.delete_movie(_parse_id(movie_id))
    return JSONResponse(DeleteResult().model_dump())


__all__ = ["router"]
