"""
HTTP surface over the managers – mounted by `Dimensions.create_app`.
"""

from __future__ import annotations

import datetime as dt
from typing import Any, Callable, Dict, List

from fastapi import APIRouter, FastAPI, HTTPException, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError

from .core.version import VersionedEntity
from .errors import (
    ConcurrentModification,
    DimensionError,
    OutOfOrderEffectiveDate,
    StoreUnavailable,
    UnknownDimension,
    UnknownNaturalKey,
)
from .manager import DimensionVersionManager

Resolver = Callable[[str], DimensionVersionManager]


class NewVersion(BaseModel):
    attributes: Dict[str, Any]
    effective: dt.datetime | dt.date
    require_existing: bool = False


class Recorded(BaseModel):
    surrogate_id: int
    version: VersionedEntity


def _parse_moment(value: str) -> dt.datetime:
    try:
        return dt.datetime.fromisoformat(value)
    except ValueError:
        raise HTTPException(
            status_code=422,
            detail=f"not an ISO date or timestamp: {value!r}",
        )


def build_router(resolve: Resolver) -> APIRouter:
    router = APIRouter(prefix="/dimensions", tags=["dimensions"])

    @router.get("/{dimension}/current", response_model=List[VersionedEntity])
    def current_versions(dimension: str):
        return resolve(dimension).current_versions()

    @router.get("/{dimension}/{natural_key}/current", response_model=VersionedEntity)
    def current_version(dimension: str, natural_key: str):
        version = resolve(dimension).current_version(natural_key)
        if version is None:
            raise UnknownNaturalKey(dimension, natural_key)
        return version

    @router.get("/{dimension}/{natural_key}/history", response_model=List[VersionedEntity])
    def history(dimension: str, natural_key: str):
        versions = list(resolve(dimension).history(natural_key))
        if not versions:
            raise UnknownNaturalKey(dimension, natural_key)
        return versions

    @router.get("/{dimension}/{natural_key}/as-of", response_model=VersionedEntity)
    def version_as_of(dimension: str, natural_key: str, at: str):
        version = resolve(dimension).version_as_of(natural_key, _parse_moment(at))
        if version is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"{dimension} {natural_key!r} has no version valid at {at}",
            )
        return version

    @router.post(
        "/{dimension}/{natural_key}/versions",
        response_model=Recorded,
        status_code=status.HTTP_201_CREATED,
    )
    def record_new_version(dimension: str, natural_key: str, body: NewVersion):
        created = resolve(dimension).record_version(
            natural_key,
            body.attributes,
            body.effective,
            require_existing=body.require_existing,
        )
        return Recorded(surrogate_id=created.surrogate_id, version=created)

    return router


_STATUS = [
    (UnknownDimension, status.HTTP_404_NOT_FOUND),
    (UnknownNaturalKey, status.HTTP_404_NOT_FOUND),
    (OutOfOrderEffectiveDate, status.HTTP_409_CONFLICT),
    (ConcurrentModification, status.HTTP_409_CONFLICT),
    (StoreUnavailable, status.HTTP_503_SERVICE_UNAVAILABLE),
]


def install_error_handlers(app: FastAPI) -> None:
    """Map dimversion errors onto HTTP status codes."""

    async def dimension_error(request: Request, exc: DimensionError):
        code = next(
            (c for kind, c in _STATUS if isinstance(exc, kind)),
            status.HTTP_500_INTERNAL_SERVER_ERROR,
        )
        return JSONResponse(
            status_code=code,
            content={"error": type(exc).__name__, "detail": str(exc)},
        )

    async def attribute_error(request: Request, exc: ValidationError):
        return JSONResponse(
            status_code=422,
            content={
                "error": "ValidationError",
                "detail": exc.errors(
                    include_url=False, include_context=False, include_input=False
                ),
            },
        )

    app.add_exception_handler(DimensionError, dimension_error)
    app.add_exception_handler(ValidationError, attribute_error)
