"""Endpoint factory producing list, get, create, update and delete handlers."""

import logging
from typing import Any, Callable, Iterable, Optional, Sequence
from uuid import UUID

from fastapi import Depends, Request, Response, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import get_db
from ..core.exceptions import ValidationError
from ..core.query import QueryFeatures
from ..schemas.common import success_document, success_list
from ..services.crud import CRUDService

logger = logging.getLogger(__name__)

DB_DEPENDENCY = Depends(get_db)


def query_features(request: Request, overrides: Optional[dict[str, str]] = None) -> QueryFeatures:
    """Parse the request's query string, letting ``overrides`` replace given keys."""
    overrides = overrides or {}
    items = [(key, value) for key, value in request.query_params.multi_items() if key not in overrides]
    items.extend(overrides.items())
    return QueryFeatures.from_params(items)


def path_scope(request: Request, names: Iterable[str]) -> dict[str, UUID]:
    """Read id path parameters used to scope nested listings."""
    scope = {}
    for name in names:
        raw = request.path_params[name]
        try:
            scope[name] = UUID(raw)
        except ValueError:
            raise ValidationError(
                detail=f"Invalid {name}: {raw}",
                violations=[{"path": name, "message": "must be a valid UUID"}],
            ) from None
    return scope


def list_response(
    documents: Iterable[Any],
    out_schema: type[BaseModel],
    features: Optional[QueryFeatures] = None,
    private: Iterable[str] = (),
) -> JSONResponse:
    include = features.projection(out_schema.model_fields.keys(), private) if features else None
    return JSONResponse(content=success_list((out_schema.model_validate(d) for d in documents), include))


def document_response(document: Any, out_schema: type[BaseModel], status_code: int = 200) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=success_document(out_schema.model_validate(document)))


def get_all(
    service_cls: type[CRUDService],
    out_schema: type[BaseModel],
    scope_params: Sequence[str] = (),
    overrides: Optional[dict[str, str]] = None,
) -> Callable:
    """
    Build a list endpoint.

    Args:
        service_cls: CRUD service for the resource
        out_schema: Schema each document is serialized with
        scope_params: Path parameters applied as equality filters
        overrides: Query directives forced by alias routes

    Returns:
        Endpoint function to register with ``add_api_route``
    """
    async def endpoint(request: Request, db: AsyncSession = DB_DEPENDENCY) -> JSONResponse:
        features = query_features(request, overrides)
        private = service_cls.model.private_fields
        # Reject bad projections before touching the database
        features.projection(out_schema.model_fields.keys(), private)

        documents = await service_cls(db).list(features, **path_scope(request, scope_params))
        return list_response(documents, out_schema, features, private)

    return endpoint


def get_one(
    service_cls: type[CRUDService],
    out_schema: type[BaseModel],
    populate: Sequence[str] = (),
) -> Callable:
    """Build a get-by-id endpoint; ``populate`` names relationships to eager-load."""
    async def endpoint(doc_id: UUID, db: AsyncSession = DB_DEPENDENCY) -> JSONResponse:
        document = await service_cls(db).get(doc_id, populate=populate)
        return document_response(document, out_schema)

    return endpoint


def create_one(
    service_cls: type[CRUDService],
    create_schema: type[BaseModel],
    out_schema: type[BaseModel],
) -> Callable:
    """Build a create endpoint answering 201 with the stored document."""
    async def endpoint(payload: create_schema, db: AsyncSession = DB_DEPENDENCY) -> JSONResponse:
        document = await service_cls(db).create(payload.model_dump())
        return document_response(document, out_schema, status_code=status.HTTP_201_CREATED)

    return endpoint


def update_one(
    service_cls: type[CRUDService],
    update_schema: type[BaseModel],
    out_schema: type[BaseModel],
) -> Callable:
    """Build a partial update endpoint; only fields present in the body are applied."""
    async def endpoint(doc_id: UUID, payload: update_schema, db: AsyncSession = DB_DEPENDENCY) -> JSONResponse:
        document = await service_cls(db).update(doc_id, payload.model_dump(exclude_unset=True))
        return document_response(document, out_schema)

    return endpoint


def delete_one(service_cls: type[CRUDService]) -> Callable:
    """Build a delete endpoint answering 204 with an empty body."""
    async def endpoint(doc_id: UUID, db: AsyncSession = DB_DEPENDENCY) -> Response:
        await service_cls(db).delete(doc_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    return endpoint
