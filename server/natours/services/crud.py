"""Generic CRUD service shared by every resource."""

import logging
from typing import Any, ClassVar, Generic, Iterable, Optional, TypeVar
from uuid import UUID

from sqlalchemy import Select, inspect, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..core.database import Base
from ..core.exceptions import DuplicateValueError, NotFoundError, ValidationError
from ..core.query import QueryFeatures

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=Base)


def _is_unique_violation(exc: IntegrityError) -> bool:
    message = str(exc.orig).lower()
    return "unique" in message or "duplicate key" in message


class CRUDService(Generic[ModelT]):
    """
    List, get, create, update and delete for one ORM model.

    Subclasses set ``model`` and ``resource_name`` and may override ``_apply`` to
    translate request fields that are not plain columns (relationships, proxies).
    """

    model: ClassVar[type]
    resource_name: ClassVar[str] = "document"

    def __init__(self, db: AsyncSession):
        self.db = db

    def _select(self, include_hidden: bool = False) -> Select:
        stmt = select(self.model)
        criteria = [] if include_hidden else self.model.default_criteria()
        if criteria:
            stmt = stmt.where(*criteria)
        return stmt

    async def list(self, features: Optional[QueryFeatures] = None, **scope: Any) -> list[ModelT]:
        """
        List documents matching the default criteria, the scope and the query features.

        Args:
            features: Parsed filter, sort and pagination directives
            **scope: Column equality filters imposed by the route, e.g. ``tour_id``

        Returns:
            Matching documents for the requested page
        """
        features = features or QueryFeatures()
        stmt = self._select()
        for name, value in scope.items():
            stmt = stmt.where(getattr(self.model, name) == value)
        stmt = features.apply(stmt, self.model)

        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def get(self, doc_id: UUID, populate: Iterable[str] = ()) -> ModelT:
        """
        Get a document by id, eager-loading the named relationships.

        Raises:
            NotFoundError: If no visible document has this id
        """
        stmt = self._select().where(self.model.id == doc_id)
        for name in populate:
            stmt = stmt.options(selectinload(getattr(self.model, name)))

        result = await self.db.execute(stmt)
        document = result.scalar_one_or_none()
        if document is None:
            raise NotFoundError(resource_type=self.resource_name, resource_id=str(doc_id))
        return document

    async def create(self, data: dict[str, Any]) -> ModelT:
        """
        Validate and insert a new document.

        Args:
            data: Field values, already validated by the request schema

        Returns:
            The stored document as read back from the database

        Raises:
            ValidationError: If cross-field document validation fails
            DuplicateValueError: If a unique field already holds the value
        """
        document = self.model()
        await self._apply(document, data)
        await self._validate(document)

        self.db.add(document)
        await self._commit()

        logger.info(
            "Document created",
            extra={"resource": self.resource_name, "id": str(document.id)}
        )
        return await self.refetch(document.id)

    async def update(self, doc_id: UUID, data: dict[str, Any]) -> ModelT:
        """
        Apply a partial update and re-run document validation on the merged result.

        Args:
            doc_id: Document id
            data: Only the fields the client sent

        Raises:
            NotFoundError: If no visible document has this id
            ValidationError: If the merged document is invalid
            DuplicateValueError: If a unique field already holds the value
        """
        document = await self.get(doc_id)
        self._reject_nulls(data)
        await self._apply(document, data)
        await self._validate(document)
        await self._commit()

        logger.info(
            "Document updated",
            extra={"resource": self.resource_name, "id": str(doc_id), "fields": sorted(data)}
        )
        return await self.refetch(doc_id)

    async def delete(self, doc_id: UUID) -> None:
        """
        Hard-delete a document.

        Raises:
            NotFoundError: If no visible document has this id
        """
        document = await self.get(doc_id)
        await self.db.delete(document)
        await self._commit()

        logger.info(
            "Document deleted",
            extra={"resource": self.resource_name, "id": str(doc_id)}
        )

    async def refetch(self, doc_id: UUID, populate: Iterable[str] = ()) -> ModelT:
        """Reload a document and its eager relationships, ignoring default criteria."""
        stmt = (
            self._select(include_hidden=True)
            .where(self.model.id == doc_id)
            .execution_options(populate_existing=True)
        )
        for name in populate:
            stmt = stmt.options(selectinload(getattr(self.model, name)))
        result = await self.db.execute(stmt)
        return result.scalar_one()

    async def _apply(self, document: ModelT, data: dict[str, Any]) -> None:
        for key, value in data.items():
            setattr(document, key, value)

    def _reject_nulls(self, data: dict[str, Any]) -> None:
        columns = inspect(self.model).columns
        violations = [
            {"path": key, "message": "may not be null"}
            for key, value in data.items()
            if value is None and key in columns and not columns[key].nullable
        ]
        if violations:
            raise ValidationError(
                detail=f"Invalid input data. {'. '.join(v['path'] + ' may not be null' for v in violations)}",
                violations=violations,
            )

    async def _validate(self, document: ModelT) -> None:
        violations = document.validate_document()
        if violations:
            await self.db.rollback()
            raise ValidationError(
                detail=f"Invalid input data. {'. '.join(v['message'] for v in violations)}",
                violations=violations,
            )

    async def _commit(self) -> None:
        try:
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            logger.warning(
                "Write rejected by database constraint",
                extra={"resource": self.resource_name, "error": str(e.orig)}
            )
            if _is_unique_violation(e):
                raise DuplicateValueError() from e
            raise ValidationError(detail="Invalid input data. The document violates a database constraint") from e
