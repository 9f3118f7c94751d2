"""Review routers: top-level reviews and reviews nested under a tour."""

from uuid import UUID

from fastapi import APIRouter, Depends, Response, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.dependencies import protect, restrict_to
from ..models.user import Role, User
from ..schemas.review import ReviewCreate, ReviewOut, ReviewUpdate
from ..services.review_service import ReviewService
from . import handlers
from .handlers import DB_DEPENDENCY

router = APIRouter(prefix="/api/v1/reviews", tags=["reviews"], dependencies=[Depends(protect)])
tour_reviews_router = APIRouter(prefix="/api/v1/tours/{tour_id}/reviews", tags=["reviews"])

AUTHORS = restrict_to(Role.USER.value)
AUTHORS_AND_ADMINS = restrict_to(Role.USER.value, Role.ADMIN.value)


router.add_api_route(
    "",
    handlers.get_all(ReviewService, ReviewOut),
    methods=["GET"],
    name="list_reviews",
    summary="List reviews",
)


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_review(
    payload: ReviewCreate,
    user: User = Depends(AUTHORS),
    db: AsyncSession = DB_DEPENDENCY,
) -> JSONResponse:
    """Write a review; the author is the logged in user."""
    review = await ReviewService(db).create_for(user, payload.model_dump())
    return handlers.document_response(review, ReviewOut, status_code=status.HTTP_201_CREATED)


router.add_api_route(
    "/{doc_id}",
    handlers.get_one(ReviewService, ReviewOut),
    methods=["GET"],
    name="get_review",
    summary="Get a review",
)


@router.patch("/{doc_id}")
async def update_review(
    doc_id: UUID,
    payload: ReviewUpdate,
    user: User = Depends(AUTHORS_AND_ADMINS),
    db: AsyncSession = DB_DEPENDENCY,
) -> JSONResponse:
    review = await ReviewService(db).update_as(user, doc_id, payload.model_dump(exclude_unset=True))
    return handlers.document_response(review, ReviewOut)


@router.delete("/{doc_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_review(
    doc_id: UUID,
    user: User = Depends(AUTHORS_AND_ADMINS),
    db: AsyncSession = DB_DEPENDENCY,
) -> Response:
    await ReviewService(db).delete_as(user, doc_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


tour_reviews_router.add_api_route(
    "",
    handlers.get_all(ReviewService, ReviewOut, scope_params=("tour_id",)),
    methods=["GET"],
    dependencies=[Depends(protect)],
    name="list_tour_reviews",
    summary="List the reviews of one tour",
)


@tour_reviews_router.post("", status_code=status.HTTP_201_CREATED)
async def create_tour_review(
    tour_id: UUID,
    payload: ReviewCreate,
    user: User = Depends(AUTHORS),
    db: AsyncSession = DB_DEPENDENCY,
) -> JSONResponse:
    """Write a review for the tour in the URL."""
    data = payload.model_dump()
    data["tour_id"] = tour_id
    review = await ReviewService(db).create_for(user, data)
    return handlers.document_response(review, ReviewOut, status_code=status.HTTP_201_CREATED)
