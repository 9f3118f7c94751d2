"""Tour router: CRUD, aliases, reporting and geo queries."""

import logging
from typing import List, Literal, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, File, Path, Query, UploadFile
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.dependencies import protect, restrict_to
from ..models.user import Role, User
from ..schemas.tour import MonthlyPlan, TourCreate, TourDetail, TourDistance, TourOut, TourStats, TourUpdate
from ..services.image_service import ImageService
from ..services.tour_service import TOP_TOURS_OVERRIDES, TourService
from . import handlers
from .handlers import DB_DEPENDENCY

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/tours", tags=["tours"])

ADMIN_ONLY = [Depends(restrict_to(Role.ADMIN.value))]
AUTHENTICATED = [Depends(protect)]

DistanceUnit = Literal["km", "mi"]


def get_image_service() -> ImageService:
    return ImageService()


router.add_api_route(
    "",
    handlers.get_all(TourService, TourOut),
    methods=["GET"],
    name="list_tours",
    summary="List tours with filtering, sorting, projection and pagination",
)
router.add_api_route(
    "",
    handlers.create_one(TourService, TourCreate, TourOut),
    methods=["POST"],
    status_code=201,
    dependencies=ADMIN_ONLY,
    name="create_tour",
    summary="Create a tour",
)
router.add_api_route(
    "/top-5-tours",
    handlers.get_all(TourService, TourOut, overrides=TOP_TOURS_OVERRIDES),
    methods=["GET"],
    name="top_five_tours",
    summary="Five cheapest best-rated tours",
)


@router.get("/tour-stats", dependencies=ADMIN_ONLY)
async def tour_stats(db: AsyncSession = DB_DEPENDENCY) -> JSONResponse:
    """Per-difficulty aggregates over tours rated 4.5 or better."""
    stats = await TourService(db).tour_stats()
    return handlers.list_response(stats, TourStats)


@router.get("/monthly-plans/{year}")
async def monthly_plans(
    year: int = Path(..., ge=1970, le=9999),
    db: AsyncSession = DB_DEPENDENCY,
) -> JSONResponse:
    """Number of tour starts per month of ``year``."""
    plans = await TourService(db).monthly_plans(year)
    return handlers.list_response(plans, MonthlyPlan)


@router.get("/tour/{slug}")
async def get_tour_by_slug(slug: str, db: AsyncSession = DB_DEPENDENCY) -> JSONResponse:
    tour = await TourService(db).get_by_slug(slug)
    return handlers.document_response(tour, TourOut)


@router.get("/tours-within/{distance}/center/{latlng}")
async def tours_within(
    distance: float,
    latlng: str,
    unit: DistanceUnit = Query("km"),
    db: AsyncSession = DB_DEPENDENCY,
) -> JSONResponse:
    """Tours starting within ``distance`` of ``lat,lng``."""
    tours = await TourService(db).tours_within(distance, latlng, unit)
    return handlers.list_response(tours, TourOut)


@router.get("/distances/{latlng}")
async def distances(
    latlng: str,
    unit: DistanceUnit = Query("km"),
    db: AsyncSession = DB_DEPENDENCY,
) -> JSONResponse:
    """Distance from ``lat,lng`` to every tour start, nearest first."""
    rows = await TourService(db).distances(latlng, unit)
    return handlers.list_response(rows, TourDistance)


router.add_api_route(
    "/{doc_id}",
    handlers.get_one(TourService, TourDetail, populate=("reviews",)),
    methods=["GET"],
    dependencies=AUTHENTICATED,
    name="get_tour",
    summary="Get a tour with its reviews",
)
router.add_api_route(
    "/{doc_id}",
    handlers.update_one(TourService, TourUpdate, TourOut),
    methods=["PATCH"],
    dependencies=ADMIN_ONLY,
    name="update_tour",
    summary="Update a tour",
)


@router.patch("/{doc_id}/images")
async def upload_tour_images(
    doc_id: UUID,
    image_cover: Optional[UploadFile] = File(None),
    images: Optional[List[UploadFile]] = File(None),
    user: User = Depends(restrict_to(Role.ADMIN.value)),
    db: AsyncSession = DB_DEPENDENCY,
    image_service: ImageService = Depends(get_image_service),
) -> JSONResponse:
    """Replace a tour's cover and gallery with resized uploads."""
    service = TourService(db)
    await service.get(doc_id)

    cover_name, image_names = await image_service.save_tour_images(doc_id, image_cover, images)
    tour = await service.set_images(doc_id, cover_name, image_names)

    logger.info(
        "Tour images updated",
        extra={"tour_id": str(doc_id), "user_id": str(user.id), "cover": cover_name, "images": image_names}
    )
    return handlers.document_response(tour, TourOut)


router.add_api_route(
    "/{doc_id}",
    handlers.delete_one(TourService),
    methods=["DELETE"],
    status_code=204,
    dependencies=ADMIN_ONLY,
    name="delete_tour",
    summary="Delete a tour",
)
