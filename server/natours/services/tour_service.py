"""Tour service for business logic operations."""

import logging
import math
from datetime import datetime, timezone
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import extract, func, select

from ..core.exceptions import NotFoundError, ValidationError
from ..models.tour import Tour, TourStartDate
from ..models.user import User
from .crud import CRUDService

logger = logging.getLogger(__name__)

EARTH_RADIUS = {"km": 6371.0088, "mi": 3958.7613}

TOP_TOURS_OVERRIDES = {
    "sort": "price,-ratings_average",
    "fields": "name,price,ratings_average,summary,difficulty",
    "limit": "5",
}


def parse_latlng(latlng: str) -> tuple[float, float]:
    """
    Parse a ``lat,lng`` path segment.

    Raises:
        ValidationError: If either coordinate is missing, not a number or out of range
    """
    parts = [part.strip() for part in latlng.split(",")]
    try:
        if len(parts) != 2 or not all(parts):
            raise ValueError(latlng)
        lat, lng = float(parts[0]), float(parts[1])
    except ValueError:
        raise ValidationError(
            detail="No coordinates defined",
            violations=[{"path": "latlng", "message": "Please provide latitude and longitude in the format lat,lng"}],
        ) from None
    if not (-90 <= lat <= 90 and -180 <= lng <= 180):
        raise ValidationError(
            detail="No coordinates defined",
            violations=[{"path": "latlng", "message": "Coordinates out of range"}],
        )
    return lat, lng


def haversine_distance(lat1: float, lng1: float, lat2: float, lng2: float, unit: str = "km") -> float:
    """Great-circle distance between two points in ``km`` or ``mi``."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lng2 - lng1)
    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    return 2 * EARTH_RADIUS[unit] * math.asin(min(1.0, math.sqrt(a)))


def _start_point(tour: Tour) -> Optional[tuple[float, float]]:
    location = tour.start_location or {}
    coordinates = location.get("coordinates")
    if not coordinates or len(coordinates) != 2:
        return None
    lng, lat = coordinates
    return float(lat), float(lng)


class TourService(CRUDService[Tour]):
    """Service for tour-related operations."""

    model = Tour
    resource_name = "tour"

    async def _apply(self, document: Tour, data: dict[str, Any]) -> None:
        data = dict(data)
        if "guides" in data:
            document.guides = await self._resolve_guides(data.pop("guides") or [])
        if "start_dates" in data:
            document.start_dates = list(data.pop("start_dates") or [])
        await super()._apply(document, data)

    async def _resolve_guides(self, guide_ids: list[UUID]) -> list[User]:
        """
        Load the users referenced as guides, preserving request order.

        Raises:
            ValidationError: If an id does not belong to an active user
        """
        unique_ids = list(dict.fromkeys(guide_ids))
        if not unique_ids:
            return []

        result = await self.db.execute(
            select(User).where(User.id.in_(unique_ids), User.active.is_(True))
        )
        by_id = {user.id: user for user in result.scalars()}
        missing = [str(guide_id) for guide_id in unique_ids if guide_id not in by_id]
        if missing:
            raise ValidationError(
                detail="Invalid input data. Unknown guide",
                violations=[{"path": "guides", "message": f"No user found with ID '{m}'"} for m in missing],
            )
        return [by_id[guide_id] for guide_id in unique_ids]

    async def get_with_reviews(self, tour_id: UUID) -> Tour:
        return await self.get(tour_id, populate=("reviews",))

    async def get_by_slug(self, slug: str) -> Tour:
        """
        Get a visible tour by its slug.

        Raises:
            NotFoundError: If no tour has this slug
        """
        result = await self.db.execute(self._select().where(Tour.slug == slug))
        tour = result.scalar_one_or_none()
        if tour is None:
            raise NotFoundError(resource_type="tour", detail=f"No tour found with slug '{slug}'")
        return tour

    async def set_images(self, tour_id: UUID, image_cover: Optional[str], images: Optional[list[str]]) -> Tour:
        """Point a tour at freshly stored image files."""
        data: dict[str, Any] = {}
        if image_cover is not None:
            data["image_cover"] = image_cover
        if images is not None:
            data["images"] = images
        return await self.update(tour_id, data)

    async def tour_stats(self) -> list[dict[str, Any]]:
        """
        Aggregate highly rated tours per difficulty.

        Returns:
            One row per upper-cased difficulty, fewest tours first
        """
        difficulty = func.upper(Tour.difficulty)
        num_tours = func.count(Tour.id)
        stmt = (
            select(
                difficulty.label("difficulty"),
                num_tours.label("num_tours"),
                func.coalesce(func.sum(Tour.ratings_quantity), 0).label("num_ratings"),
                func.avg(Tour.ratings_average).label("average_rating"),
                func.avg(Tour.price).label("average_price"),
                func.min(Tour.price).label("min_price"),
                func.max(Tour.price).label("max_price"),
                func.sum(Tour.price).label("all_tour_sum"),
            )
            .where(Tour.ratings_average >= 4.5, *Tour.default_criteria())
            .group_by(difficulty)
            .order_by(num_tours.asc(), difficulty.asc())
        )
        result = await self.db.execute(stmt)

        stats = []
        for row in result.mappings():
            stats.append({
                "difficulty": row["difficulty"],
                "num_tours": int(row["num_tours"]),
                "num_ratings": int(row["num_ratings"]),
                "average_rating": round(float(row["average_rating"]), 2),
                "average_price": round(float(row["average_price"]), 2),
                "min_price": float(row["min_price"]),
                "max_price": float(row["max_price"]),
                "all_tour_sum": float(row["all_tour_sum"]),
            })
        return stats

    async def monthly_plans(self, year: int) -> list[dict[str, Any]]:
        """
        Count tour starts per month of ``year``.

        Returns:
            ``month``, ``num_tour_starts`` and the starting tours' names, by month
        """
        start = datetime(year, 1, 1, tzinfo=timezone.utc)
        end = datetime(year + 1, 1, 1, tzinfo=timezone.utc)
        month = extract("month", TourStartDate.starts_at)
        stmt = (
            select(month.label("month"), Tour.name)
            .join(Tour, Tour.id == TourStartDate.tour_id)
            .where(
                TourStartDate.starts_at >= start,
                TourStartDate.starts_at < end,
                *Tour.default_criteria(),
            )
            .order_by(month, TourStartDate.starts_at, Tour.name)
        )
        result = await self.db.execute(stmt)

        plans: dict[int, list[str]] = {}
        for row in result:
            plans.setdefault(int(row.month), []).append(row.name)

        return [
            {"month": month_number, "num_tour_starts": len(names), "tours": names}
            for month_number, names in sorted(plans.items())
        ]

    async def _located_tours(self) -> list[tuple[Tour, tuple[float, float]]]:
        stmt = self._select().where(Tour.start_location.is_not(None))
        result = await self.db.execute(stmt)
        located = []
        for tour in result.scalars():
            point = _start_point(tour)
            if point is not None:
                located.append((tour, point))
        return located

    async def tours_within(self, distance: float, latlng: str, unit: str = "km") -> list[Tour]:
        """
        Tours whose start location lies within ``distance`` of ``latlng``.

        Raises:
            ValidationError: If the coordinates or distance are invalid
        """
        if distance <= 0:
            raise ValidationError(
                detail="Distance must be positive",
                violations=[{"path": "distance", "message": "must be greater than 0"}],
            )
        lat, lng = parse_latlng(latlng)

        within = []
        for tour, (tour_lat, tour_lng) in await self._located_tours():
            if haversine_distance(lat, lng, tour_lat, tour_lng, unit) <= distance:
                within.append(tour)

        logger.info(
            "Tours within radius",
            extra={"center": [lat, lng], "distance": distance, "unit": unit, "results": len(within)}
        )
        return within

    async def distances(self, latlng: str, unit: str = "km") -> list[dict[str, Any]]:
        """Distance from ``latlng`` to every located tour, nearest first."""
        lat, lng = parse_latlng(latlng)
        rows = [
            {
                "id": tour.id,
                "name": tour.name,
                "distance": round(haversine_distance(lat, lng, tour_lat, tour_lng, unit), 3),
            }
            for tour, (tour_lat, tour_lng) in await self._located_tours()
        ]
        rows.sort(key=lambda row: row["distance"])
        return rows
