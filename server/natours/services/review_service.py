"""Review service: authoring rules and tour rating aggregates."""

import logging
from typing import Any
from uuid import UUID

from sqlalchemy import func, select

from ..core.exceptions import AuthorizationError, ValidationError
from ..models.review import Review
from ..models.tour import Tour
from ..models.user import Role, User
from .crud import CRUDService
from .tour_service import TourService

logger = logging.getLogger(__name__)

DEFAULT_RATINGS_AVERAGE = 4.5


class ReviewService(CRUDService[Review]):
    """Service for review-related operations."""

    model = Review
    resource_name = "review"

    async def create_for(self, author: User, data: dict[str, Any]) -> Review:
        """
        Create a review written by ``author`` and refresh the tour's rating.

        Args:
            author: The logged in user
            data: Review fields including ``tour_id``

        Raises:
            ValidationError: If no tour was given
            NotFoundError: If the tour does not exist or is hidden
            DuplicateValueError: If the author already reviewed this tour
        """
        tour_id = data.get("tour_id")
        if tour_id is None:
            raise ValidationError(
                detail="Review must belong to a tour",
                violations=[{"path": "tour_id", "message": "Review must belong to a tour"}],
            )
        await TourService(self.db).get(tour_id)

        review = await self.create({**data, "user_id": author.id})
        await self.recalculate_ratings(tour_id)
        return review

    async def update_as(self, actor: User, review_id: UUID, data: dict[str, Any]) -> Review:
        review = await self.get(review_id)
        self._check_author(actor, review)
        updated = await self.update(review_id, data)
        if "rating" in data:
            await self.recalculate_ratings(updated.tour_id)
        return updated

    async def delete_as(self, actor: User, review_id: UUID) -> None:
        review = await self.get(review_id)
        self._check_author(actor, review)
        tour_id = review.tour_id
        await self.delete(review_id)
        await self.recalculate_ratings(tour_id)

    @staticmethod
    def _check_author(actor: User, review: Review) -> None:
        if actor.role != Role.ADMIN.value and review.user_id != actor.id:
            raise AuthorizationError(detail="You can only change your own reviews")

    async def recalculate_ratings(self, tour_id: UUID) -> None:
        """Store the review count and mean rating on the tour."""
        result = await self.db.execute(
            select(func.count(Review.id), func.avg(Review.rating)).where(Review.tour_id == tour_id)
        )
        quantity, average = result.one()

        tour = await self.db.get(Tour, tour_id)
        if tour is None:
            return

        tour.ratings_quantity = int(quantity)
        tour.ratings_average = float(average) if quantity else DEFAULT_RATINGS_AVERAGE
        await self._commit()

        logger.info(
            "Tour ratings recalculated",
            extra={
                "tour_id": str(tour_id),
                "ratings_quantity": tour.ratings_quantity,
                "ratings_average": tour.ratings_average,
            }
        )
