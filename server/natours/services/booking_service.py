"""Booking service: checkout orders and payment confirmation."""

import logging
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import select

from ..core.config import settings
from ..core.exceptions import DuplicateValueError, NotFoundError
from ..core.observability import metrics_collector
from ..models.booking import Booking
from ..models.tour import Tour
from ..models.user import User
from .crud import CRUDService
from .payment_gateway import RazorpayGateway, to_minor_units
from .tour_service import TourService

logger = logging.getLogger(__name__)


class BookingService(CRUDService[Booking]):
    """Service for booking-related operations."""

    model = Booking
    resource_name = "booking"

    async def create_checkout_order(self, gateway: RazorpayGateway, user: User, slug: str) -> dict[str, Any]:
        """
        Open a payment order for the tour with ``slug``.

        Returns:
            The provider order; ``notes`` carry the tour and user ids

        Raises:
            NotFoundError: If no visible tour has this slug
            PaymentGatewayError: If the provider refuses the order
        """
        tour = await TourService(self.db).get_by_slug(slug)
        order = await gateway.create_order(
            amount=to_minor_units(tour.price),
            currency=settings.payment_currency,
            receipt=f"tour-{tour.id}"[:40],
            notes={"tour_id": str(tour.id), "user_id": str(user.id)},
        )

        logger.info(
            "Checkout order created",
            extra={"order_id": order.get("id"), "tour_id": str(tour.id), "user_id": str(user.id)}
        )
        return order

    async def _find_by_payment(self, payment_id: str) -> Optional[Booking]:
        result = await self.db.execute(select(Booking).where(Booking.payment_id == payment_id))
        return result.scalar_one_or_none()

    @staticmethod
    def _order_matches(order: dict[str, Any], tour: Tour, user_id: UUID) -> bool:
        notes = order.get("notes") or {}
        return (
            notes.get("tour_id") == str(tour.id)
            and notes.get("user_id") == str(user_id)
            and order.get("amount") == to_minor_units(tour.price)
        )

    async def confirm_payment(
        self,
        gateway: RazorpayGateway,
        tour_id: UUID,
        user_id: UUID,
        order_id: str,
        payment_id: str,
        signature: Optional[str],
    ) -> Optional[Booking]:
        """
        Record a paid booking when the callback signature is genuine.

        The signature only covers the order and payment ids, so the order is
        fetched back from the provider and its notes and amount must name the
        same tour, user and current price as the callback. The price is the
        tour's current price, never a client supplied amount.

        Returns:
            The booking, or None when the signature or the order does not match

        Raises:
            NotFoundError: If the tour or user does not exist
            PaymentGatewayError: If the order cannot be fetched from the provider
        """
        valid = gateway.verify(order_id, payment_id, signature)
        metrics_collector.record_payment_verification(valid)
        if not valid:
            logger.warning(
                "Payment signature mismatch",
                extra={"order_id": order_id, "payment_id": payment_id, "tour_id": str(tour_id)}
            )
            return None

        # Provider retries deliver the same payment more than once
        existing = await self._find_by_payment(payment_id)
        if existing is not None:
            return existing

        tour = await self.db.get(Tour, tour_id)
        if tour is None:
            raise NotFoundError(resource_type="tour", resource_id=str(tour_id))
        user = await self.db.get(User, user_id)
        if user is None:
            raise NotFoundError(resource_type="user", resource_id=str(user_id))

        order = await gateway.fetch_order(order_id)
        if not self._order_matches(order, tour, user.id):
            logger.warning(
                "Payment callback does not match its order",
                extra={
                    "order_id": order_id,
                    "payment_id": payment_id,
                    "tour_id": str(tour_id),
                    "user_id": str(user_id),
                    "order_notes": order.get("notes"),
                    "order_amount": order.get("amount"),
                }
            )
            return None

        try:
            booking = await self.create({
                "tour_id": tour.id,
                "user_id": user.id,
                "order_id": order_id,
                "payment_id": payment_id,
                "price": tour.price,
                "paid": True,
            })
        except DuplicateValueError:
            # A concurrent retry recorded the payment first
            existing = await self._find_by_payment(payment_id)
            if existing is None:
                raise
            return existing
        metrics_collector.record_booking_paid()

        logger.info(
            "Paid booking recorded",
            extra={"booking_id": str(booking.id), "order_id": order_id, "price": booking.price}
        )
        return booking
