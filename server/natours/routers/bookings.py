"""Booking router: checkout, payment callback and booking administration."""

import logging
from typing import Optional
from urllib.parse import urlencode
from uuid import UUID

from fastapi import APIRouter, Depends, Form, Query, Request, status
from fastapi.responses import JSONResponse, RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import settings
from ..core.dependencies import get_payment_gateway, protect, restrict_to
from ..core.exceptions import AuthorizationError
from ..models.user import Role, User
from ..schemas.booking import (
    BookingCreate,
    BookingOut,
    BookingUpdate,
    CheckoutRequest,
    CheckoutResponse,
    PaymentKeyResponse,
)
from ..schemas.user import UserSummary
from ..services.booking_service import BookingService
from ..services.payment_gateway import RazorpayGateway
from . import handlers
from .handlers import DB_DEPENDENCY

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/bookings", tags=["bookings"])

STAFF_ROLES = (Role.ADMIN.value, Role.LEAD_GUIDE.value)
STAFF_ONLY = [Depends(restrict_to(*STAFF_ROLES))]
GATEWAY_DEPENDENCY = Depends(get_payment_gateway)


def payment_redirect_url(**params: str) -> str:
    return f"{settings.frontend_url.rstrip('/')}/payments?{urlencode(params)}"


@router.post("/create-booking", status_code=status.HTTP_303_SEE_OTHER)
async def create_booking_from_payment(
    tour_id: UUID = Query(..., description="Tour that was paid for"),
    user_id: UUID = Query(..., description="User who paid"),
    razorpay_order_id: str = Form(""),
    razorpay_payment_id: str = Form(""),
    razorpay_signature: Optional[str] = Form(None),
    error_code: Optional[str] = Form(None, alias="error[code]"),
    error_description: Optional[str] = Form(None, alias="error[description]"),
    db: AsyncSession = DB_DEPENDENCY,
    gateway: RazorpayGateway = GATEWAY_DEPENDENCY,
) -> RedirectResponse:
    """
    Payment provider callback.

    A booking is recorded only when the HMAC signature over ``order_id|payment_id``
    matches and the provider's order names the same tour, user and price; the
    browser is redirected to the frontend either way.
    """
    booking = await BookingService(db).confirm_payment(
        gateway,
        tour_id=tour_id,
        user_id=user_id,
        order_id=razorpay_order_id,
        payment_id=razorpay_payment_id,
        signature=razorpay_signature,
    )

    if booking is not None:
        url = payment_redirect_url(status="true", order=razorpay_order_id)
    else:
        params = {"status": "false"}
        if error_code:
            params["code"] = error_code
        if error_description:
            params["description"] = error_description
        url = payment_redirect_url(**params)

    return RedirectResponse(url=url, status_code=status.HTTP_303_SEE_OTHER)


@router.get("/get-key", dependencies=[Depends(protect)])
async def get_key(gateway: RazorpayGateway = GATEWAY_DEPENDENCY) -> JSONResponse:
    """Public key id the checkout widget needs."""
    return JSONResponse(content=PaymentKeyResponse(key=gateway.public_key).model_dump())


@router.post("/checkout")
async def checkout(
    payload: CheckoutRequest,
    user: User = Depends(protect),
    db: AsyncSession = DB_DEPENDENCY,
    gateway: RazorpayGateway = GATEWAY_DEPENDENCY,
) -> JSONResponse:
    """Open a payment order for a tour at its current price."""
    order = await BookingService(db).create_checkout_order(gateway, user, payload.slug)
    body = CheckoutResponse(order=order, user=UserSummary.model_validate(user))
    return JSONResponse(content=body.model_dump(mode="json"))


@router.get("/my-bookings")
async def my_bookings(
    request: Request,
    user: User = Depends(protect),
    db: AsyncSession = DB_DEPENDENCY,
) -> JSONResponse:
    features = handlers.query_features(request)
    bookings = await BookingService(db).list(features, user_id=user.id)
    return handlers.list_response(bookings, BookingOut, features)


@router.get("/users/{user_id}")
async def user_bookings(
    user_id: UUID,
    request: Request,
    user: User = Depends(protect),
    db: AsyncSession = DB_DEPENDENCY,
) -> JSONResponse:
    """Bookings of one user; visible to that user and to staff."""
    if user.id != user_id and user.role not in STAFF_ROLES:
        raise AuthorizationError(detail="You can only see your own bookings", required_roles=list(STAFF_ROLES))

    features = handlers.query_features(request)
    bookings = await BookingService(db).list(features, user_id=user_id)
    return handlers.list_response(bookings, BookingOut, features)


router.add_api_route(
    "",
    handlers.get_all(BookingService, BookingOut),
    methods=["GET"],
    dependencies=STAFF_ONLY,
    name="list_bookings",
    summary="List bookings",
)
router.add_api_route(
    "",
    handlers.create_one(BookingService, BookingCreate, BookingOut),
    methods=["POST"],
    status_code=201,
    dependencies=STAFF_ONLY,
    name="create_booking",
    summary="Record a booking manually",
)
router.add_api_route(
    "/{doc_id}",
    handlers.get_one(BookingService, BookingOut),
    methods=["GET"],
    dependencies=STAFF_ONLY,
    name="get_booking",
    summary="Get a booking",
)
router.add_api_route(
    "/{doc_id}",
    handlers.update_one(BookingService, BookingUpdate, BookingOut),
    methods=["PATCH"],
    dependencies=STAFF_ONLY,
    name="update_booking",
    summary="Update a booking",
)
router.add_api_route(
    "/{doc_id}",
    handlers.delete_one(BookingService),
    methods=["DELETE"],
    status_code=204,
    dependencies=STAFF_ONLY,
    name="delete_booking",
    summary="Delete a booking",
)
