"""Booking and payment Pydantic schemas."""

from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..core.security import as_utc
from .user import UserSummary


class TourRef(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    slug: str


class BookingCreate(BaseModel):
    """Manual booking entry by staff."""

    tour_id: UUID
    user_id: UUID
    price: float = Field(..., ge=0)
    paid: bool = True
    order_id: Optional[str] = Field(None, max_length=64)
    payment_id: Optional[str] = Field(None, max_length=64)


class BookingUpdate(BaseModel):
    price: Optional[float] = Field(None, ge=0)
    paid: Optional[bool] = None


class BookingOut(BaseModel):
    """Booking response schema with the booking user and tour embedded."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    tour_id: UUID
    user_id: UUID
    order_id: Optional[str] = None
    payment_id: Optional[str] = None
    price: float
    paid: bool
    created_at: datetime
    user: UserSummary
    tour: TourRef

    @field_validator("created_at")
    @classmethod
    def _utc(cls, value: datetime) -> datetime:
        return as_utc(value)


class CheckoutRequest(BaseModel):
    slug: str = Field(..., min_length=1, description="Slug of the tour being bought")


class CheckoutResponse(BaseModel):
    status: str = "success"
    order: dict[str, Any]
    user: UserSummary


class PaymentKeyResponse(BaseModel):
    status: str = "success"
    key: str
