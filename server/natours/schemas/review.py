"""Review-related Pydantic schemas."""

from datetime import datetime
from typing import Annotated, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, StringConstraints, field_validator

from ..core.security import as_utc
from .user import UserSummary

ReviewText = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=2000)]


class ReviewCreate(BaseModel):
    """Request schema for creating a review; author comes from the session."""

    review: ReviewText = Field(..., description="Review text")
    rating: float = Field(..., ge=1, le=5, description="Rating between 1 and 5")
    tour_id: Optional[UUID] = Field(None, description="Reviewed tour; taken from the URL on nested routes")


class ReviewUpdate(BaseModel):
    review: Optional[ReviewText] = None
    rating: Optional[float] = Field(None, ge=1, le=5)


class ReviewOut(BaseModel):
    """Review response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    review: str
    rating: float
    tour_id: UUID
    user_id: UUID
    user: UserSummary
    created_at: datetime

    @field_validator("created_at")
    @classmethod
    def _utc(cls, value: datetime) -> datetime:
        return as_utc(value)
