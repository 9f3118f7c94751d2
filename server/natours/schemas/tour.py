"""Tour-related Pydantic schemas."""

from datetime import datetime
from typing import Annotated, Any, List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, StringConstraints, field_validator, model_validator

from ..core.security import as_utc
from .common import GeoPoint, Location
from .review import ReviewOut
from .user import UserSummary

DifficultyName = Literal["easy", "medium", "difficult"]

TourName = Annotated[str, StringConstraints(strip_whitespace=True, min_length=10, max_length=40)]
Summary = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]


class TourCreate(BaseModel):
    """Request schema for creating a tour."""

    name: TourName = Field(..., description="Unique tour name, 10 to 40 characters")
    duration: int = Field(..., gt=0, description="Length in days")
    max_group_size: int = Field(..., gt=0, description="Largest group a tour takes")
    difficulty: DifficultyName = Field(..., description="easy, medium or difficult")
    ratings_average: float = Field(4.5, ge=1, le=5)
    ratings_quantity: int = Field(0, ge=0)
    price: float = Field(..., gt=0)
    price_discount: Optional[float] = Field(None, ge=0, description="Must be below price")
    summary: Summary
    description: Optional[str] = None
    image_cover: str = Field(..., min_length=1, max_length=255)
    images: List[str] = Field(default_factory=list)
    start_dates: List[datetime] = Field(default_factory=list)
    secret_tour: bool = False
    start_location: Optional[GeoPoint] = None
    locations: List[Location] = Field(default_factory=list)
    guides: List[UUID] = Field(default_factory=list, description="Ids of guiding users")

    @model_validator(mode="after")
    def _discount_below_price(self) -> "TourCreate":
        if self.price_discount is not None and self.price_discount >= self.price:
            raise ValueError(f"Discount price ({self.price_discount}) should be below regular price")
        return self


class TourUpdate(BaseModel):
    """Partial update; only fields present in the request are applied."""

    name: Optional[TourName] = None
    duration: Optional[int] = Field(None, gt=0)
    max_group_size: Optional[int] = Field(None, gt=0)
    difficulty: Optional[DifficultyName] = None
    ratings_average: Optional[float] = Field(None, ge=1, le=5)
    ratings_quantity: Optional[int] = Field(None, ge=0)
    price: Optional[float] = Field(None, gt=0)
    price_discount: Optional[float] = Field(None, ge=0)
    summary: Optional[Summary] = None
    description: Optional[str] = None
    image_cover: Optional[str] = Field(None, min_length=1, max_length=255)
    images: Optional[List[str]] = None
    start_dates: Optional[List[datetime]] = None
    secret_tour: Optional[bool] = None
    start_location: Optional[GeoPoint] = None
    locations: Optional[List[Location]] = None
    guides: Optional[List[UUID]] = None

    @model_validator(mode="after")
    def _discount_below_price(self) -> "TourUpdate":
        # The merged document is re-checked by the model once stored values are known
        if self.price is not None and self.price_discount is not None and self.price_discount >= self.price:
            raise ValueError(f"Discount price ({self.price_discount}) should be below regular price")
        return self


class TourOut(BaseModel):
    """Tour response schema used for listings."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    slug: str
    duration: int
    duration_weeks: float
    max_group_size: int
    difficulty: str
    ratings_average: float
    ratings_quantity: int
    price: float
    price_discount: Optional[float] = None
    summary: str
    description: Optional[str] = None
    image_cover: str
    images: List[str]
    start_dates: List[datetime]
    start_location: Optional[dict[str, Any]] = None
    locations: List[dict[str, Any]]
    guides: List[UserSummary]
    created_at: datetime

    @field_validator("start_dates", mode="before")
    @classmethod
    def _materialize_start_dates(cls, value: Any) -> list:
        return [as_utc(item) if isinstance(item, datetime) else item for item in value]

    @field_validator("created_at")
    @classmethod
    def _utc(cls, value: datetime) -> datetime:
        return as_utc(value)

    @field_validator("images", "locations", mode="before")
    @classmethod
    def _none_as_empty(cls, value: Any) -> Any:
        return [] if value is None else value


class TourDetail(TourOut):
    """Single tour with its reviews."""

    reviews: List[ReviewOut]


class TourStats(BaseModel):
    difficulty: str
    num_tours: int
    num_ratings: int
    average_rating: float
    average_price: float
    min_price: float
    max_price: float
    all_tour_sum: float


class MonthlyPlan(BaseModel):
    month: int = Field(..., ge=1, le=12)
    num_tour_starts: int
    tours: List[str]


class TourDistance(BaseModel):
    id: UUID
    name: str
    distance: float = Field(..., description="Great-circle distance in the requested unit")
