"""Tour model definition."""

from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any
from uuid import UUID, uuid4

from slugify import slugify
from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Table,
    Text,
    Uuid,
)
from sqlalchemy.ext.associationproxy import AssociationProxy, association_proxy
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates

from ..core.database import Base, DocumentMixin
from ..core.security import as_utc, utcnow

if TYPE_CHECKING:
    from .review import Review
    from .user import User


class Difficulty(str, Enum):
    """Tour difficulty enumeration."""
    EASY = "easy"
    MEDIUM = "medium"
    DIFFICULT = "difficult"


tour_guides = Table(
    "tour_guides",
    Base.metadata,
    Column("tour_id", Uuid, ForeignKey("tours.id", ondelete="CASCADE"), primary_key=True),
    Column("user_id", Uuid, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
)


class TourStartDate(Base):
    """One scheduled start of a tour."""

    __tablename__ = "tour_start_dates"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tour_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("tours.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    starts_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)

    tour: Mapped["Tour"] = relationship("Tour", back_populates="start_date_rows")

    @validates("starts_at")
    def _normalize_starts_at(self, key: str, value: datetime) -> datetime:
        return as_utc(value)

    def __repr__(self) -> str:
        return f"<TourStartDate(tour_id={self.tour_id}, starts_at={self.starts_at})>"


class Tour(DocumentMixin, Base):
    """Tour entity representing a bookable tour offering."""

    __tablename__ = "tours"

    # Primary key
    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    # Tour information
    name: Mapped[str] = mapped_column(String(40), nullable=False, unique=True)
    slug: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    duration: Mapped[int] = mapped_column(Integer, nullable=False)
    max_group_size: Mapped[int] = mapped_column(Integer, nullable=False)
    difficulty: Mapped[str] = mapped_column(String(20), nullable=False)
    ratings_average: Mapped[float] = mapped_column(Float, nullable=False, default=4.5)
    ratings_quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    price: Mapped[float] = mapped_column(Float, nullable=False)
    price_discount: Mapped[float | None] = mapped_column(Float, nullable=True)
    summary: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    image_cover: Mapped[str] = mapped_column(String(255), nullable=False)
    images: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    secret_tour: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, index=True)

    # GeoJSON points: {"type": "Point", "coordinates": [lng, lat], "address": ..., "description": ...}
    start_location: Mapped[dict[str, Any] | None] = mapped_column(JSON(none_as_null=True), nullable=True)
    locations: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    # Constraints
    __table_args__ = (
        CheckConstraint("duration > 0", name="ck_tour_duration_positive"),
        CheckConstraint("max_group_size > 0", name="ck_tour_max_group_size_positive"),
        CheckConstraint("price > 0", name="ck_tour_price_positive"),
        CheckConstraint(
            "price_discount IS NULL OR price_discount < price",
            name="ck_tour_price_discount_below_price"
        ),
        CheckConstraint(
            "difficulty IN ('easy', 'medium', 'difficult')",
            name="ck_tour_difficulty_valid"
        ),
        Index("ix_tours_price_ratings_average", "price", "ratings_average"),
    )

    # Relationships
    start_date_rows: Mapped[list[TourStartDate]] = relationship(
        TourStartDate,
        back_populates="tour",
        cascade="all, delete-orphan",
        order_by=TourStartDate.starts_at,
        lazy="selectin",
    )
    guides: Mapped[list["User"]] = relationship(
        "User",
        secondary=tour_guides,
        lazy="selectin",
    )
    reviews: Mapped[list["Review"]] = relationship(
        "Review",
        back_populates="tour",
        passive_deletes=True,
        lazy="raise",
    )

    start_dates: AssociationProxy[list[datetime]] = association_proxy(
        "start_date_rows",
        "starts_at",
        creator=lambda starts_at: TourStartDate(starts_at=starts_at),
    )

    @validates("name")
    def _derive_slug(self, key: str, value: str) -> str:
        value = value.strip()
        self.slug = slugify(value)
        return value

    @validates("ratings_average")
    def _round_rating(self, key: str, value: float) -> float:
        return round(value, 1)

    @property
    def duration_weeks(self) -> float:
        return self.duration / 7

    def validate_document(self) -> list[dict[str, str]]:
        """Cross-field checks run after every create and partial update."""
        violations = []
        if self.price_discount is not None and self.price is not None and self.price_discount >= self.price:
            violations.append({
                "path": "price_discount",
                "message": f"Discount price ({self.price_discount}) should be below regular price",
            })
        if self.difficulty not in {d.value for d in Difficulty}:
            violations.append({
                "path": "difficulty",
                "message": "Difficulty is either: easy, medium, difficult",
            })
        return violations

    @classmethod
    def default_criteria(cls) -> list:
        """Secret tours never show up in default reads."""
        return [cls.secret_tour.is_(False)]

    def __repr__(self) -> str:
        return f"<Tour(id={self.id}, name='{self.name}', slug='{self.slug}')>"
