"""Review model definition."""

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, DateTime, Float, ForeignKey, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..core.database import Base, DocumentMixin
from ..core.security import utcnow

if TYPE_CHECKING:
    from .tour import Tour
    from .user import User


class Review(DocumentMixin, Base):
    """A user's rating and comment on a tour; one per user and tour."""

    __tablename__ = "reviews"

    # Primary key
    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    # Review content
    review: Mapped[str] = mapped_column(Text, nullable=False)
    rating: Mapped[float] = mapped_column(Float, nullable=False)

    # Foreign keys
    tour_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("tours.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    user_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    # Constraints
    __table_args__ = (
        UniqueConstraint("tour_id", "user_id", name="uq_review_tour_user"),
        CheckConstraint("rating >= 1 AND rating <= 5", name="ck_review_rating_range"),
    )

    # Relationships
    tour: Mapped["Tour"] = relationship("Tour", back_populates="reviews", lazy="raise")
    user: Mapped["User"] = relationship("User", lazy="selectin")

    def __repr__(self) -> str:
        return f"<Review(id={self.id}, tour_id={self.tour_id}, user_id={self.user_id}, rating={self.rating})>"
