"""Booking model definition."""

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import Boolean, CheckConstraint, DateTime, Float, ForeignKey, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..core.database import Base, DocumentMixin
from ..core.security import utcnow

if TYPE_CHECKING:
    from .tour import Tour
    from .user import User


class Booking(DocumentMixin, Base):
    """Booking entity: a paid seat on a tour for a user."""

    __tablename__ = "bookings"

    # Primary key
    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

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

    # Payment details
    order_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    payment_id: Mapped[str | None] = mapped_column(String(64), nullable=True, unique=True)
    price: Mapped[float] = mapped_column(Float, nullable=False)
    paid: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    # Constraints
    __table_args__ = (
        CheckConstraint("price >= 0", name="ck_booking_price_non_negative"),
    )

    # Relationships
    tour: Mapped["Tour"] = relationship("Tour", lazy="selectin")
    user: Mapped["User"] = relationship("User", lazy="selectin")

    def __repr__(self) -> str:
        return (
            f"<Booking(id={self.id}, tour_id={self.tour_id}, user_id={self.user_id}, "
            f"price={self.price}, paid={self.paid})>"
        )
