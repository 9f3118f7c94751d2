"""User model definition."""

from datetime import datetime, timedelta
from enum import Enum
from typing import ClassVar
from uuid import UUID, uuid4

from sqlalchemy import Boolean, CheckConstraint, DateTime, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, validates

from ..core.config import settings
from ..core.database import Base, DocumentMixin
from ..core.exceptions import ValidationError
from ..core.security import as_utc, generate_reset_token, hash_password, utcnow, verify_password


class Role(str, Enum):
    """User role enumeration."""
    ADMIN = "admin"
    LEAD_GUIDE = "lead-guide"
    GUIDE = "guide"
    USER = "user"


class User(DocumentMixin, Base):
    """User entity: customers, guides and administrators."""

    __tablename__ = "users"

    private_fields: ClassVar[frozenset[str]] = frozenset({
        "password",
        "password_reset_token",
        "password_reset_expires",
    })

    # Primary key
    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    # Profile
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    photo: Mapped[str] = mapped_column(String(255), nullable=False, default="default.jpg")
    role: Mapped[str] = mapped_column(String(20), nullable=False, default=Role.USER.value)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, index=True)

    # Credentials
    password: Mapped[str] = mapped_column(String(255), nullable=False)
    password_changed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    password_reset_token: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    password_reset_expires: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        CheckConstraint(
            "role IN ('admin', 'lead-guide', 'guide', 'user')",
            name="ck_user_role_valid"
        ),
    )

    @validates("email")
    def _normalize_email(self, key: str, value: str) -> str:
        return value.strip().lower()

    def set_password(self, password: str, password_confirm: str | None) -> None:
        """
        Hash and store a new password.

        Existing users also get ``password_changed_at`` bumped so tokens issued
        before the change stop working.

        Raises:
            ValidationError: If the confirmation does not match
        """
        if password != password_confirm:
            raise ValidationError(
                detail="Passwords are not the same!",
                violations=[{"path": "password_confirm", "message": "Passwords are not the same!"}],
            )
        is_new = self.password is None
        self.password = hash_password(password)
        if not is_new:
            self.password_changed_at = utcnow()

    def check_password(self, candidate: str) -> bool:
        return verify_password(candidate, self.password)

    def changed_password_after(self, issued_at: int) -> bool:
        """True when the password changed after a token's ``iat`` (seconds)."""
        if self.password_changed_at is None:
            return False
        changed_at = int(as_utc(self.password_changed_at).timestamp())
        return changed_at > issued_at

    def create_password_reset_token(self) -> str:
        """Store the digest of a new reset token and return the plaintext."""
        token, digest = generate_reset_token()
        self.password_reset_token = digest
        self.password_reset_expires = utcnow() + timedelta(minutes=settings.password_reset_expires_minutes)
        return token

    def clear_password_reset_token(self) -> None:
        self.password_reset_token = None
        self.password_reset_expires = None

    def password_reset_expired(self) -> bool:
        if self.password_reset_expires is None:
            return True
        return as_utc(self.password_reset_expires) <= utcnow()

    def deactivate(self) -> None:
        if not self.active:
            raise ValidationError(detail="Account already deleted")
        self.active = False

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email='{self.email}', role='{self.role}')>"
