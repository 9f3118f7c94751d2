"""User service for profile and account management."""

import logging
from typing import Any, Optional

from ..core.exceptions import ValidationError
from ..models.user import User
from .crud import CRUDService

logger = logging.getLogger(__name__)

# Fields a user may change on their own profile
SELF_UPDATABLE_FIELDS = ("name", "email")


class UserService(CRUDService[User]):
    """Service for user-related operations."""

    model = User
    resource_name = "user"

    async def update_me(self, user: User, data: dict[str, Any], photo: Optional[str] = None) -> User:
        """
        Update the logged in user's own profile.

        Only name and email are taken from ``data``; everything else is dropped.
        """
        changes = {key: value for key, value in data.items() if key in SELF_UPDATABLE_FIELDS and value is not None}
        if photo is not None:
            changes["photo"] = photo
        return await self.update(user.id, changes)

    async def delete_me(self, user: User, password: str) -> None:
        """
        Deactivate the logged in user's account; the row is kept.

        Raises:
            ValidationError: If the password is wrong or the account is already inactive
        """
        if not user.check_password(password):
            raise ValidationError(
                detail="Incorrect password",
                violations=[{"path": "password", "message": "Incorrect password"}],
            )
        user.deactivate()
        await self._commit()

        logger.info("User deactivated their account", extra={"user_id": str(user.id)})
