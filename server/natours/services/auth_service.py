"""Authentication service: signup, login and password flows."""

import logging
from typing import Callable, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.exceptions import AuthenticationError, NotFoundError, ProblemDetailsException, ValidationError
from ..core.observability import metrics_collector
from ..core.security import hash_reset_token
from ..models.user import User
from ..schemas.user import SignupRequest
from .crud import CRUDService
from .email_service import EmailDeliveryError, EmailService

logger = logging.getLogger(__name__)


class EmailNotSentError(ProblemDetailsException):
    """Exception raised when a required email could not be delivered."""

    def __init__(self, detail: str = "There was an error sending the email. Try again later!"):
        super().__init__(
            status_code=500,
            title="Email Delivery Failed",
            detail=detail,
            type_uri="https://natours.io/problems/email-delivery-failed",
        )


class AuthService(CRUDService[User]):
    """Service for account authentication operations."""

    model = User
    resource_name = "user"

    def __init__(self, db: AsyncSession, email_service: Optional[EmailService] = None):
        super().__init__(db)
        self.email_service = email_service or EmailService()

    async def _find_active_by_email(self, email: str) -> Optional[User]:
        result = await self.db.execute(
            select(User).where(User.email == email.strip().lower(), User.active.is_(True))
        )
        return result.scalar_one_or_none()

    async def signup(self, request: SignupRequest, profile_url: str) -> User:
        """
        Create a user account and send the welcome email.

        Args:
            request: Signup payload
            profile_url: Link included in the welcome email

        Returns:
            The new user

        Raises:
            ValidationError: If the password confirmation does not match
            DuplicateValueError: If the email is already registered
        """
        user = User(name=request.name, email=str(request.email))
        user.set_password(request.password, request.password_confirm)

        self.db.add(user)
        await self._commit()
        metrics_collector.record_signup()

        logger.info("User signed up", extra={"user_id": str(user.id), "email": user.email})

        try:
            await self.email_service.send_welcome(user.email, user.name, profile_url)
        except EmailDeliveryError as e:
            logger.warning(
                "Welcome email could not be sent",
                extra={"user_id": str(user.id), "error": str(e)}
            )

        return await self.refetch(user.id)

    async def login(self, email: str, password: str) -> User:
        """
        Check credentials.

        Raises:
            AuthenticationError: If no active user has this email or the password is wrong
        """
        user = await self._find_active_by_email(email)
        if user is None or not user.check_password(password):
            metrics_collector.record_login(success=False)
            logger.info("Login failed", extra={"email": email.strip().lower()})
            raise AuthenticationError(detail="Incorrect email or password")

        metrics_collector.record_login(success=True)
        logger.info("User logged in", extra={"user_id": str(user.id)})
        return user

    async def forgot_password(self, email: str, reset_url: Callable[[str], str]) -> None:
        """
        Issue a password reset token and email its link.

        Only the SHA-256 digest of the token is stored. If the email cannot be
        delivered the token is cleared again.

        Args:
            email: Account email
            reset_url: Builds the reset link from the plaintext token

        Raises:
            NotFoundError: If no active user has this email
            EmailNotSentError: If delivery failed
        """
        user = await self._find_active_by_email(email)
        if user is None:
            raise NotFoundError(resource_type="user", detail="There is no user with that email address.")

        token = user.create_password_reset_token()
        await self._commit()

        try:
            await self.email_service.send_password_reset(user.email, user.name, reset_url(token))
        except EmailDeliveryError as e:
            user.clear_password_reset_token()
            await self._commit()
            logger.error(
                "Password reset email failed; token cleared",
                extra={"user_id": str(user.id), "error": str(e)}
            )
            raise EmailNotSentError() from e

        logger.info("Password reset token issued", extra={"user_id": str(user.id)})

    async def reset_password(self, token: str, password: str, password_confirm: str) -> User:
        """
        Set a new password using a reset token.

        Raises:
            AuthenticationError: If the token is unknown or expired
            ValidationError: If the confirmation does not match
        """
        result = await self.db.execute(
            select(User).where(User.password_reset_token == hash_reset_token(token), User.active.is_(True))
        )
        user = result.scalar_one_or_none()
        if user is None or user.password_reset_expired():
            raise AuthenticationError(detail="Token is invalid or has expired")

        user.set_password(password, password_confirm)
        user.clear_password_reset_token()
        await self._commit()

        logger.info("Password reset completed", extra={"user_id": str(user.id)})
        return user

    async def update_password(self, user: User, current: str, password: str, password_confirm: str) -> User:
        """
        Change the logged in user's password after checking the current one.

        Raises:
            ValidationError: If the current password is wrong or the confirmation does not match
        """
        if not user.check_password(current):
            raise ValidationError(
                detail="Your current password is incorrect",
                violations=[{"path": "password_current", "message": "Your current password is incorrect"}],
            )

        user.set_password(password, password_confirm)
        await self._commit()

        logger.info("User changed their password", extra={"user_id": str(user.id)})
        return user
