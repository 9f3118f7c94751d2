"""FastAPI dependencies for authentication, authorization and external services."""

from typing import Callable, Optional
from uuid import UUID

from fastapi import Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.user import User
from ..services.email_service import EmailService
from ..services.payment_gateway import RazorpayGateway
from .database import get_db
from .exceptions import AuthenticationError, AuthorizationError
from .security import TOKEN_COOKIE_NAME, decode_access_token

# Cookie value written by logout
LOGGED_OUT_COOKIE = "loggedout"


def _extract_token(request: Request, authorization: Optional[str]) -> Optional[str]:
    if authorization:
        scheme, _, token = authorization.partition(" ")
        if scheme.lower() == "bearer" and token.strip():
            return token.strip()

    cookie = request.cookies.get(TOKEN_COOKIE_NAME)
    if cookie and cookie != LOGGED_OUT_COOKIE:
        return cookie
    return None


async def _resolve_user(token: str, db: AsyncSession) -> User:
    # Signature and expiry errors propagate to the jwt exception handler
    payload = decode_access_token(token)

    try:
        user_id = UUID(payload["sub"])
    except ValueError:
        raise AuthenticationError(detail="Invalid token! Please log in again.") from None

    user = await db.get(User, user_id)
    if user is None or not user.active:
        raise AuthenticationError(detail="The user belonging to this token no longer exists.")

    if user.changed_password_after(payload["iat"]):
        raise AuthenticationError(detail="User recently changed password! Please log in again.")

    return user


async def protect(
    request: Request,
    authorization: Optional[str] = Header(None, alias="Authorization"),
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Authentication dependency accepting a Bearer token or the ``jwt`` cookie.

    Args:
        request: Incoming request, used for the cookie and to stash the user
        authorization: Authorization header with Bearer token
        db: Database session

    Returns:
        User: The active user the token belongs to

    Raises:
        AuthenticationError: If no token was sent or it no longer maps to a usable account
        jwt.InvalidTokenError: If the token is forged, malformed or expired
    """
    token = _extract_token(request, authorization)
    if not token:
        raise AuthenticationError()

    user = await _resolve_user(token, db)
    request.state.user = user
    return user


def restrict_to(*roles: str) -> Callable:
    """
    Build a dependency that only lets users with one of ``roles`` through.

    Usage:
        dependencies=[Depends(restrict_to("admin", "lead-guide"))]
    """
    allowed = frozenset(roles)

    async def check_role(user: User = Depends(protect)) -> User:
        if user.role not in allowed:
            raise AuthorizationError(
                detail="You do not have permission to perform this action",
                required_roles=sorted(allowed),
            )
        return user

    return check_role


def get_payment_gateway() -> RazorpayGateway:
    """Payment provider client; overridden in tests."""
    return RazorpayGateway()


def get_email_service() -> EmailService:
    """Transactional email sender; overridden in tests."""
    return EmailService()


CurrentUser = Depends(protect)
DatabaseSession = Depends(get_db)
