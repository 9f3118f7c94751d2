"""User router: authentication, self-service profile and user administration."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Request, Response, UploadFile, status
from fastapi.responses import JSONResponse
from pydantic import EmailStr
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import settings
from ..core.dependencies import LOGGED_OUT_COOKIE, get_email_service, protect, restrict_to
from ..core.exceptions import ValidationError
from ..core.security import TOKEN_COOKIE_NAME, create_access_token
from ..models.user import Role, User
from ..schemas.common import MessageResponse
from ..schemas.user import (
    AuthResponse,
    DeleteMeRequest,
    ForgotPasswordRequest,
    LoginRequest,
    PersonName,
    ResetPasswordRequest,
    SignupRequest,
    UpdateMyPasswordRequest,
    UserOut,
    UserUpdate,
)
from ..services.auth_service import AuthService
from ..services.email_service import EmailService
from ..services.image_service import ImageService
from ..services.user_service import UserService
from . import handlers
from .handlers import DB_DEPENDENCY

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/users", tags=["users"])

ADMIN_ONLY = [Depends(restrict_to(Role.ADMIN.value))]
EMAIL_DEPENDENCY = Depends(get_email_service)


def get_image_service() -> ImageService:
    return ImageService()


def send_token(user: User, request: Request, status_code: int = status.HTTP_200_OK) -> JSONResponse:
    """Answer with a fresh access token in the body and in the ``jwt`` cookie."""
    token = create_access_token(user.id)
    body = AuthResponse(token=token, data=UserOut.model_validate(user))
    response = JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))
    response.set_cookie(
        key=TOKEN_COOKIE_NAME,
        value=token,
        max_age=settings.jwt_cookie_expires_in_days * 24 * 60 * 60,
        httponly=True,
        secure=settings.is_production or request.url.scheme == "https",
        samesite="lax",
    )
    return response


@router.post("/signup", status_code=status.HTTP_201_CREATED)
async def signup(
    payload: SignupRequest,
    request: Request,
    db: AsyncSession = DB_DEPENDENCY,
    email_service: EmailService = EMAIL_DEPENDENCY,
) -> JSONResponse:
    """Create an account and log it in."""
    profile_url = str(request.url_for("get_me"))
    user = await AuthService(db, email_service).signup(payload, profile_url)
    return send_token(user, request, status_code=status.HTTP_201_CREATED)


@router.post("/login")
async def login(payload: LoginRequest, request: Request, db: AsyncSession = DB_DEPENDENCY) -> JSONResponse:
    user = await AuthService(db).login(payload.email, payload.password)
    return send_token(user, request)


@router.get("/logout")
async def logout() -> JSONResponse:
    """Overwrite the session cookie with a short-lived placeholder."""
    response = JSONResponse(content={"status": "success"})
    response.set_cookie(key=TOKEN_COOKIE_NAME, value=LOGGED_OUT_COOKIE, max_age=10, httponly=True)
    return response


@router.post("/forgot-password")
async def forgot_password(
    payload: ForgotPasswordRequest,
    request: Request,
    db: AsyncSession = DB_DEPENDENCY,
    email_service: EmailService = EMAIL_DEPENDENCY,
) -> JSONResponse:
    """Email a password reset link valid for a few minutes."""
    await AuthService(db, email_service).forgot_password(
        str(payload.email),
        lambda token: str(request.url_for("reset_password", token=token)),
    )
    return JSONResponse(content=MessageResponse(message="Token sent to email!").model_dump())


@router.patch("/reset-password/{token}")
async def reset_password(
    token: str,
    payload: ResetPasswordRequest,
    request: Request,
    db: AsyncSession = DB_DEPENDENCY,
) -> JSONResponse:
    user = await AuthService(db).reset_password(token, payload.password, payload.password_confirm)
    return send_token(user, request)


@router.patch("/update-my-password")
async def update_my_password(
    payload: UpdateMyPasswordRequest,
    request: Request,
    user: User = Depends(protect),
    db: AsyncSession = DB_DEPENDENCY,
) -> JSONResponse:
    """Change the current password; answers with a new token."""
    user = await AuthService(db).update_password(
        user, payload.password_current, payload.password, payload.password_confirm
    )
    return send_token(user, request)


@router.get("/me")
async def get_me(user: User = Depends(protect)) -> JSONResponse:
    return handlers.document_response(user, UserOut)


@router.patch("/update-me")
async def update_me(
    name: Optional[PersonName] = Form(None),
    email: Optional[EmailStr] = Form(None),
    password: Optional[str] = Form(None),
    password_confirm: Optional[str] = Form(None),
    photo: Optional[UploadFile] = File(None),
    user: User = Depends(protect),
    db: AsyncSession = DB_DEPENDENCY,
    image_service: ImageService = Depends(get_image_service),
) -> JSONResponse:
    """
    Update name, email and photo of the logged in user.

    Sent as a form so a photo can be uploaded alongside; any other field is ignored.
    """
    if password or password_confirm:
        raise ValidationError(
            detail="This route is not for password updates. Please use /update-my-password.",
            violations=[{"path": "password", "message": "use /update-my-password"}],
        )

    changes = {"name": name, "email": str(email) if email else None}
    photo_name = await image_service.save_user_photo(user.id, photo) if photo is not None else None

    updated = await UserService(db).update_me(user, changes, photo=photo_name)
    return handlers.document_response(updated, UserOut)


@router.delete("/delete-me", status_code=status.HTTP_204_NO_CONTENT)
async def delete_me(
    payload: DeleteMeRequest,
    user: User = Depends(protect),
    db: AsyncSession = DB_DEPENDENCY,
) -> Response:
    """Deactivate the logged in user's account."""
    await UserService(db).delete_me(user, payload.password)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


router.add_api_route(
    "",
    handlers.get_all(UserService, UserOut),
    methods=["GET"],
    dependencies=ADMIN_ONLY,
    name="list_users",
    summary="List users",
)


@router.post("", dependencies=ADMIN_ONLY)
async def create_user() -> JSONResponse:
    return JSONResponse(
        content=MessageResponse(message="This route is not defined! Please use /signup instead").model_dump()
    )


router.add_api_route(
    "/{doc_id}",
    handlers.get_one(UserService, UserOut),
    methods=["GET"],
    dependencies=ADMIN_ONLY,
    name="get_user",
    summary="Get a user",
)
router.add_api_route(
    "/{doc_id}",
    handlers.update_one(UserService, UserUpdate, UserOut),
    methods=["PATCH"],
    dependencies=ADMIN_ONLY,
    name="update_user",
    summary="Update a user; passwords cannot be changed here",
)
router.add_api_route(
    "/{doc_id}",
    handlers.delete_one(UserService),
    methods=["DELETE"],
    status_code=204,
    dependencies=ADMIN_ONLY,
    name="delete_user",
    summary="Delete a user",
)
