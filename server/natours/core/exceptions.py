"""Operational errors and the handlers that normalize every error into RFC 9457 Problem Details."""

import logging
import traceback
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import jwt
from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError

from .config import settings

logger = logging.getLogger(__name__)


class ProblemDetailsException(HTTPException):
    """
    Base class for operational errors, following RFC 9457 Problem Details for HTTP APIs.

    Anything raised as a subclass of this is an expected, user-facing failure and is
    returned verbatim. Every other exception is treated as a programming or
    infrastructure fault.

    https://tools.ietf.org/rfc/rfc9457.txt
    """

    is_operational = True

    def __init__(
        self,
        status_code: int,
        title: str,
        detail: Optional[str] = None,
        type_uri: Optional[str] = None,
        instance: Optional[str] = None,
        extensions: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        """
        Initialize Problem Details exception.

        Args:
            status_code: HTTP status code
            title: Short, human-readable summary of the problem type
            detail: Human-readable explanation specific to this occurrence
            type_uri: URI reference that identifies the problem type
            instance: URI reference that identifies the specific occurrence
            extensions: Additional problem-specific information
            headers: HTTP headers to include in response
        """
        self.status_code = status_code
        self.title = title
        self.type_uri = type_uri or f"about:blank#{status_code}"
        self.instance = instance
        self.extensions = extensions or {}

        self.problem_details = {
            "type": self.type_uri,
            "title": self.title,
            "status": self.status_code,
        }

        if detail:
            self.problem_details["detail"] = detail

        if self.instance:
            self.problem_details["instance"] = self.instance

        self.problem_details.update(self.extensions)

        super().__init__(
            status_code=status_code,
            detail=detail,
            headers=headers
        )


class ValidationError(ProblemDetailsException):
    """Exception for request or document validation errors."""

    def __init__(
        self,
        detail: str = "The request data failed validation",
        violations: Optional[List[Dict[str, str]]] = None,
        instance: Optional[str] = None,
    ):
        extensions = {}
        if violations:
            extensions["violations"] = violations

        super().__init__(
            status_code=400,
            title="Validation Error",
            detail=detail,
            type_uri="https://natours.io/problems/validation-error",
            instance=instance,
            extensions=extensions,
        )


class DuplicateValueError(ProblemDetailsException):
    """Exception raised when a unique field already holds the submitted value."""

    def __init__(
        self,
        detail: str = "Duplicate value",
        fields: Optional[Dict[str, Any]] = None,
        instance: Optional[str] = None,
    ):
        extensions = {}
        if fields:
            extensions["fields"] = fields

        super().__init__(
            status_code=400,
            title="Duplicate Value",
            detail=detail,
            type_uri="https://natours.io/problems/duplicate-value",
            instance=instance,
            extensions=extensions,
        )


class AuthenticationError(ProblemDetailsException):
    """Exception for authentication errors."""

    def __init__(
        self,
        detail: str = "You are not logged in! Please log in to get access.",
        instance: Optional[str] = None,
    ):
        super().__init__(
            status_code=401,
            title="Authentication Required",
            detail=detail,
            type_uri="https://natours.io/problems/authentication-required",
            instance=instance,
            headers={"WWW-Authenticate": "Bearer"},
        )


class AuthorizationError(ProblemDetailsException):
    """Exception for authorization errors."""

    def __init__(
        self,
        detail: str = "You do not have permission to perform this action",
        required_roles: Optional[list] = None,
        instance: Optional[str] = None,
    ):
        extensions = {}
        if required_roles:
            extensions["required_roles"] = list(required_roles)

        super().__init__(
            status_code=403,
            title="Access Forbidden",
            detail=detail,
            type_uri="https://natours.io/problems/access-forbidden",
            instance=instance,
            extensions=extensions,
        )


class NotFoundError(ProblemDetailsException):
    """Exception for resource not found errors."""

    def __init__(
        self,
        resource_type: str = "document",
        resource_id: Optional[str] = None,
        detail: Optional[str] = None,
        instance: Optional[str] = None,
    ):
        if not detail:
            detail = f"No {resource_type} found"
            if resource_id:
                detail += f" with ID '{resource_id}'"

        extensions = {
            "resource_type": resource_type,
        }
        if resource_id:
            extensions["resource_id"] = resource_id

        super().__init__(
            status_code=404,
            title="Resource Not Found",
            detail=detail,
            type_uri="https://natours.io/problems/resource-not-found",
            instance=instance,
            extensions=extensions,
        )


class PaymentGatewayError(ProblemDetailsException):
    """Exception raised when the payment provider rejects or cannot serve a request."""

    def __init__(
        self,
        detail: str = "The payment provider could not process the request",
        provider_status: Optional[int] = None,
        instance: Optional[str] = None,
    ):
        extensions = {}
        if provider_status:
            extensions["provider_status"] = provider_status

        super().__init__(
            status_code=502,
            title="Payment Provider Error",
            detail=detail,
            type_uri="https://natours.io/problems/payment-provider-error",
            instance=instance,
            extensions=extensions,
        )


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


async def problem_details_handler(request: Request, exc: ProblemDetailsException) -> JSONResponse:
    """
    Exception handler for operational errors.

    Args:
        request: FastAPI request object
        exc: Problem Details exception

    Returns:
        JSONResponse: Problem Details formatted response
    """
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.problem_details,
        headers=exc.headers,
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Turn FastAPI's body/query/path validation failures into a 400 problem."""
    violations = []
    for error in exc.errors():
        location = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
        violations.append({
            "path": ".".join(location) or "request",
            "message": error.get("msg", "Invalid value"),
        })

    problem = ValidationError(
        detail=". ".join(f"{v['path']}: {v['message']}" for v in violations) or None,
        violations=violations,
        instance=request.url.path,
    )
    return await problem_details_handler(request, problem)


async def integrity_error_handler(request: Request, exc: IntegrityError) -> JSONResponse:
    """Map unique constraint violations that escaped the service layer to a 400."""
    logger.warning(
        "Integrity error reached the error handler",
        extra={"path": request.url.path, "error": str(exc.orig)}
    )
    problem = DuplicateValueError(instance=request.url.path)
    return await problem_details_handler(request, problem)


async def token_error_handler(request: Request, exc: jwt.InvalidTokenError) -> JSONResponse:
    """Map JWT decode failures to a 401."""
    if isinstance(exc, jwt.ExpiredSignatureError):
        problem = AuthenticationError(detail="Token expired! Please log in again.")
    else:
        problem = AuthenticationError(detail="Invalid token! Please log in again.")
    return await problem_details_handler(request, problem)


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Handler for non-operational errors.

    The error is logged with its traceback. Clients get a generic message; the
    exception text and stack are only exposed in development.

    Args:
        request: FastAPI request object
        exc: Unhandled exception

    Returns:
        JSONResponse: Problem Details formatted response
    """
    error_id = str(uuid.uuid4())

    logger.error(
        "Unhandled exception while processing request",
        extra={
            "error_id": error_id,
            "path": request.url.path,
            "method": request.method,
            "error": str(exc),
        },
        exc_info=exc,
    )

    problem_details = {
        "type": "https://natours.io/problems/internal-server-error",
        "title": "Internal Server Error",
        "status": 500,
        "detail": "Something went wrong!",
        "instance": request.url.path,
        "error_id": error_id,
        "timestamp": _utc_timestamp(),
    }

    if settings.debug:
        problem_details["exception"] = f"{type(exc).__name__}: {exc}"
        problem_details["stack"] = traceback.format_exception(type(exc), exc, exc.__traceback__)

    return JSONResponse(
        status_code=500,
        content=problem_details,
    )


def register_exception_handlers(app) -> None:
    """Attach every error handler to the application."""
    app.add_exception_handler(ProblemDetailsException, problem_details_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(IntegrityError, integrity_error_handler)
    app.add_exception_handler(jwt.InvalidTokenError, token_error_handler)
    app.add_exception_handler(Exception, generic_exception_handler)
