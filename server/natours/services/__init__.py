"""Service layer package."""

from .auth_service import AuthService
from .booking_service import BookingService
from .crud import CRUDService
from .email_service import EmailService
from .image_service import ImageService
from .payment_gateway import RazorpayGateway
from .review_service import ReviewService
from .tour_service import TourService
from .user_service import UserService

__all__ = [
    "AuthService",
    "BookingService",
    "CRUDService",
    "EmailService",
    "ImageService",
    "RazorpayGateway",
    "ReviewService",
    "TourService",
    "UserService",
]
