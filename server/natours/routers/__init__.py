"""FastAPI routers package."""

from .bookings import router as bookings_router
from .metrics import router as metrics_router
from .reviews import router as reviews_router
from .reviews import tour_reviews_router
from .tours import router as tours_router
from .users import router as users_router

__all__ = [
    "bookings_router",
    "metrics_router",
    "reviews_router",
    "tour_reviews_router",
    "tours_router",
    "users_router",
]
