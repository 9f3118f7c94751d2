"""Models module exporting all database models."""

from .booking import Booking
from .review import Review
from .tour import Difficulty, Tour, TourStartDate, tour_guides
from .user import Role, User

__all__ = [
    # Tours
    "Tour",
    "TourStartDate",
    "Difficulty",
    "tour_guides",

    # People
    "User",
    "Role",

    # Activity
    "Review",
    "Booking",
]
