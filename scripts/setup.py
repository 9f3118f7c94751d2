#!/usr/bin/env python3
"""Setup script for the Natours API: run migrations and seed sample data."""

import asyncio
import logging
import os
import sys
from datetime import timedelta
from pathlib import Path

# Add the server directory to the Python path
server_dir = Path(__file__).parent.parent / "server"
sys.path.insert(0, str(server_dir))

from alembic import command
from alembic.config import Config
from sqlalchemy import func, select

from natours.core.database import async_session_factory, close_db
from natours.core.security import utcnow
from natours.models import Role, Tour, User

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

SEED_PASSWORD = os.environ.get("SEED_PASSWORD", "test1234")

SAMPLE_USERS = [
    {"name": "Natours Admin", "email": "admin@natours.io", "role": Role.ADMIN.value},
    {"name": "Lourdes Browning", "email": "lourdes@natours.io", "role": Role.LEAD_GUIDE.value},
    {"name": "Kate Morrison", "email": "kate@natours.io", "role": Role.GUIDE.value},
    {"name": "Jonas Schmedtmann", "email": "jonas@example.com", "role": Role.USER.value},
]

SAMPLE_TOURS = [
    {
        "name": "The Forest Hiker",
        "duration": 5,
        "max_group_size": 25,
        "difficulty": "easy",
        "price": 397,
        "summary": "Breathtaking hike through the Canadian Banff National Park",
        "description": "Five days of forest trails, glacier lakes and mountain huts.",
        "image_cover": "tour-1-cover.jpg",
        "images": ["tour-1-1.jpg", "tour-1-2.jpg", "tour-1-3.jpg"],
        "start_location": {
            "type": "Point",
            "coordinates": [-115.570154, 51.178456],
            "address": "224 Banff Ave, Banff, AB, Canada",
            "description": "Banff, CAN",
        },
        "locations": [
            {"type": "Point", "coordinates": [-116.214531, 51.417611], "description": "Banff National Park", "day": 1},
            {"type": "Point", "coordinates": [-118.076152, 52.875223], "description": "Jasper National Park", "day": 3},
        ],
    },
    {
        "name": "The Sea Explorer",
        "duration": 7,
        "max_group_size": 15,
        "difficulty": "medium",
        "price": 497,
        "price_discount": 449,
        "summary": "Exploring the jaw-dropping US east coast by foot and by boat",
        "description": "A week of beaches, boats and lighthouses from Miami to the Keys.",
        "image_cover": "tour-2-cover.jpg",
        "images": ["tour-2-1.jpg", "tour-2-2.jpg", "tour-2-3.jpg"],
        "start_location": {
            "type": "Point",
            "coordinates": [-80.185942, 25.774772],
            "address": "301 Biscayne Blvd, Miami, FL 33132, USA",
            "description": "Miami, USA",
        },
        "locations": [
            {"type": "Point", "coordinates": [-80.128473, 25.781842], "description": "Lummus Park Beach", "day": 1},
            {"type": "Point", "coordinates": [-81.804185, 24.552242], "description": "Key West", "day": 5},
        ],
    },
    {
        "name": "The Snow Adventurer",
        "duration": 4,
        "max_group_size": 10,
        "difficulty": "difficult",
        "price": 997,
        "summary": "Exciting adventure in the snow with snowboarding and skiing",
        "description": "Four days of powder in the Colorado Rockies.",
        "image_cover": "tour-3-cover.jpg",
        "images": ["tour-3-1.jpg", "tour-3-2.jpg", "tour-3-3.jpg"],
        "start_location": {
            "type": "Point",
            "coordinates": [-106.822318, 39.190872],
            "address": "419 S Mill St, Aspen, CO 81611, USA",
            "description": "Aspen, USA",
        },
        "locations": [
            {"type": "Point", "coordinates": [-106.855385, 39.182677], "description": "Aspen Highlands", "day": 1},
        ],
    },
]


def run_migrations() -> None:
    """Upgrade the database to the latest Alembic revision."""
    alembic_cfg = Config(str(server_dir / "db" / "alembic.ini"))
    alembic_cfg.set_main_option("script_location", str(server_dir / "db" / "alembic"))

    logger.info("Running database migrations...")
    command.upgrade(alembic_cfg, "head")
    logger.info("Database migrations completed")


async def setup_database():
    """Setup the database with the current schema."""
    logger.info("Setting up database...")

    try:
        # env.py drives its own event loop, so keep it off this one
        await asyncio.to_thread(run_migrations)
    except Exception:
        logger.exception("Database setup failed")
        raise

    logger.info("Database setup completed successfully!")


async def create_sample_data():
    """Create users and tours to explore the API with; skipped when tours exist."""
    logger.info("Creating sample data...")

    async with async_session_factory() as db:
        existing_tours = await db.scalar(select(func.count()).select_from(Tour))
        if existing_tours:
            logger.info("Sample data already exists, skipping...")
            return

        users = {}
        for data in SAMPLE_USERS:
            user = User(**data)
            user.set_password(SEED_PASSWORD, SEED_PASSWORD)
            db.add(user)
            users[data["role"]] = user

        guides = [users[Role.LEAD_GUIDE.value], users[Role.GUIDE.value]]
        first_start = utcnow().replace(hour=9, minute=0, second=0, microsecond=0) + timedelta(days=30)

        for i, data in enumerate(SAMPLE_TOURS):
            tour = Tour(**data)
            tour.guides = guides
            tour.start_dates = [first_start + timedelta(days=i * 10 + week * 60) for week in range(3)]
            db.add(tour)

        try:
            await db.commit()
        except Exception:
            await db.rollback()
            logger.exception("Failed to create sample data")
            raise

    logger.info(
        "Sample data created successfully!",
        extra={"users": len(SAMPLE_USERS), "tours": len(SAMPLE_TOURS)},
    )


async def main():
    """Main setup function."""
    logger.info("Starting Natours API setup...")

    await setup_database()
    await create_sample_data()
    await close_db()

    logger.info("Setup completed successfully!")
    logger.info("You can now start the API server with: cd server && uvicorn natours.main:app --reload")


if __name__ == "__main__":
    asyncio.run(main())
