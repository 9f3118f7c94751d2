"""Unit tests for tour and review services."""

from datetime import datetime, timezone
from uuid import uuid4

import pytest

from natours.core.exceptions import DuplicateValueError, NotFoundError, ValidationError
from natours.core.query import QueryFeatures
from natours.services.review_service import ReviewService
from natours.services.tour_service import TourService, haversine_distance, parse_latlng


def tour_fields(**overrides):
    fields = {
        "name": "The Northern Lights",
        "duration": 4,
        "max_group_size": 12,
        "difficulty": "medium",
        "price": 1200,
        "summary": "Chase the aurora across Iceland",
        "image_cover": "aurora.jpg",
        "start_dates": [datetime(2027, 1, 10, 20, tzinfo=timezone.utc)],
    }
    fields.update(overrides)
    return fields


def test_parse_latlng():
    assert parse_latlng("34.111745,-118.113491") == (34.111745, -118.113491)
    assert parse_latlng(" 1.5 , 2 ") == (1.5, 2.0)

    for bad in ("", "34.1", "a,b", "91,0", "0,181", "1,2,3"):
        with pytest.raises(ValidationError):
            parse_latlng(bad)


def test_haversine_known_distance():
    # Los Angeles to New York
    km = haversine_distance(34.0522, -118.2437, 40.7128, -74.0060, "km")
    mi = haversine_distance(34.0522, -118.2437, 40.7128, -74.0060, "mi")

    assert km == pytest.approx(3936, rel=0.01)
    assert mi == pytest.approx(2446, rel=0.01)
    assert haversine_distance(10, 20, 10, 20) == 0


@pytest.mark.asyncio
async def test_create_tour_derives_slug(test_session):
    service = TourService(test_session)

    tour = await service.create(tour_fields(name="  The Northern Lights  "))

    assert tour.name == "The Northern Lights"
    assert tour.slug == "the-northern-lights"
    assert tour.ratings_average == 4.5
    assert tour.duration_weeks == pytest.approx(4 / 7)
    assert tour.start_dates[0].month == 1


@pytest.mark.asyncio
async def test_create_tour_duplicate_name(test_session):
    service = TourService(test_session)
    await service.create(tour_fields())

    with pytest.raises(DuplicateValueError):
        await service.create(tour_fields())


@pytest.mark.asyncio
async def test_create_tour_discount_rule(test_session):
    service = TourService(test_session)

    with pytest.raises(ValidationError):
        await service.create(tour_fields(price=100, price_discount=150))


@pytest.mark.asyncio
async def test_replacing_start_dates(test_session):
    service = TourService(test_session)
    tour = await service.create(tour_fields())

    new_dates = [datetime(2027, 3, 1, 9, tzinfo=timezone.utc), datetime(2027, 2, 1, 9, tzinfo=timezone.utc)]
    updated = await service.update(tour.id, {"start_dates": new_dates})

    assert [d.month for d in updated.start_dates] == [2, 3]


@pytest.mark.asyncio
async def test_secret_tour_hidden_from_default_reads(test_session):
    service = TourService(test_session)
    secret = await service.create(tour_fields(secret_tour=True))

    assert await service.list(QueryFeatures()) == []
    with pytest.raises(NotFoundError):
        await service.get(secret.id)
    # Writes read the stored document back regardless
    assert secret.secret_tour is True


@pytest.mark.asyncio
async def test_get_missing_tour(test_session):
    with pytest.raises(NotFoundError):
        await TourService(test_session).get(uuid4())


@pytest.mark.asyncio
async def test_review_aggregates(test_session, create_user):
    tour = await TourService(test_session).create(tour_fields())
    first = await create_user()
    second = await create_user()
    service = ReviewService(test_session)

    await service.create_for(first, {"review": "Amazing", "rating": 5, "tour_id": tour.id})
    await service.create_for(second, {"review": "Good", "rating": 4, "tour_id": tour.id})

    refreshed = await TourService(test_session).refetch(tour.id)
    assert refreshed.ratings_quantity == 2
    assert refreshed.ratings_average == 4.5


@pytest.mark.asyncio
async def test_review_requires_tour(test_session, create_user):
    author = await create_user()

    with pytest.raises(ValidationError):
        await ReviewService(test_session).create_for(author, {"review": "Where?", "rating": 3})
