"""Tour API tests."""

from datetime import datetime, timezone

import pytest

TOURS = "/api/v1/tours"


@pytest.mark.asyncio
async def test_create_tour(test_client, admin, auth_headers, sample_tour_data):
    response = await test_client.post(TOURS, json=sample_tour_data, headers=auth_headers(admin))

    assert response.status_code == 201
    data = response.json()["data"]
    assert data["slug"] == "the-forest-hiker"
    assert data["duration_weeks"] == pytest.approx(5 / 7)
    assert data["ratings_average"] == 4.5
    assert data["ratings_quantity"] == 0
    assert len(data["start_dates"]) == 2
    assert data["start_location"]["coordinates"] == [-115.570154, 51.178456]


@pytest.mark.asyncio
async def test_create_tour_requires_admin(test_client, customer, auth_headers, sample_tour_data):
    response = await test_client.post(TOURS, json=sample_tour_data)
    assert response.status_code == 401

    response = await test_client.post(TOURS, json=sample_tour_data, headers=auth_headers(customer))
    assert response.status_code == 403
    assert response.json()["title"] == "Access Forbidden"


@pytest.mark.asyncio
async def test_create_tour_with_guides(test_client, admin, create_user, auth_headers, sample_tour_data):
    guide = await create_user(name="Gina Guide", role="guide")
    sample_tour_data["guides"] = [str(guide.id)]

    response = await test_client.post(TOURS, json=sample_tour_data, headers=auth_headers(admin))

    assert response.status_code == 201
    guides = response.json()["data"]["guides"]
    assert [g["id"] for g in guides] == [str(guide.id)]
    assert "password" not in guides[0]


@pytest.mark.asyncio
async def test_create_tour_with_unknown_guide(test_client, admin, auth_headers, sample_tour_data):
    sample_tour_data["guides"] = ["00000000-0000-0000-0000-000000000001"]

    response = await test_client.post(TOURS, json=sample_tour_data, headers=auth_headers(admin))

    assert response.status_code == 400


@pytest.mark.asyncio
@pytest.mark.parametrize("field,value", [
    ("name", "Too short"),
    ("name", "A" * 41),
    ("difficulty", "extreme"),
    ("ratings_average", 5.5),
    ("price", 0),
])
async def test_create_tour_field_validation(test_client, admin, auth_headers, sample_tour_data, field, value):
    sample_tour_data[field] = value

    response = await test_client.post(TOURS, json=sample_tour_data, headers=auth_headers(admin))

    assert response.status_code == 400
    assert response.json()["violations"]


@pytest.mark.asyncio
async def test_create_tour_discount_not_below_price(test_client, admin, auth_headers, sample_tour_data):
    sample_tour_data["price_discount"] = sample_tour_data["price"]

    response = await test_client.post(TOURS, json=sample_tour_data, headers=auth_headers(admin))

    assert response.status_code == 400
    assert "should be below regular price" in response.json()["detail"]


@pytest.mark.asyncio
async def test_update_price_below_stored_discount(test_client, create_tour, admin, auth_headers):
    """The discount rule is checked against the merged document on update."""
    tour = await create_tour(price=497, price_discount=400)
    headers = auth_headers(admin)

    response = await test_client.patch(f"{TOURS}/{tour.id}", json={"price": 300}, headers=headers)
    assert response.status_code == 400

    response = await test_client.get(f"{TOURS}/{tour.id}", headers=headers)
    assert response.json()["data"]["price"] == 497


@pytest.mark.asyncio
async def test_update_tour_renames_slug(test_client, create_tour, admin, auth_headers):
    tour = await create_tour()

    response = await test_client.patch(
        f"{TOURS}/{tour.id}", json={"name": "The Ocean Wanderer"}, headers=auth_headers(admin)
    )

    assert response.status_code == 200
    assert response.json()["data"]["slug"] == "the-ocean-wanderer"


@pytest.mark.asyncio
async def test_update_tour_rejects_null_required_field(test_client, create_tour, admin, auth_headers):
    tour = await create_tour()

    response = await test_client.patch(f"{TOURS}/{tour.id}", json={"summary": None}, headers=auth_headers(admin))

    assert response.status_code == 400


@pytest.mark.asyncio
async def test_duplicate_tour_name(test_client, create_tour, admin, auth_headers, sample_tour_data):
    await create_tour(name=sample_tour_data["name"])

    response = await test_client.post(TOURS, json=sample_tour_data, headers=auth_headers(admin))

    assert response.status_code == 400
    assert response.json()["title"] == "Duplicate Value"


@pytest.mark.asyncio
async def test_secret_tours_are_hidden(test_client, create_tour, customer, auth_headers):
    visible = await create_tour(name="The Visible Voyage")
    secret = await create_tour(name="The Secret Passage", secret_tour=True)

    response = await test_client.get(TOURS)
    assert response.status_code == 200
    body = response.json()
    assert body["results"] == 1
    assert body["data"][0]["id"] == str(visible.id)

    response = await test_client.get(f"{TOURS}/{secret.id}", headers=auth_headers(customer))
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_list_filter_sort_and_paginate(test_client, create_tour):
    await create_tour(name="The Budget Ramble", price=200)
    await create_tour(name="The Middle Meander", price=500)
    await create_tour(name="The Luxury Escape", price=1500)

    response = await test_client.get(f"{TOURS}?price[gte]=300&sort=-price")
    names = [t["name"] for t in response.json()["data"]]
    assert names == ["The Luxury Escape", "The Middle Meander"]

    response = await test_client.get(f"{TOURS}?price__lt=1000&sort=price")
    names = [t["name"] for t in response.json()["data"]]
    assert names == ["The Budget Ramble", "The Middle Meander"]

    response = await test_client.get(f"{TOURS}?sort=price&limit=1&page=2")
    body = response.json()
    assert body["results"] == 1
    assert body["data"][0]["name"] == "The Middle Meander"


@pytest.mark.asyncio
async def test_list_projection(test_client, create_tour):
    await create_tour()

    response = await test_client.get(f"{TOURS}?fields=name,price")

    assert response.status_code == 200
    assert set(response.json()["data"][0]) == {"id", "name", "price"}


@pytest.mark.asyncio
@pytest.mark.parametrize("query", ["sort=nonexistent", "fields=nonexistent", "price[gte]=cheap", "page=0", "sort=images", "sort=-start_location"])
async def test_list_rejects_bad_query(test_client, create_tour, query):
    await create_tour()

    response = await test_client.get(f"{TOURS}?{query}")

    assert response.status_code == 400


@pytest.mark.asyncio
async def test_top_five_tours(test_client, create_tour):
    prices = [900, 100, 700, 300, 500, 200]
    for index, price in enumerate(prices):
        await create_tour(name=f"The Sample Tour {index}", price=price)

    response = await test_client.get(f"{TOURS}/top-5-tours?limit=50&sort=-price")

    body = response.json()
    assert body["results"] == 5
    assert [t["price"] for t in body["data"]] == [100, 200, 300, 500, 700]
    assert set(body["data"][0]) == {"id", "name", "price", "ratings_average", "summary", "difficulty"}


@pytest.mark.asyncio
async def test_get_tour_by_slug(test_client, create_tour):
    tour = await create_tour(name="The Park Camper")

    response = await test_client.get(f"{TOURS}/tour/the-park-camper")
    assert response.status_code == 200
    assert response.json()["data"]["id"] == str(tour.id)

    response = await test_client.get(f"{TOURS}/tour/no-such-tour")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_get_tour_includes_reviews(test_client, create_tour, customer, auth_headers):
    tour = await create_tour()

    response = await test_client.get(f"{TOURS}/{tour.id}")
    assert response.status_code == 401

    response = await test_client.get(f"{TOURS}/{tour.id}", headers=auth_headers(customer))
    assert response.status_code == 200
    assert response.json()["data"]["reviews"] == []


@pytest.mark.asyncio
async def test_get_tour_bad_id(test_client, customer, auth_headers):
    response = await test_client.get(f"{TOURS}/not-a-uuid", headers=auth_headers(customer))

    assert response.status_code == 400


@pytest.mark.asyncio
async def test_delete_tour(test_client, create_tour, admin, auth_headers):
    tour = await create_tour()
    headers = auth_headers(admin)

    response = await test_client.delete(f"{TOURS}/{tour.id}", headers=headers)
    assert response.status_code == 204
    assert response.content == b""

    response = await test_client.get(f"{TOURS}/{tour.id}", headers=headers)
    assert response.status_code == 404

    response = await test_client.delete(f"{TOURS}/{tour.id}", headers=headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_tour_stats(test_client, create_tour, admin, customer, auth_headers):
    await create_tour(name="The Easy Stroll One", difficulty="easy", price=100)
    await create_tour(name="The Easy Stroll Two", difficulty="easy", price=300)
    await create_tour(name="The Hard Climb One", difficulty="difficult", price=1000)
    await create_tour(name="The Low Rated Trip", difficulty="medium", ratings_average=3.0)

    response = await test_client.get(f"{TOURS}/tour-stats", headers=auth_headers(customer))
    assert response.status_code == 403

    response = await test_client.get(f"{TOURS}/tour-stats", headers=auth_headers(admin))
    assert response.status_code == 200
    stats = {row["difficulty"]: row for row in response.json()["data"]}

    assert set(stats) == {"EASY", "DIFFICULT"}
    assert stats["EASY"]["num_tours"] == 2
    assert stats["EASY"]["average_price"] == 200
    assert stats["EASY"]["min_price"] == 100
    assert stats["EASY"]["max_price"] == 300
    assert stats["DIFFICULT"]["num_tours"] == 1
    # Fewest tours first
    assert response.json()["data"][0]["difficulty"] == "DIFFICULT"


@pytest.mark.asyncio
async def test_monthly_plans(test_client, create_tour):
    await create_tour(
        name="The Summer Hiker",
        start_dates=[
            datetime(2027, 6, 1, 9, tzinfo=timezone.utc),
            datetime(2027, 7, 15, 9, tzinfo=timezone.utc),
            datetime(2028, 6, 1, 9, tzinfo=timezone.utc),
        ],
    )
    await create_tour(name="The June Paddler", start_dates=[datetime(2027, 6, 20, 9, tzinfo=timezone.utc)])

    response = await test_client.get(f"{TOURS}/monthly-plans/2027")

    assert response.status_code == 200
    plans = response.json()["data"]
    assert [p["month"] for p in plans] == [6, 7]
    assert plans[0]["num_tour_starts"] == 2
    assert plans[0]["tours"] == ["The Summer Hiker", "The June Paddler"]
    assert plans[1]["tours"] == ["The Summer Hiker"]


@pytest.mark.asyncio
async def test_tours_within_radius(test_client, create_tour):
    miami = await create_tour(name="The Sea Explorer")
    await create_tour(
        name="The Forest Hiker",
        start_location={"type": "Point", "coordinates": [-115.570154, 51.178456]},
    )
    await create_tour(name="The Indoor Tour", start_location=None)

    response = await test_client.get(f"{TOURS}/tours-within/100/center/25.79,-80.13")
    assert response.status_code == 200
    body = response.json()
    assert body["results"] == 1
    assert body["data"][0]["id"] == str(miami.id)

    response = await test_client.get(f"{TOURS}/tours-within/5000/center/25.79,-80.13?unit=mi")
    assert response.json()["results"] == 2


@pytest.mark.asyncio
async def test_distances(test_client, create_tour):
    await create_tour(
        name="The Forest Hiker",
        start_location={"type": "Point", "coordinates": [-115.570154, 51.178456]},
    )
    await create_tour(name="The Sea Explorer")

    response = await test_client.get(f"{TOURS}/distances/25.79,-80.13")
    assert response.status_code == 200
    rows = response.json()["data"]
    assert [row["name"] for row in rows] == ["The Sea Explorer", "The Forest Hiker"]
    assert rows[0]["distance"] < 10
    assert rows[1]["distance"] > 3000

    response = await test_client.get(f"{TOURS}/distances/25.79,-80.13?unit=mi")
    miles = response.json()["data"]
    assert miles[1]["distance"] == pytest.approx(rows[1]["distance"] / 1.609344, rel=1e-3)


@pytest.mark.asyncio
@pytest.mark.parametrize("path", [
    "tours-within/100/center/not-coordinates",
    "tours-within/100/center/25.79",
    "distances/95,10",
])
async def test_geo_queries_reject_bad_coordinates(test_client, path):
    response = await test_client.get(f"{TOURS}/{path}")

    assert response.status_code == 400
    assert response.json()["detail"] == "No coordinates defined"


@pytest.mark.asyncio
async def test_geo_queries_reject_unknown_unit(test_client):
    response = await test_client.get(f"{TOURS}/distances/25.79,-80.13?unit=parsec")

    assert response.status_code == 400
