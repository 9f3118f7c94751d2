"""Image upload tests for user photos and tour galleries."""

import io
from pathlib import Path

import pytest
from PIL import Image

from natours.core.config import settings


def png_bytes(size=(64, 48), color=(85, 197, 122)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", size, color).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.mark.asyncio
async def test_user_photo_is_resized(test_client, customer, auth_headers):
    response = await test_client.patch(
        "/api/v1/users/update-me",
        files={"photo": ("me.png", png_bytes(), "image/png")},
        headers=auth_headers(customer),
    )

    assert response.status_code == 200
    photo = response.json()["data"]["photo"]
    assert photo.startswith(f"user-{customer.id}-")
    assert photo.endswith(".jpeg")

    stored = Path(settings.static_dir) / "img" / "users" / photo
    with Image.open(stored) as image:
        assert image.format == "JPEG"
        assert image.size == (500, 500)


@pytest.mark.asyncio
async def test_user_photo_must_be_an_image(test_client, customer, auth_headers):
    response = await test_client.patch(
        "/api/v1/users/update-me",
        files={"photo": ("notes.txt", b"just some text", "text/plain")},
        headers=auth_headers(customer),
    )

    assert response.status_code == 400
    assert response.json()["detail"] == "Please upload images only!"


@pytest.mark.asyncio
async def test_corrupt_image_is_rejected(test_client, customer, auth_headers):
    response = await test_client.patch(
        "/api/v1/users/update-me",
        files={"photo": ("broken.png", b"\x89PNG not really", "image/png")},
        headers=auth_headers(customer),
    )

    assert response.status_code == 400


@pytest.mark.asyncio
async def test_tour_images_upload(test_client, create_tour, admin, auth_headers):
    tour = await create_tour()

    response = await test_client.patch(
        f"/api/v1/tours/{tour.id}/images",
        files=[
            ("image_cover", ("cover.png", png_bytes(), "image/png")),
            ("images", ("one.png", png_bytes(), "image/png")),
            ("images", ("two.png", png_bytes(color=(0, 0, 0)), "image/png")),
        ],
        headers=auth_headers(admin),
    )

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["image_cover"].startswith(f"tour-{tour.id}-")
    assert data["image_cover"].endswith("-cover.jpeg")
    assert len(data["images"]) == 2

    stored = Path(settings.static_dir) / "img" / "tours" / data["images"][0]
    with Image.open(stored) as image:
        assert image.size == (2000, 1333)


@pytest.mark.asyncio
async def test_tour_images_limit(test_client, create_tour, admin, auth_headers):
    tour = await create_tour()

    response = await test_client.patch(
        f"/api/v1/tours/{tour.id}/images",
        files=[("images", (f"{i}.png", png_bytes(), "image/png")) for i in range(4)],
        headers=auth_headers(admin),
    )

    assert response.status_code == 400


@pytest.mark.asyncio
async def test_tour_images_require_admin(test_client, create_tour, customer, auth_headers):
    tour = await create_tour()

    response = await test_client.patch(
        f"/api/v1/tours/{tour.id}/images",
        files={"image_cover": ("cover.png", png_bytes(), "image/png")},
        headers=auth_headers(customer),
    )

    assert response.status_code == 403
