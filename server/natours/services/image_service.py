"""Image upload validation, resizing and storage."""

import io
import logging
import time
from pathlib import Path
from typing import Optional
from uuid import UUID

from fastapi import UploadFile
from fastapi.concurrency import run_in_threadpool
from PIL import Image, UnidentifiedImageError

from ..core.config import settings
from ..core.exceptions import ValidationError

logger = logging.getLogger(__name__)

USER_PHOTO_SIZE = (500, 500)
TOUR_IMAGE_SIZE = (2000, 1333)
JPEG_QUALITY = 90
MAX_TOUR_IMAGES = 3


def _resize(raw: bytes, size: tuple[int, int]) -> Image.Image:
    with Image.open(io.BytesIO(raw)) as image:
        return image.convert("RGB").resize(size, Image.Resampling.LANCZOS)


def _save_jpeg(image: Image.Image, destination: Path) -> None:
    destination.parent.mkdir(parents=True, exist_ok=True)
    image.save(destination, format="JPEG", quality=JPEG_QUALITY)


class ImageService:
    """Stores uploaded images as resized JPEGs under the static directory."""

    def __init__(self, static_dir: Optional[str] = None):
        self.root = Path(static_dir or settings.static_dir) / "img"

    @property
    def users_dir(self) -> Path:
        return self.root / "users"

    @property
    def tours_dir(self) -> Path:
        return self.root / "tours"

    @staticmethod
    def _check_content_type(upload: UploadFile, field: str) -> None:
        if not (upload.content_type or "").startswith("image/"):
            raise ValidationError(
                detail="Please upload images only!",
                violations=[{"path": field, "message": f"'{upload.filename}' is not an image"}],
            )

    async def _store(self, upload: UploadFile, field: str, size: tuple[int, int], destination: Path) -> str:
        self._check_content_type(upload, field)
        raw = await upload.read()
        try:
            image = await run_in_threadpool(_resize, raw, size)
        except (UnidentifiedImageError, OSError) as e:
            raise ValidationError(
                detail="Please upload images only!",
                violations=[{"path": field, "message": f"'{upload.filename}' could not be decoded as an image"}],
            ) from e
        await run_in_threadpool(_save_jpeg, image, destination)

        logger.info(
            "Image stored",
            extra={"field": field, "file": destination.name, "width": size[0], "height": size[1]}
        )
        return destination.name

    async def save_user_photo(self, user_id: UUID, upload: UploadFile) -> str:
        """Resize to 500x500 and return the stored file name."""
        filename = f"user-{user_id}-{int(time.time() * 1000)}.jpeg"
        return await self._store(upload, "photo", USER_PHOTO_SIZE, self.users_dir / filename)

    async def save_tour_images(
        self,
        tour_id: UUID,
        image_cover: Optional[UploadFile],
        images: Optional[list[UploadFile]],
    ) -> tuple[Optional[str], Optional[list[str]]]:
        """
        Resize a tour's cover and gallery images to 2000x1333.

        Returns:
            ``(cover file name, gallery file names)``, None for parts not uploaded

        Raises:
            ValidationError: For non-image uploads or more than three gallery images
        """
        if images and len(images) > MAX_TOUR_IMAGES:
            raise ValidationError(
                detail=f"A tour takes at most {MAX_TOUR_IMAGES} images",
                violations=[{"path": "images", "message": f"at most {MAX_TOUR_IMAGES} files"}],
            )

        stamp = int(time.time() * 1000)
        cover_name = None
        if image_cover is not None:
            cover_name = await self._store(
                image_cover, "image_cover", TOUR_IMAGE_SIZE, self.tours_dir / f"tour-{tour_id}-{stamp}-cover.jpeg"
            )

        image_names = None
        if images:
            image_names = []
            for index, upload in enumerate(images, start=1):
                image_names.append(await self._store(
                    upload, "images", TOUR_IMAGE_SIZE, self.tours_dir / f"tour-{tour_id}-{stamp}-{index}.jpeg"
                ))

        return cover_name, image_names
