"""Pull indexed image groups out of a multipart upload."""

import logging
from collections.abc import Mapping
from typing import Any

from starlette.datastructures import UploadFile

from helmet_check.models import ExtractedImage, ImagePayload
from helmet_check.settings import sanitize_optional_date, sanitize_optional_location

logger = logging.getLogger(__name__)

DEFAULT_MEDIA_TYPE = "image/webp"


async def extract_images(form: Mapping[str, Any]) -> list[ExtractedImage]:
    """Collect ``image_N``/``thumb_N`` groups for N = 0, 1, 2, ...

    Extraction stops at the first index without an ``image_N`` field, so a gap
    truncates the batch. An index whose image or thumbnail is not an uploaded
    file is dropped.
    """
    images: list[ExtractedImage] = []
    index = 0
    while f"image_{index}" in form:
        image = form.get(f"image_{index}")
        thumb = form.get(f"thumb_{index}")
        if isinstance(image, UploadFile) and isinstance(thumb, UploadFile):
            images.append(
                ExtractedImage(
                    image=await _read_upload(image, f"image_{index}"),
                    thumb=await _read_upload(thumb, f"thumb_{index}"),
                    capture_date=sanitize_optional_date(form.get(f"initialImageDate_{index}")),
                    location=sanitize_optional_location(
                        form.get(f"initialImageLocation_{index}")
                    ),
                )
            )
        else:
            logger.debug("Dropping image group %d: image and thumb must be files", index)
        index += 1
    return images


async def _read_upload(upload: UploadFile, fallback_name: str) -> ImagePayload:
    return ImagePayload(
        file_name=upload.filename or fallback_name,
        media_type=upload.content_type or DEFAULT_MEDIA_TYPE,
        data=await upload.read(),
    )
