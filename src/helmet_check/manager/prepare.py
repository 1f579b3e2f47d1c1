"""Turn local photo files into uploads the pipeline accepts."""

from io import BytesIO
from pathlib import Path

from PIL import Image

from helmet_check.config import THUMBNAIL_SIZE
from helmet_check.models import ExtractedImage, ImagePayload, ProjectSettings

WEBP_MEDIA_TYPE = "image/webp"
_QUALITY_STEPS = (85, 70, 55, 40)


def load_local_image(path: Path, settings: ProjectSettings) -> ExtractedImage:
    """Resize and WebP-encode a local photo and build its thumbnail.

    The image is shrunk to fit ``max_width`` x ``max_height``; quality is
    lowered step by step until the file fits ``max_file_size`` KB, keeping the
    smallest encoding if none does.
    """
    with Image.open(path) as img:
        img = img.convert("RGB")
        img.thumbnail((settings.max_width, settings.max_height))
        data = _encode_within(img, settings.max_file_size * 1024)

        thumb = img.copy()
        thumb.thumbnail(THUMBNAIL_SIZE)
        thumb_data = _encode(thumb, _QUALITY_STEPS[0])

    name = f"{path.stem}.webp"
    return ExtractedImage(
        image=ImagePayload(file_name=name, media_type=WEBP_MEDIA_TYPE, data=data),
        thumb=ImagePayload(
            file_name=f"{path.stem}_thumb.webp", media_type=WEBP_MEDIA_TYPE, data=thumb_data
        ),
        # file mtime stands in for the capture date; EXIF is not read
        capture_date=path.stat().st_mtime * 1000,
    )


def _encode_within(img: Image.Image, max_bytes: int) -> bytes:
    data = b""
    for quality in _QUALITY_STEPS:
        data = _encode(img, quality)
        if len(data) <= max_bytes:
            break
    return data


def _encode(img: Image.Image, quality: int) -> bytes:
    buf = BytesIO()
    img.save(buf, format="WEBP", quality=quality)
    return buf.getvalue()
