"""Tests for preparing local photos."""

from dataclasses import replace
from io import BytesIO

from PIL import Image

from helmet_check.manager.prepare import load_local_image


def _write_photo(path, size=(2400, 1600)):
    Image.new("RGB", size, color=(200, 120, 40)).save(path, format="JPEG")
    return path


def test_load_local_image_resizes_and_encodes(tmp_path, settings):
    path = _write_photo(tmp_path / "site.jpg")
    extracted = load_local_image(path, settings)

    assert extracted.image.file_name == "site.webp"
    assert extracted.image.media_type == "image/webp"
    with Image.open(BytesIO(extracted.image.data)) as img:
        assert img.format == "WEBP"
        assert img.width <= settings.max_width
        assert img.height <= settings.max_height
    with Image.open(BytesIO(extracted.thumb.data)) as thumb:
        assert max(thumb.size) <= 300
    assert extracted.capture_date is not None


def test_load_local_image_respects_small_limits(tmp_path, settings):
    path = _write_photo(tmp_path / "site.png", size=(800, 600))
    small = replace(settings, max_width=400, max_height=300)
    extracted = load_local_image(path, small)
    with Image.open(BytesIO(extracted.image.data)) as img:
        assert img.size == (400, 300)
