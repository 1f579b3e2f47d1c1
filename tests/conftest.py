"""Shared test fixtures."""

import duckdb
import pytest

from helmet_check.config import DEFAULT_API_SETTINGS
from helmet_check.manager.schema import ensure_schema
from helmet_check.models import ExtractedImage, ImagePayload, PersonDetection, ProjectSettings


@pytest.fixture
def db_conn():
    """In-memory DuckDB connection with schema initialized."""
    conn = duckdb.connect(":memory:")
    ensure_schema(conn)
    yield conn
    conn.close()


@pytest.fixture
def settings() -> ProjectSettings:
    return DEFAULT_API_SETTINGS


@pytest.fixture
def images_dir(tmp_path):
    return tmp_path / "images"


class FakeDetector:
    """Detector returning canned detections keyed by file name."""

    def __init__(self, detections: dict[str, list[PersonDetection]] | None = None) -> None:
        self.detections = detections or {}
        self.calls: list[tuple[str, float]] = []

    async def detect(self, image, media_type, file_name, confidence_threshold):
        self.calls.append((file_name, confidence_threshold))
        return self.detections.get(file_name, [])


def make_extracted_image(
    name: str,
    capture_date: float | None = None,
    location: str | None = None,
) -> ExtractedImage:
    """Helper to create an ExtractedImage with unique file names."""
    return ExtractedImage(
        image=ImagePayload(
            file_name=f"{name}.webp", media_type="image/webp", data=b"img-" + name.encode()
        ),
        thumb=ImagePayload(
            file_name=f"{name}_thumb.webp", media_type="image/webp", data=b"thumb-" + name.encode()
        ),
        capture_date=capture_date,
        location=location,
    )


def make_detection(
    person_id: int,
    has_helmet: bool = True,
    helmet_confidence: float = 0.9,
) -> PersonDetection:
    return PersonDetection(
        person_id=person_id,
        person_confidence=0.95,
        helmet_confidence=helmet_confidence,
        has_helmet=has_helmet,
        person_box=[100.0, 200.0, 600.0, 400.0],
        helmet_box=[100.0, 250.0, 180.0, 350.0] if has_helmet else None,
    )
