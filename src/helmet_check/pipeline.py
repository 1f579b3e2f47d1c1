"""Batch pipeline: store uploaded images, detect helmets, persist the results.

One batch becomes one project. Each image is saved and analyzed concurrently,
and a failure in one image never aborts its siblings.
"""

import asyncio
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Protocol

import duckdb

from helmet_check.config import DETECTION_CONCURRENCY
from helmet_check.manager.repository import (
    create_image,
    create_person,
    create_project,
    project_name_exists,
    update_project_status,
)
from helmet_check.manager.storage import save_image_pair
from helmet_check.models import (
    ExtractedImage,
    Person,
    PersonDetection,
    Project,
    ProjectImage,
    ProjectSettings,
    ProjectStatus,
)
from helmet_check.settings import generate_project_name

logger = logging.getLogger(__name__)


class NoImagesError(Exception):
    """The request carried no usable image."""


class ProjectCreationError(Exception):
    """The project row could not be created."""


class Detector(Protocol):
    async def detect(
        self,
        image: bytes,
        media_type: str,
        file_name: str,
        confidence_threshold: float,
    ) -> list[PersonDetection]: ...


@dataclass
class ImageResult:
    """Outcome for a single image of the batch."""

    index: int
    success: bool
    image: ProjectImage | None = None
    people: list[Person] = field(default_factory=list)
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        if not self.success or self.image is None:
            return {"index": self.index, "success": False, "error": self.error}
        return {
            "index": self.index,
            "success": True,
            "imageId": self.image.id,
            "fileName": self.image.file_name,
            "thumbFileName": self.image.thumb_file_name,
            "peopleDetected": len(self.people),
            "people": [p.to_dict() for p in self.people],
        }


@dataclass
class BatchResult:
    """Per-image results of a batch plus the aggregate summary."""

    project: Project
    results: list[ImageResult]

    @property
    def successful_images(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def failed_images(self) -> int:
        return len(self.results) - self.successful_images

    @property
    def total_people_detected(self) -> int:
        return sum(len(r.people) for r in self.results if r.success)

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": True,
            "projectId": self.project.id,
            "projectName": self.project.name,
            "status": self.project.status.value,
            "settings": self.project.settings.to_dict(),
            "summary": {
                "totalImages": len(self.results),
                "successfulImages": self.successful_images,
                "failedImages": self.failed_images,
                "totalPeopleDetected": self.total_people_detected,
            },
            "results": [r.to_dict() for r in self.results],
        }


def reserve_project_name(
    conn: duckdb.DuckDBPyConnection, project_tag: str, now: datetime | None = None
) -> str:
    """Generate a project name, adding ``-2``, ``-3``, ... if it is already taken."""
    base = generate_project_name(project_tag, now)
    name = base
    suffix = 1
    while project_name_exists(conn, name):
        suffix += 1
        name = f"{base}-{suffix}"
    return name


def resolve_status(results: Sequence[ImageResult]) -> ProjectStatus:
    """Final project status once every image has been processed."""
    if not any(r.success for r in results):
        return ProjectStatus.ERROR
    if not any(r.people for r in results if r.success):
        return ProjectStatus.NO_PEOPLE
    return ProjectStatus.READY


async def process_batch(
    conn: duckdb.DuckDBPyConnection,
    detector: Detector,
    settings: ProjectSettings,
    images: Sequence[ExtractedImage],
    images_dir: Path,
    concurrency: int = DETECTION_CONCURRENCY,
    on_image_done: Callable[[ImageResult], None] | None = None,
) -> BatchResult:
    """Create a project for ``images`` and process every image in it.

    Args:
        conn: DuckDB connection holding projects, images and persons.
        detector: Vision client used to find persons and helmets.
        settings: Sanitized project settings; ``settings.confidence`` is the
            helmet confidence threshold.
        images: Extracted images in upload order.
        images_dir: Directory where images and thumbnails are stored.
        concurrency: Maximum number of images processed at the same time.
        on_image_done: Called with each ImageResult as soon as it is ready.

    Returns:
        BatchResult with one ImageResult per input image, in input order.

    Raises:
        NoImagesError: ``images`` is empty.
        ProjectCreationError: The project row could not be created.
    """
    if not images:
        raise NoImagesError("No images provided")

    project_name = reserve_project_name(conn, settings.project_tag)
    created = create_project(conn, project_name, settings)
    if not created.ok:
        raise ProjectCreationError(created.error)
    project = created.value

    logger.info(
        "Processing %d image(s) for project %s with confidence threshold %.1f%%",
        len(images),
        project.name,
        settings.confidence * 100,
    )

    semaphore = asyncio.Semaphore(max(1, concurrency))

    async def run(index: int, image: ExtractedImage) -> ImageResult:
        async with semaphore:
            try:
                result = await _process_image(
                    conn, detector, project, index, image, images_dir
                )
            except Exception as exc:
                logger.exception("Failed to process image %d", index)
                result = ImageResult(index=index, success=False, error=str(exc) or "Unknown error")
        if on_image_done is not None:
            on_image_done(result)
        return result

    results = await asyncio.gather(*(run(i, img) for i, img in enumerate(images)))
    batch = BatchResult(project=project, results=list(results))

    status = resolve_status(batch.results)
    updated = update_project_status(conn, project.id, status)
    if updated.ok:
        project.status = status
    else:
        logger.error("Project %s left in status %s", project.name, project.status.value)

    logger.info(
        "Processing complete - %d/%d images processed, %d people detected",
        batch.successful_images,
        len(batch.results),
        batch.total_people_detected,
    )
    return batch


async def _process_image(
    conn: duckdb.DuckDBPyConnection,
    detector: Detector,
    project: Project,
    index: int,
    image: ExtractedImage,
    images_dir: Path,
) -> ImageResult:
    """Save and analyze one image concurrently, then persist its persons."""
    saved, detections = await asyncio.gather(
        _save_image(conn, project, index, image, images_dir),
        detector.detect(
            image.image.data,
            image.image.media_type,
            image.image.file_name,
            project.settings.confidence,
        ),
        return_exceptions=True,
    )

    if isinstance(detections, BaseException):
        logger.error("Detection failed for image %d: %s", index, detections)
        detections = []
    if isinstance(saved, BaseException):
        logger.error("Saving failed for image %d: %s", index, saved)
        saved = None

    # Detections of an unsaved image have no row to attach to
    if saved is None:
        return ImageResult(index=index, success=False, error="Failed to save image")

    people: list[Person] = []
    for det in detections:
        written = create_person(
            conn,
            saved.id,
            det.person_id,
            det.person_confidence,
            det.helmet_confidence,
            det.has_helmet,
            det.person_box,
            det.helmet_box,
        )
        if not written.ok:
            logger.error("Failed to save person %d for image %d", det.person_id, index)
            continue
        people.append(written.value)

    return ImageResult(index=index, success=True, image=saved, people=people)


async def _save_image(
    conn: duckdb.DuckDBPyConnection,
    project: Project,
    index: int,
    image: ExtractedImage,
    images_dir: Path,
) -> ProjectImage | None:
    stored = await asyncio.to_thread(
        save_image_pair,
        images_dir,
        project.name,
        index,
        image.image.data,
        image.thumb.data,
    )
    if not stored.success:
        logger.error("Failed to save image %d to filesystem", index)
        return None

    written = create_image(
        conn,
        project.id,
        image.capture_date,
        image.location,
        stored.file_name,
        stored.thumb_file_name,
    )
    if not written.ok:
        logger.error("Failed to save image %d to database", index)
        return None
    return written.value
