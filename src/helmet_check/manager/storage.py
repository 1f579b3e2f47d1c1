"""Write uploaded images and thumbnails to the images directory."""

import logging
from dataclasses import dataclass
from pathlib import Path

from helmet_check.models import ProjectImage

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StorageResult:
    """Outcome of saving one image/thumbnail pair."""

    success: bool
    file_name: str | None = None
    thumb_file_name: str | None = None
    error: str | None = None


def image_file_names(project_name: str, index: int) -> tuple[str, str]:
    """Return the (image, thumbnail) file names for an image in a project."""
    return f"{project_name}-{index}.webp", f"{project_name}-{index}_thumb.webp"


def save_image_pair(
    images_dir: Path,
    project_name: str,
    index: int,
    image: bytes,
    thumb: bytes,
) -> StorageResult:
    """Save an image and its thumbnail under deterministic names.

    Args:
        images_dir: Directory that holds all stored images. Created if missing.
        project_name: Name of the owning project.
        index: Position of the image within the upload batch.
        image: Encoded image bytes.
        thumb: Encoded thumbnail bytes.

    Returns:
        StorageResult with the file names on success, or the error message.
    """
    file_name, thumb_file_name = image_file_names(project_name, index)
    try:
        images_dir.mkdir(parents=True, exist_ok=True)
        (images_dir / file_name).write_bytes(image)
        (images_dir / thumb_file_name).write_bytes(thumb)
    except OSError as exc:
        logger.error("Failed to save image %d of %s: %s", index, project_name, exc)
        return StorageResult(success=False, error=str(exc))
    return StorageResult(success=True, file_name=file_name, thumb_file_name=thumb_file_name)


def remove_image_files(images_dir: Path, images: list[ProjectImage]) -> int:
    """Remove the stored files of deleted images. Returns the number of files removed."""
    removed = 0
    for img in images:
        for name in (img.file_name, img.thumb_file_name):
            path = images_dir / name
            try:
                path.unlink()
            except FileNotFoundError:
                continue
            except OSError as exc:
                logger.warning("Could not remove %s: %s", path, exc)
                continue
            removed += 1
    return removed
