"""Data models for projects, images and detected persons."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class ProjectSettings:
    """Sanitized per-project settings."""

    project_tag: str
    confidence: float
    gemini_weight: float
    gemini_prompt: str
    grok_weight: float
    grok_prompt: str
    max_file_size: int  # KB
    max_width: int
    max_height: int
    output_format: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "projectTag": self.project_tag,
            "confidence": self.confidence,
            "geminiWeight": self.gemini_weight,
            "geminiPrompt": self.gemini_prompt,
            "grokWeight": self.grok_weight,
            "grokPrompt": self.grok_prompt,
            "maxFileSize": self.max_file_size,
            "maxWidth": self.max_width,
            "maxHeight": self.max_height,
            "outputFormat": self.output_format,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ProjectSettings":
        """Build settings from the camelCase dict produced by ``to_dict``."""
        return cls(
            project_tag=data["projectTag"],
            confidence=data["confidence"],
            gemini_weight=data["geminiWeight"],
            gemini_prompt=data["geminiPrompt"],
            grok_weight=data["grokWeight"],
            grok_prompt=data["grokPrompt"],
            max_file_size=data["maxFileSize"],
            max_width=data["maxWidth"],
            max_height=data["maxHeight"],
            output_format=data["outputFormat"],
        )


class ProjectStatus(str, Enum):
    PENDING = "pending"
    READY = "ready"
    NO_PEOPLE = "no-people"
    ERROR = "error"


@dataclass
class Project:
    """A batch of uploaded images processed together."""

    id: int
    name: str
    settings: ProjectSettings
    status: ProjectStatus
    created_at: datetime | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "projectName": self.name,
            "settings": self.settings.to_dict(),
            "status": self.status.value,
            "createdAt": _isoformat(self.created_at),
        }


@dataclass
class ProjectImage:
    """A stored image belonging to one project."""

    id: int
    project_id: int
    capture_date: float | None  # epoch ms
    location: str | None
    file_name: str
    thumb_file_name: str
    created_at: datetime | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "projectID": self.project_id,
            "initialImageDate": self.capture_date,
            "initialImageLocation": self.location,
            "fileName": self.file_name,
            "thumbFileName": self.thumb_file_name,
            "createdAt": _isoformat(self.created_at),
        }


@dataclass
class Person:
    """A persisted person detection within one image."""

    id: int
    image_id: int
    person_id: int  # index within the image, not globally unique
    person_confidence: float
    helmet_confidence: float
    has_helmet: bool
    person_box: list[float]  # [ymin, xmin, ymax, xmax] on a 0-1000 scale
    helmet_box: list[float] | None
    created_at: datetime | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "imageID": self.image_id,
            "personID": self.person_id,
            "personConfidence": self.person_confidence,
            "helmetConfidence": self.helmet_confidence,
            "hasHelmet": self.has_helmet,
            "personBox": self.person_box,
            "helmetBox": self.helmet_box,
            "createdAt": _isoformat(self.created_at),
        }


@dataclass(frozen=True)
class PersonDetection:
    """A normalized person detection returned by the vision model."""

    person_id: int
    person_confidence: float
    helmet_confidence: float
    has_helmet: bool
    person_box: list[float]
    helmet_box: list[float] | None


@dataclass(frozen=True)
class ImagePayload:
    """Raw bytes of an uploaded file."""

    file_name: str
    media_type: str
    data: bytes = field(repr=False)


@dataclass(frozen=True)
class ExtractedImage:
    """One image group taken from an upload request."""

    image: ImagePayload
    thumb: ImagePayload
    capture_date: float | None = None
    location: str | None = None


@dataclass(frozen=True)
class WriteResult(Generic[T]):
    """Outcome of a persistence write: either a value or an error message."""

    value: T | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> "WriteResult[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: str) -> "WriteResult[T]":
        return cls(error=error)


def _isoformat(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None
