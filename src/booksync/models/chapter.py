"""Chapter-level data models."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

# Identity of a chapter: provider id (str) or per-book TOC index (int)
ChapterIdentity = int | str


class ChapterStatus(str, Enum):
    """Sync status of a single chapter."""

    PENDING = "pending"  # Never persisted
    DOWNLOADED = "downloaded"
    FAILED = "failed"
    LOCKED = "locked"
    VOLUME = "volume"

    @classmethod
    def parse(cls, value: str | None) -> "ChapterStatus":
        """Resolve a marker string, falling back to PENDING."""
        if not value:
            return cls.PENDING
        try:
            return cls(value.strip().lower())
        except ValueError:
            return cls.PENDING

    @property
    def is_cached(self) -> bool:
        """Whether the chapter counts as present for resume purposes."""
        return self in (ChapterStatus.DOWNLOADED, ChapterStatus.VOLUME)


class TocChapter(BaseModel):
    """Single entry of a remote table of contents."""

    index: int
    identity: ChapterIdentity
    title: str = ""
    url: str | None = None
    is_volume: bool = False


class ImageRef(BaseModel):
    """Reference from a cached chapter to a cached image."""

    image_id: str
    media_type: str = "image/jpeg"


class CachedChapter(BaseModel):
    """One chapter file inside the working cache."""

    identity: ChapterIdentity
    status: ChapterStatus
    title: str = ""
    url: str | None = None
    is_volume: bool = False
    html_content: str | None = None
    failure_reason: str | None = None
    images: list[ImageRef] = Field(default_factory=list)
    download_time: datetime = Field(default_factory=datetime.now)


class ImageResource(BaseModel):
    """Binary image payload recovered from an output file."""

    id: str  # File name without extension
    data: bytes
    media_type: str


class ChapterWithImages(BaseModel):
    """Chapter body fragment plus the images it references."""

    body_content: str
    images: list[ImageResource] = Field(default_factory=list)
