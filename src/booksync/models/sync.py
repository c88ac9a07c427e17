"""Synchronization options and planning results."""

from pathlib import Path

from pydantic import BaseModel, Field, model_validator

from booksync.models.chapter import ChapterIdentity, ImageResource, TocChapter


class SyncOptions(BaseModel):
    """Options controlling a synchronization run."""

    temp_directory: Path
    force_redownload: bool = False
    retry_failed_chapters: bool = True
    # Locked chapters are only re-attempted when explicitly requested
    retry_locked_chapters: bool = False
    start_chapter_index: int | None = Field(default=None, ge=0)
    end_chapter_index: int | None = Field(default=None, ge=0)
    max_concurrent_downloads: int = Field(default=4, ge=1)
    continue_on_error: bool = True

    @model_validator(mode="after")
    def _check_range(self) -> "SyncOptions":
        if (
            self.start_chapter_index is not None
            and self.end_chapter_index is not None
            and self.start_chapter_index > self.end_chapter_index
        ):
            raise ValueError("start_chapter_index must not exceed end_chapter_index")
        return self

    def in_range(self, chapter: TocChapter) -> bool:
        """Whether a TOC entry falls inside the configured chapter range."""
        if self.start_chapter_index is not None and chapter.index < self.start_chapter_index:
            return False
        if self.end_chapter_index is not None and chapter.index > self.end_chapter_index:
            return False
        return True


class SyncPlan(BaseModel):
    """What a synchronization run has to do."""

    toc_hash: str
    chapters: list[TocChapter]
    chapters_to_download: list[TocChapter] = Field(default_factory=list)
    volume_chapters: list[TocChapter] = Field(default_factory=list)
    reused_ids: list[ChapterIdentity] = Field(default_factory=list)
    skipped_locked_ids: list[ChapterIdentity] = Field(default_factory=list)
    restore_from_epub: list[ChapterIdentity] = Field(default_factory=list)
    restored_from_cache: int = 0
    cache_reset: bool = False


class AssembledChapter(BaseModel):
    """Final marked chapter fragment handed to the container writer."""

    index: int
    identity: ChapterIdentity
    title: str
    content: str
    images: list[ImageResource] = Field(default_factory=list)
    failed: bool = False
