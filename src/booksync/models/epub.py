"""State recovered from a previously generated EPUB."""

from datetime import datetime

from pydantic import BaseModel, Field

from booksync.models.chapter import ChapterIdentity


class EpubSyncState(BaseModel):
    """Resume state reconstructed purely from an output file."""

    book_identity: str
    title: str = ""
    author: str | None = None
    description: str | None = None
    descriptors: dict[str, str] = Field(default_factory=dict)
    last_sync_time: datetime | None = None
    toc_hash: str | None = None
    downloaded_chapter_ids: list[ChapterIdentity] = Field(default_factory=list)
    failed_chapter_ids: list[ChapterIdentity] = Field(default_factory=list)
    locked_chapter_ids: list[ChapterIdentity] = Field(default_factory=list)

    def is_valid(self, expected_hash: str) -> bool:
        """Check whether the embedded TOC hash matches the current TOC."""
        return self.toc_hash == expected_hash
