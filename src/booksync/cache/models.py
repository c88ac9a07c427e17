"""Cache data models."""

from datetime import datetime

from pydantic import BaseModel, Field

from booksync.models.chapter import ChapterIdentity


class CacheManifest(BaseModel):
    """Summary of a book's working cache, stored as ``manifest.json``."""

    book_identity: str
    title: str | None = None
    descriptors: dict[str, str] = Field(default_factory=dict)
    toc_hash: str
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)
    cached_chapter_ids: list[ChapterIdentity] = Field(default_factory=list)
    failed_chapter_ids: list[ChapterIdentity] = Field(default_factory=list)
    locked_chapter_ids: list[ChapterIdentity] = Field(default_factory=list)


class CacheState(BaseModel):
    """Read-only projection of a manifest."""

    book_identity: str
    title: str | None = None
    descriptors: dict[str, str] = Field(default_factory=dict)
    toc_hash: str
    created_at: datetime
    updated_at: datetime
    cached_chapter_ids: frozenset[ChapterIdentity] = frozenset()
    failed_chapter_ids: frozenset[ChapterIdentity] = frozenset()
    locked_chapter_ids: frozenset[ChapterIdentity] = frozenset()

    @classmethod
    def from_manifest(cls, manifest: CacheManifest) -> "CacheState":
        return cls(
            book_identity=manifest.book_identity,
            title=manifest.title,
            descriptors=dict(manifest.descriptors),
            toc_hash=manifest.toc_hash,
            created_at=manifest.created_at,
            updated_at=manifest.updated_at,
            cached_chapter_ids=frozenset(manifest.cached_chapter_ids),
            failed_chapter_ids=frozenset(manifest.failed_chapter_ids),
            locked_chapter_ids=frozenset(manifest.locked_chapter_ids),
        )

    def is_valid(self, expected_hash: str) -> bool:
        """Check whether the cache was built for the given TOC hash."""
        return self.toc_hash == expected_hash
