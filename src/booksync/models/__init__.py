"""Data models."""

from booksync.models.chapter import (
    CachedChapter,
    ChapterIdentity,
    ChapterStatus,
    ChapterWithImages,
    ImageRef,
    ImageResource,
    TocChapter,
)
from booksync.models.epub import EpubSyncState
from booksync.models.source import FANQIE, LEGADO, SourceProfile, get_profile
from booksync.models.sync import AssembledChapter, SyncOptions, SyncPlan

__all__ = [
    # Chapter models
    "ChapterIdentity",
    "ChapterStatus",
    "TocChapter",
    "ImageRef",
    "CachedChapter",
    "ImageResource",
    "ChapterWithImages",
    # Source profiles
    "SourceProfile",
    "FANQIE",
    "LEGADO",
    "get_profile",
    # EPUB state
    "EpubSyncState",
    # Sync models
    "SyncOptions",
    "SyncPlan",
    "AssembledChapter",
]
