"""Decide which chapters a synchronization run has to fetch."""

import logging
from collections.abc import Iterable
from pathlib import Path

from booksync.cache.manager import CacheManager
from booksync.core.epub_analyzer import EpubStateAnalyzer
from booksync.core.fingerprint import compute_toc_hash
from booksync.core.markers import ChapterMarker
from booksync.core.placeholders import PlaceholderGenerator
from booksync.models.chapter import (
    CachedChapter,
    ChapterIdentity,
    ChapterStatus,
    ImageRef,
    TocChapter,
)
from booksync.models.epub import EpubSyncState
from booksync.models.sync import SyncOptions, SyncPlan

log = logging.getLogger(__name__)


class SyncPlanner:
    """Combine the working cache and a previous output file into a plan."""

    def __init__(self, cache: CacheManager, options: SyncOptions):
        self.cache = cache
        self.options = options
        self.profile = cache.profile
        self.placeholders = PlaceholderGenerator(self.profile)
        self.marker = ChapterMarker(self.profile)

    def plan(
        self,
        toc: Iterable[TocChapter],
        title: str | None = None,
        descriptors: dict[str, str] | None = None,
        existing: EpubSyncState | None = None,
    ) -> SyncPlan:
        """Prepare the cache for this TOC and work out what to download."""
        all_chapters = sorted(toc, key=lambda c: c.index)
        # Hash covers the full TOC, before range filtering
        toc_hash = compute_toc_hash(all_chapters)
        chapters = [c for c in all_chapters if self.options.in_range(c)]
        supports_volumes = self.profile.supports(ChapterStatus.VOLUME)
        # Sources without volume pages fetch such entries like any other chapter
        volumes = [c for c in chapters if c.is_volume and supports_volumes]
        content = [c for c in chapters if not (c.is_volume and supports_volumes)]

        state = self.cache.get_state()
        usable_cache = state is not None and state.is_valid(toc_hash)
        cache_reset = False

        if self.cache.exists() and not usable_cache:
            log.info("TOC changed, discarding cache %s", self.cache.cache_root)
            self.cache.cleanup()
            cache_reset = True

        if not self.cache.exists():
            self.cache.initialize(toc_hash, title, descriptors)

        successful: set[ChapterIdentity] = set()
        known_failed: set[ChapterIdentity] = set()
        locked: set[ChapterIdentity] = set()
        from_epub: set[ChapterIdentity] = set()

        if existing is not None and self._existing_usable(existing, toc_hash):
            from_epub.update(existing.downloaded_chapter_ids)
            successful.update(existing.downloaded_chapter_ids)
            known_failed.update(existing.failed_chapter_ids)
            locked.update(existing.locked_chapter_ids)

        restored_from_cache = 0
        cached_ids: frozenset[ChapterIdentity] = frozenset()
        if usable_cache and state is not None:
            # In both lists: cached once, but the latest attempt failed
            cached_ids = state.cached_chapter_ids - state.failed_chapter_ids
            restored_from_cache = len(cached_ids)
            # The cache is newer than the output file
            successful.update(cached_ids)
            known_failed.difference_update(cached_ids)
            known_failed.update(state.failed_chapter_ids - cached_ids)
            locked.update(state.locked_chapter_ids)

        to_download: list[TocChapter] = []
        reused: list[ChapterIdentity] = []
        skipped_locked: list[ChapterIdentity] = []

        for chapter in content:
            identity = chapter.identity
            if self.options.force_redownload:
                to_download.append(chapter)
            elif identity in successful:
                reused.append(identity)
            elif identity in locked and not self.options.retry_locked_chapters:
                skipped_locked.append(identity)
            elif identity in known_failed and not self.options.retry_failed_chapters:
                continue
            else:
                to_download.append(chapter)

        scheduled = {c.identity for c in to_download}
        restore = [
            c.identity
            for c in content
            if c.identity in from_epub
            and c.identity not in cached_ids
            and c.identity not in scheduled
        ]

        log.info(
            "To download: %d chapters, reused: %d, locked: %d (toc hash %s)",
            len(to_download),
            len(reused),
            len(skipped_locked),
            toc_hash,
        )

        return SyncPlan(
            toc_hash=toc_hash,
            chapters=chapters,
            chapters_to_download=to_download,
            volume_chapters=volumes,
            reused_ids=reused,
            skipped_locked_ids=skipped_locked,
            restore_from_epub=restore,
            restored_from_cache=restored_from_cache,
            cache_reset=cache_reset,
        )

    def record_volumes(self, volumes: Iterable[TocChapter]) -> int:
        """Save structural volume entries into the cache."""
        if not self.profile.supports(ChapterStatus.VOLUME):
            log.warning(
                "Source %s has no volume pages; volume entries not recorded",
                self.profile.namespace,
            )
            return 0

        count = 0
        for volume in volumes:
            self.cache.save_chapter(
                CachedChapter(
                    identity=volume.identity,
                    status=ChapterStatus.VOLUME,
                    title=volume.title,
                    url=volume.url,
                    is_volume=True,
                    html_content=self.placeholders.volume(
                        volume.identity, volume.title, volume.index
                    ),
                )
            )
            count += 1
        return count

    def restore_from_epub(
        self, epub_path: Path, identities: Iterable[ChapterIdentity]
    ) -> int:
        """Copy already downloaded chapters from a previous output file.

        Returns the number of chapters restored into the cache.
        """
        analyzer = EpubStateAnalyzer(self.profile)
        book = analyzer.open_book(epub_path)
        if book is None:
            return 0

        restored = 0
        for identity in identities:
            chapter = analyzer.extract_chapter(book, identity)
            if chapter is None:
                log.debug("Chapter %s not found in %s", identity, epub_path)
                continue

            refs = []
            for image in chapter.images:
                self.cache.save_image(image.id, image.data)
                refs.append(ImageRef(image_id=image.id, media_type=image.media_type))

            self.cache.save_chapter(
                CachedChapter(
                    identity=identity,
                    status=ChapterStatus.DOWNLOADED,
                    html_content=self.marker.strip_markers(chapter.body_content),
                    images=refs,
                )
            )
            restored += 1

        return restored

    def _existing_usable(self, existing: EpubSyncState, toc_hash: str) -> bool:
        if existing.book_identity != self.cache.book_identity:
            log.warning(
                "Existing EPUB belongs to %s, not %s; ignoring it",
                existing.book_identity,
                self.cache.book_identity,
            )
            return False
        # Index identities shift when the TOC changes shape
        if (
            self.profile.identity_kind == "index"
            and existing.toc_hash
            and not existing.is_valid(toc_hash)
        ):
            log.info("Existing EPUB was built from a different TOC; ignoring it")
            return False
        return True
