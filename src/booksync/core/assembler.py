"""Turn cached chapters into the marked fragments written to the output file."""

import logging
from collections.abc import Iterable
from datetime import datetime
from pathlib import Path

from booksync.cache.manager import CacheManager
from booksync.core.epub_analyzer import EpubStateAnalyzer, guess_media_type
from booksync.core.markers import ChapterMarker
from booksync.core.placeholders import PlaceholderGenerator
from booksync.models.chapter import (
    CachedChapter,
    ChapterIdentity,
    ChapterStatus,
    ImageResource,
    TocChapter,
)
from booksync.models.sync import AssembledChapter

log = logging.getLogger(__name__)

UNREADABLE_REASON = "the previous EPUB being unreadable"


class ChapterAssembler:
    """Build the final chapter list for the container writer."""

    def __init__(self, cache: CacheManager):
        self.cache = cache
        self.profile = cache.profile
        self.placeholders = PlaceholderGenerator(self.profile)
        self.marker = ChapterMarker(self.profile)

    def assemble(
        self, toc: Iterable[TocChapter], existing_epub: Path | None = None
    ) -> list[AssembledChapter]:
        """Produce one marked fragment per TOC entry, in reading order."""
        cached = {c.identity: c for c in self.cache.load_all_chapters()}

        analyzer = EpubStateAnalyzer(self.profile)
        book = analyzer.open_book(existing_epub) if existing_epub else None
        existing = analyzer.extract_state(book) if book is not None else None
        existing_ids = set(existing.downloaded_chapter_ids) if existing else set()
        locked_ids = set(existing.locked_chapter_ids) if existing else set()

        assembled = []
        for chapter in sorted(toc, key=lambda c: c.index):
            entry = cached.get(chapter.identity)
            if entry is not None:
                assembled.append(self._from_cache(chapter, entry))
            elif book is not None and chapter.identity in existing_ids:
                assembled.append(self._from_epub(chapter, analyzer, book))
            elif chapter.identity in locked_ids:
                assembled.append(self._locked(chapter))
            else:
                assembled.append(self._failed(chapter))
        return assembled

    def sync_metadata(
        self,
        book_identity: str,
        toc_hash: str,
        failed_ids: Iterable[ChapterIdentity] = (),
        sync_time: datetime | None = None,
        descriptors: dict[str, str] | None = None,
    ) -> dict[str, str]:
        """Custom metadata entries the container writer embeds in the OPF."""
        profile = self.profile
        metadata = {profile.meta_name(profile.book_key): book_identity}
        for key in profile.descriptor_keys:
            value = (descriptors or {}).get(key)
            if value:
                metadata[profile.meta_name(key)] = value
        metadata[profile.meta_name("sync-time")] = (sync_time or datetime.now()).isoformat()
        metadata[profile.meta_name("toc-hash")] = toc_hash
        metadata[profile.meta_name("failed-chapters")] = ",".join(
            str(identity) for identity in failed_ids
        )
        return metadata

    @staticmethod
    def failed_ids(chapters: Iterable[AssembledChapter]) -> list[ChapterIdentity]:
        return [c.identity for c in chapters if c.failed]

    def _from_cache(self, chapter: TocChapter, entry: CachedChapter) -> AssembledChapter:
        if entry.status == ChapterStatus.VOLUME and entry.html_content:
            # Volume pages are stored fully marked
            return self._result(chapter, entry.html_content)

        if entry.status == ChapterStatus.DOWNLOADED and entry.html_content:
            images = []
            for ref in entry.images:
                data = self.cache.load_image(ref.image_id)
                if data is None:
                    log.warning("Image %s missing from cache", ref.image_id)
                    continue
                images.append(
                    ImageResource(
                        id=ref.image_id,
                        data=data,
                        media_type=ref.media_type or guess_media_type(ref.image_id),
                    )
                )
            content = self.placeholders.wrap_downloaded(
                chapter.identity, chapter.index, entry.html_content
            )
            return self._result(chapter, content, images)

        if entry.status == ChapterStatus.LOCKED:
            return self._locked(chapter)

        return self._failed(chapter, entry.failure_reason)

    def _from_epub(self, chapter: TocChapter, analyzer: EpubStateAnalyzer, book) -> AssembledChapter:
        recovered = analyzer.extract_chapter(book, chapter.identity)
        if recovered is None:
            return self._failed(chapter, UNREADABLE_REASON)

        body = self.marker.strip_markers(recovered.body_content)
        if chapter.is_volume and self.profile.supports(ChapterStatus.VOLUME):
            content = self.placeholders.volume(chapter.identity, chapter.title, chapter.index)
        else:
            content = self.placeholders.wrap_downloaded(chapter.identity, chapter.index, body)
        return self._result(chapter, content, recovered.images)

    def _locked(self, chapter: TocChapter) -> AssembledChapter:
        content = self.placeholders.locked(chapter.identity, chapter.title, chapter.index)
        return self._result(chapter, content)

    def _failed(self, chapter: TocChapter, reason: str | None = None) -> AssembledChapter:
        content = self.placeholders.failed(
            chapter.identity, chapter.title, chapter.index, reason
        )
        return self._result(chapter, content, failed=True)

    @staticmethod
    def _result(
        chapter: TocChapter,
        content: str,
        images: list[ImageResource] | None = None,
        failed: bool = False,
    ) -> AssembledChapter:
        return AssembledChapter(
            index=chapter.index,
            identity=chapter.identity,
            title=chapter.title,
            content=content,
            images=images or [],
            failed=failed,
        )
