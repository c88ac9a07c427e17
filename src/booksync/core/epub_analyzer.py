"""Recover sync state from a previously generated EPUB using ebooklib."""

import logging
import mimetypes
import posixpath
import re
import warnings
import zipfile
from datetime import datetime
from pathlib import Path

import ebooklib
from bs4 import BeautifulSoup, XMLParsedAsHTMLWarning
from ebooklib import epub
from lxml import etree

from booksync.core.markers import ChapterMarker
from booksync.models.chapter import (
    ChapterIdentity,
    ChapterStatus,
    ChapterWithImages,
    ImageResource,
)
from booksync.models.epub import EpubSyncState
from booksync.models.source import SourceProfile

# Suppress XML parsing warnings - EPUB files often use XHTML
warnings.filterwarnings("ignore", category=XMLParsedAsHTMLWarning)

log = logging.getLogger(__name__)

IMG_SRC = re.compile(r"<img[^>]+src=[\"']([^\"']+)[\"']", re.IGNORECASE)
BODY_TAG = re.compile(r"<body\b", re.IGNORECASE)
DOCUMENT_START = re.compile(r"^\s*<(\?xml|!DOCTYPE|html)", re.IGNORECASE)
XML_DECLARATION = re.compile(r"^\s*<\?xml[^>]*\?>", re.IGNORECASE)

READ_ERRORS = (
    OSError,
    KeyError,
    ValueError,
    zipfile.BadZipFile,
    epub.EpubException,
    etree.LxmlError,
)

IMAGE_TYPES = {
    ".png": "image/png",
    ".gif": "image/gif",
    ".webp": "image/webp",
    ".svg": "image/svg+xml",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
}


class EpubStateAnalyzer:
    """Read marker metadata and chapter status out of an EPUB.

    Works on the output file alone; no working cache is needed.
    """

    def __init__(self, profile: SourceProfile):
        self.profile = profile
        self.marker = ChapterMarker(profile)

    @staticmethod
    def open_book(epub_path: Path) -> epub.EpubBook | None:
        """Read an EPUB, or None if it cannot be opened."""
        path = Path(epub_path)
        if not path.is_file():
            return None
        try:
            return epub.read_epub(str(path), {"ignore_ncx": True})
        except READ_ERRORS as e:
            log.debug("Cannot open EPUB %s: %s", path, e)
            return None

    def analyze(self, epub_path: Path) -> EpubSyncState | None:
        """Return the sync state embedded in an EPUB file.

        None if the file cannot be read or was not produced for this source.
        """
        book = self.open_book(epub_path)
        if book is None:
            return None
        return self.extract_state(book)

    def extract_state(self, book: epub.EpubBook) -> EpubSyncState | None:
        """Return the sync state of an already opened book."""
        book_identity = self._book_identity(book)
        if not book_identity:
            return None

        failed_ids: list[ChapterIdentity] = []
        for raw in (self.get_meta_value(book, self.profile.meta_name("failed-chapters")) or "").split(","):
            identity = self.profile.coerce_identity(raw) if raw.strip() else None
            if identity is not None and identity not in failed_ids:
                failed_ids.append(identity)
        listed_failed = set(failed_ids)

        downloaded_ids: list[ChapterIdentity] = []
        locked_ids: list[ChapterIdentity] = []

        for item in self._chapter_items(book):
            try:
                content = self._read_text(item)
            except READ_ERRORS as e:
                log.debug("Skipping unreadable entry %s: %s", item.get_name(), e)
                continue

            identity = self.marker.extract_identity(content)
            if identity is None or identity in listed_failed:
                continue

            status = self.marker.extract_status(content)
            if status.is_cached:
                if identity not in downloaded_ids:
                    downloaded_ids.append(identity)
            elif status == ChapterStatus.FAILED:
                if identity not in failed_ids:
                    failed_ids.append(identity)
            elif status == ChapterStatus.LOCKED:
                if identity not in locked_ids:
                    locked_ids.append(identity)

        descriptors = {}
        for key in self.profile.descriptor_keys:
            value = self.get_meta_value(book, self.profile.meta_name(key))
            if value:
                descriptors[key] = value

        return EpubSyncState(
            book_identity=book_identity,
            title=self._dc_value(book, "title") or "",
            author=self._dc_value(book, "creator"),
            description=self._dc_value(book, "description"),
            descriptors=descriptors,
            last_sync_time=_parse_time(
                self.get_meta_value(book, self.profile.meta_name("sync-time"))
            ),
            toc_hash=self.get_meta_value(book, self.profile.meta_name("toc-hash")),
            downloaded_chapter_ids=downloaded_ids,
            failed_chapter_ids=failed_ids,
            locked_chapter_ids=locked_ids,
        )

    def read_chapter_content(
        self, epub_path: Path, identity: ChapterIdentity
    ) -> ChapterWithImages | None:
        """Load one chapter's body fragment and images from an EPUB file."""
        book = self.open_book(epub_path)
        if book is None:
            return None
        return self.extract_chapter(book, identity)

    def extract_chapter(
        self, book: epub.EpubBook, identity: ChapterIdentity
    ) -> ChapterWithImages | None:
        """Find the chapter whose embedded identity matches and extract it."""
        for item in self._chapter_items(book):
            try:
                content = self._read_text(item)
            except READ_ERRORS as e:
                log.debug("Skipping unreadable entry %s: %s", item.get_name(), e)
                continue

            if self.marker.extract_identity(content) != identity:
                continue

            body = extract_body_content(content)
            if not body:
                return None
            return ChapterWithImages(
                body_content=body,
                images=self._chapter_images(book, item, body),
            )

        return None

    def get_meta_value(self, book: epub.EpubBook, name: str) -> str | None:
        """Look up a custom ``<meta>`` entry by name or property."""
        wanted = name.lower()
        for entries in book.metadata.values():
            for values in entries.values():
                for value, attrs in values:
                    if not isinstance(attrs, dict):
                        continue
                    key = attrs.get("name") or attrs.get("property") or ""
                    if key.lower() == wanted:
                        result = attrs.get("content", value)
                        return result.strip() if result else None
        return None

    def _book_identity(self, book: epub.EpubBook) -> str | None:
        book_identity = self.get_meta_value(book, self.profile.meta_name(self.profile.book_key))
        if book_identity:
            return book_identity

        prefix = self.profile.identifier_prefix
        for value, _ in self._dc_values(book, "identifier"):
            if value and value.lower().startswith(prefix):
                return value[len(prefix):] or None
        return None

    def _chapter_items(self, book: epub.EpubBook):
        """Reading-order documents that hold chapter content."""
        for idref, _ in book.spine:
            item = book.get_item_with_id(idref)
            if item is None or item.get_type() != ebooklib.ITEM_DOCUMENT:
                continue
            name = item.get_name().lower()
            if "chapter" not in name or "nav" in name:
                continue
            yield item

    def _chapter_images(
        self, book: epub.EpubBook, item: epub.EpubItem, body: str
    ) -> list[ImageResource]:
        images: list[ImageResource] = []
        seen: set[str] = set()
        base_dir = posixpath.dirname(item.get_name())

        for src in IMG_SRC.findall(body):
            file_name = posixpath.basename(src.split("#")[0].split("?")[0])
            if not file_name or file_name in seen:
                continue
            seen.add(file_name)

            resolved = posixpath.normpath(posixpath.join(base_dir, src)).lower()
            trimmed = src.lstrip("./").lower()
            resource = None
            for candidate in book.get_items():
                href = candidate.get_name().lower()
                if href == resolved or href.endswith(trimmed) or href.endswith(file_name.lower()):
                    resource = candidate
                    break
            if resource is None:
                continue

            data = resource.get_content()
            if not data:
                continue
            images.append(
                ImageResource(
                    id=Path(file_name).stem,
                    data=data,
                    media_type=resource.media_type or guess_media_type(file_name),
                )
            )

        return images

    @staticmethod
    def _read_text(item: epub.EpubItem) -> str:
        # Raw file bytes; EpubHtml.get_content() would re-render the document
        content = item.content
        if isinstance(content, bytes):
            return content.decode("utf-8", errors="replace")
        return content

    @staticmethod
    def _dc_values(book: epub.EpubBook, name: str) -> list[tuple]:
        return book.metadata.get(epub.NAMESPACES["DC"], {}).get(name, [])

    def _dc_value(self, book: epub.EpubBook, name: str) -> str | None:
        values = self._dc_values(book, name)
        return values[0][0] if values and values[0][0] else None


def extract_body_content(document: str) -> str | None:
    """Get the chapter fragment out of an XHTML document.

    Prefers the ``chapter-content`` container, then ``<body>``. Input without
    a document wrapper is returned as-is.
    """
    if not document or not document.strip():
        return None

    if BODY_TAG.search(document):
        # The HTML parser warns on an XML declaration
        soup = BeautifulSoup(XML_DECLARATION.sub("", document, count=1), "lxml")
        container = soup.find("div", class_="chapter-content")
        if container is not None:
            return container.decode_contents().strip()
        if soup.body is not None:
            return soup.body.decode_contents().strip()

    if DOCUMENT_START.match(document):
        return None
    return document


def guess_media_type(file_name: str) -> str:
    """Guess an image media type from its extension."""
    ext = Path(file_name).suffix.lower()
    if ext in IMAGE_TYPES:
        return IMAGE_TYPES[ext]
    guessed, _ = mimetypes.guess_type(file_name)
    return guessed or "image/jpeg"


def _parse_time(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None
