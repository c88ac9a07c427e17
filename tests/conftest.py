"""
Shared pytest fixtures for booksync tests.

EPUB fixtures are written with ebooklib in the same shape the container
writer produces: chapter fragments inside ``<div class="chapter-content">``
and sync metadata as ``<meta name="ns:..." content="..."/>`` entries.
"""

from pathlib import Path

import pytest
from ebooklib import epub

from booksync.cache.manager import CacheManager
from booksync.core.markers import ChapterMarker
from booksync.core.placeholders import PlaceholderGenerator
from booksync.models.source import FANQIE, LEGADO

BOOK_URL = "https://example.com/book/1"
FANQIE_BOOK_ID = "7012345678"


def write_epub(
    path: Path,
    chapters: list[tuple[str, str]],
    metadata: dict[str, str] | None = None,
    identifier: str = "test-book",
    images: list[tuple[str, bytes, str]] | None = None,
    title: str = "Test Book",
) -> Path:
    """Write an EPUB with the given (file name, body fragment) chapters."""
    book = epub.EpubBook()
    book.set_identifier(identifier)
    book.set_title(title)
    book.set_language("en")
    book.add_author("Test Author")
    book.add_metadata("DC", "description", "A book used in tests")

    for name, value in (metadata or {}).items():
        book.add_metadata(None, "meta", "", {"name": name, "content": value})

    items = []
    for i, (file_name, fragment) in enumerate(chapters):
        item = epub.EpubHtml(title=f"Chapter {i}", file_name=file_name, lang="en")
        item.content = (
            f"<html><head><title>Chapter {i}</title></head><body>"
            f'<div class="chapter"><div class="chapter-content">{fragment}</div></div>'
            f"</body></html>"
        )
        book.add_item(item)
        items.append(item)

    for i, (file_name, data, media_type) in enumerate(images or []):
        book.add_item(
            epub.EpubItem(
                uid=f"image_{i}",
                file_name=file_name,
                media_type=media_type,
                content=data,
            )
        )

    book.toc = items
    book.add_item(epub.EpubNcx())
    book.add_item(epub.EpubNav())
    book.spine = ["nav", *items]

    epub.write_epub(str(path), book)
    return path


@pytest.fixture
def legado_marker() -> ChapterMarker:
    return ChapterMarker(LEGADO)


@pytest.fixture
def fanqie_marker() -> ChapterMarker:
    return ChapterMarker(FANQIE)


@pytest.fixture
def legado_placeholders() -> PlaceholderGenerator:
    return PlaceholderGenerator(LEGADO)


@pytest.fixture
def fanqie_placeholders() -> PlaceholderGenerator:
    return PlaceholderGenerator(FANQIE)


@pytest.fixture
def legado_cache(tmp_path) -> CacheManager:
    return CacheManager(tmp_path / "temp", BOOK_URL, LEGADO)


@pytest.fixture
def fanqie_cache(tmp_path) -> CacheManager:
    return CacheManager(tmp_path / "temp", FANQIE_BOOK_ID, FANQIE)


@pytest.fixture
def legado_epub(tmp_path, legado_placeholders) -> Path:
    """Legado EPUB with one downloaded, one failed and one volume chapter."""
    chapters = [
        (
            "Text/chapter_0.xhtml",
            legado_placeholders.wrap_downloaded(
                0, None, '<p>First chapter text.</p><img src="../images/pic.png"/>'
            ),
        ),
        (
            "Text/chapter_1.xhtml",
            legado_placeholders.failed(1, "Chapter Two", reason="timeout"),
        ),
        ("Text/chapter_2.xhtml", legado_placeholders.volume(2, "Volume Two")),
    ]
    metadata = {
        "legado:book-url": BOOK_URL,
        "legado:book-source": "https://source.example.com",
        "legado:server-url": "http://192.168.1.10:1234",
        "legado:sync-time": "2026-01-02T03:04:05",
        "legado:toc-hash": "0123456789abcdef",
        "legado:failed-chapters": "",
    }
    return write_epub(
        tmp_path / "legado.epub",
        chapters,
        metadata,
        images=[("images/pic.png", b"\x89PNG fake image", "image/png")],
    )
