"""Placeholder fragments for chapters without downloadable content.

All generators return body-level fragments only; the container writer wraps
them into complete XHTML documents.
"""

import html

from booksync.core.markers import ChapterMarker
from booksync.models.chapter import ChapterIdentity, ChapterStatus
from booksync.models.source import SourceProfile

DEFAULT_FAILURE_REASON = "a network error"


class PlaceholderGenerator:
    """Build marked HTML fragments for one content source."""

    def __init__(self, profile: SourceProfile):
        self.profile = profile
        self.marker = ChapterMarker(profile)

    def failed(
        self,
        identity: ChapterIdentity,
        title: str,
        order: int | None = None,
        reason: str | None = None,
    ) -> str:
        """Stand-in for a chapter whose download failed."""
        reason = reason or DEFAULT_FAILURE_REASON
        encoded_reason = html.escape(reason)
        encoded_title = html.escape(title or "")
        attrs = self.marker.data_attributes(identity, ChapterStatus.FAILED)
        body = (
            f'<div class="chapter-unavailable" {attrs}>\n'
            f'  <div class="error-content">\n'
            f'    <p class="chapter-title">{encoded_title}</p>\n'
            f'    <p class="error-message">This chapter could not be downloaded '
            f"because of {encoded_reason}.</p>\n"
            f'    <p class="retry-hint">It will be retried on the next sync.</p>\n'
            f"  </div>\n"
            f"</div>"
        )
        return self.marker.wrap(identity, order, ChapterStatus.FAILED, body, reason=reason)

    def locked(self, identity: ChapterIdentity, title: str, order: int | None = None) -> str:
        """Stand-in for a chapter that requires payment or authorization."""
        attrs = self.marker.data_attributes(identity, ChapterStatus.LOCKED)
        body = (
            f'<div class="chapter-locked" {attrs}>\n'
            f'  <div class="locked-content">\n'
            f'    <p class="locked-message">This chapter requires a purchase '
            f"and cannot be downloaded.</p>\n"
            f"  </div>\n"
            f"</div>"
        )
        return self.marker.wrap(identity, order, ChapterStatus.LOCKED, body)

    def volume(self, identity: ChapterIdentity, title: str, order: int | None = None) -> str:
        """Heading page for a structural volume/section entry."""
        attrs = self.marker.data_attributes(identity, ChapterStatus.VOLUME)
        body = (
            f'<div class="volume-title" {attrs}>\n'
            f"  <h1>{html.escape(title or '')}</h1>\n"
            f"</div>"
        )
        return self.marker.wrap(identity, order, ChapterStatus.VOLUME, body)

    def wrap_downloaded(
        self, identity: ChapterIdentity, order: int | None, body_content: str
    ) -> str:
        """Prepend markers to already fetched (and paragraph-marked) content."""
        return self.marker.wrap(identity, order, ChapterStatus.DOWNLOADED, body_content)
