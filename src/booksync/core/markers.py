"""Embed and extract chapter identity/status markers in HTML fragments.

Markers are written as HTML comments ahead of the chapter content::

    <!-- legado:chapter-index=12 -->
    <!-- legado:chapter-order=12 -->
    <!-- legado:status=failed -->
    <!-- legado:fail-reason=timeout -->

with ``data-legado-*`` attributes on the wrapping element as a secondary
encoding. Files written by older versions carry ``<meta name="ns:...">``
tags instead of comments; those are still understood when reading.
"""

import html
import re

from booksync.models.chapter import ChapterIdentity, ChapterStatus
from booksync.models.source import SourceProfile

PARAGRAPH_TAG = re.compile(r"<p\b[^>]*>", re.IGNORECASE)


class MarkerError(ValueError):
    """Raised when asked to mark a chapter with an unsupported status."""


class ChapterMarker:
    """Marker codec for one content source.

    Instances hold only compiled patterns and are safe to share between
    threads.
    """

    def __init__(self, profile: SourceProfile):
        self.profile = profile
        ns = re.escape(profile.namespace)
        key = re.escape(profile.identity_key)
        value = r"\d+" if profile.identity_kind == "index" else r"[^\s\"'<>]+?"

        self.index_attr = profile.attr("index")
        self.identity_attr = profile.attr(profile.identity_key)
        self.status_attr = profile.attr("status")

        self._comment_identity = re.compile(
            rf"<!--\s*{ns}:{key}=({value})\s*-->", re.IGNORECASE
        )
        self._meta_identity = re.compile(
            rf"<meta\s+name=[\"']{ns}:{key}[\"']\s+content=[\"']({value})[\"']",
            re.IGNORECASE,
        )
        self._attr_identity = re.compile(
            rf"{re.escape(self.identity_attr)}=[\"']({value})[\"']", re.IGNORECASE
        )
        self._comment_status = re.compile(
            rf"<!--\s*{ns}:status=(\w+)\s*-->", re.IGNORECASE
        )
        self._meta_status = re.compile(
            rf"<meta\s+name=[\"']{ns}:status[\"']\s+content=[\"'](\w+)[\"']",
            re.IGNORECASE,
        )
        self._attr_status = re.compile(
            rf"{re.escape(self.status_attr)}=[\"'](\w+)[\"']", re.IGNORECASE
        )
        self._comment_order = re.compile(
            rf"<!--\s*{ns}:chapter-order=(\d+)\s*-->", re.IGNORECASE
        )
        self._comment_reason = re.compile(
            rf"<!--\s*{ns}:fail-reason=(.*?)\s*-->", re.IGNORECASE | re.DOTALL
        )
        self._any_comment = re.compile(
            rf"<!--\s*{ns}:[\w-]+=.*?-->\s*", re.IGNORECASE | re.DOTALL
        )
        self._any_meta = re.compile(
            rf"<meta\s+name=[\"']{ns}:[\w-]+[\"'][^>]*>\s*", re.IGNORECASE
        )

    # -- writing ----------------------------------------------------------

    def header(
        self,
        identity: ChapterIdentity,
        order: int | None,
        status: ChapterStatus,
        reason: str | None = None,
    ) -> str:
        """Build the comment block placed before the chapter content."""
        if status == ChapterStatus.PENDING or not self.profile.supports(status):
            raise MarkerError(
                f"Status {status.value!r} is not valid for source "
                f"{self.profile.namespace!r}"
            )

        ns = self.profile.namespace
        key = self.profile.identity_key
        lines = [f"<!-- {ns}:{key}={_comment_safe(str(identity))} -->"]
        if order is not None:
            lines.append(f"<!-- {ns}:chapter-order={order} -->")
        lines.append(f"<!-- {ns}:status={status.value} -->")
        if reason is not None:
            lines.append(f"<!-- {ns}:fail-reason={_comment_safe(reason)} -->")
        return "\n".join(lines)

    def wrap(
        self,
        identity: ChapterIdentity,
        order: int | None,
        status: ChapterStatus,
        body: str,
        reason: str | None = None,
    ) -> str:
        """Prepend identity/status markers to a content fragment."""
        return f"{self.header(identity, order, status, reason)}\n{body}"

    def data_attributes(self, identity: ChapterIdentity, status: ChapterStatus) -> str:
        """Attribute string for the element wrapping marked content."""
        return (
            f'{self.identity_attr}="{html.escape(str(identity))}" '
            f'{self.status_attr}="{status.value}"'
        )

    def add_paragraph_markers(self, html_content: str, identity: ChapterIdentity) -> str:
        """Tag each ``<p>`` with its zero-based position and chapter identity.

        Paragraphs that already carry a position attribute keep it, so running
        this twice gives the same result.
        """
        if not html_content or not html_content.strip():
            return html_content

        counter = 0
        escaped_identity = html.escape(str(identity))

        def mark(match: re.Match) -> str:
            nonlocal counter
            tag = match.group(0)
            position = counter
            counter += 1
            if self.index_attr.lower() in tag.lower():
                return tag
            insert_at = len(tag) - 2 if tag.endswith("/>") else len(tag) - 1
            attrs = (
                f' {self.index_attr}="{position}"'
                f' {self.identity_attr}="{escaped_identity}"'
            )
            return tag[:insert_at] + attrs + tag[insert_at:]

        return PARAGRAPH_TAG.sub(mark, html_content)

    # -- reading ----------------------------------------------------------

    def extract_identity(self, html_content: str | None) -> ChapterIdentity | None:
        """Find the chapter identity: comment, then legacy meta, then attribute."""
        if not html_content or not html_content.strip():
            return None

        for pattern in (self._comment_identity, self._meta_identity, self._attr_identity):
            match = pattern.search(html_content)
            if match:
                identity = self.profile.coerce_identity(html.unescape(match.group(1)))
                if identity is not None:
                    return identity
        return None

    def extract_status(self, html_content: str | None) -> ChapterStatus:
        """Find the chapter status, defaulting to PENDING."""
        if not html_content or not html_content.strip():
            return ChapterStatus.PENDING

        for pattern in (self._comment_status, self._meta_status, self._attr_status):
            match = pattern.search(html_content)
            if match:
                return self.profile.resolve_status(match.group(1))

        # Unmarked content written before status markers existed
        if (
            "chapter-unavailable" in html_content.lower()
            and self.profile.supports(ChapterStatus.FAILED)
        ):
            return ChapterStatus.FAILED
        if self._attr_identity.search(html_content):
            return ChapterStatus.DOWNLOADED

        return ChapterStatus.PENDING

    def extract_order(self, html_content: str | None) -> int | None:
        if not html_content:
            return None
        match = self._comment_order.search(html_content)
        return int(match.group(1)) if match else None

    def extract_fail_reason(self, html_content: str | None) -> str | None:
        if not html_content:
            return None
        match = self._comment_reason.search(html_content)
        return html.unescape(match.group(1)) if match else None

    def strip_markers(self, html_content: str) -> str:
        """Remove this source's marker comments and legacy meta tags."""
        if not html_content:
            return html_content
        stripped = self._any_comment.sub("", html_content)
        return self._any_meta.sub("", stripped).strip()


def _comment_safe(value: str) -> str:
    # "--" would terminate the comment early
    return html.escape(value).replace("--", "&#45;&#45;")
