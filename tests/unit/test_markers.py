"""Unit tests for the chapter marker codec."""

import pytest

from booksync.core.markers import ChapterMarker, MarkerError
from booksync.models.chapter import ChapterStatus
from booksync.models.source import FANQIE, LEGADO


@pytest.mark.unit
class TestHeader:
    """Test marker header generation."""

    def test_index_source_header(self, legado_marker):
        header = legado_marker.header(12, 12, ChapterStatus.DOWNLOADED)
        assert "<!-- legado:chapter-index=12 -->" in header
        assert "<!-- legado:chapter-order=12 -->" in header
        assert "<!-- legado:status=downloaded -->" in header

    def test_id_source_header(self, fanqie_marker):
        header = fanqie_marker.header("7001", None, ChapterStatus.LOCKED)
        assert "<!-- fanqie:chapter-id=7001 -->" in header
        assert "chapter-order" not in header
        assert "<!-- fanqie:status=locked -->" in header

    def test_fail_reason_included(self, legado_marker):
        header = legado_marker.header(3, None, ChapterStatus.FAILED, reason="timeout")
        assert "<!-- legado:fail-reason=timeout -->" in header

    def test_fail_reason_cannot_close_comment(self, legado_marker):
        header = legado_marker.header(3, None, ChapterStatus.FAILED, reason="a --> b")
        assert header.count("-->") == header.count("<!--")

    def test_identity_cannot_close_comment(self, fanqie_marker):
        header = fanqie_marker.header("a-->b", None, ChapterStatus.DOWNLOADED)
        assert header.count("-->") == header.count("<!--")

    def test_pending_is_never_written(self, legado_marker):
        with pytest.raises(MarkerError):
            legado_marker.header(1, None, ChapterStatus.PENDING)

    def test_status_outside_source_set_rejected(self, legado_marker, fanqie_marker):
        with pytest.raises(MarkerError):
            legado_marker.header(1, None, ChapterStatus.LOCKED)
        with pytest.raises(MarkerError):
            fanqie_marker.header("c1", None, ChapterStatus.VOLUME)

    def test_marker_error_is_value_error(self):
        assert issubclass(MarkerError, ValueError)


@pytest.mark.unit
class TestRoundTrip:
    """Extracting from wrapped content returns what was written."""

    @pytest.mark.parametrize(
        "status",
        [ChapterStatus.DOWNLOADED, ChapterStatus.FAILED, ChapterStatus.VOLUME],
    )
    def test_index_source(self, legado_marker, status):
        html = legado_marker.wrap(42, 42, status, "<p>Body</p>")
        assert legado_marker.extract_identity(html) == 42
        assert legado_marker.extract_status(html) == status
        assert legado_marker.extract_order(html) == 42

    @pytest.mark.parametrize(
        "status",
        [ChapterStatus.DOWNLOADED, ChapterStatus.FAILED, ChapterStatus.LOCKED],
    )
    def test_id_source(self, fanqie_marker, status):
        html = fanqie_marker.wrap("7301849", None, status, "<p>Body</p>")
        assert fanqie_marker.extract_identity(html) == "7301849"
        assert fanqie_marker.extract_status(html) == status
        assert fanqie_marker.extract_order(html) is None

    def test_body_kept_verbatim(self, legado_marker):
        body = '<p class="x">Body &amp; more</p>'
        html = legado_marker.wrap(1, None, ChapterStatus.DOWNLOADED, body)
        assert html.endswith(body)

    def test_fail_reason_round_trip(self, legado_marker):
        reason = "HTTP 503 <Service Unavailable> -- retry"
        html = legado_marker.wrap(1, None, ChapterStatus.FAILED, "", reason=reason)
        assert legado_marker.extract_fail_reason(html) == reason

    def test_identity_with_comment_terminator(self, fanqie_marker):
        html = fanqie_marker.wrap("a-->b", None, ChapterStatus.DOWNLOADED, "<p>x</p>")
        assert fanqie_marker.extract_identity(html) == "a-->b"
        assert fanqie_marker.extract_status(html) == ChapterStatus.DOWNLOADED
        assert fanqie_marker.strip_markers(html) == "<p>x</p>"

    def test_namespaces_do_not_mix(self, legado_marker, fanqie_marker):
        html = fanqie_marker.wrap("c1", None, ChapterStatus.DOWNLOADED, "<p>x</p>")
        assert legado_marker.extract_identity(html) is None
        assert legado_marker.extract_status(html) == ChapterStatus.PENDING


@pytest.mark.unit
class TestExtractionFallbacks:
    """Comments first, then legacy meta tags, then data attributes."""

    def test_legacy_meta_tags(self, legado_marker):
        html = (
            '<meta name="legado:chapter-index" content="7"/>'
            '<meta name="legado:status" content="failed"/>'
            "<p>Text</p>"
        )
        assert legado_marker.extract_identity(html) == 7
        assert legado_marker.extract_status(html) == ChapterStatus.FAILED

    def test_data_attributes(self, fanqie_marker):
        html = '<div data-fanqie-chapter-id="c9" data-fanqie-status="locked">x</div>'
        assert fanqie_marker.extract_identity(html) == "c9"
        assert fanqie_marker.extract_status(html) == ChapterStatus.LOCKED

    def test_comment_wins_over_attribute(self, legado_marker):
        html = (
            "<!-- legado:chapter-index=5 -->\n"
            '<div data-legado-chapter-index="9">x</div>'
        )
        assert legado_marker.extract_identity(html) == 5

    def test_unavailable_class_means_failed(self, legado_marker):
        html = '<div class="chapter-unavailable">Missing</div>'
        assert legado_marker.extract_status(html) == ChapterStatus.FAILED

    def test_paragraph_identity_means_downloaded(self, legado_marker):
        html = '<p data-legado-index="0" data-legado-chapter-index="3">Text</p>'
        assert legado_marker.extract_identity(html) == 3
        assert legado_marker.extract_status(html) == ChapterStatus.DOWNLOADED

    def test_unknown_status_is_pending(self, legado_marker):
        html = "<!-- legado:chapter-index=1 -->\n<!-- legado:status=weird -->"
        assert legado_marker.extract_status(html) == ChapterStatus.PENDING

    def test_status_outside_source_set_is_pending(self, legado_marker):
        html = "<!-- legado:chapter-index=1 -->\n<!-- legado:status=locked -->"
        assert legado_marker.extract_status(html) == ChapterStatus.PENDING

    def test_status_is_case_insensitive(self, fanqie_marker):
        html = "<!-- fanqie:chapter-id=c1 -->\n<!-- fanqie:status=DOWNLOADED -->"
        assert fanqie_marker.extract_status(html) == ChapterStatus.DOWNLOADED

    @pytest.mark.parametrize("html", [None, "", "   ", "<p>No markers</p>"])
    def test_unmarked_content(self, legado_marker, html):
        assert legado_marker.extract_identity(html) is None
        assert legado_marker.extract_status(html) == ChapterStatus.PENDING

    def test_non_numeric_index_rejected(self, legado_marker):
        assert legado_marker.extract_identity("<!-- legado:chapter-index=abc -->") is None


@pytest.mark.unit
class TestParagraphMarkers:
    """Test add_paragraph_markers."""

    def test_marks_each_paragraph(self, legado_marker):
        result = legado_marker.add_paragraph_markers("<p>One</p><p class='x'>Two</p>", 4)
        assert '<p data-legado-index="0" data-legado-chapter-index="4">One</p>' in result
        assert "<p class='x' data-legado-index=\"1\" data-legado-chapter-index=\"4\">" in result

    def test_idempotent(self, fanqie_marker):
        once = fanqie_marker.add_paragraph_markers("<p>One</p><p>Two</p>", "c1")
        twice = fanqie_marker.add_paragraph_markers(once, "c1")
        assert once == twice

    def test_identity_is_escaped(self, fanqie_marker):
        result = fanqie_marker.add_paragraph_markers("<p>One</p>", 'a"b')
        assert 'data-fanqie-chapter-id="a&quot;b"' in result

    def test_ignores_other_tags(self, legado_marker):
        html = "<pre>code</pre><param/>"
        assert legado_marker.add_paragraph_markers(html, 1) == html

    @pytest.mark.parametrize("html", ["", "   "])
    def test_empty_input_unchanged(self, legado_marker, html):
        assert legado_marker.add_paragraph_markers(html, 1) == html


@pytest.mark.unit
class TestStripMarkers:
    """Test strip_markers."""

    def test_removes_comments_and_meta(self, legado_marker):
        html = legado_marker.wrap(
            2, 2, ChapterStatus.FAILED, "<p>Body</p>", reason="x"
        )
        html = '<meta name="legado:status" content="failed"/>' + html
        assert legado_marker.strip_markers(html) == "<p>Body</p>"

    def test_keeps_other_namespaces(self, legado_marker):
        html = "<!-- fanqie:chapter-id=c1 -->\n<p>Body</p>"
        assert legado_marker.strip_markers(html) == html

    def test_keeps_data_attributes(self):
        marker = ChapterMarker(LEGADO)
        html = marker.add_paragraph_markers("<p>Body</p>", 1)
        assert marker.strip_markers(html) == html


@pytest.mark.unit
class TestDataAttributes:
    def test_attribute_string(self):
        marker = ChapterMarker(FANQIE)
        attrs = marker.data_attributes("c1", ChapterStatus.FAILED)
        assert attrs == 'data-fanqie-chapter-id="c1" data-fanqie-status="failed"'
